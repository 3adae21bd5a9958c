"""Tests for background task enqueueing."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from payout_engine.tasks import (
    enqueue_payout_batch,
    enqueue_payout_reminders,
    enqueue_retry_failed_payouts,
    enqueue_task,
    get_redis_pool,
)


class TestTasks:
    @pytest.mark.asyncio
    async def test_get_redis_pool(self):
        """Test get_redis_pool creates a pool."""
        mock_pool = MagicMock()

        with patch("payout_engine.tasks.create_pool", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = mock_pool

            result = await get_redis_pool()

            assert result == mock_pool
            mock_create.assert_called_once()

    @pytest.mark.asyncio
    async def test_enqueue_task(self):
        """Test enqueue_task enqueues a job and closes the pool."""
        mock_job = MagicMock()
        mock_job.job_id = "job-123"

        mock_pool = MagicMock()
        mock_pool.enqueue_job = AsyncMock(return_value=mock_job)
        mock_pool.close = AsyncMock()

        with patch("payout_engine.tasks.get_redis_pool", new_callable=AsyncMock) as mock_get_pool:
            mock_get_pool.return_value = mock_pool

            result = await enqueue_task("my_task", "arg1", kwarg1="value1")

            assert result == mock_job
            mock_pool.enqueue_job.assert_called_once_with("my_task", "arg1", kwarg1="value1")
            mock_pool.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_enqueue_task_closes_pool_on_error(self):
        """Test enqueue_task closes pool even when job enqueue fails."""
        mock_pool = MagicMock()
        mock_pool.enqueue_job = AsyncMock(side_effect=Exception("Redis error"))
        mock_pool.close = AsyncMock()

        with patch("payout_engine.tasks.get_redis_pool", new_callable=AsyncMock) as mock_get_pool:
            mock_get_pool.return_value = mock_pool

            with pytest.raises(Exception, match="Redis error"):
                await enqueue_task("failing_task")

            mock_pool.close.assert_called_once()


class TestPayoutEnqueueHelpers:
    @pytest.mark.asyncio
    async def test_enqueue_payout_batch(self):
        with patch("payout_engine.tasks.enqueue_task", new_callable=AsyncMock) as mock_enqueue:
            await enqueue_payout_batch(test_mode=False, source="store", batch_id="b-1")

        mock_enqueue.assert_called_once_with(
            "run_payout_batch_task", test_mode=False, source="store", batch_id="b-1"
        )

    @pytest.mark.asyncio
    async def test_enqueue_payout_batch_defaults(self):
        with patch("payout_engine.tasks.enqueue_task", new_callable=AsyncMock) as mock_enqueue:
            await enqueue_payout_batch()

        mock_enqueue.assert_called_once_with(
            "run_payout_batch_task", test_mode=None, source=None, batch_id=None
        )

    @pytest.mark.asyncio
    async def test_enqueue_retry(self):
        with patch("payout_engine.tasks.enqueue_task", new_callable=AsyncMock) as mock_enqueue:
            await enqueue_retry_failed_payouts(test_mode=True)

        mock_enqueue.assert_called_once_with("retry_failed_payouts_task", test_mode=True)

    @pytest.mark.asyncio
    async def test_enqueue_reminders(self):
        with patch("payout_engine.tasks.enqueue_task", new_callable=AsyncMock) as mock_enqueue:
            await enqueue_payout_reminders()

        mock_enqueue.assert_called_once_with("send_payout_reminders_task")
