"""Tests for worker background tasks and cron job registration."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from payout_engine.core import database as db_module
from payout_engine.models.ledger_entry import LedgerSource
from payout_engine.repositories.payout_batch_repository import PayoutBatchRepository
from payout_engine.schemas.payout import ReminderResponse, RetryResponse
from payout_engine.services.transfer_provider import ManualTransferProvider
from payout_engine.worker import (
    WorkerSettings,
    retry_failed_payouts_task,
    run_payout_batch_task,
    send_payout_reminders_task,
)


@pytest.fixture
def mock_notifier():
    notifier = MagicMock()
    notifier.notify_batch = AsyncMock(return_value=(1, 0))
    notifier.send_payout_reminders = AsyncMock()
    with patch("payout_engine.worker.PayoutNotifier", return_value=notifier):
        yield notifier


@pytest.fixture
def test_session():
    """Point the worker's session factory at the in-memory test database."""
    with patch("payout_engine.worker.SessionLocal", db_module.SessionLocal):
        yield


def _run_result(replayed: bool = False) -> MagicMock:
    result = MagicMock()
    result.batch_id = "payout_2025-09-12_abc12345"
    result.status = "completed"
    result.successful = 2
    result.failed = 0
    result.skipped = 1
    result.replayed = replayed
    result.results = []
    return result


class TestRunPayoutBatchTask:
    @pytest.mark.asyncio
    async def test_runs_batch_and_notifies(self, test_session, mock_notifier):
        mock_service = MagicMock()
        mock_service.run_payout_batch.return_value = _run_result()

        with patch("payout_engine.worker.PayoutService", return_value=mock_service):
            result = await run_payout_batch_task({})

        assert result == {
            "batch_id": "payout_2025-09-12_abc12345",
            "status": "completed",
            "successful": 2,
            "failed": 0,
            "skipped": 1,
        }
        mock_service.run_payout_batch.assert_called_once_with(
            test_mode=True, source=None, batch_id=None
        )
        mock_notifier.notify_batch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_live_mode_setting(self, test_session, mock_notifier):
        mock_service = MagicMock()
        mock_service.run_payout_batch.return_value = _run_result()

        with (
            patch("payout_engine.worker.PayoutService", return_value=mock_service),
            patch("payout_engine.worker.settings") as mock_settings,
        ):
            mock_settings.PAYOUT_LIVE_MODE = True
            await run_payout_batch_task({})

        assert mock_service.run_payout_batch.call_args.kwargs["test_mode"] is False

    @pytest.mark.asyncio
    async def test_explicit_arguments(self, test_session, mock_notifier):
        mock_service = MagicMock()
        mock_service.run_payout_batch.return_value = _run_result()

        with patch("payout_engine.worker.PayoutService", return_value=mock_service):
            await run_payout_batch_task({}, test_mode=False, source="store", batch_id="b-1")

        mock_service.run_payout_batch.assert_called_once_with(
            test_mode=False, source=LedgerSource.STORE, batch_id="b-1"
        )

    @pytest.mark.asyncio
    async def test_replayed_batch_is_not_notified(self, test_session, mock_notifier):
        mock_service = MagicMock()
        mock_service.run_payout_batch.return_value = _run_result(replayed=True)

        with patch("payout_engine.worker.PayoutService", return_value=mock_service):
            await run_payout_batch_task({})

        mock_notifier.notify_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_end_to_end(self, test_session, make_vendor, add_credit, db_session):
        make_vendor("vendor-1", email=None)
        add_credit("vendor-1", 1300)

        with patch(
            "payout_engine.services.payout_service.get_transfer_provider",
            return_value=ManualTransferProvider(),
        ):
            result = await run_payout_batch_task({})

        assert result["successful"] == 1
        batch = PayoutBatchRepository(db_session).get_by_batch_id(result["batch_id"])
        assert batch.total_amount_minor == 1300
        assert batch.test_mode is True


class TestRetryFailedPayoutsTask:
    @pytest.mark.asyncio
    async def test_returns_successful_count(self, test_session, mock_notifier):
        mock_service = MagicMock()
        mock_service.retry_failed_payouts.return_value = RetryResponse(
            batch_id="retry_2025-09-12_abc",
            dry_run=False,
            retried_batches=["payout_1"],
            total_retries=2,
            successful=1,
            failed=1,
            results=[],
        )

        with patch("payout_engine.worker.PayoutService", return_value=mock_service):
            result = await retry_failed_payouts_task({})

        assert result == 1
        mock_service.retry_failed_payouts.assert_called_once_with(test_mode=True)

    @pytest.mark.asyncio
    async def test_nothing_to_retry(self, test_session, mock_notifier):
        result = await retry_failed_payouts_task({})
        assert result == 0
        mock_notifier.notify_batch.assert_not_called()


class TestSendPayoutRemindersTask:
    @pytest.mark.asyncio
    async def test_returns_emails_sent(self, test_session, mock_notifier):
        mock_notifier.send_payout_reminders.return_value = ReminderResponse(
            dry_run=False, total_vendors=3, emails_sent=2, emails_failed=1
        )

        result = await send_payout_reminders_task({})

        assert result == 2
        mock_notifier.send_payout_reminders.assert_awaited_once()


class TestWorkerSettings:
    def test_functions_registered(self):
        func_names = [f.__name__ for f in WorkerSettings.functions]
        assert func_names == [
            "run_payout_batch_task",
            "retry_failed_payouts_task",
            "send_payout_reminders_task",
        ]

    def test_cron_jobs_registered(self):
        cron_func_names = [job.coroutine.__name__ for job in WorkerSettings.cron_jobs]
        assert cron_func_names == [
            "run_payout_batch_task",
            "retry_failed_payouts_task",
            "send_payout_reminders_task",
        ]

    def test_batch_runs_at_weekly_anchor(self):
        job = WorkerSettings.cron_jobs[0]
        assert job.weekday == 4
        assert job.hour == 13
        assert job.minute == 0

    def test_retry_runs_hour_after_anchor(self):
        job = WorkerSettings.cron_jobs[1]
        assert job.hour == 14
        assert job.weekday is None

    def test_reminders_run_day_before(self):
        job = WorkerSettings.cron_jobs[2]
        assert job.weekday == 3
        assert job.hour == 9
