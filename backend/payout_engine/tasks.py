from typing import Any

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from payout_engine.core.config import settings

# Redis connection settings
redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    """Get or create Redis pool for arq"""
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job:
    """
    Enqueue a task to the arq worker.

    Args:
        task_name: Name of the task function
        *args: Positional arguments for the task
        **kwargs: Keyword arguments for the task

    Returns:
        Job object from arq
    """
    pool = await get_redis_pool()
    try:
        job = await pool.enqueue_job(task_name, *args, **kwargs)
        return job  # type: ignore[return-value]
    finally:
        await pool.close()


async def enqueue_payout_batch(
    test_mode: bool | None = None, source: str | None = None, batch_id: str | None = None
) -> Job:
    """Enqueue an out-of-schedule payout batch run."""
    return await enqueue_task(
        "run_payout_batch_task", test_mode=test_mode, source=source, batch_id=batch_id
    )


async def enqueue_retry_failed_payouts(test_mode: bool | None = None) -> Job:
    return await enqueue_task("retry_failed_payouts_task", test_mode=test_mode)


async def enqueue_payout_reminders() -> Job:
    return await enqueue_task("send_payout_reminders_task")
