import logging
from typing import Any

from arq import cron

from payout_engine.core.config import settings
from payout_engine.core.database import SessionLocal
from payout_engine.models.ledger_entry import LedgerSource
from payout_engine.services.payout_notifier import PayoutNotifier
from payout_engine.services.payout_service import PayoutService
from payout_engine.tasks import redis_settings

logger = logging.getLogger(__name__)


def _test_mode(test_mode: bool | None) -> bool:
    return (not settings.PAYOUT_LIVE_MODE) if test_mode is None else test_mode


async def run_payout_batch_task(
    ctx: dict[str, Any],
    test_mode: bool | None = None,
    source: str | None = None,
    batch_id: str | None = None,
) -> dict[str, Any]:
    """Background task: run the weekly payout batch and email the vendors.

    Runs weekly at the payout anchor.
    """
    db = SessionLocal()
    try:
        service = PayoutService(db)
        result = service.run_payout_batch(
            test_mode=_test_mode(test_mode),
            source=LedgerSource(source) if source else None,
            batch_id=batch_id,
        )
        if not result.replayed:
            await PayoutNotifier(db).notify_batch(result.batch_id, result.results)
        logger.info(
            "Payout batch %s finished with status %s", result.batch_id, result.status
        )
        return {
            "batch_id": result.batch_id,
            "status": result.status,
            "successful": result.successful,
            "failed": result.failed,
            "skipped": result.skipped,
        }
    finally:
        db.close()


async def retry_failed_payouts_task(ctx: dict[str, Any], test_mode: bool | None = None) -> int:
    """Background task: retry vendors that failed in earlier batches.

    Runs daily, an hour after the payout anchor.
    """
    db = SessionLocal()
    try:
        result = PayoutService(db).retry_failed_payouts(test_mode=_test_mode(test_mode))
        if result.batch_id and result.results:
            await PayoutNotifier(db).notify_batch(result.batch_id, result.results)
        if result.total_retries > 0:
            logger.info(
                "Retried %d vendor(s): %d paid, %d failed",
                result.total_retries,
                result.successful,
                result.failed,
            )
        return result.successful
    finally:
        db.close()


async def send_payout_reminders_task(ctx: dict[str, Any]) -> int:
    """Background task: remind vendors without bank details the day before payout."""
    db = SessionLocal()
    try:
        result = await PayoutNotifier(db).send_payout_reminders()
        return result.emails_sent
    finally:
        db.close()


class WorkerSettings:
    functions = [
        run_payout_batch_task,
        retry_failed_payouts_task,
        send_payout_reminders_task,
    ]
    cron_jobs = [
        cron(
            run_payout_batch_task,
            weekday=settings.PAYOUT_WEEKDAY,
            hour=settings.PAYOUT_HOUR_UTC,
            minute=settings.PAYOUT_MINUTE,
        ),
        cron(
            retry_failed_payouts_task,
            hour=(settings.PAYOUT_HOUR_UTC + 1) % 24,
            minute=settings.PAYOUT_MINUTE,
        ),
        cron(
            send_payout_reminders_task,
            weekday=(settings.PAYOUT_WEEKDAY - 1) % 7,
            hour=9,
            minute=0,
        ),
    ]
    redis_settings = redis_settings
