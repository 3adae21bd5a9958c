"""Payout notifications: per-vendor batch emails and bank detail reminders."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from payout_engine.models.payout_batch import VendorPayoutStatus
from payout_engine.models.shared import ensure_utc, utc_now
from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.payout import ReminderResponse, VendorPayoutResult
from payout_engine.services.email_service import EmailService
from payout_engine.services.payout_schedule import next_payout_cutoff

logger = logging.getLogger(__name__)


class PayoutNotifier:
    """Sends payout emails. A failed email is logged and counted, never raised."""

    def __init__(self, db: Session, email_service: EmailService | None = None):
        self.db = db
        self.email_service = email_service or EmailService()
        self.vendor_repo = VendorRepository(db)
        self.ledger_repo = LedgerEntryRepository(db)

    async def notify_batch(
        self, batch_id: str, results: list[VendorPayoutResult]
    ) -> tuple[int, int]:
        """Email each paid or failed vendor of a batch. Returns (sent, failed)."""
        notifiable = [
            r
            for r in results
            if r.status in (VendorPayoutStatus.PAID.value, VendorPayoutStatus.FAILED.value)
        ]
        vendors = self.vendor_repo.get_many([r.vendor_id for r in notifiable])
        sent = failed = 0
        for result in notifiable:
            vendor = vendors.get(result.vendor_id)
            if vendor is None:
                continue
            try:
                if result.status == VendorPayoutStatus.PAID.value:
                    ok = await self.email_service.send_payout_email(
                        vendor, result.amount_minor, batch_id, result.transfer_code
                    )
                else:
                    ok = await self.email_service.send_payout_failed_email(
                        vendor, result.amount_minor, batch_id
                    )
            except Exception:
                logger.exception("Failed to email vendor %s about batch %s", result.vendor_id, batch_id)
                ok = False
            if ok:
                sent += 1
            else:
                failed += 1
        logger.info("Batch %s notifications: %d sent, %d failed", batch_id, sent, failed)
        return sent, failed

    async def send_payout_reminders(
        self, dry_run: bool = False, now: datetime | None = None
    ) -> ReminderResponse:
        """Remind vendors with money due this cycle to add verified bank details."""
        now = ensure_utc(now) if now else utc_now()
        cutoff = next_payout_cutoff(now)

        due: dict[str, int] = {}
        for vendor_id, _currency, total, _entries in self.ledger_repo.due_totals_by_vendor(cutoff):
            due[vendor_id] = due.get(vendor_id, 0) + total

        vendors = self.vendor_repo.get_many(list(due))
        targets = [
            (vendors[vendor_id], amount)
            for vendor_id, amount in due.items()
            if amount > 0 and vendor_id in vendors and not vendors[vendor_id].has_payout_destination
        ]

        sent = failed = 0
        if dry_run:
            logger.info("Dry run: %d vendor(s) would be reminded", len(targets))
        else:
            for vendor, amount in targets:
                try:
                    ok = await self.email_service.send_payout_reminder_email(vendor, amount, cutoff)
                except Exception:
                    logger.exception("Failed to send payout reminder to %s", vendor.id)
                    ok = False
                if ok:
                    sent += 1
                else:
                    failed += 1
            logger.info("Payout reminders: %d sent, %d failed", sent, failed)

        return ReminderResponse(
            dry_run=dry_run,
            total_vendors=len(targets),
            emails_sent=sent,
            emails_failed=failed,
        )
