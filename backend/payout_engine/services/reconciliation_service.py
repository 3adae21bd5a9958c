"""Manual payout reconciliation and payout batch backfill.

Both operations are operator tools for money that moved outside the batch
path. They never raise: the outcome and an operator-facing log are returned
in a ``ReconciliationResponse``.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from payout_engine.core.errors import (
    BatchExistsError,
    InvalidAmountError,
    PayoutEngineError,
    VendorNotFoundError,
)
from payout_engine.models.payout_batch import (
    PayoutBatchKind,
    PayoutBatchStatus,
    VendorPayoutStatus,
)
from payout_engine.models.shared import ensure_utc, utc_now
from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.payout_batch_repository import PayoutBatchRepository
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.payout import ReconciliationResponse, VendorPayoutResult
from payout_engine.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

MANUAL_TRANSFER_CODE = "MANUAL_PAYOUT"


class _OperatorLog:
    """Collects log lines for the operator while also sending them to ``logger``."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, msg: str, level: int = logging.INFO) -> None:
        logger.log(level, msg)
        self.lines.append(msg)


def manual_batch_id(now: datetime | None = None) -> str:
    now = ensure_utc(now or utc_now())
    return f"manual_payout_{now.date().isoformat()}_fixed_{int(now.timestamp() * 1000)}"


class ReconciliationService:
    def __init__(self, db: Session):
        self.db = db
        self.vendor_repo = VendorRepository(db)
        self.ledger_repo = LedgerEntryRepository(db)
        self.batch_repo = PayoutBatchRepository(db)
        self.settlement = SettlementService(db)

    def _vendor_result(self, vendor_id: str, vendor_name: str, amount_minor: int) -> dict:
        return VendorPayoutResult(
            vendor_id=vendor_id,
            vendor_name=vendor_name,
            success=True,
            status=VendorPayoutStatus.PAID.value,
            amount_minor=amount_minor,
            transfer_code=MANUAL_TRANSFER_CODE,
        ).model_dump()

    def reconcile_manual_payout(
        self,
        vendor_id: str,
        amount_minor: int,
        *,
        dry_run: bool = False,
        now: datetime | None = None,
        created_by: str = "admin_manual",
    ) -> ReconciliationResponse:
        """Settle the ledger for a payout that was made by hand."""
        log = _OperatorLog()
        now = ensure_utc(now) if now else utc_now()
        batch_id = manual_batch_id(now)

        try:
            log(f"Starting reconciliation for Vendor: {vendor_id}, Amount: {amount_minor}")
            if amount_minor <= 0:
                raise InvalidAmountError("Amount must be positive")
            vendor = self.vendor_repo.get_vendor(vendor_id)
            if not vendor:
                raise VendorNotFoundError(vendor_id)

            # The batch id must be free before any ledger entry is touched
            if self.batch_repo.get_by_batch_id(batch_id) is not None:
                raise BatchExistsError(batch_id)
            if self.ledger_repo.settled_vendor_ids(batch_id) - {vendor_id}:
                raise BatchExistsError(batch_id)

            result = self.settlement.settle(
                vendor_id,
                amount_minor,
                batch_id,
                now=now,
                note="[Manually Paid]",
                debit_note="Manual payout processed externally",
                created_by=created_by,
                dry_run=dry_run,
            )
            for line in result.logs:
                log(line)
            if dry_run:
                log("Dry run complete. Nothing was written.")
                return ReconciliationResponse(
                    success=True,
                    message="Dry run: reconciliation plan computed.",
                    batch_id=batch_id,
                    logs=log.lines,
                )

            self.batch_repo.create(
                batch_id,
                kind=PayoutBatchKind.MANUAL.value,
                status=PayoutBatchStatus.COMPLETED.value,
                test_mode=False,
                total_vendors=1,
                successful=1,
                total_amount_minor=amount_minor,
                currency=str(vendor.currency),
                results=[self._vendor_result(vendor_id, vendor.name, amount_minor)],
                created_at=now,
            )
            log("SUCCESS! Database reconciled.")
            return ReconciliationResponse(
                success=True,
                message="Database reconciled successfully.",
                batch_id=batch_id,
                logs=log.lines,
            )
        except (PayoutEngineError, ValueError) as e:
            logger.error("Manual payout reconciliation failed: %s", e)
            log(f"ERROR: {e}", logging.ERROR)
            return ReconciliationResponse(success=False, message=str(e), logs=log.lines)

    def backfill_payout_batch(
        self,
        vendor_id: str,
        amount_minor: int,
        batch_id: str,
        *,
        confirm_overwrite: bool = False,
    ) -> ReconciliationResponse:
        """Write the batch record for a payout whose batch record is missing."""
        log = _OperatorLog()

        try:
            log(f"Starting Batch Backfill for: {batch_id}")
            if amount_minor <= 0:
                raise InvalidAmountError("Amount must be positive")
            vendor = self.vendor_repo.get_vendor(vendor_id)
            if not vendor:
                log(f"Error: Vendor {vendor_id} not found!", logging.ERROR)
                raise VendorNotFoundError(vendor_id)
            log(f"Found vendor: {vendor.name}")

            existing = self.batch_repo.get_by_batch_id(batch_id)
            if existing is not None:
                if not confirm_overwrite:
                    log(
                        f"Batch {batch_id} already exists! Pass confirm_overwrite to replace it.",
                        logging.WARNING,
                    )
                    return ReconciliationResponse(
                        success=False,
                        message=f"Payout batch {batch_id} already exists",
                        batch_id=batch_id,
                        logs=log.lines,
                    )
                log(f"Batch {batch_id} already exists! Overwriting...", logging.WARNING)

            self.batch_repo.overwrite(
                batch_id,
                kind=PayoutBatchKind.BACKFILL.value,
                status=PayoutBatchStatus.COMPLETED.value,
                test_mode=False,
                total_vendors=1,
                successful=1,
                failed=0,
                skipped=0,
                total_amount_minor=amount_minor,
                currency=str(vendor.currency),
                results=[self._vendor_result(vendor_id, vendor.name, amount_minor)],
                created_at=utc_now(),
            )
            log("SUCCESS! Payout batch record created.")
            return ReconciliationResponse(
                success=True,
                message="Payout batch backfilled successfully.",
                batch_id=batch_id,
                logs=log.lines,
            )
        except (PayoutEngineError, ValueError) as e:
            logger.error("Backfill failed: %s", e)
            log(f"ERROR: {e}", logging.ERROR)
            return ReconciliationResponse(success=False, message=str(e), logs=log.lines)
