"""Batch payout processing: disbursement runs and retries of failed vendors."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payout_engine.core.config import settings
from payout_engine.core.errors import (
    MissingPayoutDestinationError,
    PayoutEngineError,
    TransferError,
)
from payout_engine.models.ledger_entry import LedgerSource
from payout_engine.models.payout_batch import (
    PayoutBatch,
    PayoutBatchKind,
    PayoutBatchStatus,
    VendorPayoutStatus,
)
from payout_engine.models.shared import ensure_utc, utc_now
from payout_engine.models.vendor import Vendor
from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.payout_batch_repository import PayoutBatchRepository
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.payout import PayoutRunResponse, RetryResponse, VendorPayoutResult
from payout_engine.services.payout_schedule import next_payout_cutoff
from payout_engine.services.settlement_service import SettlementService
from payout_engine.services.transfer_provider import (
    TransferDestination,
    TransferProviderBase,
    TransferResult,
    get_transfer_provider,
)

logger = logging.getLogger(__name__)

PENDING_STATUS = "pending"


def generate_batch_id(prefix: str, now: datetime | None = None) -> str:
    """Human-legible batch id, e.g. ``payout_2025-09-12_3f9a1c2e``."""
    day = ensure_utc(now or utc_now()).date().isoformat()
    return f"{prefix}_{day}_{uuid4().hex[:8]}"


def batch_status(successful: int, failed: int) -> PayoutBatchStatus:
    if failed == 0:
        return PayoutBatchStatus.COMPLETED
    if successful == 0:
        return PayoutBatchStatus.FAILED
    return PayoutBatchStatus.PARTIAL


@dataclass
class _PayoutCandidate:
    vendor_id: str
    vendor_name: str
    amount_minor: int
    currency: str
    destination: TransferDestination | None
    has_recipient: bool = False


class PayoutService:
    """Service for weekly payout batches.

    Provider calls run in a thread pool; every database write happens on the
    calling thread, one vendor at a time, after its transfer has returned.
    """

    def __init__(
        self,
        db: Session,
        provider: TransferProviderBase | None = None,
        max_workers: int | None = None,
    ):
        self.db = db
        self.provider = provider
        self.max_workers = max_workers or settings.PAYOUT_MAX_WORKERS
        self.ledger_repo = LedgerEntryRepository(db)
        self.batch_repo = PayoutBatchRepository(db)
        self.vendor_repo = VendorRepository(db)
        self.settlement = SettlementService(db)

    def _provider(self, test_mode: bool) -> TransferProviderBase:
        return self.provider or get_transfer_provider(test_mode=test_mode)

    def _candidate(
        self, vendor_id: str, vendor: Vendor | None, amount_minor: int, currency: str
    ) -> _PayoutCandidate:
        destination = None
        if vendor is not None:
            try:
                destination = TransferDestination.from_vendor(vendor)
            except MissingPayoutDestinationError as e:
                logger.debug("%s", e)
        return _PayoutCandidate(
            vendor_id=vendor_id,
            vendor_name=vendor.name if vendor is not None else "Unknown Vendor",
            amount_minor=amount_minor,
            currency=currency,
            destination=destination,
            has_recipient=bool(vendor is not None and vendor.transfer_recipient_code),
        )

    def _disburse(
        self,
        candidates: list[_PayoutCandidate],
        batch_id: str,
        provider: TransferProviderBase | None,
        now: datetime,
        source: LedgerSource | None,
        dry_run: bool,
    ) -> list[VendorPayoutResult]:
        """Transfer to each candidate and settle the ones that succeed.

        Errors never leave this method; each vendor gets its own result.
        """
        results: dict[str, VendorPayoutResult] = {}
        payable: list[_PayoutCandidate] = []

        for candidate in candidates:
            if candidate.destination is None:
                logger.info("Skipping vendor %s: no verified bank details", candidate.vendor_id)
                results[candidate.vendor_id] = VendorPayoutResult(
                    vendor_id=candidate.vendor_id,
                    vendor_name=candidate.vendor_name,
                    success=False,
                    status=VendorPayoutStatus.SKIPPED.value,
                    amount_minor=candidate.amount_minor,
                    error="No verified bank details on file",
                )
            elif dry_run:
                results[candidate.vendor_id] = VendorPayoutResult(
                    vendor_id=candidate.vendor_id,
                    vendor_name=candidate.vendor_name,
                    success=False,
                    status=VendorPayoutStatus.PENDING.value,
                    amount_minor=candidate.amount_minor,
                )
            else:
                payable.append(candidate)

        if payable and provider is not None:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures: dict[str, Future[TransferResult]] = {
                    c.vendor_id: pool.submit(
                        provider.transfer,
                        c.destination,  # type: ignore[arg-type]
                        c.amount_minor,
                        c.currency,
                        f"{batch_id}_{c.vendor_id}",
                    )
                    for c in payable
                }
                for candidate in payable:
                    results[candidate.vendor_id] = self._complete(
                        candidate, futures[candidate.vendor_id], batch_id, now, source
                    )

        return [results[c.vendor_id] for c in candidates]

    def _complete(
        self,
        candidate: _PayoutCandidate,
        future: "Future[TransferResult]",
        batch_id: str,
        now: datetime,
        source: LedgerSource | None,
    ) -> VendorPayoutResult:
        try:
            transfer = future.result()
        except TransferError as e:
            logger.warning("Transfer to %s failed in %s: %s", candidate.vendor_id, batch_id, e)
            return self._failed(candidate, str(e))
        except Exception as e:
            logger.exception("Unexpected transfer error for %s in %s", candidate.vendor_id, batch_id)
            return self._failed(candidate, str(e))

        if transfer.recipient_code and not candidate.has_recipient:
            try:
                self.vendor_repo.set_transfer_recipient(
                    candidate.vendor_id, transfer.recipient_code
                )
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception(
                    "Could not store recipient %s for %s",
                    transfer.recipient_code,
                    candidate.vendor_id,
                )

        try:
            settled = self.settlement.settle(
                candidate.vendor_id,
                candidate.amount_minor,
                batch_id,
                now=now,
                source=source,
                created_by="payout_batch",
            )
        except PayoutEngineError as e:
            # Money has left; the ledger needs a manual reconciliation, not a retry.
            logger.error(
                "Transfer %s to %s succeeded but settlement failed: %s",
                transfer.transfer_code,
                candidate.vendor_id,
                e,
            )
            return self._failed(
                candidate, f"Transfer sent but settlement failed: {e}", transfer.transfer_code
            )
        except Exception as e:
            self.db.rollback()
            logger.exception(
                "Transfer %s to %s succeeded but settlement raised unexpectedly",
                transfer.transfer_code,
                candidate.vendor_id,
            )
            return self._failed(
                candidate, f"Transfer sent but settlement failed: {e}", transfer.transfer_code
            )

        return VendorPayoutResult(
            vendor_id=candidate.vendor_id,
            vendor_name=candidate.vendor_name,
            success=True,
            status=VendorPayoutStatus.PAID.value,
            amount_minor=candidate.amount_minor,
            transfer_code=transfer.transfer_code,
            overdrawn_minor=settled.overdrawn_minor,
        )

    @staticmethod
    def _failed(
        candidate: _PayoutCandidate, error: str, transfer_code: str | None = None
    ) -> VendorPayoutResult:
        return VendorPayoutResult(
            vendor_id=candidate.vendor_id,
            vendor_name=candidate.vendor_name,
            success=False,
            status=VendorPayoutStatus.FAILED.value,
            amount_minor=candidate.amount_minor,
            transfer_code=transfer_code,
            error=error,
        )

    @staticmethod
    def _counts(results: list[VendorPayoutResult]) -> tuple[int, int, int, int]:
        successful = sum(1 for r in results if r.status == VendorPayoutStatus.PAID.value)
        failed = sum(1 for r in results if r.status == VendorPayoutStatus.FAILED.value)
        skipped = sum(1 for r in results if r.status == VendorPayoutStatus.SKIPPED.value)
        total = sum(r.amount_minor for r in results if r.status == VendorPayoutStatus.PAID.value)
        return successful, failed, skipped, total

    @staticmethod
    def _from_batch(batch: PayoutBatch) -> PayoutRunResponse:
        return PayoutRunResponse(
            batch_id=str(batch.batch_id),
            dry_run=False,
            replayed=True,
            status=str(batch.status),
            cutoff_at=ensure_utc(batch.cutoff_at or batch.created_at),  # type: ignore[arg-type]
            total_vendors=int(batch.total_vendors),
            successful=int(batch.successful),
            failed=int(batch.failed),
            skipped=int(batch.skipped),
            total_amount_minor=int(batch.total_amount_minor),
            results=[VendorPayoutResult(**r) for r in (batch.results or [])],
        )

    def run_payout_batch(
        self,
        test_mode: bool = True,
        dry_run: bool = False,
        source: LedgerSource | None = None,
        batch_id: str | None = None,
        now: datetime | None = None,
    ) -> PayoutRunResponse:
        """Pay every vendor whose unsettled credits are due by the next cutoff.

        An existing ``batch_id`` is replayed from its stored record. A batch id
        with payout debits but no record (an interrupted run) only re-attempts
        vendors that have no debit for it yet.
        """
        now = ensure_utc(now) if now else utc_now()
        cutoff = next_payout_cutoff(now)

        if batch_id:
            existing = self.batch_repo.get_by_batch_id(batch_id)
            if existing is not None:
                logger.info("Payout batch %s already exists, returning stored result", batch_id)
                return self._from_batch(existing)
        else:
            prefix = "store_payout" if source == LedgerSource.STORE else "payout"
            batch_id = generate_batch_id(prefix, now)

        logger.info(
            "Starting payout batch %s (cutoff %s, test_mode=%s, dry_run=%s, source=%s)",
            batch_id,
            cutoff.isoformat(),
            test_mode,
            dry_run,
            source.value if source else "all",
        )

        already_settled = self.ledger_repo.settled_vendor_ids(batch_id)
        resumed: list[VendorPayoutResult] = []
        for vendor_id in sorted(already_settled):
            debit = self.ledger_repo.get_payout_debit(vendor_id, batch_id)
            vendor = self.vendor_repo.get_vendor(vendor_id)
            resumed.append(
                VendorPayoutResult(
                    vendor_id=vendor_id,
                    vendor_name=vendor.name if vendor else "Unknown Vendor",
                    success=True,
                    status=VendorPayoutStatus.PAID.value,
                    amount_minor=int(debit.amount_minor) if debit else 0,
                )
            )
        if resumed:
            logger.warning(
                "Batch %s was interrupted; %d vendor(s) already settled will not be paid again",
                batch_id,
                len(resumed),
            )

        due: dict[str, tuple[int, str]] = {}
        for vendor_id, currency, total, _entries in self.ledger_repo.due_totals_by_vendor(
            cutoff, source
        ):
            if vendor_id in already_settled or total <= 0:
                continue
            amount, first_currency = due.get(vendor_id, (0, currency))
            due[vendor_id] = (amount + total, first_currency)

        vendors = self.vendor_repo.get_many(list(due))
        candidates = [
            self._candidate(vendor_id, vendors.get(vendor_id), amount, currency)
            for vendor_id, (amount, currency) in due.items()
        ]

        provider = None if dry_run else self._provider(test_mode)
        results = resumed + self._disburse(candidates, batch_id, provider, now, source, dry_run)
        successful, failed, skipped, total = self._counts(results)

        if dry_run:
            status = PENDING_STATUS
        else:
            status = batch_status(successful, failed).value
            currencies = {c.currency for c in candidates}
            self.batch_repo.create(
                batch_id,
                kind=PayoutBatchKind.SCHEDULED.value,
                source=source.value if source else None,
                status=status,
                test_mode=test_mode,
                total_vendors=len(results),
                successful=successful,
                failed=failed,
                skipped=skipped,
                total_amount_minor=total,
                currency=currencies.pop() if len(currencies) == 1 else settings.DEFAULT_CURRENCY,
                cutoff_at=cutoff,
                results=[r.model_dump() for r in results],
                created_at=now,
            )

        logger.info(
            "Payout batch %s %s: %d paid, %d failed, %d skipped, total %d",
            batch_id,
            status,
            successful,
            failed,
            skipped,
            total,
        )
        return PayoutRunResponse(
            batch_id=batch_id,
            dry_run=dry_run,
            status=status,
            cutoff_at=cutoff,
            total_vendors=len(results),
            successful=successful,
            failed=failed,
            skipped=skipped,
            total_amount_minor=total,
            results=results,
        )

    def retry_failed_payouts(
        self,
        dry_run: bool = False,
        test_mode: bool = True,
        now: datetime | None = None,
    ) -> RetryResponse:
        """Re-attempt vendors that failed in batches no retry has covered yet.

        Each vendor is paid its current due amount, not the amount that failed.
        Failures whose transfer went through but whose settlement did not are
        left for manual reconciliation.
        """
        now = ensure_utc(now) if now else utc_now()
        batches = self.batch_repo.get_unretried_with_failures()
        batch_ids = [str(b.batch_id) for b in batches]

        latest: dict[str, dict] = {}
        for batch in batches:
            for result in batch.results or []:
                latest[result["vendor_id"]] = result

        vendor_ids: list[str] = []
        for vendor_id, result in latest.items():
            if result.get("status") != VendorPayoutStatus.FAILED.value:
                continue
            if result.get("transfer_code"):
                logger.warning(
                    "Not retrying %s: transfer %s was sent, reconcile manually",
                    vendor_id,
                    result["transfer_code"],
                )
                continue
            vendor_ids.append(vendor_id)

        cutoff = next_payout_cutoff(now)
        retry_batch_id = generate_batch_id("retry", now)

        if not vendor_ids:
            logger.info("No failed payouts to retry in %d batch(es)", len(batches))
            if not batch_ids:
                return RetryResponse(
                    dry_run=dry_run,
                    retried_batches=[],
                    total_retries=0,
                    successful=0,
                    failed=0,
                    results=[],
                )
            # An empty retry still marks the scanned batches as covered
            if not dry_run:
                self.batch_repo.create(
                    retry_batch_id,
                    kind=PayoutBatchKind.RETRY.value,
                    status=PayoutBatchStatus.COMPLETED.value,
                    test_mode=test_mode,
                    retry_of=",".join(batch_ids),
                    total_vendors=0,
                    currency=settings.DEFAULT_CURRENCY,
                    cutoff_at=cutoff,
                    results=[],
                    created_at=now,
                )
            return RetryResponse(
                batch_id=retry_batch_id,
                dry_run=dry_run,
                retried_batches=batch_ids,
                total_retries=0,
                successful=0,
                failed=0,
                results=[],
            )

        vendors = self.vendor_repo.get_many(vendor_ids)
        candidates: list[_PayoutCandidate] = []
        nothing_due: list[VendorPayoutResult] = []
        for vendor_id in vendor_ids:
            vendor = vendors.get(vendor_id)
            amount = self.ledger_repo.due_total(vendor_id, cutoff)
            if amount <= 0:
                nothing_due.append(
                    VendorPayoutResult(
                        vendor_id=vendor_id,
                        vendor_name=vendor.name if vendor else "Unknown Vendor",
                        success=False,
                        status=VendorPayoutStatus.SKIPPED.value,
                        amount_minor=0,
                        error="Nothing due",
                    )
                )
                continue
            currency = str(vendor.currency) if vendor else settings.DEFAULT_CURRENCY
            candidates.append(self._candidate(vendor_id, vendor, amount, currency))

        logger.info(
            "Retrying %d vendor(s) from %d batch(es) as %s",
            len(vendor_ids),
            len(batch_ids),
            retry_batch_id,
        )
        provider = None if dry_run else self._provider(test_mode)
        results = self._disburse(candidates, retry_batch_id, provider, now, None, dry_run)
        results += nothing_due
        successful, failed, skipped, total = self._counts(results)

        if not dry_run:
            self.batch_repo.create(
                retry_batch_id,
                kind=PayoutBatchKind.RETRY.value,
                status=batch_status(successful, failed).value,
                test_mode=test_mode,
                retry_of=",".join(batch_ids),
                total_vendors=len(results),
                successful=successful,
                failed=failed,
                skipped=skipped,
                total_amount_minor=total,
                currency=settings.DEFAULT_CURRENCY,
                cutoff_at=cutoff,
                results=[r.model_dump() for r in results],
                created_at=now,
            )

        return RetryResponse(
            batch_id=retry_batch_id,
            dry_run=dry_run,
            retried_batches=batch_ids,
            total_retries=len(vendor_ids),
            successful=successful,
            failed=failed,
            results=results,
        )
