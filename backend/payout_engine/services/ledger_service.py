"""Ledger service: accrual, balances and upcoming payout views."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from payout_engine.core.errors import CurrencyMismatchError, InvalidAmountError, VendorNotFoundError
from payout_engine.models.ledger_entry import LedgerEntry, LedgerEntryType, LedgerSource
from payout_engine.models.shared import ensure_utc, utc_now
from payout_engine.models.vendor import Vendor
from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.ledger_entry import (
    LedgerEntryCreate,
    LedgerFilter,
    OrderRef,
    SourceEarnings,
    WalletSummaryResponse,
)
from payout_engine.schemas.payout import FeeEstimate, PayoutTransaction, UpcomingPayoutResponse
from payout_engine.services.payout_schedule import (
    calculate_payout_fee,
    next_payout_cutoff,
    payout_key,
    target_payout_for,
)

logger = logging.getLogger(__name__)


@dataclass
class LedgerBalance:
    """Balance figures derived from the ledger for one vendor.

    ``gross_credits_minor`` excludes split remainders, which only re-state
    part of a credit that is already counted.
    """

    gross_credits_minor: int
    released_minor: int
    payouts_minor: int
    refunds_minor: int
    holds_minor: int
    unsettled_credits_minor: int

    @property
    def balance_minor(self) -> int:
        return (
            self.gross_credits_minor
            + self.released_minor
            - self.payouts_minor
            - self.refunds_minor
            - self.holds_minor
        )

    @property
    def on_hold_minor(self) -> int:
        return max(self.holds_minor - self.released_minor, 0)


def _transaction(entry: LedgerEntry) -> PayoutTransaction:
    return PayoutTransaction(
        id=entry.id,  # type: ignore[arg-type]
        created_at=ensure_utc(entry.created_at),  # type: ignore[arg-type]
        target_payout_at=ensure_utc(entry.target_payout_at),  # type: ignore[arg-type]
        amount_minor=int(entry.amount_minor),
        source=str(entry.source),
        event_id=str(entry.event_id or "unknown"),
        order_id=str(entry.order_id or "unknown"),
    )


class LedgerService:
    """Service for appending ledger entries and reading vendor balances."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger_repo = LedgerEntryRepository(db)
        self.vendor_repo = VendorRepository(db)

    def _require_vendor(self, vendor_id: str) -> Vendor:
        vendor = self.vendor_repo.get_vendor(vendor_id)
        if not vendor:
            raise VendorNotFoundError(vendor_id)
        return vendor

    @staticmethod
    def _require_positive(amount_minor: int) -> None:
        if not isinstance(amount_minor, int) or isinstance(amount_minor, bool):
            raise InvalidAmountError("Amount must be an integer number of minor units")
        if amount_minor <= 0:
            raise InvalidAmountError("Amount must be positive")

    def record_credit(
        self,
        vendor_id: str,
        amount_minor: int,
        order_ref: OrderRef,
        source: LedgerSource = LedgerSource.EVENT,
        currency: str | None = None,
        event_id: str | None = None,
        note: str = "",
        created_at: datetime | None = None,
    ) -> LedgerEntry:
        """Record money owed to a vendor for a paid order."""
        self._require_positive(amount_minor)
        vendor = self._require_vendor(vendor_id)
        vendor_currency = str(vendor.currency)
        if currency and currency.upper() != vendor_currency:
            raise CurrencyMismatchError(
                f"Vendor {vendor_id} is paid in {vendor_currency}, not {currency.upper()}"
            )

        created = ensure_utc(created_at) if created_at else utc_now()
        target = target_payout_for(created, str(vendor.payout_schedule))
        entry = self.ledger_repo.append(
            LedgerEntryCreate(
                vendor_id=vendor_id,
                amount_minor=amount_minor,
                type=LedgerEntryType.CREDIT_ELIGIBLE,
                source=source,
                currency=vendor_currency,
                target_payout_at=target,
                target_payout_key=payout_key(target),
                order_ref=order_ref,
                event_id=event_id,
                note=note,
                created_at=created,
            )
        )
        self.refresh_projection(vendor_id)
        return entry

    def _record_adjustment(
        self,
        entry_type: LedgerEntryType,
        vendor_id: str,
        amount_minor: int,
        source: LedgerSource,
        order_ref: OrderRef | None,
        note: str,
        created_by: str,
    ) -> LedgerEntry:
        self._require_positive(amount_minor)
        vendor = self._require_vendor(vendor_id)
        now = utc_now()
        entry = self.ledger_repo.append(
            LedgerEntryCreate(
                vendor_id=vendor_id,
                amount_minor=amount_minor,
                type=entry_type,
                source=source,
                currency=str(vendor.currency),
                target_payout_at=now,
                target_payout_key=payout_key(now),
                order_ref=order_ref or OrderRef(id=""),
                note=note,
                created_by=created_by,
            )
        )
        self.refresh_projection(vendor_id)
        return entry

    def record_hold(
        self,
        vendor_id: str,
        amount_minor: int,
        source: LedgerSource = LedgerSource.EVENT,
        order_ref: OrderRef | None = None,
        note: str = "",
        created_by: str = "system",
    ) -> LedgerEntry:
        """Reserve part of a vendor's balance so it is not payable."""
        return self._record_adjustment(
            LedgerEntryType.DEBIT_HOLD, vendor_id, amount_minor, source, order_ref, note, created_by
        )

    def release_hold(
        self,
        vendor_id: str,
        amount_minor: int,
        source: LedgerSource = LedgerSource.EVENT,
        order_ref: OrderRef | None = None,
        note: str = "",
        created_by: str = "system",
    ) -> LedgerEntry:
        """Release previously held money back to the payable balance."""
        self._require_vendor(vendor_id)
        balance = self.get_balance(vendor_id)
        if amount_minor > balance.on_hold_minor:
            raise InvalidAmountError(
                f"Cannot release {amount_minor}; only {balance.on_hold_minor} is on hold"
            )
        return self._record_adjustment(
            LedgerEntryType.CREDIT_RELEASE,
            vendor_id,
            amount_minor,
            source,
            order_ref,
            note,
            created_by,
        )

    def record_refund(
        self,
        vendor_id: str,
        amount_minor: int,
        source: LedgerSource = LedgerSource.EVENT,
        order_ref: OrderRef | None = None,
        note: str = "",
        created_by: str = "system",
    ) -> LedgerEntry:
        """Record money returned to a buyer out of the vendor's earnings."""
        return self._record_adjustment(
            LedgerEntryType.DEBIT_REFUND, vendor_id, amount_minor, source, order_ref, note, created_by
        )

    def list_entries(self, vendor_id: str, filters: LedgerFilter | None = None) -> list[LedgerEntry]:
        return self.ledger_repo.query(vendor_id, filters)

    def get_balance(self, vendor_id: str) -> LedgerBalance:
        totals = self.ledger_repo.totals_by_type(vendor_id)
        return LedgerBalance(
            gross_credits_minor=totals[LedgerEntryType.CREDIT_ELIGIBLE.value],
            released_minor=totals[LedgerEntryType.CREDIT_RELEASE.value],
            payouts_minor=totals[LedgerEntryType.DEBIT_PAYOUT.value],
            refunds_minor=totals[LedgerEntryType.DEBIT_REFUND.value],
            holds_minor=totals[LedgerEntryType.DEBIT_HOLD.value],
            unsettled_credits_minor=self.ledger_repo.unsettled_credit_total(vendor_id),
        )

    def refresh_projection(self, vendor_id: str, paid_at: datetime | None = None) -> LedgerBalance:
        """Recompute the vendor's denormalized balance fields from the ledger."""
        balance = self.get_balance(vendor_id)
        self.vendor_repo.update_balance_projection(
            vendor_id,
            eligible_balance_minor=balance.balance_minor,
            on_hold_minor=balance.on_hold_minor,
            paid_at=paid_at,
        )
        return balance

    def earnings_by_source(self, vendor_id: str) -> dict[str, SourceEarnings]:
        result = {source.value: SourceEarnings() for source in LedgerSource}
        for source, entry_type, total in self.ledger_repo.source_totals(vendor_id):
            bucket = result.setdefault(source, SourceEarnings())
            if entry_type == LedgerEntryType.CREDIT_ELIGIBLE.value:
                bucket.eligible_minor += total
            elif entry_type == LedgerEntryType.DEBIT_HOLD.value:
                bucket.on_hold_minor += total
            elif entry_type == LedgerEntryType.CREDIT_RELEASE.value:
                bucket.on_hold_minor -= total
        for bucket in result.values():
            bucket.on_hold_minor = max(bucket.on_hold_minor, 0)
        return result

    def get_wallet_summary(self, vendor_id: str, now: datetime | None = None) -> WalletSummaryResponse:
        vendor = self._require_vendor(vendor_id)
        balance = self.get_balance(vendor_id)
        return WalletSummaryResponse(
            vendor_id=vendor_id,
            currency=str(vendor.currency),
            eligible_balance_minor=int(vendor.eligible_balance_minor or 0),
            on_hold_minor=int(vendor.on_hold_minor or 0),
            ledger_balance_minor=balance.balance_minor,
            next_payout_at=next_payout_cutoff(now or utc_now()),
            last_payout_at=ensure_utc(vendor.last_payout_at) if vendor.last_payout_at else None,  # type: ignore[arg-type]
            has_payout_destination=vendor.has_payout_destination,
            payout_schedule=str(vendor.payout_schedule),
            earnings_by_source=self.earnings_by_source(vendor_id),
        )

    def get_upcoming_payout(
        self,
        vendor_id: str,
        source: LedgerSource | None = None,
        now: datetime | None = None,
    ) -> UpcomingPayoutResponse:
        """What the vendor will receive at the next cutoff and what is due later."""
        vendor = self._require_vendor(vendor_id)
        cutoff = next_payout_cutoff(now or utc_now())

        due = self.ledger_repo.query(
            vendor_id,
            LedgerFilter(
                types=[LedgerEntryType.CREDIT_ELIGIBLE],
                source=source,
                settled=False,
                due_by=cutoff,
            ),
        )
        future = self.ledger_repo.query(
            vendor_id,
            LedgerFilter(
                types=[LedgerEntryType.CREDIT_ELIGIBLE],
                source=source,
                settled=False,
                due_after=cutoff,
            ),
        )

        by_source: dict[str, int] = {}
        by_event: dict[str, int] = {}
        for entry in due:
            amount = int(entry.amount_minor)
            by_source[str(entry.source)] = by_source.get(str(entry.source), 0) + amount
            event_key = str(entry.event_id or "unknown")
            by_event[event_key] = by_event.get(event_key, 0) + amount

        total = sum(by_source.values())
        future_total = sum(int(e.amount_minor) for e in future)
        future_sorted = sorted(future, key=lambda e: ensure_utc(e.target_payout_at))  # type: ignore[arg-type]
        fee = calculate_payout_fee(total, str(vendor.payout_schedule))

        logger.info(
            "Upcoming payout for %s: %d due (%d entries), %d future (%d entries), cutoff %s",
            vendor_id,
            total,
            len(due),
            future_total,
            len(future),
            cutoff.isoformat(),
        )

        return UpcomingPayoutResponse(
            vendor_id=vendor_id,
            next_payout_date=cutoff,
            total_amount_minor=total,
            future_amount_minor=future_total,
            wallet_balance_minor=int(vendor.eligible_balance_minor or 0),
            currency=str(vendor.currency),
            eligible_count=len(due),
            future_count=len(future),
            breakdown_by_source=by_source,
            breakdown_by_event=by_event,
            transactions=[_transaction(e) for e in due],
            future_transactions=[_transaction(e) for e in future_sorted],
            fee_estimate=FeeEstimate(
                schedule=fee.schedule.value,
                estimated_earnings_minor=fee.estimated_earnings_minor,
                fee_minor=fee.fee_minor,
                net_minor=fee.net_minor,
                fee_percent=str(fee.fee_percent),
                fee_cap_minor=fee.fee_cap_minor,
            ),
        )
