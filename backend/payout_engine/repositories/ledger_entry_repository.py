"""LedgerEntry repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from payout_engine.core.errors import SettlementConflictError
from payout_engine.models.ledger_entry import (
    LedgerEntry,
    LedgerEntryType,
    LedgerSource,
)
from payout_engine.models.shared import ensure_utc, utc_now
from payout_engine.schemas.ledger_entry import LedgerEntryCreate, LedgerFilter


class LedgerEntryRepository:
    """Repository for LedgerEntry model.

    ``append`` commits immediately. ``stage`` and ``mark_settled`` only flush,
    so a caller can group several writes into one transaction and commit or
    roll back the session as a unit.
    """

    def __init__(self, db: Session):
        self.db = db

    def _build(self, data: LedgerEntryCreate) -> LedgerEntry:
        entry = LedgerEntry(
            vendor_id=data.vendor_id,
            amount_minor=data.amount_minor,
            type=data.type.value,
            source=data.source.value,
            currency=data.currency,
            target_payout_at=ensure_utc(data.target_payout_at),
            target_payout_key=data.target_payout_key,
            payout_batch_id=data.payout_batch_id,
            paid_at=ensure_utc(data.paid_at) if data.paid_at else None,
            order_collection=data.order_ref.collection,
            order_id=data.order_ref.id,
            event_id=data.event_id,
            split_from_entry_id=data.split_from_entry_id,
            note=data.note,
            created_by=data.created_by,
            created_at=ensure_utc(data.created_at) if data.created_at else utc_now(),
        )
        return entry

    def stage(self, data: LedgerEntryCreate) -> LedgerEntry:
        """Add an entry to the current transaction without committing."""
        entry = self._build(data)
        self.db.add(entry)
        self.db.flush()
        return entry

    def append(self, data: LedgerEntryCreate) -> LedgerEntry:
        """Append a new ledger entry and commit."""
        entry = self._build(data)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_by_id(self, entry_id: UUID) -> LedgerEntry | None:
        return self.db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).first()

    def query(self, vendor_id: str, filters: LedgerFilter | None = None) -> list[LedgerEntry]:
        """Get a vendor's entries, newest first unless ``filters.ascending``."""
        filters = filters or LedgerFilter()
        query = self.db.query(LedgerEntry).filter(LedgerEntry.vendor_id == vendor_id)

        if filters.types:
            query = query.filter(LedgerEntry.type.in_([t.value for t in filters.types]))
        if filters.source:
            query = query.filter(LedgerEntry.source == filters.source.value)
        if filters.settled is True:
            query = query.filter(LedgerEntry.payout_batch_id.isnot(None))
        elif filters.settled is False:
            query = query.filter(LedgerEntry.payout_batch_id.is_(None))
        if filters.payout_batch_id:
            query = query.filter(LedgerEntry.payout_batch_id == filters.payout_batch_id)
        if filters.due_by is not None:
            query = query.filter(LedgerEntry.target_payout_at <= ensure_utc(filters.due_by))
        if filters.due_after is not None:
            query = query.filter(LedgerEntry.target_payout_at > ensure_utc(filters.due_after))

        if filters.ascending:
            query = query.order_by(LedgerEntry.created_at.asc(), LedgerEntry.seq.asc())
        else:
            query = query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.seq.desc())

        if filters.limit:
            query = query.limit(filters.limit)
        return query.all()

    def unsettled_credits(
        self,
        vendor_id: str,
        source: LedgerSource | None = None,
        lock: bool = False,
    ) -> list[LedgerEntry]:
        """Unsettled ``credit_eligible`` entries for a vendor, oldest first.

        Entries sharing a ``created_at`` are returned in insertion order.
        """
        query = self.db.query(LedgerEntry).filter(
            LedgerEntry.vendor_id == vendor_id,
            LedgerEntry.type == LedgerEntryType.CREDIT_ELIGIBLE.value,
            LedgerEntry.payout_batch_id.is_(None),
        )
        if source:
            query = query.filter(LedgerEntry.source == source.value)
        if lock:
            query = query.with_for_update()
        return query.order_by(LedgerEntry.created_at.asc(), LedgerEntry.seq.asc()).all()

    def mark_settled(
        self,
        entry: LedgerEntry,
        batch_id: str,
        paid_at: datetime,
        note: str | None = None,
    ) -> LedgerEntry:
        """Attach settlement metadata to an entry without committing.

        Re-marking with the same batch id is a no-op; a different batch id
        raises ``SettlementConflictError``.
        """
        if entry.payout_batch_id is not None:
            if entry.payout_batch_id == batch_id:
                return entry
            raise SettlementConflictError(
                f"Entry {entry.id} already settled by batch {entry.payout_batch_id}"
            )
        entry.payout_batch_id = batch_id  # type: ignore[assignment]
        entry.paid_at = ensure_utc(paid_at)  # type: ignore[assignment]
        if note is not None:
            entry.note = note  # type: ignore[assignment]
        self.db.flush()
        return entry

    def get_payout_debit(self, vendor_id: str, batch_id: str) -> LedgerEntry | None:
        return (
            self.db.query(LedgerEntry)
            .filter(
                LedgerEntry.vendor_id == vendor_id,
                LedgerEntry.type == LedgerEntryType.DEBIT_PAYOUT.value,
                LedgerEntry.payout_batch_id == batch_id,
            )
            .first()
        )

    def settled_vendor_ids(self, batch_id: str) -> set[str]:
        """Vendors that already have a payout debit recorded for a batch."""
        rows = (
            self.db.query(LedgerEntry.vendor_id)
            .filter(
                LedgerEntry.type == LedgerEntryType.DEBIT_PAYOUT.value,
                LedgerEntry.payout_batch_id == batch_id,
            )
            .distinct()
            .all()
        )
        return {row.vendor_id for row in rows}

    def get_remainder(self, entry_id: UUID) -> LedgerEntry | None:
        """The entry carrying the unconsumed remainder of a split, if any."""
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.split_from_entry_id == entry_id)
            .first()
        )

    def _due_query(self, cutoff: datetime, source: LedgerSource | None) -> Query:  # type: ignore[type-arg]
        query = self.db.query(LedgerEntry).filter(
            LedgerEntry.type == LedgerEntryType.CREDIT_ELIGIBLE.value,
            LedgerEntry.payout_batch_id.is_(None),
            LedgerEntry.target_payout_at <= ensure_utc(cutoff),
        )
        if source:
            query = query.filter(LedgerEntry.source == source.value)
        return query

    def due_totals_by_vendor(
        self, cutoff: datetime, source: LedgerSource | None = None
    ) -> list[tuple[str, str, int, int]]:
        """Aggregate unsettled credits due by ``cutoff``.

        Returns (vendor_id, currency, total_minor, entry_count) tuples ordered
        by vendor id.
        """
        rows = (
            self._due_query(cutoff, source)
            .with_entities(
                LedgerEntry.vendor_id,
                LedgerEntry.currency,
                func.sum(LedgerEntry.amount_minor).label("total"),
                func.count(LedgerEntry.id).label("entries"),
            )
            .group_by(LedgerEntry.vendor_id, LedgerEntry.currency)
            .order_by(LedgerEntry.vendor_id.asc())
            .all()
        )
        return [(row.vendor_id, row.currency, int(row.total or 0), int(row.entries)) for row in rows]

    def due_total(
        self, vendor_id: str, cutoff: datetime, source: LedgerSource | None = None
    ) -> int:
        result = (
            self._due_query(cutoff, source)
            .filter(LedgerEntry.vendor_id == vendor_id)
            .with_entities(func.coalesce(func.sum(LedgerEntry.amount_minor), 0))
            .scalar()
        )
        return int(result or 0)

    def totals_by_type(self, vendor_id: str) -> dict[str, int]:
        """Sum of ``amount_minor`` per entry type for a vendor.

        Split remainders are reported separately under ``"remainder"`` so the
        gross credit total can exclude them.
        """
        remainder_flag = case((LedgerEntry.split_from_entry_id.isnot(None), 1), else_=0)
        rows = (
            self.db.query(
                LedgerEntry.type,
                remainder_flag.label("remainder"),
                func.sum(LedgerEntry.amount_minor).label("total"),
            )
            .filter(LedgerEntry.vendor_id == vendor_id)
            .group_by(LedgerEntry.type, remainder_flag)
            .all()
        )
        totals: dict[str, int] = {t.value: 0 for t in LedgerEntryType}
        totals["remainder"] = 0
        for row in rows:
            if row.remainder:
                totals["remainder"] += int(row.total or 0)
            else:
                totals[row.type] += int(row.total or 0)
        return totals

    def unsettled_credit_total(self, vendor_id: str) -> int:
        result = (
            self.db.query(func.coalesce(func.sum(LedgerEntry.amount_minor), 0))
            .filter(
                LedgerEntry.vendor_id == vendor_id,
                LedgerEntry.type == LedgerEntryType.CREDIT_ELIGIBLE.value,
                LedgerEntry.payout_batch_id.is_(None),
            )
            .scalar()
        )
        return int(result or 0)

    def source_totals(self, vendor_id: str) -> list[tuple[str, str, int]]:
        """(source, type, total) for unsettled credits, holds and releases."""
        rows = (
            self.db.query(
                LedgerEntry.source,
                LedgerEntry.type,
                func.sum(LedgerEntry.amount_minor).label("total"),
            )
            .filter(
                LedgerEntry.vendor_id == vendor_id,
                (
                    (LedgerEntry.type == LedgerEntryType.CREDIT_ELIGIBLE.value)
                    & LedgerEntry.payout_batch_id.is_(None)
                )
                | LedgerEntry.type.in_(
                    [LedgerEntryType.DEBIT_HOLD.value, LedgerEntryType.CREDIT_RELEASE.value]
                ),
            )
            .group_by(LedgerEntry.source, LedgerEntry.type)
            .all()
        )
        return [(row.source, row.type, int(row.total or 0)) for row in rows]

    def vendor_currency(self, vendor_id: str) -> str | None:
        row = (
            self.db.query(LedgerEntry.currency)
            .filter(LedgerEntry.vendor_id == vendor_id)
            .order_by(LedgerEntry.created_at.asc(), LedgerEntry.seq.asc())
            .first()
        )
        return row.currency if row else None
