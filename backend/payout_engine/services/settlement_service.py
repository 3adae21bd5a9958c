"""FIFO settlement of a payout amount against a vendor's unsettled credits."""

import logging
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payout_engine.core.config import settings
from payout_engine.core.errors import (
    InvalidAmountError,
    SettlementCommitError,
    SettlementConflictError,
)
from payout_engine.models.ledger_entry import LedgerEntry, LedgerEntryType, LedgerSource
from payout_engine.models.shared import ensure_utc, utc_now
from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.vendor_repository import VendorRepository
from payout_engine.schemas.ledger_entry import LedgerEntryCreate, LedgerFilter, OrderRef
from payout_engine.services.ledger_service import LedgerService
from payout_engine.services.payout_schedule import payout_key

logger = logging.getLogger(__name__)

# Entries drop out once no settlement holds or awaits the lock
_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def vendor_lock(vendor_id: str) -> threading.Lock:
    """Process-wide lock serializing settlements for one vendor."""
    with _locks_guard:
        lock = _locks.get(vendor_id)
        if lock is None:
            lock = threading.Lock()
            _locks[vendor_id] = lock
        return lock


@dataclass
class TouchedEntry:
    """A credit consumed (fully or partly) by a settlement."""

    entry_id: UUID
    original_amount_minor: int
    consumed_minor: int
    split: bool = False

    @property
    def remainder_minor(self) -> int:
        return self.original_amount_minor - self.consumed_minor


@dataclass
class SettlementResult:
    batch_id: str
    vendor_id: str
    amount_minor: int
    touched: list[TouchedEntry] = field(default_factory=list)
    created: list[UUID] = field(default_factory=list)
    overdrawn_minor: int = 0
    already_settled: bool = False
    dry_run: bool = False
    chunks: int = 0
    logs: list[str] = field(default_factory=list)

    @property
    def consumed_minor(self) -> int:
        return sum(t.consumed_minor for t in self.touched)


@dataclass
class _Step:
    entry: LedgerEntry
    consumed: int

    @property
    def is_split(self) -> bool:
        return self.consumed < int(self.entry.amount_minor)

    @property
    def writes(self) -> int:
        return 2 if self.is_split else 1


class SettlementService:
    """Consumes unsettled credits oldest first and records the payout debit.

    All writes for one settlement are staged on the session and committed
    together. When the number of writes exceeds ``max_writes`` they are
    committed in sequential chunks instead, with the debit in the last one.
    A rerun for the same batch picks up where a failed chunked run stopped.
    """

    def __init__(self, db: Session, max_writes: int | None = None):
        self.db = db
        self.ledger_repo = LedgerEntryRepository(db)
        self.vendor_repo = VendorRepository(db)
        self.max_writes = max_writes or settings.SETTLEMENT_MAX_WRITES
        if self.max_writes < 2:
            raise ValueError("max_writes must allow at least a split and its remainder")

    def amount_settled_by_batch(self, vendor_id: str, batch_id: str) -> int:
        """Credit amount a batch has consumed, net of carried-forward remainders."""
        entries = self.ledger_repo.query(
            vendor_id,
            LedgerFilter(types=[LedgerEntryType.CREDIT_ELIGIBLE], payout_batch_id=batch_id),
        )
        total = 0
        for entry in entries:
            remainder = self.ledger_repo.get_remainder(entry.id)  # type: ignore[arg-type]
            carried = int(remainder.amount_minor) if remainder else 0
            total += int(entry.amount_minor) - carried
        return total

    def settle(
        self,
        vendor_id: str,
        amount_minor: int,
        batch_id: str,
        *,
        now: datetime | None = None,
        note: str | None = None,
        created_by: str = "system",
        source: LedgerSource | None = None,
        dry_run: bool = False,
        debit_note: str | None = None,
    ) -> SettlementResult:
        """Settle ``amount_minor`` for a vendor under ``batch_id``.

        Returns ``already_settled=True`` without writing anything when a
        payout debit for the same vendor and batch exists. Running short of
        credits is reported through ``overdrawn_minor`` and a warning.
        """
        if not isinstance(amount_minor, int) or isinstance(amount_minor, bool) or amount_minor <= 0:
            raise InvalidAmountError("Settlement amount must be a positive integer")
        if not vendor_id or not batch_id:
            raise ValueError("vendor_id and batch_id are required")

        result = SettlementResult(
            batch_id=batch_id, vendor_id=vendor_id, amount_minor=amount_minor, dry_run=dry_run
        )
        with vendor_lock(vendor_id):
            try:
                if self.ledger_repo.get_payout_debit(vendor_id, batch_id):
                    result.already_settled = True
                    result.logs.append(f"Vendor {vendor_id} already settled in batch {batch_id}")
                    logger.info("Settlement for %s in %s already recorded", vendor_id, batch_id)
                    return result
                resumed = self.amount_settled_by_batch(vendor_id, batch_id)
                credits = self.ledger_repo.unsettled_credits(
                    vendor_id, source=source, lock=not dry_run
                )
                currency = self._currency_for(vendor_id, credits)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Settlement read failed for %s in batch %s", vendor_id, batch_id)
                raise SettlementCommitError(
                    f"Failed to read ledger for {vendor_id} in batch {batch_id}: {e}"
                ) from e

            now = ensure_utc(now) if now else utc_now()
            remaining = amount_minor
            if resumed:
                remaining = max(amount_minor - resumed, 0)
                result.logs.append(
                    f"Resuming batch {batch_id}: {resumed} already consumed, {remaining} to go"
                )
                logger.info(
                    "Resuming settlement of %s in %s: %d already consumed",
                    vendor_id,
                    batch_id,
                    resumed,
                )

            result.logs.append(f"Found {len(credits)} unsettled credit entries")

            steps: list[_Step] = []
            for entry in credits:
                if remaining <= 0:
                    break
                amount = int(entry.amount_minor)
                consumed = min(amount, remaining)
                steps.append(_Step(entry=entry, consumed=consumed))
                remaining -= consumed

            for step in steps:
                result.touched.append(
                    TouchedEntry(
                        entry_id=step.entry.id,  # type: ignore[arg-type]
                        original_amount_minor=int(step.entry.amount_minor),
                        consumed_minor=step.consumed,
                        split=step.is_split,
                    )
                )
                if step.is_split:
                    result.logs.append(
                        f"Splitting entry {step.entry.id}: {step.consumed} paid, "
                        f"{int(step.entry.amount_minor) - step.consumed} carried forward"
                    )
                else:
                    result.logs.append(f"Settling entry {step.entry.id} fully ({step.consumed})")

            if remaining > 0:
                result.overdrawn_minor = remaining
                result.logs.append(
                    f"WARNING: Vendor was paid {amount_minor} but only had eligible credits "
                    f"for {amount_minor - remaining}. The ledger is now overdrawn by {remaining}."
                )
                logger.warning(
                    "Vendor %s overdrawn by %d in batch %s (payout %d)",
                    vendor_id,
                    remaining,
                    batch_id,
                    amount_minor,
                )

            if dry_run:
                result.logs.append("Dry run: no changes written")
                return result

            debit_source = source or (
                LedgerSource(str(steps[0].entry.source)) if steps else LedgerSource.EVENT
            )
            debit = (amount_minor, currency, debit_source, debit_note or note or f"Payout {batch_id}")
            for chunk, with_debit in self._chunks(steps):
                created = self._apply_chunk(
                    chunk,
                    batch_id=batch_id,
                    now=now,
                    note=note,
                    created_by=created_by,
                    debit=debit if with_debit else None,
                    vendor_id=vendor_id,
                )
                result.created.extend(created)
                result.chunks += 1

        try:
            LedgerService(self.db).refresh_projection(vendor_id, paid_at=now)
        except SQLAlchemyError:
            # The ledger is committed; the projection is rebuilt on the next write
            self.db.rollback()
            logger.exception("Balance projection refresh failed for %s after %s", vendor_id, batch_id)
            result.logs.append("WARNING: Balance projection not refreshed")
        result.logs.append(
            f"Recorded payout debit of {amount_minor} for {vendor_id} in batch {batch_id}"
        )
        logger.info(
            "Settled %d for vendor %s in batch %s: %d entries, %d chunk(s)",
            amount_minor,
            vendor_id,
            batch_id,
            len(result.touched),
            result.chunks,
        )
        return result

    def _currency_for(self, vendor_id: str, credits: list[LedgerEntry]) -> str:
        if credits:
            return str(credits[0].currency)
        vendor = self.vendor_repo.get_vendor(vendor_id)
        if vendor:
            return str(vendor.currency)
        return self.ledger_repo.vendor_currency(vendor_id) or settings.DEFAULT_CURRENCY

    def _chunks(self, steps: list[_Step]):
        """Yield (steps, carries_debit) groups that fit the write limit."""
        chunk: list[_Step] = []
        writes = 0
        for step in steps:
            if chunk and writes + step.writes > self.max_writes:
                yield chunk, False
                chunk, writes = [], 0
            chunk.append(step)
            writes += step.writes
        if writes + 1 > self.max_writes:
            yield chunk, False
            chunk = []
        yield chunk, True

    def _apply_chunk(
        self,
        steps: list[_Step],
        *,
        batch_id: str,
        now: datetime,
        note: str | None,
        created_by: str,
        debit: tuple[int, str, LedgerSource, str] | None,
        vendor_id: str,
    ) -> list[UUID]:
        created: list[UUID] = []
        try:
            for step in steps:
                entry = step.entry
                original = int(entry.amount_minor)
                existing_note = str(entry.note or "")
                if step.is_split:
                    carried = original - step.consumed
                    annotation = f"[Split: {step.consumed} paid, {carried} carried forward]"
                    self.ledger_repo.mark_settled(
                        entry, batch_id, now, note=f"{existing_note} {annotation}".strip()
                    )
                    remainder = self.ledger_repo.stage(
                        LedgerEntryCreate(
                            vendor_id=vendor_id,
                            amount_minor=carried,
                            type=LedgerEntryType.CREDIT_ELIGIBLE,
                            source=LedgerSource(str(entry.source)),
                            currency=str(entry.currency),
                            target_payout_at=ensure_utc(entry.target_payout_at),  # type: ignore[arg-type]
                            target_payout_key=str(entry.target_payout_key),
                            order_ref=OrderRef(
                                collection=str(entry.order_collection), id=str(entry.order_id)
                            ),
                            event_id=entry.event_id,  # type: ignore[arg-type]
                            split_from_entry_id=entry.id,  # type: ignore[arg-type]
                            note=f"Remainder from split of {entry.id}",
                            created_by=created_by,
                            created_at=now,
                        )
                    )
                    created.append(remainder.id)  # type: ignore[arg-type]
                else:
                    new_note = f"{existing_note} {note}".strip() if note else None
                    self.ledger_repo.mark_settled(entry, batch_id, now, note=new_note)

            if debit is not None:
                amount_minor, currency, source, debit_note = debit
                payout = self.ledger_repo.stage(
                    LedgerEntryCreate(
                        vendor_id=vendor_id,
                        amount_minor=amount_minor,
                        type=LedgerEntryType.DEBIT_PAYOUT,
                        source=source,
                        currency=currency,
                        target_payout_at=now,
                        target_payout_key=payout_key(now),
                        payout_batch_id=batch_id,
                        paid_at=now,
                        note=debit_note,
                        created_by=created_by,
                        created_at=now,
                    )
                )
                created.append(payout.id)  # type: ignore[arg-type]
            self.db.commit()
        except SettlementConflictError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Settlement commit failed for %s in batch %s", vendor_id, batch_id)
            raise SettlementCommitError(
                f"Failed to commit settlement for {vendor_id} in batch {batch_id}: {e}"
            ) from e
        return created
