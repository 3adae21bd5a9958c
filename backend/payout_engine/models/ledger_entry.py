"""LedgerEntry model: signed monetary movements in a vendor wallet."""

from enum import Enum

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, Text

from payout_engine.core.database import Base
from payout_engine.models.shared import UUIDType, generate_uuid, utc_now


class LedgerEntryType(str, Enum):
    CREDIT_ELIGIBLE = "credit_eligible"
    DEBIT_HOLD = "debit_hold"
    DEBIT_PAYOUT = "debit_payout"
    DEBIT_REFUND = "debit_refund"
    CREDIT_RELEASE = "credit_release"


class LedgerSource(str, Enum):
    EVENT = "event"
    STORE = "store"


class LedgerEntry(Base):
    """One immutable-amount ledger row.

    Only ``payout_batch_id``, ``paid_at`` and ``note`` are ever updated, and
    only by settlement. A remainder produced by a partial settlement is a new
    row pointing at its parent through ``split_from_entry_id``.

    ``seq`` records insertion order and breaks ``created_at`` ties in FIFO
    consumption; ``id`` is the public identifier.
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_vendor_type_batch", "vendor_id", "type", "payout_batch_id"),
        Index("ix_ledger_entries_vendor_created", "vendor_id", "created_at"),
    )

    seq = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    id = Column(UUIDType, nullable=False, unique=True, index=True, default=generate_uuid)
    vendor_id = Column(String(128), nullable=False, index=True)
    amount_minor = Column(BigInteger, nullable=False)
    type = Column(String(20), nullable=False)
    source = Column(String(10), nullable=False, default=LedgerSource.EVENT.value)
    currency = Column(String(3), nullable=False)
    target_payout_at = Column(DateTime(timezone=True), nullable=False, index=True)
    target_payout_key = Column(String(20), nullable=False, default="")
    payout_batch_id = Column(String(128), nullable=True, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    order_collection = Column(String(64), nullable=False, default="orders")
    order_id = Column(String(128), nullable=False, default="")
    event_id = Column(String(128), nullable=True)
    split_from_entry_id = Column(UUIDType, nullable=True, index=True)
    note = Column(Text, nullable=False, default="")
    created_by = Column(String(128), nullable=False, default="system")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    @property
    def entry_type(self) -> LedgerEntryType:
        # Unknown stored values raise here rather than flowing through as strings
        return LedgerEntryType(self.type)

    @property
    def is_settled(self) -> bool:
        return self.payout_batch_id is not None
