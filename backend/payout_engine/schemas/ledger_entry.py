"""Ledger entry schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from payout_engine.models.ledger_entry import LedgerEntryType, LedgerSource


class OrderRef(BaseModel):
    collection: str = Field(default="orders", max_length=64)
    id: str = Field(max_length=128)


class LedgerEntryCreate(BaseModel):
    """Validated shape of a row entering the ledger.

    ``type`` and ``source`` are closed enums; unknown values fail validation
    before anything is written.
    """

    vendor_id: str = Field(min_length=1, max_length=128)
    amount_minor: int = Field(gt=0)
    type: LedgerEntryType
    source: LedgerSource = LedgerSource.EVENT
    currency: str = Field(min_length=3, max_length=3)
    target_payout_at: datetime
    target_payout_key: str = ""
    payout_batch_id: str | None = None
    paid_at: datetime | None = None
    order_ref: OrderRef = Field(default_factory=lambda: OrderRef(id=""))
    event_id: str | None = None
    split_from_entry_id: UUID | None = None
    note: str = ""
    created_by: str = "system"
    created_at: datetime | None = None

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        return v.upper()


class LedgerFilter(BaseModel):
    """Query filter for ledger reads."""

    types: list[LedgerEntryType] | None = None
    source: LedgerSource | None = None
    settled: bool | None = None
    payout_batch_id: str | None = None
    due_by: datetime | None = None
    due_after: datetime | None = None
    ascending: bool = False
    limit: int | None = None


class CreditCreate(BaseModel):
    vendor_id: str = Field(min_length=1, max_length=128)
    amount_minor: int = Field(gt=0)
    source: LedgerSource = LedgerSource.EVENT
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    order_ref: OrderRef
    event_id: str | None = None
    note: str = ""


class HoldCreate(BaseModel):
    vendor_id: str = Field(min_length=1, max_length=128)
    amount_minor: int = Field(gt=0)
    source: LedgerSource = LedgerSource.EVENT
    order_ref: OrderRef | None = None
    note: str = ""


class RefundCreate(HoldCreate):
    pass


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    vendor_id: str
    amount_minor: int
    type: str
    source: str
    currency: str
    target_payout_at: datetime
    target_payout_key: str
    payout_batch_id: str | None = None
    paid_at: datetime | None = None
    order_collection: str
    order_id: str
    event_id: str | None = None
    split_from_entry_id: UUID | None = None
    note: str
    created_by: str
    created_at: datetime


class SourceEarnings(BaseModel):
    eligible_minor: int = 0
    on_hold_minor: int = 0


class WalletSummaryResponse(BaseModel):
    vendor_id: str
    currency: str
    eligible_balance_minor: int
    on_hold_minor: int
    ledger_balance_minor: int
    next_payout_at: datetime
    last_payout_at: datetime | None = None
    has_payout_destination: bool
    payout_schedule: str
    earnings_by_source: dict[str, SourceEarnings]
