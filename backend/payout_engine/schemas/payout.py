"""Payout run, batch, reconciliation and upcoming-payout schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payout_engine.models.ledger_entry import LedgerSource


class VendorPayoutResult(BaseModel):
    vendor_id: str
    vendor_name: str
    success: bool
    status: str
    amount_minor: int
    transfer_code: str | None = None
    error: str | None = None
    overdrawn_minor: int = 0


class PayoutRunRequest(BaseModel):
    test_mode: bool = True
    dry_run: bool = False
    source: LedgerSource | None = None
    batch_id: str | None = Field(default=None, max_length=128)


class PayoutRunResponse(BaseModel):
    batch_id: str
    dry_run: bool
    replayed: bool = False
    status: str
    cutoff_at: datetime
    total_vendors: int
    successful: int
    failed: int
    skipped: int
    total_amount_minor: int
    results: list[VendorPayoutResult]


class RetryRequest(BaseModel):
    dry_run: bool = False
    test_mode: bool = True


class RetryResponse(BaseModel):
    batch_id: str | None = None
    dry_run: bool
    retried_batches: list[str]
    total_retries: int
    successful: int
    failed: int
    results: list[VendorPayoutResult]


class ReminderRequest(BaseModel):
    dry_run: bool = False


class ReminderResponse(BaseModel):
    dry_run: bool
    total_vendors: int
    emails_sent: int
    emails_failed: int


class PayoutBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    kind: str
    source: str | None = None
    status: str
    test_mode: bool
    retry_of: str | None = None
    total_vendors: int
    successful: int
    failed: int
    skipped: int
    total_amount_minor: int
    currency: str | None = None
    cutoff_at: datetime | None = None
    results: list[VendorPayoutResult]
    created_at: datetime


class ReconcileRequest(BaseModel):
    vendor_id: str = Field(min_length=1, max_length=128)
    amount_minor: int = Field(gt=0)
    dry_run: bool = False


class BackfillRequest(BaseModel):
    vendor_id: str = Field(min_length=1, max_length=128)
    amount_minor: int = Field(gt=0)
    batch_id: str = Field(min_length=1, max_length=128)
    confirm_overwrite: bool = False


class ReconciliationResponse(BaseModel):
    success: bool
    message: str
    batch_id: str | None = None
    logs: list[str]


class PayoutTransaction(BaseModel):
    id: UUID
    created_at: datetime
    target_payout_at: datetime
    amount_minor: int
    source: str
    event_id: str
    order_id: str


class FeeEstimate(BaseModel):
    schedule: str
    estimated_earnings_minor: int
    fee_minor: int
    net_minor: int
    fee_percent: str
    fee_cap_minor: int


class UpcomingPayoutResponse(BaseModel):
    vendor_id: str
    next_payout_date: datetime
    total_amount_minor: int
    future_amount_minor: int
    wallet_balance_minor: int
    currency: str
    eligible_count: int
    future_count: int
    breakdown_by_source: dict[str, int]
    breakdown_by_event: dict[str, int]
    transactions: list[PayoutTransaction]
    future_transactions: list[PayoutTransaction]
    fee_estimate: FeeEstimate
