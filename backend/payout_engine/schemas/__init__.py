from payout_engine.schemas.ledger_entry import (
    CreditCreate,
    HoldCreate,
    LedgerEntryCreate,
    LedgerEntryResponse,
    LedgerFilter,
    OrderRef,
    RefundCreate,
    SourceEarnings,
    WalletSummaryResponse,
)
from payout_engine.schemas.payout import (
    BackfillRequest,
    FeeEstimate,
    PayoutBatchResponse,
    PayoutRunRequest,
    PayoutRunResponse,
    PayoutTransaction,
    ReconcileRequest,
    ReconciliationResponse,
    ReminderRequest,
    ReminderResponse,
    RetryRequest,
    RetryResponse,
    UpcomingPayoutResponse,
    VendorPayoutResult,
)
from payout_engine.schemas.vendor import (
    BankDetails,
    PayoutScheduleUpdate,
    VendorCreate,
    VendorResponse,
    VendorUpdate,
)

__all__ = [
    "BackfillRequest",
    "BankDetails",
    "CreditCreate",
    "FeeEstimate",
    "HoldCreate",
    "LedgerEntryCreate",
    "LedgerEntryResponse",
    "LedgerFilter",
    "OrderRef",
    "PayoutBatchResponse",
    "PayoutRunRequest",
    "PayoutRunResponse",
    "PayoutScheduleUpdate",
    "PayoutTransaction",
    "ReconcileRequest",
    "ReconciliationResponse",
    "RefundCreate",
    "ReminderRequest",
    "ReminderResponse",
    "RetryRequest",
    "RetryResponse",
    "SourceEarnings",
    "UpcomingPayoutResponse",
    "VendorCreate",
    "VendorPayoutResult",
    "VendorResponse",
    "VendorUpdate",
    "WalletSummaryResponse",
]
