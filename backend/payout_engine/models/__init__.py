from payout_engine.models.ledger_entry import LedgerEntry, LedgerEntryType, LedgerSource
from payout_engine.models.payout_batch import (
    PayoutBatch,
    PayoutBatchKind,
    PayoutBatchStatus,
    VendorPayoutStatus,
)
from payout_engine.models.vendor import PayoutScheduleType, Vendor

__all__ = [
    "LedgerEntry",
    "LedgerEntryType",
    "LedgerSource",
    "PayoutBatch",
    "PayoutBatchKind",
    "PayoutBatchStatus",
    "PayoutScheduleType",
    "Vendor",
    "VendorPayoutStatus",
]
