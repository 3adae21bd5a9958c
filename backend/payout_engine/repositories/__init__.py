from payout_engine.repositories.ledger_entry_repository import LedgerEntryRepository
from payout_engine.repositories.payout_batch_repository import PayoutBatchRepository
from payout_engine.repositories.vendor_repository import VendorRepository

__all__ = [
    "LedgerEntryRepository",
    "PayoutBatchRepository",
    "VendorRepository",
]
