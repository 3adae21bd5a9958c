"""Exception hierarchy for ledger, settlement and payout operations."""


class PayoutEngineError(Exception):
    """Base class for all payout engine errors."""


class VendorNotFoundError(PayoutEngineError, LookupError):
    def __init__(self, vendor_id: str):
        super().__init__(f"Vendor {vendor_id} not found")
        self.vendor_id = vendor_id


class InvalidAmountError(PayoutEngineError, ValueError):
    """Raised for zero, negative or otherwise unusable monetary amounts."""


class CurrencyMismatchError(PayoutEngineError, ValueError):
    """Raised when an entry's currency differs from the vendor's ledger currency."""


class MissingPayoutDestinationError(PayoutEngineError):
    """Vendor has no verified bank destination on file."""

    def __init__(self, vendor_id: str):
        super().__init__(f"Vendor {vendor_id} has no payout destination on file")
        self.vendor_id = vendor_id


class TransferError(PayoutEngineError):
    """The transfer provider rejected or failed to confirm a transfer."""


class SettlementCommitError(PayoutEngineError):
    """The atomic settlement write failed and was rolled back."""


class SettlementConflictError(PayoutEngineError):
    """An entry already settled by one batch was offered to a different batch."""


class BatchExistsError(PayoutEngineError):
    def __init__(self, batch_id: str):
        super().__init__(f"Payout batch {batch_id} already exists")
        self.batch_id = batch_id
