"""Transfer provider abstraction layer.

Supports bank transfer providers (Paystack, manual).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from payout_engine.core.errors import MissingPayoutDestinationError
from payout_engine.models.vendor import Vendor

logger = logging.getLogger(__name__)


@dataclass
class TransferDestination:
    """Bank destination of a vendor payout."""

    vendor_id: str
    account_name: str
    account_number: str
    bank_code: str
    bank_name: str | None = None
    recipient_code: str | None = None

    @classmethod
    def from_vendor(cls, vendor: Vendor) -> "TransferDestination":
        if not vendor.has_payout_destination:
            raise MissingPayoutDestinationError(str(vendor.id))
        return cls(
            vendor_id=str(vendor.id),
            account_name=str(vendor.account_name or vendor.name),
            account_number=str(vendor.account_number),
            bank_code=str(vendor.bank_code),
            bank_name=vendor.bank_name,  # type: ignore[arg-type]
            recipient_code=vendor.transfer_recipient_code,  # type: ignore[arg-type]
        )


@dataclass
class TransferResult:
    """Result of a transfer request accepted by the provider."""

    transfer_code: str
    status: str
    reference: str
    recipient_code: str | None = None
    metadata: dict[str, Any] | None = None


class TransferProviderBase(ABC):
    """Abstract base class for transfer providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass  # pragma: no cover

    @abstractmethod
    def transfer(
        self,
        destination: TransferDestination,
        amount_minor: int,
        currency: str,
        reference: str,
    ) -> TransferResult:
        """Send ``amount_minor`` to the destination.

        Raises ``TransferError`` when the provider rejects the transfer or
        cannot be reached.
        """
        pass  # pragma: no cover


class ManualTransferProvider(TransferProviderBase):
    """Provider for payouts made outside any API, e.g. by an operator at the bank."""

    @property
    def provider_name(self) -> str:
        return "manual"

    def transfer(
        self,
        destination: TransferDestination,
        amount_minor: int,
        currency: str,
        reference: str,
    ) -> TransferResult:
        logger.info(
            "Manual transfer of %d %s to %s recorded as %s",
            amount_minor,
            currency,
            destination.vendor_id,
            reference,
        )
        return TransferResult(
            transfer_code=f"manual_{reference}",
            status="success",
            reference=reference,
            recipient_code=destination.recipient_code,
        )


def get_transfer_provider(test_mode: bool = True, provider: str = "paystack") -> TransferProviderBase:
    """Factory function to get the appropriate transfer provider."""
    from payout_engine.services.transfer_providers.paystack import PaystackTransferProvider

    if provider == "manual":
        return ManualTransferProvider()
    if provider == "paystack":
        return PaystackTransferProvider(test_mode=test_mode)
    raise ValueError(f"Unsupported transfer provider: {provider}")
