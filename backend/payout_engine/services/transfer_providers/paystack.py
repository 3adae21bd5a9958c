"""Paystack transfer provider implementation.

Paystack pays out in two steps:
1. Register the bank account as a transfer recipient (once per vendor)
2. Initiate a transfer from the balance to the recipient code
"""

import logging
from typing import Any

import httpx

from payout_engine.core.config import settings
from payout_engine.core.errors import TransferError
from payout_engine.services.transfer_provider import (
    TransferDestination,
    TransferProviderBase,
    TransferResult,
)

logger = logging.getLogger(__name__)

# "otp" transfers wait for a manual finalize step and move no money until then
ACCEPTED_TRANSFER_STATUSES = {"success", "pending", "received"}


class PaystackTransferProvider(TransferProviderBase):
    def __init__(
        self,
        test_mode: bool = True,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.test_mode = test_mode
        default_key = (
            settings.paystack_test_secret_key if test_mode else settings.paystack_live_secret_key
        )
        self.secret_key = secret_key or default_key
        self.base_url = (base_url or settings.paystack_base_url).rstrip("/")
        self.timeout = timeout or settings.transfer_timeout_seconds

    @property
    def provider_name(self) -> str:
        return "paystack"

    def _post(self, endpoint: str, data: dict[str, Any]) -> dict[str, Any]:
        """POST to the Paystack API and return the ``data`` member of the reply."""
        if not self.secret_key:
            mode = "test" if self.test_mode else "live"
            raise TransferError(f"Paystack {mode} secret key is not configured")

        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(f"{self.base_url}{endpoint}", json=data, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Paystack request to %s failed: %s", endpoint, exc)
            raise TransferError(f"Paystack request failed: {exc}") from exc

        try:
            body: dict[str, Any] = resp.json()
        except ValueError:
            body = {}

        if not 200 <= resp.status_code < 300 or not body.get("status"):
            message = body.get("message") or (resp.text[:200] if resp.text else "")
            raise TransferError(f"Paystack {endpoint} returned {resp.status_code}: {message}")

        result: dict[str, Any] = body.get("data") or {}
        return result

    def create_recipient(self, destination: TransferDestination, currency: str) -> str:
        data = self._post(
            "/transferrecipient",
            {
                "type": "nuban",
                "name": destination.account_name,
                "account_number": destination.account_number,
                "bank_code": destination.bank_code,
                "currency": currency,
                "metadata": {"vendor_id": destination.vendor_id},
            },
        )
        recipient_code = data.get("recipient_code")
        if not recipient_code:
            raise TransferError("Paystack did not return a recipient code")
        return str(recipient_code)

    def transfer(
        self,
        destination: TransferDestination,
        amount_minor: int,
        currency: str,
        reference: str,
    ) -> TransferResult:
        recipient_code = destination.recipient_code or self.create_recipient(
            destination, currency
        )
        data = self._post(
            "/transfer",
            {
                "source": "balance",
                "amount": amount_minor,
                "currency": currency,
                "recipient": recipient_code,
                "reference": reference,
                "reason": f"Vendor payout {reference}",
            },
        )

        status = str(data.get("status", ""))
        if status == "otp":
            raise TransferError(
                f"Paystack transfer {reference} is awaiting OTP finalization and was not disbursed"
            )
        if status not in ACCEPTED_TRANSFER_STATUSES:
            raise TransferError(f"Paystack transfer {reference} ended with status '{status}'")

        return TransferResult(
            transfer_code=str(data.get("transfer_code", "")),
            status=status,
            reference=str(data.get("reference", reference)),
            recipient_code=recipient_code,
            metadata={"id": data.get("id")},
        )
