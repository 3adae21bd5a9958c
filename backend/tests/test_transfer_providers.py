"""Tests for transfer providers (Paystack, manual) and the provider factory."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from payout_engine.core.errors import MissingPayoutDestinationError, TransferError
from payout_engine.services.transfer_provider import (
    ManualTransferProvider,
    TransferDestination,
    TransferProviderBase,
    get_transfer_provider,
)
from payout_engine.services.transfer_providers.paystack import PaystackTransferProvider

CLIENT_PATH = "payout_engine.services.transfer_providers.paystack.httpx.Client"


def _response(status_code: int = 200, body: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    resp.text = "" if body is None else str(body)
    return resp


def _mock_client(mock_client_cls, *responses):
    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client.post.side_effect = list(responses)
    mock_client_cls.return_value = mock_client
    return mock_client


@pytest.fixture
def destination():
    return TransferDestination(
        vendor_id="vendor-1",
        account_name="Ada Obi",
        account_number="0123456789",
        bank_code="058",
        bank_name="GTBank",
    )


@pytest.fixture
def provider():
    return PaystackTransferProvider(
        test_mode=True, secret_key="sk_test_abc", base_url="https://api.paystack.test/"
    )


class TestTransferDestination:
    def test_from_vendor(self, make_vendor):
        vendor = make_vendor("vendor-1")
        dest = TransferDestination.from_vendor(vendor)
        assert dest.vendor_id == "vendor-1"
        assert dest.account_number == "0123456789"
        assert dest.bank_code == "058"
        assert dest.recipient_code is None

    def test_from_vendor_without_bank(self, make_vendor):
        vendor = make_vendor("vendor-2", bank=False)
        with pytest.raises(MissingPayoutDestinationError, match="vendor-2"):
            TransferDestination.from_vendor(vendor)


class TestPaystackTransferProvider:
    def test_provider_name(self, provider):
        assert provider.provider_name == "paystack"
        assert isinstance(provider, TransferProviderBase)

    def test_transfer_with_existing_recipient(self, provider, destination):
        destination.recipient_code = "RCP_existing"
        transfer_resp = _response(
            200,
            {
                "status": True,
                "data": {
                    "transfer_code": "TRF_123",
                    "status": "success",
                    "reference": "payout_b1_vendor-1",
                    "id": 77,
                },
            },
        )

        with patch(CLIENT_PATH) as mock_client_cls:
            client = _mock_client(mock_client_cls, transfer_resp)
            result = provider.transfer(destination, 130000, "NGN", "payout_b1_vendor-1")

        assert result.transfer_code == "TRF_123"
        assert result.status == "success"
        assert result.recipient_code == "RCP_existing"
        assert result.metadata == {"id": 77}

        client.post.assert_called_once()
        url = client.post.call_args.args[0]
        assert url == "https://api.paystack.test/transfer"
        payload = client.post.call_args.kwargs["json"]
        assert payload["amount"] == 130000
        assert payload["recipient"] == "RCP_existing"
        assert payload["reference"] == "payout_b1_vendor-1"
        assert payload["source"] == "balance"
        headers = client.post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer sk_test_abc"

    def test_transfer_creates_recipient_first(self, provider, destination):
        recipient_resp = _response(201, {"status": True, "data": {"recipient_code": "RCP_new"}})
        transfer_resp = _response(
            200, {"status": True, "data": {"transfer_code": "TRF_9", "status": "pending"}}
        )

        with patch(CLIENT_PATH) as mock_client_cls:
            client = _mock_client(mock_client_cls, recipient_resp, transfer_resp)
            result = provider.transfer(destination, 5000, "NGN", "ref-1")

        assert result.recipient_code == "RCP_new"
        assert result.status == "pending"
        assert result.reference == "ref-1"
        first_call, second_call = client.post.call_args_list
        assert first_call.args[0].endswith("/transferrecipient")
        assert first_call.kwargs["json"]["type"] == "nuban"
        assert first_call.kwargs["json"]["account_number"] == "0123456789"
        assert second_call.kwargs["json"]["recipient"] == "RCP_new"

    def test_missing_recipient_code(self, provider, destination):
        with patch(CLIENT_PATH) as mock_client_cls:
            _mock_client(mock_client_cls, _response(200, {"status": True, "data": {}}))
            with pytest.raises(TransferError, match="recipient code"):
                provider.transfer(destination, 5000, "NGN", "ref-1")

    def test_missing_secret_key(self, destination):
        with patch("payout_engine.services.transfer_providers.paystack.settings") as mock_settings:
            mock_settings.paystack_live_secret_key = ""
            mock_settings.paystack_base_url = "https://api.paystack.co"
            mock_settings.transfer_timeout_seconds = 30.0
            provider = PaystackTransferProvider(test_mode=False)

        with pytest.raises(TransferError, match="live secret key is not configured"):
            provider.transfer(destination, 5000, "NGN", "ref-1")

    def test_uses_mode_specific_key(self):
        with patch("payout_engine.services.transfer_providers.paystack.settings") as mock_settings:
            mock_settings.paystack_test_secret_key = "sk_test_x"
            mock_settings.paystack_live_secret_key = "sk_live_x"
            mock_settings.paystack_base_url = "https://api.paystack.co"
            mock_settings.transfer_timeout_seconds = 30.0
            assert PaystackTransferProvider(test_mode=True).secret_key == "sk_test_x"
            assert PaystackTransferProvider(test_mode=False).secret_key == "sk_live_x"

    def test_http_error(self, provider, destination, caplog):
        destination.recipient_code = "RCP_1"
        with patch(CLIENT_PATH) as mock_client_cls:
            _mock_client(mock_client_cls, httpx.ConnectTimeout("timed out"))
            with pytest.raises(TransferError, match="Paystack request failed"):
                provider.transfer(destination, 5000, "NGN", "ref-1")
        assert "Paystack request to /transfer failed" in caplog.text

    def test_non_2xx_response(self, provider, destination):
        destination.recipient_code = "RCP_1"
        resp = _response(400, {"status": False, "message": "Insufficient balance"})
        with patch(CLIENT_PATH) as mock_client_cls:
            _mock_client(mock_client_cls, resp)
            with pytest.raises(TransferError, match="returned 400: Insufficient balance"):
                provider.transfer(destination, 5000, "NGN", "ref-1")

    def test_false_status_in_2xx(self, provider, destination):
        destination.recipient_code = "RCP_1"
        resp = _response(200, {"status": False, "message": "Invalid key"})
        with patch(CLIENT_PATH) as mock_client_cls:
            _mock_client(mock_client_cls, resp)
            with pytest.raises(TransferError, match="Invalid key"):
                provider.transfer(destination, 5000, "NGN", "ref-1")

    def test_non_json_body(self, provider, destination):
        destination.recipient_code = "RCP_1"
        resp = _response(502)
        resp.json.side_effect = ValueError("not json")
        resp.text = "Bad Gateway"
        with patch(CLIENT_PATH) as mock_client_cls:
            _mock_client(mock_client_cls, resp)
            with pytest.raises(TransferError, match="502: Bad Gateway"):
                provider.transfer(destination, 5000, "NGN", "ref-1")

    @pytest.mark.parametrize("status", ["failed", "reversed", "abandoned", ""])
    def test_unaccepted_transfer_status(self, provider, destination, status):
        destination.recipient_code = "RCP_1"
        resp = _response(200, {"status": True, "data": {"transfer_code": "TRF_1", "status": status}})
        with patch(CLIENT_PATH) as mock_client_cls:
            _mock_client(mock_client_cls, resp)
            with pytest.raises(TransferError, match="ended with status"):
                provider.transfer(destination, 5000, "NGN", "ref-1")

    def test_otp_status_is_not_disbursed(self, provider, destination):
        destination.recipient_code = "RCP_1"
        resp = _response(200, {"status": True, "data": {"transfer_code": "TRF_1", "status": "otp"}})
        with patch(CLIENT_PATH) as mock_client_cls:
            _mock_client(mock_client_cls, resp)
            with pytest.raises(TransferError, match="awaiting OTP finalization"):
                provider.transfer(destination, 5000, "NGN", "ref-1")


class TestManualTransferProvider:
    def test_transfer(self, destination):
        provider = ManualTransferProvider()
        result = provider.transfer(destination, 5000, "NGN", "payout_b1_vendor-1")
        assert provider.provider_name == "manual"
        assert result.transfer_code == "manual_payout_b1_vendor-1"
        assert result.status == "success"


class TestGetTransferProvider:
    def test_default_is_paystack(self):
        provider = get_transfer_provider()
        assert isinstance(provider, PaystackTransferProvider)
        assert provider.test_mode is True

    def test_live_mode(self):
        assert get_transfer_provider(test_mode=False).test_mode is False

    def test_manual(self):
        assert isinstance(get_transfer_provider(provider="manual"), ManualTransferProvider)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported transfer provider: flutterwave"):
            get_transfer_provider(provider="flutterwave")
