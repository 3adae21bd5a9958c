"""Tests for the vendor API endpoints."""

import pytest
from fastapi.testclient import TestClient

from payout_engine.main import app


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def _create(client: TestClient, vendor_id: str = "vendor-1", **fields):
    payload = {"id": vendor_id, "display_name": "Lagos Beats", "email": "beats@example.com"}
    payload.update(fields)
    return client.post("/v1/vendors/", json=payload)


BANK = {
    "bank_name": "GTBank",
    "bank_code": "058",
    "account_number": "0123456789",
    "account_name": "Lagos Beats Ltd",
    "is_verified": True,
}


class TestVendorsAPI:
    def test_create_vendor(self, client: TestClient):
        response = _create(client)
        assert response.status_code == 201
        data = response.json()
        assert data["id"] == "vendor-1"
        assert data["currency"] == "NGN"
        assert data["payout_schedule"] == "weekly"
        assert data["bank_verified"] is False
        assert data["eligible_balance_minor"] == 0

    def test_create_vendor_lowercase_currency(self, client: TestClient):
        response = _create(client, currency="ghs")
        assert response.json()["currency"] == "GHS"

    def test_create_duplicate(self, client: TestClient):
        _create(client)
        response = _create(client)
        assert response.status_code == 400
        assert response.json()["detail"] == "Vendor vendor-1 already exists"

    def test_create_invalid_schedule(self, client: TestClient):
        response = _create(client, payout_schedule="hourly")
        assert response.status_code == 422

    def test_list_vendors(self, client: TestClient):
        for vendor_id in ("b", "a", "c"):
            _create(client, vendor_id)

        response = client.get("/v1/vendors/", params={"limit": 2})

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "3"
        assert [v["id"] for v in response.json()] == ["a", "b"]

    def test_get_vendor(self, client: TestClient):
        _create(client)
        response = client.get("/v1/vendors/vendor-1")
        assert response.status_code == 200
        assert response.json()["display_name"] == "Lagos Beats"

    def test_get_missing_vendor(self, client: TestClient):
        response = client.get("/v1/vendors/ghost")
        assert response.status_code == 404

    def test_update_vendor(self, client: TestClient):
        _create(client)
        response = client.put("/v1/vendors/vendor-1", json={"email": "new@example.com"})
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "new@example.com"
        assert data["display_name"] == "Lagos Beats"

    def test_update_missing_vendor(self, client: TestClient):
        assert client.put("/v1/vendors/ghost", json={"email": "x@y.z"}).status_code == 404

    def test_set_bank_details(self, client: TestClient):
        _create(client)
        response = client.put("/v1/vendors/vendor-1/bank", json=BANK)
        assert response.status_code == 200
        data = response.json()
        assert data["bank_verified"] is True
        assert data["bank_name"] == "GTBank"
        assert data["account_name"] == "Lagos Beats Ltd"
        assert "account_number" not in data

    def test_set_bank_details_invalid(self, client: TestClient):
        _create(client)
        response = client.put("/v1/vendors/vendor-1/bank", json={**BANK, "account_number": "12"})
        assert response.status_code == 422

    def test_set_bank_details_missing_vendor(self, client: TestClient):
        assert client.put("/v1/vendors/ghost/bank", json=BANK).status_code == 404

    def test_set_payout_schedule(self, client: TestClient):
        _create(client)
        response = client.put("/v1/vendors/vendor-1/payout-schedule", json={"schedule": "3days"})
        assert response.status_code == 200
        assert response.json()["payout_schedule"] == "3days"

    def test_set_payout_schedule_missing_vendor(self, client: TestClient):
        response = client.put("/v1/vendors/ghost/payout-schedule", json={"schedule": "1day"})
        assert response.status_code == 404
