"""
Integration tests for the HTTP API.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from jose import jwt
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_gateway.api.main import app
from payment_gateway.config import Settings, get_settings
from payment_gateway.core.status import PaymentStatus
from payment_gateway.database.models import Customer, Merchant, Payment, Refund
from payment_gateway.integrations.settlement_client import SettlementResult


async def count(session_factory: async_sessionmaker[AsyncSession], model: Any) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestPaymentAPI:
    """Test suite for the payment endpoints."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_process_payment_end_to_end(
        self,
        client: AsyncClient,
        merchant: Merchant,
        sample_payment_data: Callable[..., dict],
    ) -> None:
        response = await client.post(
            "/merchants/payment/process", json=sample_payment_data(merchant.id, amount=100.00)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "succeeded"
        assert body["redirect_url"] == "https://shop.example.com/success"
        assert body["payment_info"]["amount"] == 100.0
        assert body["payment_info"]["card_details"]["card_brand"] == "Visa"
        assert body["payment_info"]["card_details"]["last_four_digits"] == "0366"
        assert body["merchant"]["name"] == "Acme Store"
        assert "4532015112830366" not in response.text
        assert "X-Request-ID" in response.headers

        fetched = await client.get(f"/payments/{body['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "succeeded"
        assert fetched.json()["amount"] == 100.0
        assert fetched.json()["customer"] == {"name": "Jane Doe", "email": "jane@example.com"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_declined_payment_answers_201(
        self,
        client: AsyncClient,
        merchant: Merchant,
        settlement_client: AsyncMock,
        sample_payment_data: Callable[..., dict],
    ) -> None:
        settlement_client.authorize.return_value = SettlementResult(
            success=False, message="Payment failed", processor="Awesome Bank"
        )

        response = await client.post(
            "/merchants/payment/process", json=sample_payment_data(merchant.id)
        )

        assert response.status_code == 201
        assert response.json()["status"] == "failed"
        assert response.json()["redirect_url"] == "https://shop.example.com/failed"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_merchant_id_alias(
        self,
        client: AsyncClient,
        merchant: Merchant,
        sample_payment_data: Callable[..., dict],
    ) -> None:
        data = sample_payment_data(merchant.id)
        data["merchand_id"] = data.pop("merchant_id")

        response = await client.post("/merchants/payment/process", json=data)

        assert response.status_code == 201

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_merchant_returns_404(
        self,
        client: AsyncClient,
        merchant: Merchant,
        session_factory: async_sessionmaker[AsyncSession],
        sample_payment_data: Callable[..., dict],
    ) -> None:
        response = await client.post(
            "/merchants/payment/process", json=sample_payment_data(merchant.id + 100)
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "merchant not found"
        assert await count(session_factory, Payment) == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_invalid_card_returns_400_and_rolls_back(
        self,
        client: AsyncClient,
        merchant: Merchant,
        settlement_client: AsyncMock,
        session_factory: async_sessionmaker[AsyncSession],
        sample_payment_data: Callable[..., dict],
    ) -> None:
        response = await client.post(
            "/merchants/payment/process",
            json=sample_payment_data(merchant.id, card_number="4532015112830367"),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "invalid credit card number"
        settlement_client.authorize.assert_not_awaited()
        assert await count(session_factory, Customer) == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_malformed_body_returns_400_without_echo(
        self,
        client: AsyncClient,
        merchant: Merchant,
        sample_payment_data: Callable[..., dict],
    ) -> None:
        data = sample_payment_data(merchant.id, amount=-5)
        data["payment_source"]["card_info"]["expiration_month"] = "December"

        response = await client.post("/merchants/payment/process", json=data)

        assert response.status_code == 400
        assert "4532015112830366" not in response.text
        assert "December" not in response.text
        locations = [error["loc"] for error in response.json()["detail"]]
        assert ["body", "amount"] in locations

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_bank_unreachable_returns_400(
        self,
        client: AsyncClient,
        merchant: Merchant,
        settlement_client: AsyncMock,
        session_factory: async_sessionmaker[AsyncSession],
        sample_payment_data: Callable[..., dict],
    ) -> None:
        from payment_gateway.core.errors import TransportError

        settlement_client.authorize.side_effect = TransportError(
            "Settlement service unreachable", "authorize"
        )

        response = await client.post(
            "/merchants/payment/process", json=sample_payment_data(merchant.id)
        )

        assert response.status_code == 400
        assert await count(session_factory, Payment) == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("payment_id", ["9999", "abc", "0"])
    async def test_get_missing_payment_returns_404(
        self, client: AsyncClient, payment_id: str
    ) -> None:
        response = await client.get(f"/payments/{payment_id}")
        assert response.status_code == 404


class TestRefundAPI:
    """Test suite for the refund endpoint."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_full_refund(
        self,
        client: AsyncClient,
        merchant: Merchant,
        session_factory: async_sessionmaker[AsyncSession],
        sample_payment_data: Callable[..., dict],
    ) -> None:
        created = await client.post(
            "/merchants/payment/process", json=sample_payment_data(merchant.id, amount=75.50)
        )
        payment_id = created.json()["id"]

        response = await client.post(
            f"/merchants/payment/{payment_id}/refund", json={"amount": 0, "reason": "requested"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "refunded"
        assert body["payment_id"] == payment_id
        assert body["amount"] == 75.5

        fetched = await client.get(f"/payments/{payment_id}")
        assert fetched.json()["status"] == "refunded"
        assert await count(session_factory, Refund) == 1

        again = await client.post(f"/merchants/payment/{payment_id}/refund", json={})
        assert again.status_code == 409
        assert await count(session_factory, Refund) == 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_refund_invalid_id_returns_400(
        self, client: AsyncClient, settlement_client: AsyncMock
    ) -> None:
        response = await client.post("/merchants/payment/abc/refund", json={})

        assert response.status_code == 400
        assert response.json()["detail"] == "invalid payment id"
        settlement_client.refund.assert_not_awaited()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_refund_unknown_payment_returns_404(
        self, client: AsyncClient, merchant: Merchant
    ) -> None:
        response = await client.post("/merchants/payment/9999/refund", json={"amount": 0})
        assert response.status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_refund_reason_too_long_returns_400(
        self, client: AsyncClient, merchant: Merchant
    ) -> None:
        response = await client.post(
            "/merchants/payment/1/refund", json={"amount": 0, "reason": "x" * 256}
        )
        assert response.status_code == 400


class TestAuthentication:
    """Test suite for merchant bearer-token authentication."""

    @pytest.fixture
    def secured(self, client: AsyncClient, test_settings: Settings) -> AsyncClient:
        secured_settings = test_settings.model_copy(update={"jwt_secret_key": "test-secret"})
        app.dependency_overrides[get_settings] = lambda: secured_settings
        return client

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_token_returns_401(self, secured: AsyncClient) -> None:
        response = await secured.get("/payments/1")
        assert response.status_code == 401

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_invalid_token_returns_401(self, secured: AsyncClient) -> None:
        token = jwt.encode({"sub": "merchant-1"}, "other-secret", algorithm="HS256")
        response = await secured.get("/payments/1", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_expired_token_returns_401(self, secured: AsyncClient) -> None:
        expired = datetime.now(timezone.utc) - timedelta(minutes=5)
        token = jwt.encode({"sub": "merchant-1", "exp": expired}, "test-secret", algorithm="HS256")
        response = await secured.get("/payments/1", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token is expired"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_valid_token_passes(self, secured: AsyncClient) -> None:
        token = jwt.encode({"sub": "merchant-1"}, "test-secret", algorithm="HS256")
        response = await secured.get("/payments/1", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 404


class TestMonitoringAPI:
    """Test suite for monitoring endpoints."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient) -> None:
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "payment_requests_total" in response.text

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient) -> None:
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "operational"


class TestCommitBeforeAcknowledgement:
    """A workflow only answers success once its writes are committed."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_payment_commit_failure_is_not_acknowledged(
        self,
        client: AsyncClient,
        merchant: Merchant,
        session_factory: async_sessionmaker[AsyncSession],
        sample_payment_data: Callable[..., dict],
        mocker: Any,
    ) -> None:
        mocker.patch.object(
            AsyncSession,
            "commit",
            side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error")),
        )

        response = await client.post(
            "/merchants/payment/process", json=sample_payment_data(merchant.id)
        )

        assert response.status_code == 400
        assert "Failed to commit" in response.json()["detail"]
        assert await count(session_factory, Payment) == 0
        assert await count(session_factory, Customer) == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_refund_commit_failure_is_not_acknowledged(
        self,
        client: AsyncClient,
        succeeded_payment: Payment,
        session_factory: async_sessionmaker[AsyncSession],
        mocker: Any,
    ) -> None:
        mocker.patch.object(
            AsyncSession,
            "commit",
            side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error")),
        )

        response = await client.post(
            f"/merchants/payment/{succeeded_payment.id}/refund", json={"amount": 0}
        )

        assert response.status_code == 400
        assert "status" not in response.json()
        assert await count(session_factory, Refund) == 0

        async with session_factory() as session:
            payment = await session.get(Payment, succeeded_payment.id)
        assert payment.status is PaymentStatus.SUCCEEDED
