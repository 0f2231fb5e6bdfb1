"""
Pytest configuration and fixtures.
"""
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from payment_gateway.api.dependencies import get_settlement_client
from payment_gateway.api.main import app
from payment_gateway.config import Settings, get_settings
from payment_gateway.core.card_processor import PrimaryAccountNumber
from payment_gateway.core.payment_orchestrator import CardDetails, PaymentCommand
from payment_gateway.core.status import PaymentStatus
from payment_gateway.database.connection import get_db
from payment_gateway.database.models import Base, Customer, Merchant, Payment
from payment_gateway.integrations.settlement_client import SettlementClient, SettlementResult

VISA_CARD = "4532015112830366"


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "integration: tests exercising the HTTP API")
    config.addinivalue_line("markers", "race: concurrency tests")


@pytest.fixture
def test_settings(tmp_path: Any) -> Settings:
    """Create test settings backed by a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'payment_gateway_test.db'}",
        bank_simulator_host="http://bank.test/payment",
        strict_refunds=False,
        jwt_secret_key=None,
        app_name="payment-gateway-test",
        app_env="test",
        log_level="DEBUG",
        debug=True,
    )


@pytest_asyncio.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, Any]:
    """Create the test engine with a fresh schema."""
    engine = create_async_engine(test_settings.database_url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def test_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, Any]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def merchant(test_db: AsyncSession) -> Merchant:
    """A provisioned merchant."""
    merchant = Merchant(
        api_token="merchant-token",
        name="Acme Store",
        email="billing@acme.example.com",
        country="DE",
        address="1 Market Street",
        phone_number="+49 30 000000",
    )
    test_db.add(merchant)
    await test_db.commit()
    return merchant


@pytest_asyncio.fixture
async def succeeded_payment(test_db: AsyncSession, merchant: Merchant) -> Payment:
    """A settled payment of 150.00 that is eligible for a refund."""
    customer = Customer(name="Jane Doe", email="jane@example.com")
    test_db.add(customer)
    await test_db.flush()

    payment = Payment(
        order_token="order-refundable",
        merchant_id=merchant.id,
        customer_id=customer.id,
        amount=Decimal("150.00"),
        status=PaymentStatus.SUCCEEDED,
    )
    test_db.add(payment)
    await test_db.commit()
    return payment


@pytest.fixture
def settlement_client() -> AsyncMock:
    """Settlement client double that approves every instruction."""
    client = AsyncMock(spec=SettlementClient)
    client.authorize.return_value = SettlementResult(
        success=True, message="Payment succeeded", processor="Awesome Bank"
    )
    client.refund.return_value = SettlementResult(
        success=True, message="Refund succeeded", processor="Awesome Bank"
    )
    return client


@pytest.fixture
def make_payment_command() -> Callable[..., PaymentCommand]:
    """Factory for payment commands with sensible defaults."""

    def factory(
        merchant_id: int,
        card_number: str = VISA_CARD,
        amount: Decimal = Decimal("100.00"),
        customer_id: Optional[int] = None,
        processor: str = "",
    ) -> PaymentCommand:
        return PaymentCommand(
            order_token="order-2024-0001",
            merchant_id=merchant_id,
            amount=amount,
            card=CardDetails(
                card_number=PrimaryAccountNumber(card_number),
                card_type="credit",
                expiration_month="12",
                expiration_year="2030",
                card_holder="Jane Doe",
                cvv="123",
            ),
            customer_name="Jane Doe",
            customer_email="jane@example.com",
            customer_id=customer_id,
            processor=processor,
            success_url="https://shop.example.com/success",
            failure_url="https://shop.example.com/failed",
        )

    return factory


@pytest_asyncio.fixture
async def client(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    settlement_client: AsyncMock,
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client wired to the test database and settlement double."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, Any]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settlement_client] = lambda: settlement_client
    app.dependency_overrides[get_settings] = lambda: test_settings

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_payment_data() -> Callable[..., dict[str, Any]]:
    """Sample payment request body."""

    def factory(merchant_id: int, amount: Any = 100.00, card_number: str = VISA_CARD) -> dict[str, Any]:
        return {
            "order_token": "order-2024-0001",
            "payment_source": {
                "method_type": "card",
                "processor": "Awesome Bank",
                "card_info": {
                    "card_type": "credit",
                    "expiration_month": "12",
                    "expiration_year": "2030",
                    "card_number": card_number,
                    "card_holder": "Jane Doe",
                    "card_cvv": "123",
                },
            },
            "amount": amount,
            "customer": {"id": 0, "name": "Jane Doe", "email": "jane@example.com"},
            "callback_urls": {
                "success": "https://shop.example.com/success",
                "failed": "https://shop.example.com/failed",
            },
            "merchant_id": merchant_id,
        }

    return factory
