"""
Race condition tests for concurrent refund requests.

Each attempt runs in its own session and transaction, like two API requests
served at the same time.
"""
import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payment_gateway.core.errors import RefundConflictError
from payment_gateway.core.refund_orchestrator import RefundCommand, RefundOrchestrator
from payment_gateway.core.status import PaymentStatus
from payment_gateway.database.models import Payment, Refund
from payment_gateway.storage import SQLAlchemyTransactionStore


class TestRaceConditions:
    """Test suite for race condition scenarios."""

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_concurrent_refunds_record_one_refund(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        succeeded_payment: Payment,
        settlement_client: AsyncMock,
    ) -> None:
        """
        Test concurrent refunds of the same payment.

        Should record exactly one refund; every other attempt conflicts.
        """
        payment_id = succeeded_payment.id

        async def attempt() -> dict:
            async with session_factory() as session:
                orchestrator = RefundOrchestrator(
                    store=SQLAlchemyTransactionStore(session),
                    settlement_client=settlement_client,
                    strict=True,
                )
                return await orchestrator.refund(str(payment_id), RefundCommand())

        results = await asyncio.gather(*(attempt() for _ in range(2)), return_exceptions=True)

        successes = [r for r in results if isinstance(r, dict)]
        conflicts = [r for r in results if isinstance(r, RefundConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == 1
        assert successes[0]["amount"] == Decimal("150.00")

        async with session_factory() as session:
            refund_count = (
                await session.execute(
                    select(func.count()).select_from(Refund).where(Refund.payment_id == payment_id)
                )
            ).scalar_one()
            payment = await session.get(Payment, payment_id)

        assert refund_count == 1
        assert payment.status is PaymentStatus.REFUNDED

    @pytest.mark.race
    @pytest.mark.asyncio
    async def test_unique_constraint_rejects_second_refund_row(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        succeeded_payment: Payment,
    ) -> None:
        """The refunds table itself refuses a second row for one payment."""
        from sqlalchemy.exc import IntegrityError

        async with session_factory() as session:
            session.add(Refund(payment_id=succeeded_payment.id, amount=Decimal("10"), reason=""))
            await session.commit()

        async with session_factory() as session:
            session.add(Refund(payment_id=succeeded_payment.id, amount=Decimal("5"), reason=""))
            with pytest.raises(IntegrityError):
                await session.commit()
