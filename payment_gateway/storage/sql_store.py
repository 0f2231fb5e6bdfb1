"""SQLAlchemy implementation of the Transaction Store."""
from decimal import Decimal
from typing import Optional, Type, TypeVar

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payment_gateway.core.errors import (
    CustomerNotFoundError,
    MerchantNotFoundError,
    NotFoundError,
    PaymentNotFoundError,
    PersistenceError,
    RefundConflictError,
)
from payment_gateway.core.status import PaymentStatus
from payment_gateway.database.models import (
    Base,
    CreditCard,
    Customer,
    Merchant,
    Payment,
    Refund,
)
from payment_gateway.storage.repository import PaymentDetails, TransactionStore

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class SQLAlchemyTransactionStore(TransactionStore):
    """
    Transaction Store backed by an AsyncSession.

    Writes are flushed as they happen and become durable only when the
    workflow calls commit(). Uncommitted writes are discarded when the
    session rolls back.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get(
        self,
        model: Type[ModelT],
        entity_id: int,
        not_found: Type[NotFoundError],
    ) -> ModelT:
        try:
            instance: Optional[ModelT] = await self.session.get(model, entity_id)
        except SQLAlchemyError as e:
            logger.error("store_read_failed", table=model.__tablename__, error=str(e))
            raise PersistenceError(f"Failed to read {model.__tablename__}: {e}") from e

        if instance is None:
            logger.warning("store_record_not_found", table=model.__tablename__, id=entity_id)
            raise not_found(entity_id)
        return instance

    async def _add(self, instance: ModelT) -> ModelT:
        try:
            self.session.add(instance)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("store_write_failed", table=instance.__tablename__, error=str(e))
            raise PersistenceError(f"Failed to write {instance.__tablename__}: {e}") from e

        logger.info("store_record_created", table=instance.__tablename__, id=instance.id)
        return instance

    async def get_merchant(self, merchant_id: int) -> Merchant:
        return await self._get(Merchant, merchant_id, MerchantNotFoundError)

    async def get_customer(self, customer_id: int) -> Customer:
        return await self._get(Customer, customer_id, CustomerNotFoundError)

    async def create_customer(self, name: str, email: str) -> Customer:
        return await self._add(Customer(name=name, email=email))

    async def create_credit_card(self, credit_card: CreditCard) -> CreditCard:
        return await self._add(credit_card)

    async def create_payment(self, payment: Payment) -> Payment:
        return await self._add(payment)

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error("store_commit_failed", error=str(e))
            await self.session.rollback()
            raise PersistenceError(f"Failed to commit transaction: {e}") from e

    async def get_payment(self, payment_id: int) -> Payment:
        return await self._get(Payment, payment_id, PaymentNotFoundError)

    async def get_payment_details(self, payment_id: int) -> PaymentDetails:
        payment = await self.get_payment(payment_id)
        customer = await self.get_customer(payment.customer_id)
        merchant = await self.get_merchant(payment.merchant_id)
        return PaymentDetails(payment=payment, customer=customer, merchant=merchant)

    async def record_refund(
        self,
        payment_id: int,
        amount: Decimal,
        reason: str,
        expected_status: PaymentStatus = PaymentStatus.SUCCEEDED,
    ) -> Refund:
        """
        Conditionally transition the payment to REFUNDED, then insert the refund.

        The UPDATE is the first statement so the write lock is taken before
        anything is read; a concurrent refund of the same payment matches zero
        rows once the winner has committed.
        """
        try:
            result = await self.session.execute(
                update(Payment)
                .where(Payment.id == payment_id, Payment.status == expected_status)
                .values(status=PaymentStatus.REFUNDED)
            )
            transitioned = result.rowcount == 1
            payment = await self.session.get(Payment, payment_id, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error("payment_status_update_failed", payment_id=payment_id, error=str(e))
            raise PersistenceError(f"Failed to update payment status: {e}") from e

        if payment is None:
            raise PaymentNotFoundError(payment_id)

        if not transitioned:
            logger.warning(
                "refund_status_conflict",
                payment_id=payment_id,
                expected_status=expected_status.value,
                current_status=payment.status.value,
            )
            raise RefundConflictError(payment_id, payment.status)

        # A zero amount means a full refund.
        refund_amount = payment.amount if amount == 0 else amount

        refund = Refund(payment_id=payment_id, amount=refund_amount, reason=reason)
        try:
            self.session.add(refund)
            await self.session.flush()
        except IntegrityError as e:
            logger.warning("refund_unique_violation", payment_id=payment_id, error=str(e))
            raise RefundConflictError(payment_id, PaymentStatus.REFUNDED) from e
        except SQLAlchemyError as e:
            logger.error("refund_write_failed", payment_id=payment_id, error=str(e))
            raise PersistenceError(f"Failed to write refunds: {e}") from e

        logger.info(
            "refund_recorded",
            payment_id=payment_id,
            refund_id=refund.id,
            amount=str(refund_amount),
        )
        return refund
