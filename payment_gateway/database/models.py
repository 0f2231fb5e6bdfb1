"""SQLAlchemy database models for the payment gateway."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from payment_gateway.core.status import PaymentStatus


def utcnow() -> datetime:
    """Timezone-aware current time used for row timestamps."""
    return datetime.now(timezone.utc)


class PaymentStatusType(TypeDecorator):
    """
    Stores PaymentStatus as its lowercase string value.

    Unrecognized stored strings load as PaymentStatus.UNKNOWN instead of
    raising, so legacy rows stay readable.
    """

    impl = String(20)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Optional[str]:
        if value is None:
            return None
        return PaymentStatus(value).value

    def process_result_value(self, value: Any, dialect: Any) -> PaymentStatus:
        return PaymentStatus.parse(value)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class TimestampMixin:
    """Creation and update timestamps shared by every table."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Merchant(TimestampMixin, Base):
    """
    Merchants receiving payments.

    Provisioned outside the gateway; read-only to the orchestration engine.
    """

    __tablename__ = "merchants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    api_token: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        """String representation of Merchant."""
        return f"<Merchant(id={self.id}, name={self.name})>"


class Customer(TimestampMixin, Base):
    """Payers, created on their first payment."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    def __repr__(self) -> str:
        """String representation of Customer."""
        return f"<Customer(id={self.id}, email={self.email})>"


class CreditCard(TimestampMixin, Base):
    """
    Tokenized card references.

    Holds only the opaque token and derived display data; the card number
    itself is never a column. Written once per payment attempt.
    """

    __tablename__ = "credit_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expiration_month: Mapped[str] = mapped_column(String(2), nullable=False)
    expiration_year: Mapped[str] = mapped_column(String(4), nullable=False)
    card_holder: Mapped[str] = mapped_column(String(255), nullable=False)
    card_type: Mapped[str] = mapped_column(String(50), nullable=False)
    card_brand: Mapped[str] = mapped_column(String(50), nullable=False)
    last_four: Mapped[str] = mapped_column(String(4), nullable=False)
    customer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customers.id"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        """String representation of CreditCard."""
        return (
            f"<CreditCard(id={self.id}, brand={self.card_brand}, "
            f"last_four={self.last_four})>"
        )


class Payment(TimestampMixin, Base):
    """
    Payment transaction records.

    One row per orchestration run that reached settlement, declined runs
    included. Only the refund workflow changes a row after creation, and only
    its status.
    """

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_token: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    merchant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("merchants.id"), nullable=False
    )
    customer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customers.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(PaymentStatusType(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_payment_amount"),
        Index("idx_payments_merchant_status", "merchant_id", "status"),
    )

    def __repr__(self) -> str:
        """String representation of Payment."""
        return (
            f"<Payment(id={self.id}, order_token={self.order_token}, "
            f"amount={self.amount}, status={self.status})>"
        )


class Refund(TimestampMixin, Base):
    """
    Refund records.

    At most one per payment: the unique constraint backs the conditional
    status transition performed when a refund is recorded.
    """

    __tablename__ = "refunds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("payments.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="positive_refund_amount"),
        UniqueConstraint("payment_id", name="uq_refunds_payment_id"),
    )

    def __repr__(self) -> str:
        """String representation of Refund."""
        return (
            f"<Refund(id={self.id}, payment_id={self.payment_id}, "
            f"amount={self.amount})>"
        )
