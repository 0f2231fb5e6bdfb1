"""Database package for the payment gateway."""
from .connection import close_db, get_db, get_session_factory, init_db
from .models import (
    Base,
    CreditCard,
    Customer,
    Merchant,
    Payment,
    PaymentStatusType,
    Refund,
)

__all__ = [
    "Base",
    "CreditCard",
    "Customer",
    "Merchant",
    "Payment",
    "PaymentStatusType",
    "Refund",
    "close_db",
    "get_db",
    "get_session_factory",
    "init_db",
]
