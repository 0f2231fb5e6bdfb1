"""Transaction orchestration engine: card processing, payment and refund workflows."""
from .errors import (
    NotFoundError,
    PaymentGatewayError,
    PersistenceError,
    TransportError,
    ValidationError,
)
from .status import PaymentStatus

__all__ = [
    "NotFoundError",
    "PaymentGatewayError",
    "PaymentStatus",
    "PersistenceError",
    "TransportError",
    "ValidationError",
]
