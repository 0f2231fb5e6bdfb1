"""FastAPI application and routes."""
from .main import app
from .schemas import (
    PaymentDataResponse,
    PaymentRequest,
    PaymentResponse,
    RefundRequest,
    RefundResponse,
)

__all__ = [
    "app",
    "PaymentDataResponse",
    "PaymentRequest",
    "PaymentResponse",
    "RefundRequest",
    "RefundResponse",
]
