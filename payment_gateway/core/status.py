"""Payment status enumeration with lenient string decoding."""
from enum import Enum
from typing import Any, Optional


class PaymentStatus(str, Enum):
    """
    Lifecycle status of a payment.

    Only SUCCEEDED, FAILED and REFUNDED are produced by the orchestration
    workflows; the remaining members are reserved for future settlement flows
    but still round-trip through storage and the API.

    UNKNOWN is the decode fallback for unrecognized strings found in stored
    rows, so old data never fails to load.
    """

    UNKNOWN = "unknown"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PROCESSED = "processed"
    AUTHORIZED = "authorized"

    @classmethod
    def _missing_(cls, value: Any) -> "PaymentStatus":
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: Optional[str]) -> "PaymentStatus":
        """Decode a stored status string, falling back to UNKNOWN."""
        if value is None:
            return cls.UNKNOWN
        return cls(value)

    def __str__(self) -> str:
        return self.value


def status_for_settlement(success: bool) -> PaymentStatus:
    """Map a settlement verdict onto the status recorded for the payment."""
    return PaymentStatus.SUCCEEDED if success else PaymentStatus.FAILED
