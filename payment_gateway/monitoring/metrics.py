"""
Prometheus metrics for payment gateway monitoring.

Tracks:
- Payment request counts by status
- Payment processing duration
- Payment amounts
- Card rejections
- Settlement API calls and errors
- Refund outcomes
"""
from decimal import Decimal
from typing import Union

from prometheus_client import Counter, Histogram

# Payment metrics
payment_requests_total = Counter(
    "payment_requests_total",
    "Total number of payment requests by terminal status",
    ["status"],  # succeeded, failed, aborted
)

payment_processing_duration_seconds = Histogram(
    "payment_processing_duration_seconds",
    "Payment workflow duration in seconds",
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

payment_amount = Histogram(
    "payment_amount",
    "Payment amounts",
    buckets=(1, 5, 10, 50, 100, 500, 1000, 5000, 10000),
)

# Card processor metrics
card_rejections_total = Counter(
    "card_rejections_total",
    "Total cards rejected by the card processor",
    ["reason"],  # invalid_checksum, too_short
)

# Settlement API metrics
settlement_requests_total = Counter(
    "settlement_requests_total",
    "Total settlement API requests",
    ["operation", "outcome"],  # operation: authorize, refund; outcome: approved, declined, error
)

settlement_duration_seconds = Histogram(
    "settlement_duration_seconds",
    "Settlement API call duration in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Refund metrics
refund_requests_total = Counter(
    "refund_requests_total",
    "Total refund requests by outcome",
    ["outcome"],  # refunded, declined, transport_error, conflict, error
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_payment_request(status: str, amount: Union[Decimal, float]) -> None:
        """Record a payment request."""
        payment_requests_total.labels(status=status).inc()
        payment_amount.observe(float(amount))

    @staticmethod
    def record_payment_duration(duration_seconds: float) -> None:
        """Record payment processing duration."""
        payment_processing_duration_seconds.observe(duration_seconds)

    @staticmethod
    def record_card_rejection(reason: str) -> None:
        """Record a card rejected during tokenization."""
        card_rejections_total.labels(reason=reason).inc()

    @staticmethod
    def record_settlement_call(operation: str, outcome: str, duration_seconds: float) -> None:
        """Record settlement API call."""
        settlement_requests_total.labels(operation=operation, outcome=outcome).inc()
        settlement_duration_seconds.labels(operation=operation).observe(duration_seconds)

    @staticmethod
    def record_refund(outcome: str) -> None:
        """Record a refund request outcome."""
        refund_requests_total.labels(outcome=outcome).inc()


# Export singleton instance
metrics = MetricsCollector()
