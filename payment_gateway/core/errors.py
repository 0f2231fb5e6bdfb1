"""
Error taxonomy for the transaction orchestration engine.

Every failure is terminal for the current request; nothing here is retried.
A settlement decline is not an error and has no exception type.
"""


class PaymentGatewayError(Exception):
    """Base exception for payment gateway errors."""

    pass


class ValidationError(PaymentGatewayError):
    """Raised when request data is malformed (surfaced as 400)."""

    pass


class CardError(ValidationError):
    """Raised when the Card Processor rejects a card number."""

    reason = "invalid_card"


class InvalidCardNumberError(CardError):
    """Raised when a card number fails the Luhn checksum or contains non-digits."""

    reason = "invalid_checksum"

    def __init__(self, message: str = "invalid credit card number"):
        super().__init__(message)


class CardNumberTooShortError(CardError):
    """Raised when a card number has fewer than four characters."""

    reason = "too_short"

    def __init__(self, message: str = "credit card number must be at least 4 digits long"):
        super().__init__(message)


class InvalidPaymentIdError(ValidationError):
    """Raised when a payment identifier is not a positive integer."""

    def __init__(self, payment_id: object):
        super().__init__("invalid payment id")
        self.payment_id = payment_id


class NotFoundError(PaymentGatewayError):
    """Raised when a referenced entity does not exist (surfaced as 404)."""

    entity = "record"

    def __init__(self, entity_id: object):
        super().__init__(f"{self.entity} not found")
        self.entity_id = entity_id


class MerchantNotFoundError(NotFoundError):
    """Raised when the merchant of a payment request does not exist."""

    entity = "merchant"


class CustomerNotFoundError(NotFoundError):
    """Raised when an existing customer id does not resolve."""

    entity = "customer"


class PaymentNotFoundError(NotFoundError):
    """Raised when a payment id does not resolve."""

    entity = "payment"


class TransportError(PaymentGatewayError):
    """
    Raised when the settlement service cannot be reached or answers
    something that is not a settlement verdict.
    """

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation


class PersistenceError(PaymentGatewayError):
    """Raised when a Transaction Store read or write fails."""

    pass


class RefundConflictError(PersistenceError):
    """Raised when a payment is not in a refundable status at write time."""

    def __init__(self, payment_id: int, current_status: object):
        super().__init__(f"payment {payment_id} cannot be refunded from status '{current_status}'")
        self.payment_id = payment_id
        self.current_status = current_status
