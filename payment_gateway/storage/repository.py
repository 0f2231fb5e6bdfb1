"""Transaction Store contract used by the orchestration workflows."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from payment_gateway.core.status import PaymentStatus
from payment_gateway.database.models import CreditCard, Customer, Merchant, Payment, Refund


@dataclass(frozen=True)
class PaymentDetails:
    """A payment joined with the display fields of its customer and merchant."""

    payment: Payment
    customer: Customer
    merchant: Merchant


class TransactionStore(ABC):
    """
    Durable storage of merchants, customers, credit cards, payments and refunds.

    Lookups raise the matching NotFoundError subclass; write failures raise
    PersistenceError. Implementations must make record_refund a single
    conditional transition, never a fetch/mutate/save sequence.
    """

    @abstractmethod
    async def get_merchant(self, merchant_id: int) -> Merchant:
        """Fetch a merchant or raise MerchantNotFoundError."""

    @abstractmethod
    async def get_customer(self, customer_id: int) -> Customer:
        """Fetch a customer or raise CustomerNotFoundError."""

    @abstractmethod
    async def create_customer(self, name: str, email: str) -> Customer:
        """Create and return a new customer."""

    @abstractmethod
    async def create_credit_card(self, credit_card: CreditCard) -> CreditCard:
        """Persist a tokenized card reference."""

    @abstractmethod
    async def create_payment(self, payment: Payment) -> Payment:
        """Persist a new payment record."""

    @abstractmethod
    async def get_payment(self, payment_id: int) -> Payment:
        """Fetch a payment or raise PaymentNotFoundError."""

    @abstractmethod
    async def get_payment_details(self, payment_id: int) -> PaymentDetails:
        """Fetch a payment together with its customer and merchant."""

    @abstractmethod
    async def record_refund(
        self,
        payment_id: int,
        amount: Decimal,
        reason: str,
        expected_status: PaymentStatus = PaymentStatus.SUCCEEDED,
    ) -> Refund:
        """
        Move a payment from expected_status to REFUNDED and create its refund.

        Both writes happen atomically. A zero amount is replaced by the
        payment amount before the refund is stored.

        Raises:
            PaymentNotFoundError: If the payment does not exist
            RefundConflictError: If the payment is not in expected_status
        """

    @abstractmethod
    async def commit(self) -> None:
        """
        Make every write of the current workflow durable.

        Workflows call this before acknowledging success to the caller.

        Raises:
            PersistenceError: If the commit fails; nothing is stored
        """
