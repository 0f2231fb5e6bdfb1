"""
Payment workflow orchestration.

Turns a merchant's payment request into a durable payment record:
1. Resolve merchant
2. Resolve or create customer
3. Validate and tokenize the card
4. Persist the credit card reference
5. Authorize with the acquiring bank
6. Persist and commit the payment (succeeded or failed, per the bank verdict)
7. Assemble the response

Any exception before the commit in step 6 aborts the run with no payment
record, and the response is only built once the payment is durable. A bank
decline is not an exception: it is recorded as a failed payment.
"""
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog

from payment_gateway.core import card_processor
from payment_gateway.core.card_processor import PrimaryAccountNumber, TokenizedCard
from payment_gateway.core.errors import CardError
from payment_gateway.core.status import PaymentStatus, status_for_settlement
from payment_gateway.database.models import CreditCard, Customer, Merchant, Payment
from payment_gateway.integrations.settlement_client import SettlementClient, SettlementResult
from payment_gateway.monitoring.metrics import metrics
from payment_gateway.storage.repository import TransactionStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CardDetails:
    """Card data supplied with a payment request."""

    card_number: PrimaryAccountNumber
    card_type: str
    expiration_month: str
    expiration_year: str
    card_holder: str
    cvv: str = field(repr=False)


@dataclass(frozen=True)
class PaymentCommand:
    """Everything the payment workflow needs from an inbound request."""

    order_token: str
    merchant_id: int
    amount: Decimal
    card: CardDetails
    customer_name: str = ""
    customer_email: str = ""
    customer_id: Optional[int] = None
    method_type: str = "card"
    # Reported back when the bank does not name the processor that settled.
    processor: str = ""
    success_url: str = ""
    failure_url: str = ""


def redirect_url_for(status: PaymentStatus, success_url: str, failure_url: str) -> str:
    """Choose where the payer is sent next based on the payment status."""
    if status == PaymentStatus.SUCCEEDED:
        return success_url
    if status == PaymentStatus.FAILED:
        return failure_url
    return ""


class PaymentOrchestrator:
    """
    Runs one payment workflow per call.

    Holds no per-request state; the store is request-scoped and the
    settlement client is shared across requests.
    """

    def __init__(self, store: TransactionStore, settlement_client: SettlementClient):
        self.store = store
        self.settlement_client = settlement_client

    async def process(self, command: PaymentCommand) -> Dict[str, Any]:
        """
        Process a payment request end to end.

        Args:
            command: Validated payment request

        Returns:
            Dict[str, Any]: Caller-facing payment response

        Raises:
            MerchantNotFoundError: If the merchant does not exist
            CustomerNotFoundError: If an existing customer id does not resolve
            CardError: If the card number is rejected
            TransportError: If the bank could not be reached
            PersistenceError: If a store write fails
        """
        correlation_id = uuid.uuid4()
        log = logger.bind(
            correlation_id=str(correlation_id),
            order_token=command.order_token,
            merchant_id=command.merchant_id,
        )
        log.info("payment_workflow_started", amount=str(command.amount))

        merchant = await self.store.get_merchant(command.merchant_id)
        customer = await self._resolve_customer(command)
        log.info("payment_parties_resolved", customer_id=customer.id)

        credit_card = await self._create_credit_card(command.card, customer.id)
        log.info("credit_card_stored", credit_card_id=credit_card.id, card_brand=credit_card.card_brand)

        settlement = await self.settlement_client.authorize(
            amount=command.amount,
            card_number=command.card.card_number,
            expiry_month=command.card.expiration_month,
            expiry_year=command.card.expiration_year,
            cvv=command.card.cvv,
        )

        payment = await self._create_payment(command, settlement, customer.id)
        await self.store.commit()
        log.info(
            "payment_workflow_completed",
            payment_id=payment.id,
            status=payment.status.value,
            processor=settlement.processor or command.processor,
        )

        return self._build_response(command, payment, merchant, customer, credit_card, settlement)

    async def _resolve_customer(self, command: PaymentCommand) -> Customer:
        """Fetch the referenced customer, or create one when no id is given."""
        if not command.customer_id:
            return await self.store.create_customer(
                name=command.customer_name, email=command.customer_email
            )
        return await self.store.get_customer(command.customer_id)

    async def _create_credit_card(self, card: CardDetails, customer_id: int) -> CreditCard:
        """Tokenize the card and persist its non-sensitive reference."""
        try:
            tokenized: TokenizedCard = card_processor.process(card.card_number)
        except CardError as e:
            metrics.record_card_rejection(e.reason)
            logger.warning("card_rejected", reason=e.reason, card_number=card.card_number.masked())
            raise

        credit_card = CreditCard(
            token=tokenized.token,
            expiration_month=card.expiration_month,
            expiration_year=card.expiration_year,
            card_holder=card.card_holder,
            card_type=card.card_type,
            card_brand=tokenized.brand.value,
            last_four=tokenized.last_four,
            customer_id=customer_id,
        )
        return await self.store.create_credit_card(credit_card)

    async def _create_payment(
        self,
        command: PaymentCommand,
        settlement: SettlementResult,
        customer_id: int,
    ) -> Payment:
        """Persist the payment with the status implied by the bank verdict."""
        payment = Payment(
            order_token=command.order_token,
            merchant_id=command.merchant_id,
            customer_id=customer_id,
            amount=command.amount,
            status=status_for_settlement(settlement.success),
        )
        return await self.store.create_payment(payment)

    @staticmethod
    def _build_response(
        command: PaymentCommand,
        payment: Payment,
        merchant: Merchant,
        customer: Customer,
        credit_card: CreditCard,
        settlement: SettlementResult,
    ) -> Dict[str, Any]:
        return {
            "id": payment.id,
            "order_token": payment.order_token,
            "status": payment.status.value,
            "payment_info": {
                "amount": payment.amount,
                "method_type": command.method_type,
                "processor": settlement.processor or command.processor,
                "card_details": {
                    "card_type": credit_card.card_type,
                    "card_brand": credit_card.card_brand,
                    "card_holder": credit_card.card_holder,
                    "last_four_digits": credit_card.last_four,
                },
            },
            "redirect_url": redirect_url_for(
                payment.status, command.success_url, command.failure_url
            ),
            "merchant": {"name": merchant.name, "email": merchant.email},
            "customer": {"name": customer.name, "email": customer.email},
            "created_at": payment.created_at.isoformat(),
        }
