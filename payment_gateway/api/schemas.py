"""
Pydantic schemas for API request/response models.

Card numbers and CVVs arrive as SecretStr so they are masked in reprs,
logs and serialized output; they are unwrapped only when the payment
command is built.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, SecretStr

from payment_gateway.core.card_processor import PrimaryAccountNumber
from payment_gateway.core.payment_orchestrator import CardDetails, PaymentCommand
from payment_gateway.core.refund_orchestrator import RefundCommand


class CardInfo(BaseModel):
    """Credit/debit card information."""

    card_type: str = Field(..., min_length=1, description="Card type (credit, debit)")
    expiration_month: str = Field(..., pattern=r"^[0-9]{1,2}$", description="Expiration month")
    expiration_year: str = Field(..., pattern=r"^[0-9]{2,4}$", description="Expiration year")
    card_number: SecretStr = Field(..., description="Primary account number")
    card_holder: str = Field(..., min_length=1, description="Name printed on the card")
    card_cvv: SecretStr = Field(default=SecretStr(""), description="Card verification value")


class PaymentSource(BaseModel):
    """Payment source information."""

    method_type: str = Field(default="card", description="Payment method type")
    processor: str = Field(default="", description="Requested processor")
    card_info: CardInfo


class CustomerInfo(BaseModel):
    """Payer identity; id 0 creates a new customer from name and email."""

    id: int = Field(default=0, ge=0, description="Existing customer id, 0 for a new customer")
    name: str = Field(default="", description="Customer name (new customers)")
    email: str = Field(default="", description="Customer email (new customers)")


class CallbackUrls(BaseModel):
    """URLs the payer is redirected to, chosen by payment status."""

    success: str = Field(default="", description="Redirect target for succeeded payments")
    reject: str = Field(default="", description="Redirect target for rejected payments")
    cancelled: str = Field(default="", description="Redirect target for cancelled payments")
    failed: str = Field(default="", description="Redirect target for failed payments")


class PaymentRequest(BaseModel):
    """Request schema for processing a payment."""

    order_token: str = Field(..., min_length=1, description="Merchant order reference")
    payment_source: PaymentSource
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Payment amount")
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    callback_urls: CallbackUrls = Field(default_factory=CallbackUrls)
    merchant_id: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("merchant_id", "merchand_id"),
        description="Merchant receiving the payment",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_token": "order-2024-0001",
                    "payment_source": {
                        "method_type": "card",
                        "processor": "Awesome Bank",
                        "card_info": {
                            "card_type": "credit",
                            "expiration_month": "12",
                            "expiration_year": "2030",
                            "card_number": "4532015112830366",
                            "card_holder": "Jane Doe",
                            "card_cvv": "123",
                        },
                    },
                    "amount": "100.00",
                    "customer": {"id": 0, "name": "Jane Doe", "email": "jane@example.com"},
                    "callback_urls": {
                        "success": "https://shop.example.com/success",
                        "failed": "https://shop.example.com/failed",
                    },
                    "merchant_id": 1,
                }
            ]
        }
    }

    def to_command(self) -> PaymentCommand:
        """Build the workflow command, unwrapping card secrets."""
        card = self.payment_source.card_info
        return PaymentCommand(
            order_token=self.order_token,
            merchant_id=self.merchant_id,
            amount=self.amount,
            card=CardDetails(
                card_number=PrimaryAccountNumber(card.card_number.get_secret_value()),
                card_type=card.card_type,
                expiration_month=card.expiration_month,
                expiration_year=card.expiration_year,
                card_holder=card.card_holder,
                cvv=card.card_cvv.get_secret_value(),
            ),
            customer_id=self.customer.id,
            customer_name=self.customer.name,
            customer_email=self.customer.email,
            method_type=self.payment_source.method_type,
            processor=self.payment_source.processor,
            success_url=self.callback_urls.success,
            failure_url=self.callback_urls.failed,
        )


class PartyResponse(BaseModel):
    """Display fields of a merchant or customer."""

    name: str
    email: str


class CardDetailsResponse(BaseModel):
    """Non-sensitive card details."""

    card_type: str
    card_brand: str
    card_holder: str
    last_four_digits: str


class PaymentInfo(BaseModel):
    """Information about the processed payment."""

    amount: float
    method_type: str
    processor: str
    card_details: CardDetailsResponse


class PaymentResponse(BaseModel):
    """Response schema for a processed payment."""

    id: int = Field(..., description="Payment ID")
    order_token: str = Field(..., description="Merchant order reference")
    status: str = Field(..., description="Payment status (succeeded/failed)")
    payment_info: PaymentInfo
    redirect_url: str = Field(..., description="Where to send the payer next")
    merchant: PartyResponse
    customer: PartyResponse
    created_at: str = Field(..., description="Creation timestamp (ISO 8601)")


class PaymentDataResponse(BaseModel):
    """Response schema for a stored payment."""

    id: int = Field(..., description="Payment ID")
    order_token: str = Field(..., description="Merchant order reference")
    amount: float = Field(..., description="Payment amount")
    status: str = Field(..., description="Payment status")
    created_at: str = Field(..., description="Creation timestamp (ISO 8601)")
    customer: PartyResponse
    merchant: PartyResponse


class RefundRequest(BaseModel):
    """Request schema for refunding a payment."""

    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Refund amount (0 refunds the full payment amount)",
    )
    reason: str = Field(default="", max_length=255, description="Refund reason")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"amount": "0", "reason": "requested_by_customer"},
                {"amount": "25.00", "reason": "damaged item"},
            ]
        }
    }

    def to_command(self) -> RefundCommand:
        return RefundCommand(amount=self.amount, reason=self.reason)


class RefundResponse(BaseModel):
    """Response schema for refund."""

    status: str = Field(..., description="Refund acknowledgement (refunded/declined)")
    payment_id: Optional[int] = Field(default=None, description="Payment ID")
    refund_id: Optional[int] = Field(default=None, description="Refund ID when one was recorded")
    amount: Optional[float] = Field(default=None, description="Refunded amount when recorded")


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
