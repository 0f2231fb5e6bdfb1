"""
Refund workflow orchestration.

1. Parse the payment id (no lookup on malformed ids)
2. Ask the acquiring bank to refund amount and reason
3. On approval, atomically move the payment to refunded, record the refund
   and commit before acknowledging

The acknowledgement policy depends on strict mode. In lenient mode (the
default) the caller is told "refunded" even when the bank
declines or cannot be reached; strict mode reports the actual verdict.
"""
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog

from payment_gateway.config import get_settings
from payment_gateway.core.errors import (
    InvalidPaymentIdError,
    PersistenceError,
    RefundConflictError,
    TransportError,
    ValidationError,
)
from payment_gateway.core.status import PaymentStatus
from payment_gateway.integrations.settlement_client import SettlementClient
from payment_gateway.monitoring.metrics import metrics
from payment_gateway.storage.repository import TransactionStore

logger = structlog.get_logger(__name__)

PAYMENT_ID_PATTERN = re.compile(r"[0-9]+")

REFUND_STATUS_REFUNDED = "refunded"
REFUND_STATUS_DECLINED = "declined"


@dataclass(frozen=True)
class RefundCommand:
    """Refund request; an amount of zero asks for a full refund."""

    amount: Decimal = Decimal("0")
    reason: str = ""


def parse_payment_id(raw: str) -> int:
    """
    Parse a payment identifier from a path parameter.

    Raises:
        InvalidPaymentIdError: If raw is not a positive decimal integer
    """
    if raw is None or not PAYMENT_ID_PATTERN.fullmatch(raw):
        raise InvalidPaymentIdError(raw)
    payment_id = int(raw)
    if payment_id <= 0:
        raise InvalidPaymentIdError(raw)
    return payment_id


class RefundOrchestrator:
    """Runs one refund workflow per call."""

    def __init__(
        self,
        store: TransactionStore,
        settlement_client: SettlementClient,
        strict: Optional[bool] = None,
    ):
        self.store = store
        self.settlement_client = settlement_client
        self.strict = get_settings().strict_refunds if strict is None else strict

    async def refund(self, raw_payment_id: str, command: RefundCommand) -> Dict[str, Any]:
        """
        Refund a payment.

        Args:
            raw_payment_id: Payment id as received from the caller
            command: Refund amount and reason

        Returns:
            Dict[str, Any]: Refund acknowledgement

        Raises:
            InvalidPaymentIdError: If the payment id is malformed
            ValidationError: If the amount is negative
            TransportError: In strict mode, if the bank could not be reached
            PaymentNotFoundError: If the bank approved but the payment does not exist
            RefundConflictError: If the payment is not refundable at write time
            PersistenceError: If a store write fails
        """
        payment_id = parse_payment_id(raw_payment_id)
        if command.amount < 0:
            raise ValidationError("refund amount must not be negative")

        log = logger.bind(correlation_id=str(uuid.uuid4()), payment_id=payment_id)
        log.info("refund_workflow_started", amount=str(command.amount), reason=command.reason)

        try:
            settlement = await self.settlement_client.refund(command.amount, command.reason)
        except TransportError as e:
            metrics.record_refund("transport_error")
            if self.strict:
                raise
            log.warning("refund_acknowledged_without_settlement", error=str(e))
            return self._acknowledgement(payment_id, REFUND_STATUS_REFUNDED)

        if not settlement.success:
            metrics.record_refund("declined")
            if self.strict:
                log.info("refund_declined", message=settlement.message)
                return self._acknowledgement(payment_id, REFUND_STATUS_DECLINED)
            log.warning("refund_acknowledged_despite_decline", message=settlement.message)
            return self._acknowledgement(payment_id, REFUND_STATUS_REFUNDED)

        try:
            refund = await self.store.record_refund(
                payment_id,
                command.amount,
                command.reason,
                expected_status=PaymentStatus.SUCCEEDED,
            )
            await self.store.commit()
        except RefundConflictError:
            metrics.record_refund("conflict")
            raise
        except PersistenceError:
            metrics.record_refund("error")
            raise

        metrics.record_refund("refunded")
        log.info("refund_workflow_completed", refund_id=refund.id, amount=str(refund.amount))

        return self._acknowledgement(
            payment_id, REFUND_STATUS_REFUNDED, refund_id=refund.id, amount=refund.amount
        )

    @staticmethod
    def _acknowledgement(
        payment_id: int,
        status: str,
        refund_id: Optional[int] = None,
        amount: Optional[Decimal] = None,
    ) -> Dict[str, Any]:
        return {
            "status": status,
            "payment_id": payment_id,
            "refund_id": refund_id,
            "amount": amount,
        }
