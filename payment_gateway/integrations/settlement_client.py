"""
Acquiring bank settlement client.

Sends payment and refund instructions to the bank over synchronous
request/response JSON calls. A decline comes back as a SettlementResult with
success=False; only failures to obtain a verdict raise TransportError.

No retry, backoff or circuit breaking happens here: every
failure is terminal for the request that triggered it.
"""
import time
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
import structlog
from pydantic import BaseModel, Field, StrictBool
from pydantic import ValidationError as PydanticValidationError

from payment_gateway.config import get_settings
from payment_gateway.core.card_processor import PrimaryAccountNumber
from payment_gateway.core.errors import TransportError
from payment_gateway.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

AUTHORIZE_PATH = "/process"
REFUND_PATH = "/refund"


class SettlementResult(BaseModel):
    """Verdict returned by the bank for a payment or refund."""

    success: StrictBool = Field(..., description="Whether the bank accepted the instruction")
    message: str = Field(default="", description="Human-readable verdict message")
    processor: str = Field(default="", description="Name of the processor that settled")


class SettlementClient:
    """
    Client for the acquiring bank API.

    Created once per process and shared by every workflow; owns a pooled
    httpx.AsyncClient that must be closed with aclose() at shutdown.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize settlement client.

        Args:
            base_url: Bank API base URL (defaults to settings.bank_simulator_host)
            timeout: Transport timeout in seconds (defaults to settings.bank_timeout_seconds)
            http_client: Optional preconfigured httpx client (used by tests)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.bank_simulator_host).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.bank_timeout_seconds
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)

        logger.info("settlement_client_initialized", base_url=self.base_url, timeout=self.timeout)

    async def authorize(
        self,
        amount: Decimal,
        card_number: PrimaryAccountNumber,
        expiry_month: str,
        expiry_year: str,
        cvv: str,
    ) -> SettlementResult:
        """
        Ask the bank to settle a card payment.

        Args:
            amount: Payment amount
            card_number: Raw card number wrapper
            expiry_month: Card expiration month
            expiry_year: Card expiration year
            cvv: Card verification value

        Returns:
            SettlementResult: Bank verdict

        Raises:
            TransportError: If no verdict could be obtained
        """
        payload = {
            "amount": float(amount),
            "card_number": card_number.reveal(),
            "expiry_month": expiry_month,
            "expiry_year": expiry_year,
            "cvv": cvv,
        }
        return await self._post("authorize", AUTHORIZE_PATH, payload)

    async def refund(self, amount: Decimal, reason: str) -> SettlementResult:
        """
        Ask the bank to reverse a payment.

        The instruction carries only amount and reason; the bank does not
        receive the original payment reference.

        Raises:
            TransportError: If no verdict could be obtained
        """
        payload = {"amount": float(amount), "reason": reason}
        return await self._post("refund", REFUND_PATH, payload)

    async def _post(self, operation: str, path: str, payload: Dict[str, Any]) -> SettlementResult:
        url = f"{self.base_url}{path}"
        logger.info("settlement_request_started", operation=operation, amount=payload["amount"])

        start_time = time.time()
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
            result = SettlementResult.model_validate(response.json())

        except httpx.HTTPStatusError as e:
            self._record_error(operation, start_time, f"status {e.response.status_code}")
            raise TransportError(
                f"Settlement service answered {e.response.status_code}", operation
            ) from e

        except httpx.HTTPError as e:
            self._record_error(operation, start_time, str(e) or type(e).__name__)
            raise TransportError(f"Settlement service unreachable: {e}", operation) from e

        except ValueError as e:
            # Covers non-JSON bodies and pydantic contract violations alike.
            reason = "contract" if isinstance(e, PydanticValidationError) else "json"
            self._record_error(operation, start_time, f"malformed response ({reason})")
            raise TransportError("Malformed settlement response", operation) from e

        duration = time.time() - start_time
        metrics.record_settlement_call(
            operation, "approved" if result.success else "declined", duration
        )
        logger.info(
            "settlement_request_completed",
            operation=operation,
            success=result.success,
            processor=result.processor,
            duration_seconds=duration,
        )
        return result

    @staticmethod
    def _record_error(operation: str, start_time: float, error: str) -> None:
        duration = time.time() - start_time
        metrics.record_settlement_call(operation, "error", duration)
        logger.error(
            "settlement_request_failed",
            operation=operation,
            error=error,
            duration_seconds=duration,
        )

    async def ping(self) -> int:
        """
        Check that the bank API answers HTTP at all.

        Any status code counts as reachable; only transport failures raise.

        Returns:
            int: HTTP status code of the probe

        Raises:
            TransportError: If the bank cannot be reached
        """
        try:
            response = await self._client.get(self.base_url)
        except httpx.HTTPError as e:
            raise TransportError(f"Settlement service unreachable: {e}", "ping") from e
        return response.status_code

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
        logger.info("settlement_client_closed")
