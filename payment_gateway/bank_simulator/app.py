"""
Acquiring bank simulator.

Stands in for the external bank during development and tests: payments are
approved or declined at random, refunds always succeed.
"""
import random
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from payment_gateway.config import get_settings

logger = structlog.get_logger(__name__)

PROCESSOR_NAME = "Awesome Bank"


class BankPaymentRequest(BaseModel):
    """Payment instruction received from the gateway."""

    amount: float
    card_number: str
    expiry_month: str
    expiry_year: str
    cvv: str = ""


class BankRefundRequest(BaseModel):
    """Refund instruction received from the gateway."""

    amount: float
    reason: str = ""


class BankResponse(BaseModel):
    """Verdict for a payment or refund."""

    success: bool
    message: str
    processor: str = Field(default=PROCESSOR_NAME)


def create_app(rng: Optional[random.Random] = None) -> FastAPI:
    """
    Build the simulator application.

    Args:
        rng: Random source for payment verdicts (seedable in tests)
    """
    rng = rng or random.Random()
    simulator = FastAPI(title="Bank Simulator", version="1.0.0")

    @simulator.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("bank_simulator_bad_request", path=request.url.path)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Bad request"})

    @simulator.post("/payment/process", response_model=BankResponse)
    async def process_payment(request: BankPaymentRequest) -> Any:
        success = rng.randint(0, 1) == 0
        logger.info("bank_simulator_payment", amount=request.amount, success=success)
        return BankResponse(
            success=success,
            message="Payment succeeded" if success else "Payment failed",
        )

    @simulator.post("/payment/refund", response_model=BankResponse)
    async def process_refund(request: BankRefundRequest) -> Any:
        logger.info("bank_simulator_refund", amount=request.amount)
        return BankResponse(success=True, message="Refund succeeded")

    return simulator


app = create_app()


def run() -> None:
    """Console entry point: serve the simulator with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "payment_gateway.bank_simulator.app:app",
        host=settings.api_host,
        port=settings.bank_simulator_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
