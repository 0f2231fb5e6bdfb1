"""
API routes for payment processing.
"""
import time
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from payment_gateway.core.errors import (
    InvalidPaymentIdError,
    NotFoundError,
    PaymentGatewayError,
    PersistenceError,
    RefundConflictError,
    TransportError,
    ValidationError,
)
from payment_gateway.core.payment_orchestrator import PaymentOrchestrator
from payment_gateway.core.refund_orchestrator import RefundOrchestrator, parse_payment_id
from payment_gateway.monitoring.health import HealthCheck
from payment_gateway.monitoring.metrics import metrics
from payment_gateway.storage import TransactionStore

from .dependencies import (
    authenticate,
    get_health_check,
    get_payment_orchestrator,
    get_refund_orchestrator,
    get_store,
)
from .schemas import (
    HealthCheckResponse,
    PaymentDataResponse,
    PaymentRequest,
    PaymentResponse,
    RefundRequest,
    RefundResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
merchant_router = APIRouter(
    prefix="/merchants", tags=["merchants"], dependencies=[Depends(authenticate)]
)
payment_router = APIRouter(
    prefix="/payments", tags=["payments"], dependencies=[Depends(authenticate)]
)
monitoring_router = APIRouter(tags=["monitoring"])


@merchant_router.post(
    "/payment/process",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Process a payment",
    description="Validate and tokenize the card, settle with the bank and record the payment",
)
async def process_payment(
    request: PaymentRequest,
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
) -> Dict[str, Any]:
    """
    Process a payment.

    Answers 201 whenever the bank returned a verdict, including declines,
    which are recorded with status failed.
    """
    start_time = time.time()

    logger.info(
        "api_process_payment_request",
        order_token=request.order_token,
        merchant_id=request.merchant_id,
        amount=str(request.amount),
    )

    try:
        payment = await orchestrator.process(request.to_command())

    except NotFoundError as e:
        metrics.record_payment_request("aborted", request.amount)
        logger.warning("api_process_payment_not_found", error=str(e))
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    except (ValidationError, TransportError, PersistenceError) as e:
        metrics.record_payment_request("aborted", request.amount)
        logger.warning(
            "api_process_payment_error", error=str(e), error_type=type(e).__name__
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    duration = time.time() - start_time
    metrics.record_payment_request(payment["status"], request.amount)
    metrics.record_payment_duration(duration)

    logger.info(
        "api_process_payment_success",
        payment_id=payment["id"],
        status=payment["status"],
        duration_seconds=duration,
    )

    return payment


@merchant_router.post(
    "/payment/{payment_id}/refund",
    response_model=RefundResponse,
    summary="Refund a payment",
    description="Full refund with amount 0, otherwise a refund of the given amount",
)
async def refund_payment(
    payment_id: str,
    request: RefundRequest,
    orchestrator: RefundOrchestrator = Depends(get_refund_orchestrator),
) -> Dict[str, Any]:
    """Refund a payment."""
    logger.info(
        "api_refund_payment_request",
        payment_id=payment_id,
        amount=str(request.amount),
        reason=request.reason,
    )

    try:
        refund = await orchestrator.refund(payment_id, request.to_command())

    except NotFoundError as e:
        logger.warning("api_refund_payment_not_found", payment_id=payment_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    except RefundConflictError as e:
        logger.warning("api_refund_payment_conflict", payment_id=payment_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    except PaymentGatewayError as e:
        logger.warning(
            "api_refund_payment_error",
            payment_id=payment_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        "api_refund_payment_completed",
        payment_id=payment_id,
        status=refund["status"],
        refund_id=refund["refund_id"],
    )

    return refund


@payment_router.get(
    "/{payment_id}",
    response_model=PaymentDataResponse,
    summary="Get payment",
    description="Retrieve a stored payment with customer and merchant details",
)
async def get_payment(
    payment_id: str,
    store: TransactionStore = Depends(get_store),
) -> Dict[str, Any]:
    """Get payment by ID."""
    try:
        details = await store.get_payment_details(parse_payment_id(payment_id))

    except (InvalidPaymentIdError, NotFoundError) as e:
        logger.warning("api_get_payment_not_found", payment_id=payment_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    except PersistenceError as e:
        logger.error("api_get_payment_error", payment_id=payment_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve payment",
        )

    payment = details.payment
    return {
        "id": payment.id,
        "order_token": payment.order_token,
        "amount": payment.amount,
        "status": payment.status.value,
        "created_at": payment.created_at.isoformat(),
        "customer": {"name": details.customer.name, "email": details.customer.email},
        "merchant": {"name": details.merchant.name, "email": details.merchant.email},
    }


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check overall system health",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    return await health_check.check_all()


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
    description="Kubernetes liveness probe endpoint",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Liveness probe endpoint."""
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
    description="Kubernetes readiness probe endpoint",
)
async def readiness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Readiness probe endpoint."""
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
