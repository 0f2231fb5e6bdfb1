"""
FastAPI dependencies: authentication, store and workflow wiring.
"""
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from payment_gateway.config import Settings, get_settings
from payment_gateway.core.payment_orchestrator import PaymentOrchestrator
from payment_gateway.core.refund_orchestrator import RefundOrchestrator
from payment_gateway.database.connection import get_db
from payment_gateway.integrations.settlement_client import SettlementClient
from payment_gateway.monitoring.health import HealthCheck
from payment_gateway.storage import SQLAlchemyTransactionStore, TransactionStore

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Optional[Dict[str, Any]]:
    """
    Verify the merchant bearer token.

    Returns the token claims, or None when authentication is disabled
    (no jwt_secret_key configured).
    """
    if not settings.auth_enabled:
        return None

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No Authorization header provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError:
        logger.warning("auth_token_expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="The token is invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )

    structlog.contextvars.bind_contextvars(auth_subject=claims.get("sub"))
    return claims


def get_settlement_client(request: Request) -> SettlementClient:
    """Return the settlement client created at application startup."""
    client = getattr(request.app.state, "settlement_client", None)
    if client is None:
        raise RuntimeError("Settlement client is not initialized")
    return client


async def get_store(db: AsyncSession = Depends(get_db)) -> TransactionStore:
    """Request-scoped Transaction Store bound to the request's session."""
    return SQLAlchemyTransactionStore(db)


async def get_payment_orchestrator(
    store: TransactionStore = Depends(get_store),
    settlement_client: SettlementClient = Depends(get_settlement_client),
) -> PaymentOrchestrator:
    return PaymentOrchestrator(store=store, settlement_client=settlement_client)


async def get_refund_orchestrator(
    store: TransactionStore = Depends(get_store),
    settlement_client: SettlementClient = Depends(get_settlement_client),
    settings: Settings = Depends(get_settings),
) -> RefundOrchestrator:
    return RefundOrchestrator(
        store=store,
        settlement_client=settlement_client,
        strict=settings.strict_refunds,
    )


def get_health_check(request: Request) -> HealthCheck:
    return HealthCheck(getattr(request.app.state, "settlement_client", None))
