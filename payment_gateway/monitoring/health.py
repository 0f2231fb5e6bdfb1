"""
Health checks for Kubernetes readiness/liveness probes.

Checks:
- Database connectivity
- Settlement service reachability
"""
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from sqlalchemy import text

from payment_gateway.core.errors import TransportError
from payment_gateway.database.connection import get_session_factory

if TYPE_CHECKING:
    from payment_gateway.integrations.settlement_client import SettlementClient

logger = structlog.get_logger(__name__)


class HealthCheckError(Exception):
    """Raised when health check fails."""

    pass


class HealthCheck:
    """
    Health check service for monitoring system dependencies.

    Provides:
    - Database connectivity check
    - Settlement service reachability check
    - Overall system health status
    """

    def __init__(self, settlement_client: Optional["SettlementClient"] = None) -> None:
        """
        Initialize health check service.

        Args:
            settlement_client: Shared settlement client; the bank check is
                skipped when it is not available yet
        """
        self.settlement_client = settlement_client

    async def check_database(self) -> Dict[str, Any]:
        """
        Check database connectivity.

        Returns:
            Dict[str, Any]: Database health status

        Raises:
            HealthCheckError: If database check fails
        """
        try:
            session_factory = get_session_factory()
            async with session_factory() as db:
                result = await db.execute(text("SELECT 1"))
                result.scalar()

                return {
                    "status": "healthy",
                    "service": "database",
                    "message": "Database connection successful",
                }

        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            raise HealthCheckError(f"Database health check failed: {str(e)}") from e

    async def check_settlement_service(self) -> Dict[str, Any]:
        """
        Check that the acquiring bank API is reachable.

        Returns:
            Dict[str, Any]: Settlement service health status

        Raises:
            HealthCheckError: If the bank cannot be reached
        """
        if self.settlement_client is None:
            raise HealthCheckError("Settlement client not initialized")

        try:
            status_code = await self.settlement_client.ping()
        except TransportError as e:
            logger.error("settlement_health_check_failed", error=str(e))
            raise HealthCheckError(f"Settlement health check failed: {str(e)}") from e

        return {
            "status": "healthy",
            "service": "settlement",
            "message": f"Settlement service reachable (HTTP {status_code})",
        }

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        checks = {}
        all_healthy = True

        for name, check in (
            ("database", self.check_database),
            ("settlement", self.check_settlement_service),
        ):
            try:
                checks[name] = await check()
            except HealthCheckError as e:
                checks[name] = {
                    "status": "unhealthy",
                    "service": name,
                    "error": str(e),
                }
                all_healthy = False

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

    async def liveness(self) -> Dict[str, Any]:
        """
        Liveness probe.

        Simple check that the application is running.
        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "message": "Application is running",
        }

    async def readiness(self) -> Dict[str, Any]:
        """Readiness probe: all dependencies must be available."""
        return await self.check_all()
