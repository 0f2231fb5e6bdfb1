"""External service integrations."""
from .settlement_client import SettlementClient, SettlementResult

__all__ = ["SettlementClient", "SettlementResult"]
