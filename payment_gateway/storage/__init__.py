"""Transaction Store contract and its SQLAlchemy implementation."""
from .repository import PaymentDetails, TransactionStore
from .sql_store import SQLAlchemyTransactionStore

__all__ = ["PaymentDetails", "SQLAlchemyTransactionStore", "TransactionStore"]
