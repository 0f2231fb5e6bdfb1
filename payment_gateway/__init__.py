"""Payment gateway: card tokenization, settlement and transaction orchestration."""

__version__ = "1.0.0"
