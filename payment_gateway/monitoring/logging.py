"""
Structured logging for the gateway.

structlog renders every event as one JSON line. Card fields are masked
before rendering, so a card number or CVV passed as a log field never
reaches stdout in full. Records emitted by third-party libraries through
the standard library go through python-json-logger instead.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from pythonjsonlogger.json import JsonFormatter

from payment_gateway.config import Settings, get_settings

SENSITIVE_KEYS = frozenset({"card_number", "cvv", "card_cvv"})

# Library loggers that only speak up at WARNING and above.
QUIET_LOGGERS = ("httpx", "httpcore")


def add_app_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Stamp each event with the service name and environment."""
    settings = get_settings()
    event_dict.setdefault("app_name", settings.app_name)
    event_dict.setdefault("app_env", settings.app_env)
    return event_dict


def mask_card_data(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Mask card fields that reach the logger.

    The last four characters of a card number survive; a CVV is fully hidden.
    """
    for key in SENSITIVE_KEYS.intersection(event_dict):
        value = str(event_dict[key])
        if key == "card_number" and len(value) > 4:
            event_dict[key] = "*" * (len(value) - 4) + value[-4:]
        else:
            event_dict[key] = "***"
    return event_dict


def build_processors() -> list[Any]:
    """The structlog chain, ending in the JSON renderer."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        mask_card_data,
        add_app_context,
        structlog.processors.JSONRenderer(),
    ]


def build_stdout_handler() -> logging.Handler:
    """A stdout handler that writes library records as JSON."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        )
    )
    return handler


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog and the root logger.

    Safe to call more than once; the root logger ends up with a single
    JSON handler each time.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=build_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.addHandler(build_stdout_handler())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        app_env=settings.app_env,
    )
