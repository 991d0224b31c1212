"""
Statement Ledger - Logging Configuration
========================================
structlog setup shared by the API layer and the services.

The services log through the standard library (`logging.getLogger`); their
records are rendered by the same structlog processor chain, so request ids
and the redaction rules apply to every line.
"""

import logging
import re
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

# Keys whose values never reach the logs
REDACTED_KEYS = ("password", "secret", "token", "authorization", "api_key")

# Keys holding account numbers; only the last four digits are kept
ACCOUNT_KEYS = ("account_number", "account")

MAX_VALUE_LENGTH = 500

_handler: Optional[logging.Handler] = None

_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z0-9+]+://)[^/@\s]+@", re.IGNORECASE)

# Chatty third-party loggers and the level they are held at
QUIET_LOGGERS = {
    "aiosqlite": logging.WARNING,
    "pypdf": logging.ERROR,
    "multipart": logging.WARNING,
    "python_multipart": logging.WARNING,
}


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = "statement-ledger"
    event_dict["service"] = "backend"
    return event_dict


def mask_account(value: Any) -> Any:
    """'000123456789' -> '****6789'. Already-masked values pass through."""
    if not isinstance(value, str):
        return value
    digits = re.sub(r"\D", "", value)
    if len(digits) <= 4:
        return value
    return f"****{digits[-4:]}"


def _clean_value(key: str, value: Any) -> Any:
    key_lower = key.lower()

    if any(part in key_lower for part in REDACTED_KEYS):
        return "***REDACTED***"
    if key_lower in ACCOUNT_KEYS:
        return mask_account(value)
    if isinstance(value, dict):
        return {k: _clean_value(str(k), v) for k, v in value.items()}
    if isinstance(value, str):
        value = _URL_CREDENTIALS.sub(r"\g<scheme>***@", value)
        if len(value) > MAX_VALUE_LENGTH:
            # Parsed statement pages can be several KB
            return value[:100] + "...[truncated]"
    return value


def sanitize_event(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact credentials, mask account numbers and shorten long values.

    The event message itself is included: service messages are f-strings.
    """
    return {key: _clean_value(key, value) for key, value in event_dict.items()}


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        sanitize_event,
    ]


def _renderer(environment: str) -> Processor:
    if environment == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(environment: str = "development", level: str = "INFO") -> None:
    """
    Configure structlog and route stdlib logging through it.

    Args:
        environment: "production" renders JSON lines, anything else the console format
        level: Standard library level name for the root logger
    """
    global _handler

    shared = _shared_processors()

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    final_processors: list[Processor] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if environment == "production":
        final_processors.append(structlog.processors.format_exc_info)
    final_processors.append(_renderer(environment))

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=final_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    _handler = handler
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)
