"""
Structured Logging Configuration

This module sets up production-ready structured logging using structlog.
Logs are formatted as JSON in production for easy parsing by log aggregators.

Design Decisions:
- Use structlog for structured, contextual logging
- JSON format in production, colored console in development
- Never log sensitive data (access tokens, app secret, signatures)
- Route uncaught process and asyncio errors through the same pipeline
"""

import asyncio
import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from app import __version__
from app.config import Settings, get_settings

SENSITIVE_KEYS = {
    "token", "secret", "password", "authorization", "credential",
    "bearer", "signature", "apikey",
}

# Meta user/page access tokens start with these prefixes
TOKEN_PREFIXES = ("EAA", "IGQ", "IGAA")

_handler: Optional[logging.Handler] = None


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in SENSITIVE_KEYS:
        return True
    return any(part in SENSITIVE_KEYS for part in key_lower.split("_"))


def filter_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Processor to filter out sensitive data from logs.

    Keys are matched on their underscore-separated parts so that
    ``page_access_token`` is redacted while ``author_id`` is kept.
    """

    def redact_dict(d: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively redact sensitive values in a dict."""
        result = {}
        for key, value in d.items():
            if _is_sensitive_key(str(key)):
                result[key] = "[REDACTED]"
            elif isinstance(value, dict):
                result[key] = redact_dict(value)
            elif isinstance(value, str) and len(value) > 20 and value.startswith(TOKEN_PREFIXES):
                result[key] = "[REDACTED]"
            else:
                result[key] = value
        return result

    return redact_dict(event_dict)


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application context to every log entry."""
    event_dict["app"] = "instagram-dm-bot"
    event_dict["version"] = __version__
    return event_dict


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structured logging for the application.

    This function should be called once at application startup.
    It configures both structlog and the standard logging library.
    """
    global _handler

    settings = settings or get_settings()

    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_app_context,
        filter_sensitive_data,
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if settings.log_json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.log_level))
    _handler = handler

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def install_exception_hooks() -> None:
    """
    Log uncaught exceptions before the interpreter's default handling.

    KeyboardInterrupt is passed straight through.
    """
    logger = get_logger("app.crash")
    previous_hook = sys.excepthook

    def _log_uncaught(exc_type, exc_value, exc_traceback):
        if not issubclass(exc_type, KeyboardInterrupt):
            logger.critical(
                "Uncaught exception",
                error=str(exc_value),
                error_type=exc_type.__name__,
                exc_info=(exc_type, exc_value, exc_traceback)
            )
        previous_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = _log_uncaught


def install_asyncio_exception_handler(loop: asyncio.AbstractEventLoop) -> None:
    """Log exceptions from tasks nobody awaited, then run the loop's default handler."""
    logger = get_logger("app.crash")

    def _handle(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        logger.error(
            "Unhandled asyncio exception",
            message=context.get("message"),
            error=str(exc) if exc else None,
            error_type=type(exc).__name__ if exc else None,
            exc_info=exc
        )
        loop.default_exception_handler(context)

    loop.set_exception_handler(_handle)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        logger = get_logger(__name__)
        logger.info("Comment received", comment_id="1789", author_id="42")

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
