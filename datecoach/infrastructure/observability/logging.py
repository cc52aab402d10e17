"""
Structured logging setup for the dating coach analysis services.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _drop_secrets,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


_SECRET_FIELDS = ("session_token", "api_key", "authorization", "image_data")


def _drop_secrets(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential and media fields that slipped into a log call."""
    for field in _SECRET_FIELDS:
        if field in event_dict:
            event_dict[field] = "***"
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_provider_attempt(
    provider: str, ok: bool, elapsed_ms: float, parsed: bool = False, error: str = None
):
    """Log a single AI provider call with consistent fields."""
    logger = get_logger("providers")

    log_data = {
        "provider": provider,
        "ok": ok,
        "parsed": parsed,
        "elapsed_ms": round(elapsed_ms, 1),
        "log_type": "provider_attempt",
    }

    if error:
        log_data["error"] = error

    if ok:
        logger.info("Provider call completed", **log_data)
    else:
        logger.warning("Provider call failed", **log_data)
