"""Structured logging configuration with redaction support."""

import logging
import re
import sys
from typing import Any, Dict

import structlog

# Any key containing one of these is redacted.
SENSITIVE_KEY_PARTS = (
    "password",
    "secret",
    "authorization",
    "api_key",
)

# Keys redacted on exact match. Record ids such as refresh_id stay visible.
SENSITIVE_KEYS = frozenset(
    {
        "token",
        "access_token",
        "refresh_token",
        "raw_token",
        "code",
        "code_id",
        "activation_code",
    }
)

# Signed JWTs and 512-bit hex refresh tokens, wherever they appear in a value.
_TOKEN_PATTERN = re.compile(
    r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+|\b[0-9a-f]{128}\b"
)


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Redact credentials and one-time codes from log entries.

    Redacts:
    - password hashes and plain passwords
    - signing secrets and Authorization headers
    - raw access/refresh tokens and activation codes
    """
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if key_lower in SENSITIVE_KEYS or any(
            part in key_lower for part in SENSITIVE_KEY_PARTS
        ):
            event_dict[key] = "REDACTED"

    return event_dict


def scrub_token_values(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Mask token-shaped substrings in string values under any key.

    Catches tokens that end up in error messages or free-form fields that
    redact_sensitive cannot know about by name.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _TOKEN_PATTERN.sub("REDACTED", value)

    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            scrub_token_values,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance, optionally bound to a name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
