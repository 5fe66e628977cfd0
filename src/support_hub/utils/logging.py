"""Structured logging framework using structlog.

This module provides centralized logging configuration with:
- ISO-8601 timestamps
- JSON rendering for structured logs
- Redaction of merchant platform credentials, API tokens and the ticket
  database URI, by key name and inside free-text values
- Context binding support
- Dual output (stdout + optional file logging)

Configuration is loaded from support_hub.config.settings:
- LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Default: INFO
- LOG_TO_FILE: Enable file logging (1, true, yes). Default: disabled
- LOG_FILE_DIR: Directory for log files. Default: logs/

Usage:
    >>> from support_hub.utils.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("franchise_resolver.batch_started", records=25)
"""

import logging
import os
import re
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping

import structlog
from structlog.types import EventDict, Processor

from support_hub.config import get_settings

# Keys whose values are always redacted. Covers the settings fields
# (franchise_api_password, franchise_api_email, database_uri), the login
# payload (password, api_token) and request headers (Authorization).
SENSITIVE_PATTERNS = [
    re.compile(r".*password.*", re.IGNORECASE),
    re.compile(r".*token.*", re.IGNORECASE),
    re.compile(r".*secret.*", re.IGNORECASE),
    re.compile(r"^authorization$", re.IGNORECASE),
    re.compile(r"^(franchise_api_)?email$", re.IGNORECASE),
    re.compile(r"^DATABASE_(URL|URI)$", re.IGNORECASE),
]

# Secrets that show up inside free text, e.g. a requests exception message
# quoting the full lookup URL. Each pattern keeps group 1 and masks the rest.
SENSITIVE_VALUE_PATTERNS = [
    re.compile(r"(api_token=)[^&\s'\")]+", re.IGNORECASE),
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
    re.compile(r"(://[^:/@\s]+:)[^@\s]+(?=@)"),
]

REDACTED_VALUE = "[REDACTED]"


def redact_text(text: str) -> str:
    """Mask tokens and connection-string passwords embedded in ``text``.

    Example:
        >>> redact_text("GET /api/franchise-retrieve/1/2?api_token=abc failed")
        'GET /api/franchise-retrieve/1/2?api_token=[REDACTED] failed'
    """
    for pattern in SENSITIVE_VALUE_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + REDACTED_VALUE, text)
    return text


def sanitize_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact sensitive values from a dictionary before logging.

    Values under a sensitive key are replaced outright. Other string values,
    including those in nested dicts and lists, are passed through
    ``redact_text``.

    Args:
        data: Dictionary that may contain sensitive data

    Returns:
        New dictionary with sensitive values replaced by [REDACTED]

    Example:
        >>> sanitize_for_logging({"franchise_api_password": "hunter2", "record_id": 7})
        {"franchise_api_password": "[REDACTED]", "record_id": 7}
    """
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        if any(pattern.match(key) for pattern in SENSITIVE_PATTERNS):
            sanitized[key] = REDACTED_VALUE
        else:
            sanitized[key] = _sanitize_value(value)
    return sanitized


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return sanitize_for_logging(value)
    if isinstance(value, list):
        return [_sanitize_value(item) for item in value]
    if type(value) is tuple:
        return tuple(_sanitize_value(item) for item in value)
    if isinstance(value, str):
        return redact_text(value)
    return value


def sanitization_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    """Structlog processor that redacts sensitive fields in event_dict."""
    return sanitize_for_logging(dict(event_dict))


def _get_log_level() -> int:
    """Get log level from settings, falling back to the LOG_LEVEL env var."""
    try:
        level_name = get_settings().LOG_LEVEL.upper()
    except Exception:
        # Logging must come up even when settings fail validation
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()

    return getattr(logging, level_name, logging.INFO)


def _should_log_to_file() -> bool:
    """Check if file logging is enabled via environment."""
    log_to_file = os.getenv("LOG_TO_FILE", "").lower()
    return log_to_file in ("1", "true", "yes")


def _get_log_file_path() -> Path:
    """Get the log file path with date-based naming."""
    log_dir = Path(os.getenv("LOG_FILE_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    # Format: supporthub-YYYYMMDD.log
    date_str = datetime.now().strftime("%Y%m%d")
    return log_dir / f"supporthub-{date_str}.log"


def _configure_structlog() -> None:
    """Configure structlog with JSON rendering and sanitization."""
    level = _get_log_level()

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[],
    )

    stdout_handler = logging.StreamHandler()
    stdout_handler.setLevel(level)
    logging.root.addHandler(stdout_handler)

    if _should_log_to_file():
        file_handler = TimedRotatingFileHandler(
            filename=str(_get_log_file_path()),
            when="midnight",
            interval=1,
            backupCount=30,  # 30-day retention
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        logging.root.addHandler(file_handler)

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        sanitization_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configure structlog on module import
_configure_structlog()


def get_logger(name: str) -> Any:
    """Get a structlog BoundLogger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        A structlog BoundLogger configured with JSON rendering and sanitization
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Any:
    """Create a logger with bound context fields.

    Example:
        >>> logger = bind_context(batch_id="b-42", page=3)
        >>> logger.info("franchise_resolver.lookup_dispatched", keys=7)
    """
    return structlog.get_logger().bind(**kwargs)
