"""
Logging setup for the POS transaction service.

Usage:
    from pos.logging import get_logger
    logger = get_logger(__name__)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# Containers add their own timestamps
LOG_FORMAT_PRODUCTION = "%(levelname)s - %(name)s - %(message)s"


def _configure_root_logger() -> None:
    """Attach a stdout handler to the root logger once per process."""
    root = logging.getLogger()
    if root.handlers:
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    is_production = os.environ.get("POS_ENV") == "production"
    handler.setFormatter(logging.Formatter(LOG_FORMAT_PRODUCTION if is_production else LOG_FORMAT))
    root.addHandler(handler)

    # Supabase and Upstash both talk over httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """Escape control characters that could forge log entries (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """Escaped, truncated to 8 chars; "N/A" when empty."""
    if not id_value:
        return "N/A"
    return _escape_log_injection(str(id_value))[:8]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Free text from cashiers (void reasons) for a single log line."""
    if not value:
        return "N/A"
    safe_value = _escape_log_injection(str(value))
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."
