"""
Logging utilities for the FastAPI application and operational scripts.

Provides a consistent logging format and configuration, with the request
correlation id stamped on every record.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Iterable, Mapping

REDACTED = "[REDACTED]"
SENSITIVE_HEADERS = frozenset(
    {"authorization", "id-token", "x-api-key", "x-proxy-token", "cookie"}
)

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    """Attach the active correlation id to each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(correlation_id)s | %(message)s",
        handlers=[handler],
        force=True,
    )


def redact_headers(
    headers: Mapping[str, str], extra: Iterable[str] = ()
) -> dict[str, str]:
    """Return a copy of ``headers`` that is safe to log."""
    sensitive = SENSITIVE_HEADERS.union(name.lower() for name in extra)
    return {
        key: REDACTED if key.lower() in sensitive else value
        for key, value in headers.items()
    }


__all__ = [
    "REDACTED",
    "configure_logging",
    "correlation_id_var",
    "redact_headers",
]
