"""
Application logger

Every record carries the correlation id of the HTTP request that produced it
(``-`` outside a request), set by ``CorrelationMiddleware``.
"""
from __future__ import annotations

import logging
from contextvars import ContextVar

from helix.core.config import settings

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [cid=%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    if not any(getattr(h, "_helix", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        handler._helix = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level or settings.LOG_LEVEL)


configure_logging()

logger = logging.getLogger("helix")
