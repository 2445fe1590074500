"""
Structured JSON logging for llm_toolkit and the services built on it.

Library code only ever asks for a logger; it never configures handlers.
Applications call setup_logging once at startup to get single-line JSON
records on stdout.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class LoggerInterface(Protocol):
    """
    Diagnostic sink accepted by the facade and adapters.

    Any ``logging.Logger`` satisfies it. Return values are ignored.
    """

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    The timestamp is the record's creation time in UTC. Structured values
    passed as ``extra={"_extra": {...}}`` land under ``"extra"``; exceptions
    and ``stack_info`` are rendered as text.
    """

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service = service_name

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)
        if getattr(record, "_extra", None):
            entry["extra"] = record._extra
        return json.dumps(entry, default=str, separators=(",", ":"))


def setup_logging(service_name: str, debug: bool = False) -> logging.Logger:
    """
    Configure the root logger with JSON output to stdout.

    Call once at application startup. ``debug`` forces DEBUG level,
    otherwise LOG_LEVEL decides.
    """
    level_name = "DEBUG" if debug else os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(service_name))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Vendor SDKs log every HTTP request at INFO
    for noisy in ("uvicorn.access", "httpx", "httpcore", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info("Logging initialized", extra={"_extra": {"level": level_name}})
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger. Use for module-level logging."""
    return logging.getLogger(name)
