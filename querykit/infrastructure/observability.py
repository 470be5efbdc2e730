"""Structured Logging — JSON / text formatters and the querykit logger setup.

Invariants:
    - Every record carries timestamp, level, logger name and message
    - tx_id, operation and error_code are emitted only when set on the record
    - setup_logging configures the "querykit" logger only and replaces its own previous
      handler, so calling it twice never duplicates output
    - TxLogger merges the transaction id into every record without dropping call-site extras

Design Decisions:
    - Hand-written JSONFormatter over a logging library: the record shape is small and fixed
    - Library-scoped logger instead of root: the host application keeps control of root handlers
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, MutableMapping

LOGGER_NAME = "querykit"
EXTRA_FIELDS = ("tx_id", "operation", "error_code")


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: record.__dict__[key]
        for key in EXTRA_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line with key=value extras appended."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


class TxLogger(logging.LoggerAdapter):
    """Logger bound to one transaction id."""

    def __init__(self, logger: logging.Logger, tx_id: str):
        super().__init__(logger, {"tx_id": tx_id})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any],
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


_installed: logging.Handler | None = None


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install a formatter on the querykit logger; returns the handler."""
    global _installed
    logger = logging.getLogger(LOGGER_NAME)
    if _installed is not None:
        logger.removeHandler(_installed)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _installed = handler
    return handler
