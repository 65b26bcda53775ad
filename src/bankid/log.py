"""Logging setup for the BankID client.

Library modules only create module-level loggers under ``bankid``. This
module is used by applications (and the CLI) to attach handlers: a Rich
console handler for humans or a JSON formatter for log collectors.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMATS = ("rich", "json")


class StructuredFormatter(logging.Formatter):
    """Format records as single-line JSON objects.

    Fields passed through ``extra=`` (such as ``order_ref``) are copied to
    the top level of the object. Exceptions are reduced to their type,
    message and formatted traceback.

    Example output:
        {"timestamp": "2024-01-15T10:30:45.123456+00:00", "level": "INFO",
         "logger": "bankid.client", "message": "Cancelled order 131daac9-..."}
    """

    # Attributes present on every record, never copied as extras
    _RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="microseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in self._RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


def setup_logging(
    verbose: bool = False,
    log_format: str = "rich",
    console: Optional[Console] = None,
) -> logging.Handler:
    """Attach a handler to the ``bankid`` logger.

    Args:
        verbose: Log at DEBUG instead of INFO.
        log_format: ``"rich"`` for console output, ``"json"`` for
            structured output on stderr.
        console: Console for the Rich handler.

    Returns:
        The installed handler.
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"log_format must be one of {LOG_FORMATS}")

    if log_format == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
    else:
        handler = RichHandler(console=console or Console(stderr=True), rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("bankid")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return handler
