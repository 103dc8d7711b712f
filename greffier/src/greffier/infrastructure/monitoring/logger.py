"""
Structured logging for batch runs.

Every record emitted while a batch run is active carries that run's id,
in both the JSON and the plain text format.
"""

import json
import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional
from uuid import uuid4

run_id_ctx: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "run_id"}

_PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(run_id)s | %(name)s | %(message)s"

_QUIET_LOGGERS = ("asyncio", "httpx", "httpcore")


class RunIdFilter(logging.Filter):
    """Attach the current batch run id ("-" outside a run) to records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_ctx.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: timestamp, level, logger, message, run_id (inside a run),
    exception (if any), every extra= field, then file/line/function.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_ctx.get()
        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        log_data["file"] = record.pathname
        log_data["line"] = record.lineno
        log_data["function"] = record.funcName
        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Logging level name
        json_logs: JSON lines (True) or plain text (False)
    """
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.addFilter(RunIdFilter())
    if json_logs:
        handler.setFormatter(JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(
            logging.Formatter(_PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_run_id(run_id: Optional[str] = None) -> str:
    """Bind a batch run id (generated if None) to the current context."""
    if run_id is None:
        run_id = uuid4().hex[:12]
    run_id_ctx.set(run_id)
    return run_id


def log_performance(logger: logging.Logger, operation: str, start_time: float) -> None:
    """Log the duration of operation since start_time (time.monotonic())."""
    duration_ms = (time.monotonic() - start_time) * 1000
    logger.debug(
        f"{operation} completed",
        extra={"operation": operation, "duration_ms": round(duration_ms, 2)},
    )
