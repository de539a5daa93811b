"""Structured logging setup for LoadPilot."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Emits one-line JSON objects with keys: timestamp, level, logger, message.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        worker_id = getattr(record, "worker_id", None)
        if worker_id is not None:
            log_entry["worker_id"] = worker_id
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root LoadPilot logger.

    Sets up a handler on the ``loadpilot`` logger namespace. Subsequent
    calls are idempotent: handlers are not duplicated.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: If True, emit structured JSON logs. If False, emit
            human-readable logs.

    Returns:
        The configured ``loadpilot`` root logger.
    """
    logger = logging.getLogger("loadpilot")
    logger.setLevel(level)

    # Idempotent: update existing handler levels and return early
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``loadpilot`` namespace.

    Args:
        name: Logger name, appended to ``loadpilot.`` prefix.
            Example: ``get_logger("engine.launcher")`` returns
            ``logging.getLogger("loadpilot.engine.launcher")``.

    Returns:
        A configured child logger.
    """
    return logging.getLogger(f"loadpilot.{name}")


class WorkerLogAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that tags every record with a worker id.

    The id is prefixed to human-readable messages and exposed as the
    ``worker_id`` attribute for the JSON formatter.
    """

    def process(self, msg: object, kwargs: dict) -> tuple[object, dict]:  # type: ignore[type-arg]
        """Prefix the message and attach ``worker_id`` to the record extras."""
        worker_id = self.extra["worker_id"] if self.extra else None
        extra = dict(kwargs.get("extra") or {})
        extra["worker_id"] = worker_id
        kwargs["extra"] = extra
        return f"[{worker_id}] {msg}", kwargs


def get_worker_logger(name: str, worker_id: str) -> WorkerLogAdapter:
    """Return a child logger that tags records with ``worker_id``.

    Args:
        name: Logger name, appended to ``loadpilot.`` prefix.
        worker_id: Worker identifier attached to every record.

    Returns:
        A logger adapter bound to the worker.
    """
    return WorkerLogAdapter(get_logger(name), {"worker_id": worker_id})
