"""Structured logging for habit_link.

Usage:
    from habit_link.log import get_logger, configure_logging, new_run_id

    # In cli.main(), before dispatch:
    configure_logging(run_id=new_run_id(), command=args.command)
    log = get_logger("router")
    log.debug("deep_link_received", extra={"link": str(uri), "kind": event.kind})

Context fields passed through ``extra`` (``link``, ``kind``, ``action``,
``method``, ``value``, ``key``) become top-level keys in JSON output and
``key=value`` pairs in the human format.

Environment variables:
    HABIT_LINK_DEBUG=1           Enable DEBUG level
    LOG_LEVEL=debug              Alternate debug toggle
    HABIT_LINK_LOG_FORMAT=json   Switch to JSON format (default: human)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "habit_link"

# Ordered so human output reads "link=... kind=..." consistently.
CONTEXT_FIELDS = ("link", "kind", "action", "method", "key", "value")

_run_id: str = ""
_command: str = ""

_LOGRECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
    | {"message", "asctime", "relativeCreated", "taskName"}
)


def new_run_id() -> str:
    """Generate a short correlation ID for one CLI invocation."""
    return uuid.uuid4().hex[:12]


def _context(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields attached to ``record``, known ones first."""
    extras = {k: v for k, v in record.__dict__.items() if k not in _LOGRECORD_ATTRS}
    ordered = {k: extras.pop(k) for k in CONTEXT_FIELDS if k in extras}
    ordered.update(sorted(extras.items()))
    return ordered


class _JsonFormatter(logging.Formatter):
    """One JSON object per line: envelope keys, then context fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "run_id": _run_id,
            "command": _command,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(_context(record))
        if record.exc_info and record.exc_info[1] is not None:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class _HumanFormatter(logging.Formatter):
    """Terminal format: ``[DBG] deep_link_received link=... kind=create (run=abcd1234)``."""

    _LEVEL_PREFIX = {"DEBUG": "DBG", "INFO": "INF", "WARNING": "WRN", "ERROR": "ERR"}

    def format(self, record: logging.LogRecord) -> str:
        prefix = self._LEVEL_PREFIX.get(record.levelname, record.levelname[:3])
        parts = [f"[{prefix}]", record.getMessage()]
        parts.extend(f"{k}={v}" for k, v in _context(record).items())
        if _run_id:
            parts.append(f"(run={_run_id[:8]})")
        return " ".join(parts)


def configure_logging(*, run_id: str = "", command: str = "") -> None:
    """Initialize logging for one CLI invocation. Call once in cli.main()."""
    global _run_id, _command  # noqa: PLW0603
    _run_id = run_id or new_run_id()
    _command = command

    debug_mode = (
        os.getenv("HABIT_LINK_DEBUG", "").strip() in {"1", "true", "yes"}
        or os.getenv("LOG_LEVEL", "").strip().lower() == "debug"
    )
    use_json = os.getenv("HABIT_LINK_LOG_FORMAT", "").strip().lower() == "json"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter() if use_json else _HumanFormatter())

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if debug_mode else logging.WARNING)
    logger.handlers[:] = [handler]
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a child logger under the habit_link namespace."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
