"""
Logging setup for the deal tracker.

Modules log through plain logging.getLogger(__name__) and pass
structured fields with extra={...}. configure_logging() installs one
root handler whose formatter depends on DEAL_TRACKER_ENV:

- production: one JSON object per line on stdout
- anything else: short colored lines on stderr

Records emitted inside company_context() carry the company_id, which is
how the funnel and summary engines tag their log lines:

    with company_context("co-123"):
        report = compute_funnel_metrics(buyers)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

ENV_VAR = "DEAL_TRACKER_ENV"

_company = threading.local()


# ─── Company Context ──────────────────────────────────────────────────


def get_company_id() -> Optional[str]:
    return getattr(_company, "id", None)


@contextmanager
def company_context(company_id: Optional[str]) -> Iterator[None]:
    """
    Tag every record logged on this thread with `company_id`.

    Nested blocks restore the outer company on exit. Passing None leaves
    the current tag untouched.
    """
    if company_id is None:
        yield
        return
    outer = get_company_id()
    _company.id = company_id
    try:
        yield
    finally:
        _company.id = outer


class CompanyFilter(logging.Filter):
    """Copies the active company_id onto records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        company_id = get_company_id()
        if company_id and not hasattr(record, "company_id"):
            record.company_id = company_id  # type: ignore[attr-defined]
        return True


# ─── Formatters ───────────────────────────────────────────────────────

# Attribute names present on every LogRecord
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime"}


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields that arrived through extra={...} or a filter."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JSONFormatter(logging.Formatter):
    """
    {"timestamp": ..., "level": ..., "logger": ..., "message": ...}
    followed by every extra field on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, _jsonable(value)) for key, value in record_extras(record).items()
        )
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class DevFormatter(logging.Formatter):
    """[HH:MM:SS] LEVEL logger: message [company_id=... buyer_id=...]"""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    # Shown inline, in this order; other extras only reach the JSON output
    INLINE_FIELDS = (
        "company_id", "buyer_id", "from_stage", "to_stage",
        "buyer_count", "total_active", "deadline_count", "stale_count",
    )

    def format(self, record: logging.LogRecord) -> str:
        extras = record_extras(record)
        pairs = " ".join(
            f"{key}={extras[key]}"
            for key in self.INLINE_FIELDS
            if extras.get(key) is not None
        )
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        line = "[{time}] {color}{level:<8}{reset} {name}: {msg}{pairs}".format(
            time=self.formatTime(record, "%H:%M:%S"),
            color=color,
            level=record.levelname,
            reset=self.RESET,
            name=record.name,
            msg=record.getMessage(),
            pairs=f" [{pairs}]" if pairs else "",
        )
        if record.exc_info and record.exc_info[1]:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# ─── Setup ────────────────────────────────────────────────────────────


def configure_logging(
    env: Optional[str] = None,
    level: int = logging.INFO,
) -> logging.Handler:
    """
    Replace the root logger's handlers with a single configured one.

    Args:
        env: Environment name; defaults to $DEAL_TRACKER_ENV, then
             "development".
        level: Root log level.

    Returns:
        The installed handler.
    """
    env = (env or os.environ.get(ENV_VAR) or "development").strip().lower()

    if env == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(DevFormatter())
    handler.addFilter(CompanyFilter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    return handler
