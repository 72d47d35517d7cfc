"""
Tests for the structured logging configuration.

Validates:
- JSONFormatter produces valid JSON with required and extra fields
- DevFormatter produces human-readable colored text
- company_context() scopes the company_id and CompanyFilter injects it
- configure_logging() switches mode based on DEAL_TRACKER_ENV
- The funnel and summary engines tag their log lines with company_id
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from io import StringIO
from unittest.mock import patch

import pytest

from deal_tracker.observability.logging_config import (
    CompanyFilter,
    DevFormatter,
    JSONFormatter,
    company_context,
    configure_logging,
    get_company_id,
    record_extras,
)
from deal_tracker.pipeline.funnel import compute_funnel_metrics
from deal_tracker.pipeline.models import Buyer
from deal_tracker.pipeline.summary import compute_stage_summary


# ─── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def restore_root_logger():
    """Put back whatever handlers and level the root logger had."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for h in root.handlers[:]:
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


@pytest.fixture
def json_stream(restore_root_logger):
    """Production logging at DEBUG, captured into a StringIO."""
    handler = configure_logging(env="production", level=logging.DEBUG)
    stream = StringIO()
    handler.stream = stream
    return stream


def _make_record(
    msg: str = "test message",
    level: int = logging.INFO,
    name: str = "test.logger",
    extra: dict | None = None,
) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if extra:
        for key, value in extra.items():
            setattr(record, key, value)
    return record


def _lines(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


def _buyer() -> Buyer:
    return Buyer(
        id="b-1",
        name="Harbor Holdings",
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )


# ─── record_extras ────────────────────────────────────────────────────


class TestRecordExtras:

    def test_only_extra_fields(self):
        record = _make_record(extra={"buyer_id": "b-1", "_private": 1})
        assert record_extras(record) == {"buyer_id": "b-1"}

    def test_plain_record_has_none(self):
        assert record_extras(_make_record()) == {}


# ─── JSONFormatter Tests ──────────────────────────────────────────────


class TestJSONFormatter:
    """Tests for the production JSON log formatter."""

    def test_includes_required_fields(self):
        record = _make_record("test", level=logging.WARNING, name="deal_tracker.pipeline")
        parsed = json.loads(JSONFormatter().format(record))

        assert "T" in parsed["timestamp"]
        assert parsed["level"] == "WARNING"
        assert parsed["logger"] == "deal_tracker.pipeline"
        assert parsed["message"] == "test"

    def test_includes_extra_fields(self):
        record = _make_record(
            "funnel_metrics_computed",
            extra={"buyer_count": 12, "company_id": "co-9"},
        )
        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["buyer_count"] == 12
        assert parsed["company_id"] == "co-9"

    def test_handles_exception_info(self):
        try:
            raise ValueError("bad stage table")
        except ValueError:
            record = _make_record("error occurred")
            record.exc_info = sys.exc_info()

        parsed = json.loads(JSONFormatter().format(record))
        assert "ValueError" in parsed["exception"]
        assert "bad stage table" in parsed["exception"]

    def test_non_serializable_extra_becomes_string(self):
        record = _make_record("test", extra={"complex_obj": object()})
        parsed = json.loads(JSONFormatter().format(record))
        assert isinstance(parsed["complex_obj"], str)


# ─── DevFormatter Tests ───────────────────────────────────────────────


class TestDevFormatter:
    """Tests for the local development colored formatter."""

    def test_includes_message_level_and_logger(self):
        record = _make_record("hello dev", level=logging.WARNING, name="deal_tracker.x")
        output = DevFormatter().format(record)
        assert "hello dev" in output
        assert "WARNING" in output
        assert "deal_tracker.x" in output

    def test_includes_known_extras_inline(self):
        record = _make_record(
            "buyer_stage_changed",
            extra={"buyer_id": "b-1", "to_stage": "CLOSED", "unrelated": "x"},
        )
        output = DevFormatter().format(record)
        assert "[buyer_id=b-1 to_stage=CLOSED]" in output
        assert "unrelated" not in output

    def test_no_brackets_without_extras(self):
        assert "[" not in DevFormatter().format(_make_record("plain")).split(": ", 1)[1]

    def test_color_codes_present_for_error(self):
        output = DevFormatter().format(_make_record("error!", level=logging.ERROR))
        assert "\033[31m" in output


# ─── Company Context Tests ────────────────────────────────────────────


class TestCompanyContext:

    def test_scoped_to_block(self):
        assert get_company_id() is None
        with company_context("co-1"):
            assert get_company_id() == "co-1"
        assert get_company_id() is None

    def test_nested_restores_outer(self):
        with company_context("outer"):
            with company_context("inner"):
                assert get_company_id() == "inner"
            assert get_company_id() == "outer"

    def test_none_keeps_current(self):
        with company_context("co-1"):
            with company_context(None):
                assert get_company_id() == "co-1"

    def test_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with company_context("co-1"):
                raise RuntimeError("boom")
        assert get_company_id() is None

    def test_thread_local(self):
        seen: list = []
        with company_context("main-thread"):
            worker = threading.Thread(target=lambda: seen.append(get_company_id()))
            worker.start()
            worker.join()
        assert seen == [None]


class TestCompanyFilter:
    """Tests for the company_id injection filter."""

    def test_injects_company_id_inside_context(self):
        record = _make_record("test")
        with company_context("co-123"):
            CompanyFilter().filter(record)
        assert record.company_id == "co-123"  # type: ignore[attr-defined]

    def test_explicit_company_id_wins(self):
        record = _make_record("test", extra={"company_id": "explicit"})
        with company_context("co-123"):
            CompanyFilter().filter(record)
        assert record.company_id == "explicit"  # type: ignore[attr-defined]

    def test_no_company_id_outside_context(self):
        record = _make_record("test")
        CompanyFilter().filter(record)
        assert not hasattr(record, "company_id")

    def test_always_returns_true(self):
        assert CompanyFilter().filter(_make_record("test")) is True


# ─── configure_logging Tests ──────────────────────────────────────────


class TestConfigureLogging:
    """Tests for the configure_logging() entry point."""

    def test_production_uses_json_formatter(self, restore_root_logger):
        handler = configure_logging(env="production")
        assert isinstance(handler.formatter, JSONFormatter)
        assert restore_root_logger.handlers == [handler]

    def test_development_uses_dev_formatter(self, restore_root_logger):
        configure_logging(env="development")
        assert isinstance(restore_root_logger.handlers[0].formatter, DevFormatter)

    def test_reads_env_var(self, restore_root_logger):
        with patch.dict(os.environ, {"DEAL_TRACKER_ENV": " Production "}):
            configure_logging()
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_defaults_to_development(self, restore_root_logger):
        with patch.dict(os.environ, {}, clear=True):
            configure_logging()
        assert isinstance(restore_root_logger.handlers[0].formatter, DevFormatter)

    def test_replaces_existing_handlers(self, restore_root_logger):
        restore_root_logger.addHandler(logging.StreamHandler())
        configure_logging(env="development", level=logging.WARNING)
        assert len(restore_root_logger.handlers) == 1
        assert restore_root_logger.level == logging.WARNING
        filter_types = [type(f) for f in restore_root_logger.handlers[0].filters]
        assert CompanyFilter in filter_types

    def test_json_output_end_to_end(self, json_stream):
        with company_context("co-42"):
            logging.getLogger("deal_tracker.e2e").info(
                "pipeline_summary_computed",
                extra={"stale_count": 3},
            )

        [parsed] = _lines(json_stream)
        assert parsed["message"] == "pipeline_summary_computed"
        assert parsed["stale_count"] == 3
        assert parsed["company_id"] == "co-42"
        assert parsed["level"] == "INFO"


# ─── Engine Log Tagging ───────────────────────────────────────────────


class TestEngineCompanyTagging:
    """The analytics engines tag their log lines with the company."""

    def test_funnel_metrics_tagged(self, json_stream):
        compute_funnel_metrics([_buyer()], company_id="co-7")

        [parsed] = [
            line for line in _lines(json_stream)
            if line["message"] == "funnel_metrics_computed"
        ]
        assert parsed["company_id"] == "co-7"
        assert parsed["buyer_count"] == 1
        assert get_company_id() is None

    def test_stage_summary_tagged(self, json_stream):
        compute_stage_summary(
            [_buyer()],
            now=datetime(2026, 3, 2, tzinfo=timezone.utc),
            company_id="co-8",
        )

        [parsed] = [
            line for line in _lines(json_stream)
            if line["message"] == "pipeline_summary_computed"
        ]
        assert parsed["company_id"] == "co-8"
        assert parsed["total_active"] == 1

    def test_untagged_without_company(self, json_stream):
        compute_funnel_metrics([_buyer()])

        [parsed] = [
            line for line in _lines(json_stream)
            if line["message"] == "funnel_metrics_computed"
        ]
        assert "company_id" not in parsed
