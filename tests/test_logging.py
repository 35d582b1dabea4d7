"""Tests for the structured logging system (agency_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from agency_engines.tracer import compute_input_fingerprint, traced_engine
from agency_kernel.exceptions import MonthNotFoundError
from agency_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        [record] = _parse_all_logs(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "agency_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_decimals(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("payout", extra={"amount": Decimal("10.50"), "count": 2})

        [record] = _parse_all_logs(stream)
        assert record["amount"] == "10.50"
        assert record["count"] == 2

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise MonthNotFoundError("rec-missing")
        except MonthNotFoundError:
            get_logger("test").error("failed", exc_info=True)

        [record] = _parse_all_logs(stream)
        assert record["exc_type"] == "MonthNotFoundError"
        assert record["exc_code"] == "MONTH_NOT_FOUND"
        assert record["exc_month_id"] == "rec-missing"


class TestLogContext:

    def test_bind_scopes_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        with LogContext.bind(month_key="2025-01", run_id="run-1"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["month_key"] == "2025-01"
        assert inside["run_id"] == "run-1"
        assert "month_key" not in outside

    def test_nested_bind_restores_outer_scope(self):
        with LogContext.bind(month_key="2025-01"):
            with LogContext.bind(month_key="2025-02", run_id="run-2"):
                assert LogContext.get_all() == {"month_key": "2025-02", "run_id": "run-2"}
            assert LogContext.get_all() == {"month_key": "2025-01"}
        assert LogContext.get_all() == {}

    def test_set_until_clear(self):
        LogContext.set(actor_id="ops", correlation_id=None)
        assert LogContext.get_all() == {"actor_id": "ops"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(tenant="acme")

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")
        assert len(_parse_all_logs(stream)) == 1


class TestEngineTrace:

    def test_trace_record(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        @traced_engine("demo", "2.0", fingerprint_fields=("amount",))
        def double(amount):
            return amount * 2

        assert double(Decimal("2")) == Decimal("4")
        [record] = [r for r in _parse_all_logs(stream) if r["message"] == "AGENCY_ENGINE_TRACE"]
        assert record["engine_name"] == "demo"
        assert record["engine_version"] == "2.0"
        assert record["input_fingerprint"] == compute_input_fingerprint(
            ("amount",), {"amount": Decimal("2")}
        )

    def test_positional_and_keyword_calls_fingerprint_alike(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        @traced_engine("demo", "1.0", fingerprint_fields=("a", "b"))
        def add(a, b):
            return a + b

        add(1, 2)
        add(b=2, a=1)
        first, second = [r for r in _parse_all_logs(stream) if r["message"] == "AGENCY_ENGINE_TRACE"]
        assert first["input_fingerprint"] == second["input_fingerprint"]

    def test_decimal_scale_does_not_change_fingerprint(self):
        assert compute_input_fingerprint(("x",), {"x": Decimal("1.0")}) == compute_input_fingerprint(
            ("x",), {"x": Decimal("1.00")}
        )
