"""Tests for the structured logging system (estate_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from estate_kernel.domain.dtos import InvoiceStatus
from estate_kernel.domain.values import Money
from estate_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
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


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "estate_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("allocated", extra={"invoices_touched": 2, "status": "paid"})

        record = _parse_log(stream)
        assert record["invoices_touched"] == 2
        assert record["status"] == "paid"

    def test_money_serialized_with_currency(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("applied", extra={"applied": Money.of("650.00")})

        record = _parse_log(stream)
        assert record["applied"] == {"amount": "650.00", "currency": "EUR"}

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", tenant_id="tenant-1")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["tenant_id"] == "tenant-1"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Estate kernel exceptions carry a .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from estate_kernel.exceptions import AllocationRetryExhaustedError

        try:
            raise AllocationRetryExhaustedError("pay-1", 5)
        except AllocationRetryExhaustedError:
            logger.error("allocation_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "ALLOCATION_RETRY_EXHAUSTED"
        assert record["exc_type"] == "AllocationRetryExhaustedError"
        assert record["exc_payment_id"] == "pay-1"
        assert record["exc_attempts"] == 5

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "run_id" not in record

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_values", extra={
            "invoice_id": uid,
            "amount": Decimal("12.30"),
            "due_date": date(2024, 3, 5),
            "status": InvoiceStatus.PAID,
        })

        record = _parse_log(stream)
        assert record["invoice_id"] == str(uid)
        assert record["amount"] == "12.30"
        assert record["due_date"] == "2024-03-05"
        assert record["status"] == "paid"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", run_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "run_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(run_id="outer")
        with LogContext.bind(run_id="inner"):
            assert LogContext.get_all()["run_id"] == "inner"
        assert LogContext.get_all()["run_id"] == "outer"

    def test_bind_restores_none(self):
        assert "source_id" not in LogContext.get_all()
        with LogContext.bind(source_id="pay-1"):
            assert LogContext.get_all()["source_id"] == "pay-1"
        assert "source_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(run_id="r1", unknown="ignored"):
            assert LogContext.get_all() == {"run_id": "r1"}

    def test_set_ignores_unknown_fields(self):
        LogContext.set(run_id="r1", property_id="p1")
        assert LogContext.get_all() == {"run_id": "r1"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            tenant_id="t",
            source_id="s",
            actor_id="a",
            run_id="r",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["tenant_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is a no-op
        root = logging.getLogger("estate_kernel")
        structured = [h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]
        assert structured == [h1]
        assert h2 not in root.handlers

    def test_get_logger_returns_child(self):
        logger = get_logger("services.allocation")
        assert logger.name == "estate_kernel.services.allocation"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("engines.distribution")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "estate_kernel.engines.distribution"
