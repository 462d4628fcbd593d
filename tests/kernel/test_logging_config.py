"""Structured JSON logging: envelope, context fields and exception payloads."""

import json
import logging
import sys
from decimal import Decimal
from uuid import uuid4

from ledger_kernel.exceptions import ClosedPeriodError
from ledger_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record: logging.LogRecord) -> dict:
    return json.loads(StructuredFormatter().format(record))


def _record(msg="balance_updated", exc_info=None, **extra):
    record = logging.LogRecord("ledger_kernel.test", logging.INFO, __file__, 1, msg, (), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """One JSON object per record."""

    def test_envelope_and_extras(self):
        account_id = uuid4()

        payload = _format(_record(account_id=account_id, amount=Decimal("12.50")))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "ledger_kernel.test"
        assert payload["message"] == "balance_updated"
        assert payload["account_id"] == str(account_id)
        assert payload["amount"] == "12.50"
        assert "ts" in payload
        assert "pathname" not in payload

    def test_exception_fields(self):
        try:
            raise ClosedPeriodError("FY2025", "2025-06-30")
        except ClosedPeriodError:
            payload = _format(_record("posting_rejected", exc_info=sys.exc_info()))

        assert payload["exc_type"] == "ClosedPeriodError"
        assert payload["exc_code"] == "CLOSED_PERIOD"
        assert payload["exc_period_name"] == "FY2025"
        assert "Traceback" in payload["traceback"]


class TestLogContext:
    """Request-scoped fields ride along on every record."""

    def test_set_and_clear(self):
        LogContext.set(correlation_id="req-1", actor_id="user-9")

        payload = _format(_record())

        assert payload["correlation_id"] == "req-1"
        assert payload["actor_id"] == "user-9"
        LogContext.clear()
        assert "correlation_id" not in _format(_record())

    def test_bind_restores_previous_values(self):
        organization_id = uuid4()
        LogContext.set(organization_id="outer")

        with LogContext.bind(organization_id=organization_id, unknown_field="ignored"):
            assert LogContext.get_all()["organization_id"] == str(organization_id)

        assert LogContext.get_all() == {"organization_id": "outer"}

    def test_context_and_extras_combined(self, captured_logs):
        LogContext.set(entity_id="from-context")

        get_logger("test").info("entity_touched", extra={"detail": "x"})

        (record,) = [r for r in captured_logs() if r["message"] == "entity_touched"]
        assert record["entity_id"] == "from-context"
        assert record["detail"] == "x"
        assert record["logger"] == "ledger_kernel.test"
