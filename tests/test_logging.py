"""JSON log output, request context and logger setup."""

import json
import logging
from enum import Enum
from io import StringIO
from uuid import uuid4

import pytest

from workshop_kernel.exceptions import InsufficientStockError
from workshop_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _capture(**kwargs) -> StringIO:
    out = StringIO()
    handler = logging.StreamHandler(out)
    handler.setFormatter(StructuredFormatter())
    configure_logging(handler=handler, **kwargs)
    return out


def _lines(out: StringIO) -> list[dict]:
    return [json.loads(line) for line in out.getvalue().splitlines() if line]


@pytest.fixture
def out() -> StringIO:
    return _capture()


class TestJsonOutput:
    def test_core_keys(self, out):
        get_logger("ledger").info("inventory_debited")

        (line,) = _lines(out)
        assert line["message"] == "inventory_debited"
        assert line["level"] == "INFO"
        assert line["logger"] == "workshop_kernel.ledger"
        assert line["ts"].endswith("+00:00")

    def test_extra_fields_become_keys(self, out):
        get_logger("ledger").info("inventory_debited", extra={"amount": 3, "new_stock": 7})

        (line,) = _lines(out)
        assert (line["amount"], line["new_stock"]) == (3, 7)

    def test_bound_context_is_merged(self, out):
        LogContext.set(actor_id="captain-1", work_order_id="wo-456")
        get_logger("lifecycle").info("work_order_approved")

        (line,) = _lines(out)
        assert line["actor_id"] == "captain-1"
        assert line["work_order_id"] == "wo-456"

    def test_nothing_bound_means_no_context_keys(self, out):
        get_logger("lifecycle").info("work_order_created")

        (line,) = _lines(out)
        assert not {"correlation_id", "actor_id", "workshop_id"} & set(line)

    def test_plain_exception(self, out):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("x").error("failed", exc_info=True)

        (line,) = _lines(out)
        assert line["exc_type"] == "ValueError"
        assert line["exc_message"] == "boom"
        assert "Traceback" in line["traceback"]

    def test_kernel_error_data_is_flattened(self, out):
        try:
            raise InsufficientStockError("ws-1", "part-9", requested=5, available=2)
        except InsufficientStockError:
            get_logger("lifecycle").warning("approve_failed", exc_info=True)

        (line,) = _lines(out)
        assert line["exc_code"] == "INSUFFICIENT_STOCK"
        assert line["exc_part_id"] == "part-9"
        assert (line["exc_requested"], line["exc_available"]) == (5, 2)

    def test_uuid_and_enum_values(self, out):
        class Slot(Enum):
            CAPTAIN = "captain"

        part_id = uuid4()
        get_logger("x").info("typed", extra={"part_id": part_id, "slot": Slot.CAPTAIN})

        (line,) = _lines(out)
        assert line["part_id"] == str(part_id)
        assert line["slot"] == "captain"

    def test_debug_dropped_at_default_level(self, out):
        logger = get_logger("x")
        logger.debug("hidden")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})

        assert [line["message"] for line in _lines(out)] == ["first", "second"]


class TestLogContext:
    def test_set_merges(self):
        LogContext.set(correlation_id="c")
        LogContext.set(actor_id="a")
        assert LogContext.get_all() == {"correlation_id": "c", "actor_id": "a"}

    def test_values_stored_as_strings(self):
        workshop_id = uuid4()
        LogContext.set(workshop_id=workshop_id)
        assert LogContext.get_all() == {"workshop_id": str(workshop_id)}

    def test_clear(self):
        LogContext.set(trace_id="t")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", work_order_id="wo"):
            assert LogContext.get_all() == {"correlation_id": "inner", "work_order_id": "wo"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(work_order_id="temp"):
                raise RuntimeError
        assert LogContext.get_all() == {}

    def test_bind_ignores_unknown_and_none(self):
        with LogContext.bind(producer="nope", actor_id=None, trace_id="t"):
            assert LogContext.get_all() == {"trace_id": "t"}

    def test_every_known_field(self):
        fields = dict.fromkeys(
            ("correlation_id", "actor_id", "work_order_id", "workshop_id", "trace_id"), "v"
        )
        LogContext.set(**fields)
        assert LogContext.get_all() == fields


class TestConfigureLogging:
    def test_second_call_is_ignored(self):
        _capture()
        _capture()
        assert len(logging.getLogger("workshop_kernel").handlers) == 1

    def test_level_name_any_case(self):
        out = _capture(level="warning")
        logger = get_logger("x")
        logger.info("dropped")
        logger.warning("kept")

        assert [line["message"] for line in _lines(out)] == ["kept"]

    def test_children_share_the_handler(self):
        out = _capture(level=logging.DEBUG)
        get_logger("services.work_order").debug("nested")

        (line,) = _lines(out)
        assert line["logger"] == "workshop_kernel.services.work_order"

    def test_reset_restores_propagation(self):
        _capture()
        reset_logging()
        root = logging.getLogger("workshop_kernel")
        assert root.handlers == []
        assert root.propagate is True
