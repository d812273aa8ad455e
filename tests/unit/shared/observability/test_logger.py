import json
import logging
from typing import Any, Dict

import pytest

from shared.observability.logger import FORBIDDEN_KEYS, configure_logging, get_logger
from shared.observability.context import (
    RequestContext,
    reset_current_context,
    set_current_context,
)


class DummyHandler(logging.Handler):
    """Capture log records for assertions."""

    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - trivial
        self.records.append(record)


def _make_logger(service_name: str = "test-service") -> tuple[Any, DummyHandler]:
    """Create a logger instance with a dummy handler attached."""
    logger = get_logger(service_name)
    logger.logger.handlers = []
    handler = DummyHandler()
    logger.logger.addHandler(handler)
    return logger, handler


def _context(**overrides) -> RequestContext:
    values = dict(
        trace_id="t123",
        request_id="r456",
        request_source="REQ",
        span_id="s789abcd"
    )
    values.update(overrides)
    return RequestContext(**values)


@pytest.fixture(autouse=True)
def debug_level():
    configure_logging("DEBUG")
    yield
    configure_logging("DEBUG")


def test_logger_wraps_kwargs_in_data_envelope():
    logger, handler = _make_logger()

    logger.info("Test message", extra_field="value", count=1)

    payload = json.loads(handler.records[0].getMessage())
    assert payload["message"] == "Test message"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "test-service"
    assert payload["data"] == {"extra_field": "value", "count": 1}


def test_logger_merges_explicit_data_and_kwargs():
    logger, handler = _make_logger()

    logger.info("With data", data={"a": 1}, b=2)

    payload = json.loads(handler.records[0].getMessage())
    assert payload["data"] == {"a": 1, "b": 2}


def test_logger_keeps_non_dict_data_under_value_key():
    logger, handler = _make_logger()

    logger.info("Non-dict data", data=[1, 2, 3])

    payload = json.loads(handler.records[0].getMessage())
    assert payload["data"] == {"value": [1, 2, 3]}


def test_logger_omits_empty_data():
    logger, handler = _make_logger()

    logger.info("Plain")

    assert "data" not in json.loads(handler.records[0].getMessage())


def test_logger_includes_explicit_context_fields_top_level():
    logger, handler = _make_logger()

    logger.info("With context", _context(), data={"x": 1})

    payload = json.loads(handler.records[0].getMessage())
    assert payload["trace_id"] == "t123"
    assert payload["request_id"] == "r456"
    assert payload["span_id"] == "s789abcd"
    assert payload["data"] == {"x": 1}


def test_logger_picks_up_ambient_context():
    logger, handler = _make_logger()
    token = set_current_context(_context(request_id="r-ambient"))
    try:
        logger.warning("Ambient")
    finally:
        reset_current_context(token)

    payload = json.loads(handler.records[0].getMessage())
    assert payload["request_id"] == "r-ambient"


def test_logger_filters_forbidden_keys():
    logger, handler = _make_logger()

    kwargs: Dict[str, Any] = {key: "SECRET" for key in FORBIDDEN_KEYS}
    kwargs["safe"] = "ok"

    logger.info("Secrets", data={"password": "hunter2"}, **kwargs)

    payload = json.loads(handler.records[0].getMessage())
    for forbidden in FORBIDDEN_KEYS:
        assert forbidden not in payload
        assert forbidden not in payload["data"]
    assert payload["data"] == {"safe": "ok"}


def test_logger_serializes_non_json_values():
    logger, handler = _make_logger()

    logger.error("Odd value", data={"when": object()})

    payload = json.loads(handler.records[0].getMessage())
    assert payload["level"] == "ERROR"
    assert isinstance(payload["data"]["when"], str)


def test_configure_logging_filters_lower_levels():
    logger, handler = _make_logger("test-level")

    configure_logging("WARNING")
    logger.info("Dropped")
    logger.warning("Kept")

    assert [json.loads(r.getMessage())["message"] for r in handler.records] == ["Kept"]


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        configure_logging("LOUD")
