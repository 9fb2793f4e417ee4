"""Tests covering logging helpers."""

from __future__ import annotations

import json
import logging

from osint_gateway.observability.logging import JsonFormatter, configure_structured_logging


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        name="osint.gateway",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Route group mounted",
        args=(),
        exc_info=None,
    )
    record.route_group = "osint"
    record._private = "hidden"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Route group mounted"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "osint.gateway"
    assert payload["route_group"] == "osint"
    assert "_private" not in payload
    assert "lineno" not in payload


def test_structured_logger_skips_invalid_aggregators():
    logger = configure_structured_logging(
        "tests.observability", level="debug", aggregators=["ftp://logs", "udp://127.0.0.1:9999"]
    )
    try:
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        handler_types = [type(handler).__name__ for handler in logger.handlers]
        assert handler_types == ["StreamHandler", "DatagramHandler"]
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []
