"""Structured logging configuration for the gateway."""

from __future__ import annotations

import json
import logging
import socket
from datetime import datetime, timezone
from logging import Handler, Logger
from logging.handlers import DatagramHandler, HTTPHandler, SocketHandler
from typing import Iterable
from urllib.parse import urlparse

from flask import Flask

from ..utils.config import DEFAULT_LOGGER_NAME

_RESERVED_ATTRIBUTES = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class JsonFormatter(logging.Formatter):
    """A JSON formatter suited for structured logging."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - obvious
        payload: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRIBUTES or key in payload or key.startswith("_"):
                continue
            payload[key] = value

        return json.dumps(
            payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False, default=str
        )


def _create_network_handler(url: str) -> Handler:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.hostname:
        raise ValueError(f"Invalid handler URL: {url}")

    host = parsed.hostname
    port = parsed.port or (443 if parsed.scheme == "https" else 80)

    if parsed.scheme in {"tcp", "socket"}:
        handler = SocketHandler(host, port)
        handler.closeOnError = True  # type: ignore[attr-defined]
        return handler
    if parsed.scheme in {"udp", "datagram"}:
        return DatagramHandler(host, port)
    if parsed.scheme in {"http", "https"}:
        secure = parsed.scheme == "https"
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        return HTTPHandler(
            host=f"{host}:{port}",
            url=path,
            method="POST",
            secure=secure,
        )
    raise ValueError(f"Unsupported handler scheme: {parsed.scheme}")


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_structured_logging(
    logger_name: str = DEFAULT_LOGGER_NAME,
    *,
    level: str | int = logging.INFO,
    aggregators: Iterable[str] = (),
) -> Logger:
    """Configure a named, non-propagating logger emitting JSON records."""

    logger = logging.getLogger(logger_name)
    logger.setLevel(_resolve_level(level))
    logger.handlers = []

    stream_handler = logging.StreamHandler()
    formatter = JsonFormatter()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    fallback_logger = logging.getLogger(__name__)
    for aggregator in aggregators:
        aggregator = aggregator.strip()
        if not aggregator:
            continue
        try:
            handler = _create_network_handler(aggregator)
        except (OSError, ValueError, socket.error) as exc:
            fallback_logger.warning(
                "Failed to configure log aggregator %s: %s", aggregator, exc
            )
            continue
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def configure_app_logging(app: Flask) -> Logger:
    """Point ``app.logger`` at the structured gateway logger."""

    logger = configure_structured_logging(
        app.config.get("LOGGER_NAME", DEFAULT_LOGGER_NAME),
        level=app.config.get("LOG_LEVEL", logging.INFO),
        aggregators=app.config.get("LOG_AGGREGATORS", ()),
    )
    app.logger = logger
    return logger
