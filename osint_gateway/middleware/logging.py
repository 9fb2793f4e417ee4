"""Per-request access log for the gateway."""

import json
import time
import uuid
from typing import Any, Dict

from flask import Flask, Response, g, request
from opentelemetry import trace

from .admission import current_window


def _serialise_log(record: Dict[str, Any]) -> str:
    return json.dumps(record, sort_keys=True, separators=(",", ":"))


def _client_fields() -> Dict[str, Any]:
    # ``ip`` is the socket peer, the same key admission control counts against.
    fields: Dict[str, Any] = {
        "ip": request.remote_addr or "",
        "user_agent": request.headers.get("User-Agent"),
        "origin": request.headers.get("Origin"),
    }
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        fields["forwarded_for"] = forwarded_for
    subject = g.get("auth_subject")
    if subject:
        fields["user_id"] = subject
    return fields


def _pipeline_fields() -> Dict[str, Any]:
    fields: Dict[str, Any] = {"answered_by": g.get("pipeline_answered_by")}
    window = current_window()
    if window is not None:
        fields["admission"] = {
            "admitted": window.admitted,
            "remaining": max(window.remaining, 0),
        }
    return fields


def _trace_fields() -> Dict[str, str]:
    context = trace.get_current_span().get_span_context()
    fields: Dict[str, str] = {}
    if context and context.trace_id:
        fields["trace_id"] = format(context.trace_id, "032x")
    if context and context.span_id:
        fields["span_id"] = format(context.span_id, "016x")
    return fields


def setup_request_logging(app: Flask) -> None:
    """Emit one JSON access record per request on ``app.logger``.

    Must run before the pipeline is composed: after-request hooks unwind in
    reverse, so the record then sees the final response, including responses
    produced by a stage that answered the request itself. ``answered_by``
    names that stage and is ``null`` when a route handled the request.
    """

    @app.before_request
    def _start_timer() -> None:
        g.request_started_at = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    @app.after_request
    def _log_request(response: Response) -> Response:
        start = g.get("request_started_at")
        duration = time.perf_counter() - start if start is not None else None
        route = getattr(request.url_rule, "rule", request.path)

        log_record: Dict[str, Any] = {
            "method": request.method,
            "path": request.full_path.rstrip("?") or request.path,
            "route": route,
            "status": response.status_code,
            "duration_ms": round(duration * 1000, 3) if duration is not None else None,
            "request_id": g.get("request_id"),
        }
        log_record.update(_client_fields())
        log_record.update(_pipeline_fields())
        log_record.update(_trace_fields())
        app.logger.info(_serialise_log(log_record))

        metrics = app.extensions.get("metrics")
        if metrics:
            metrics.observe_http_request(
                method=request.method,
                endpoint=route,
                status=response.status_code,
                duration_seconds=duration,
            )

        if log_record["request_id"]:
            response.headers.setdefault("X-Request-ID", log_record["request_id"])
        return response
