"""Utilities for building JSON API responses."""

from typing import Any, Dict, Optional

from flask import current_app, jsonify


def error_response(status_code: int, message: str, details: Optional[Dict[str, Any]] = None):
    """Return a JSON error envelope with the provided status code and message."""

    payload: Dict[str, Any] = {"error": {"code": status_code, "message": message}}
    if details:
        payload["error"]["details"] = details
    response = jsonify(payload)
    response.status_code = status_code
    return response


def empty_response(status_code: int = 204):
    """Return a body-less response with the given status code."""

    response = current_app.response_class(status=status_code)
    response.headers["Content-Length"] = "0"
    return response
