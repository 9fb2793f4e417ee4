"""Cross-origin policy enforcement backed by Flask-Cors header evaluation."""

from __future__ import annotations

from typing import Any, Optional

from flask import Flask, Response, request
from flask_cors.core import get_cors_options, set_cors_headers

from ..policy import CorsPolicy
from ..utils.responses import empty_response, error_response
from .base import Stage

__all__ = ["CrossOriginPolicy", "cors_options"]


def cors_options(policy: CorsPolicy) -> dict[str, Any]:
    """Translate ``policy`` into Flask-Cors keyword options."""

    return {
        "origins": sorted(policy.allowed_origins),
        "methods": sorted(policy.allowed_methods),
        "allow_headers": sorted(policy.allowed_headers),
        "supports_credentials": policy.allow_credentials,
        "max_age": str(policy.max_age_seconds),
    }


class CrossOriginPolicy(Stage):
    """Reject foreign origins and answer preflights before any route runs.

    Requests without an ``Origin`` header are not cross-origin and pass
    untouched.
    """

    name = "cors"

    def __init__(self, app: Flask, policy: CorsPolicy) -> None:
        self.policy = policy
        self.options = get_cors_options(app, cors_options(policy))

    def before(self) -> Optional[Response]:
        origin = request.headers.get("Origin")
        if origin is None:
            return None
        if not self.policy.allows_origin(origin):
            return error_response(403, "Origin not allowed")
        if request.method == "OPTIONS":
            if not request.headers.get("Access-Control-Request-Method"):
                return error_response(400, "Invalid Preflight Request")
            return empty_response(204)
        return None

    def after(self, response: Response) -> Response:
        origin = request.headers.get("Origin")
        if origin is None or not self.policy.allows_origin(origin):
            return response
        return set_cors_headers(response, self.options)
