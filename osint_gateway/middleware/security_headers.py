"""Standard hardening headers attached to every response."""

from __future__ import annotations

from typing import Mapping

from flask import Response

from .base import Stage

__all__ = ["DEFAULT_SECURITY_HEADERS", "SecurityHeaders"]


DEFAULT_SECURITY_HEADERS: Mapping[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class SecurityHeaders(Stage):
    """Set hardening headers without overriding values a route chose."""

    name = "security_headers"

    def __init__(self, headers: Mapping[str, str] | None = None) -> None:
        self.headers = dict(DEFAULT_SECURITY_HEADERS if headers is None else headers)

    def after(self, response: Response) -> Response:
        for header, value in self.headers.items():
            response.headers.setdefault(header, value)
        response.headers.pop("X-Powered-By", None)
        return response
