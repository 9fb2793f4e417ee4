"""Bearer-token authentication offered to route groups."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Mapping, Optional, Protocol, runtime_checkable

import jwt
from flask import Request, current_app, g, request

from ..utils.responses import error_response

__all__ = ["Authenticator", "JWTAuthenticator", "require_auth"]


@runtime_checkable
class Authenticator(Protocol):
    """Capability resolving the caller's identity from a request."""

    def authenticate(self, req: Request) -> Optional[Mapping[str, Any]]:
        """Return the verified claims, or ``None`` when unauthenticated."""
        ...


class JWTAuthenticator:
    """Validate ``Authorization: Bearer`` HS256 tokens."""

    def __init__(
        self,
        secret: str,
        *,
        algorithms: tuple[str, ...] = ("HS256",),
        required_claims: tuple[str, ...] = ("sub", "exp", "iat"),
    ) -> None:
        self._secret = secret
        self.algorithms = algorithms
        self.required_claims = required_claims

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    def authenticate(self, req: Request) -> Optional[Mapping[str, Any]]:
        if not self._secret:
            return None
        auth_header = req.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return None
        token = auth_header.split(" ", 1)[1].strip()
        return self._decode(token)

    def _decode(self, token: str) -> Optional[dict[str, Any]]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=list(self.algorithms),
                options={"require": list(self.required_claims)},
            )
        except jwt.PyJWTError:
            return None
        if not payload.get("sub"):
            return None
        return payload


def require_auth(authenticator: Authenticator | None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate a view so it only runs for authenticated callers."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if request.method == "OPTIONS":
                return current_app.make_default_options_response()
            if authenticator is None:
                return error_response(401, "Unauthorized")

            claims = authenticator.authenticate(request)
            if claims is None:
                return error_response(401, "Unauthorized")

            g.auth_subject = claims.get("sub")
            g.auth_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator
