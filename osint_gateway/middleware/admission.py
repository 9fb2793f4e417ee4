"""Fixed-window admission control keyed by client address."""

from __future__ import annotations

import math
import time
from typing import Callable, NamedTuple, Optional

from flask import Response, g
from flask_limiter.util import get_remote_address
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

from ..errors import AdmissionRejection
from ..policy import RateLimitPolicy
from .base import Stage

__all__ = ["AdmissionControl", "AdmissionWindow", "current_window"]


class AdmissionWindow(NamedTuple):
    admitted: bool
    reset_at: float
    remaining: int


def current_window() -> Optional[AdmissionWindow]:
    """Window state recorded for the current request, if admission ran."""

    return g.get("admission_window")


class AdmissionControl(Stage):
    """Reject requests exceeding ``policy.max_requests`` per window and client.

    Counting is delegated to a ``limits`` storage so concurrent workers share
    one counter; this stage keeps no tally of its own.
    """

    name = "admission"

    def __init__(
        self,
        policy: RateLimitPolicy,
        *,
        storage_uri: str = "memory://",
        key_func: Callable[[], str] = get_remote_address,
        namespace: str = "osint-gateway",
    ) -> None:
        self.policy = policy
        self.key_func = key_func
        self._item = RateLimitItemPerSecond(
            policy.max_requests, policy.window_seconds, namespace=namespace
        )
        self._storage = storage_from_string(storage_uri)
        self._limiter = FixedWindowRateLimiter(self._storage)

    def before(self) -> Optional[Response]:
        key = self.key_func()
        admitted = self._limiter.hit(self._item, key)
        reset_at, remaining = self._limiter.get_window_stats(self._item, key)
        g.admission_window = AdmissionWindow(admitted, reset_at, remaining)
        if not admitted:
            retry_after = self._seconds_until(reset_at)
            raise AdmissionRejection(
                description=f"Rate limit exceeded, retry in {retry_after} seconds"
            )
        return None

    def after(self, response: Response) -> Response:
        state = current_window()
        if state is None:
            return response
        admitted, reset_at, remaining = state
        reset_in = self._seconds_until(reset_at)
        response.headers["X-RateLimit-Limit"] = str(self.policy.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(remaining, 0))
        response.headers["X-RateLimit-Reset"] = str(reset_in)
        if not admitted:
            response.headers["Retry-After"] = str(reset_in)
        return response

    def _seconds_until(self, reset_at: float) -> int:
        remaining = math.ceil(reset_at - time.time())
        return max(0, min(remaining, self.policy.window_seconds))
