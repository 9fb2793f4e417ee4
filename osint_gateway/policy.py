"""Request-admission and cross-origin policies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .environment import DeploymentEnvironment
from .errors import ConfigError

__all__ = [
    "RATE_LIMIT_WINDOW_SECONDS",
    "RateLimitPolicy",
    "CorsPolicy",
    "ServerBinding",
    "DEFAULT_CORS_POLICY",
    "select_rate_limit",
]


RATE_LIMIT_WINDOW_SECONDS = 60

_MAX_REQUESTS: dict[DeploymentEnvironment, int] = {
    DeploymentEnvironment.DEVELOPMENT: 999,
    DeploymentEnvironment.PRODUCTION: 60,
    DeploymentEnvironment.SANDBOX: 100,
}


@dataclass(frozen=True)
class RateLimitPolicy:
    """Maximum number of requests admitted per client within a fixed window."""

    max_requests: int
    window_seconds: int = RATE_LIMIT_WINDOW_SECONDS

    def __post_init__(self) -> None:
        if self.max_requests < 0:
            raise ConfigError("max_requests must not be negative")
        if self.window_seconds <= 0:
            raise ConfigError("window_seconds must be positive")


@dataclass(frozen=True)
class CorsPolicy:
    """Static cross-origin policy."""

    allowed_origins: frozenset[str]
    allowed_methods: frozenset[str]
    allowed_headers: frozenset[str]
    allow_credentials: bool = False
    max_age_seconds: int = 0

    @classmethod
    def build(
        cls,
        *,
        origins: Iterable[str],
        methods: Iterable[str],
        headers: Iterable[str],
        allow_credentials: bool = False,
        max_age_seconds: int = 0,
    ) -> "CorsPolicy":
        return cls(
            allowed_origins=frozenset(origins),
            allowed_methods=frozenset(method.upper() for method in methods),
            allowed_headers=frozenset(headers),
            allow_credentials=allow_credentials,
            max_age_seconds=max_age_seconds,
        )

    def allows_origin(self, origin: str) -> bool:
        return origin in self.allowed_origins


DEFAULT_CORS_POLICY = CorsPolicy.build(
    origins=(
        "https://osint.dvh.sh",
        "https://nitrous.dvh.sh",
        "http://localhost:3000",
    ),
    methods=("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"),
    headers=("Content-Type", "Authorization"),
    allow_credentials=True,
    max_age_seconds=86400,
)


@dataclass(frozen=True)
class ServerBinding:
    """Address the network listener binds to."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"port out of range: {self.port}")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def select_rate_limit(environment: DeploymentEnvironment) -> RateLimitPolicy:
    """Map ``environment`` to its admission ceiling.

    Unknown values yield a closed policy (``max_requests=0``) instead of
    raising, so every request is rejected.
    """

    if not isinstance(environment, DeploymentEnvironment):
        return RateLimitPolicy(max_requests=0)
    return RateLimitPolicy(max_requests=_MAX_REQUESTS[environment])
