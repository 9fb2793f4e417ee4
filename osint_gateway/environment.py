"""Deployment environment validation."""

from __future__ import annotations

from enum import Enum

from .errors import ConfigError

__all__ = ["DeploymentEnvironment", "resolve_environment"]


class DeploymentEnvironment(str, Enum):
    """Closed set of environments the gateway may be deployed to."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    SANDBOX = "sandbox"

    def __str__(self) -> str:
        return self.value


def resolve_environment(raw: str | None) -> DeploymentEnvironment:
    """Return the environment named by ``raw`` or raise :class:`ConfigError`.

    Matching is exact and case-sensitive; surrounding whitespace is not
    stripped.
    """

    if raw is None or raw == "":
        raise ConfigError("API_ENVIRONMENT is not defined", reason="missing")
    try:
        return DeploymentEnvironment(raw)
    except ValueError:
        raise ConfigError(
            f"API_ENVIRONMENT is not a valid environment: {raw!r}", reason="invalid"
        ) from None
