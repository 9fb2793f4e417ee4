"""Error types raised while bootstrapping the gateway."""

from __future__ import annotations

from werkzeug.exceptions import TooManyRequests

__all__ = [
    "GatewayError",
    "ConfigError",
    "BindError",
    "MountError",
    "AdmissionRejection",
]


class GatewayError(Exception):
    """Base class for fatal startup errors."""


class ConfigError(GatewayError):
    """Raised for missing or invalid configuration and pipeline misuse."""

    def __init__(self, message: str, *, reason: str = "invalid") -> None:
        super().__init__(message)
        self.reason = reason


class BindError(GatewayError):
    """Raised when the network listener cannot be bound."""


class MountError(GatewayError):
    """Raised when a route group fails to attach to the pipeline."""


class AdmissionRejection(TooManyRequests):
    """Per-request rejection emitted by the admission control stage."""

    description = "Too Many Requests"
