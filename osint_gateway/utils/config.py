"""Configuration helpers for environment-aware setup."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, MutableMapping
import os
import re

from dotenv import dotenv_values, load_dotenv

from .. import __version__
from ..environment import DeploymentEnvironment
from ..errors import ConfigError
from ..policy import DEFAULT_CORS_POLICY, CorsPolicy

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_LOGGER_NAME",
    "EnvironmentSettings",
    "GatewayConfig",
    "load_environment_settings",
    "load_gateway_config",
    "build_hierarchical_tree",
    "log_configuration_snapshot",
    "lookup_hierarchical_value",
]


_DIGITS = re.compile(r"[0-9]+")

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_LOGGER_NAME = "osint.gateway"


@dataclass(frozen=True)
class EnvironmentSettings:
    """Represents the environment configuration detected at runtime."""

    name: str
    loaded_files: tuple[str, ...]
    file_values: Mapping[str, str]
    hierarchical: Mapping[str, Any]
    environ: Mapping[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        """Return the value for ``key`` considering hierarchical overrides."""

        value = self.environ.get(key)
        if value is not None:
            return value
        value = self.file_values.get(key)
        if value is not None:
            return value
        return lookup_hierarchical_value(self.hierarchical, key)


@dataclass(frozen=True)
class GatewayConfig:
    """Process configuration resolved once at entry and passed by reference."""

    environment: str | None
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    version: str = __version__
    log_level: str = "INFO"
    logger_name: str = DEFAULT_LOGGER_NAME
    log_aggregators: tuple[str, ...] = ()
    compression_enabled: bool = True
    compression_min_size: int = 512
    compression_gzip_level: int = 6
    compression_br_quality: int = 5
    rate_limit_storage_uri: str = "memory://"
    jwt_secret: str = ""
    cors_policy: CorsPolicy = DEFAULT_CORS_POLICY
    env_files: tuple[str, ...] = ()

    def as_mapping(self) -> dict[str, Any]:
        values = asdict(self)
        values.pop("cors_policy", None)
        return values


def build_hierarchical_tree(
    values: Mapping[str, str], *, delimiter: str = "__"
) -> Mapping[str, Any]:
    """Build a nested mapping from ``KEY__CHILD`` style environment variables."""

    tree: dict[str, Any] = {}
    for raw_key, value in values.items():
        if delimiter not in raw_key:
            continue
        segments = [segment.strip().upper() for segment in raw_key.split(delimiter) if segment.strip()]
        if not segments:
            continue
        current: MutableMapping[str, Any] = tree
        for part in segments[:-1]:
            current = current.setdefault(part, {})  # type: ignore[assignment]
        current[segments[-1]] = value
    return tree


def lookup_hierarchical_value(tree: Mapping[str, Any], key: str) -> str | None:
    """Lookup ``key`` in ``tree`` by splitting on underscores."""

    if not key:
        return None
    segments = [segment.strip().upper() for segment in key.split("_") if segment.strip()]
    if not segments:
        return None
    current: Any = tree
    for part in segments:
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
        if current is None:
            return None
    if isinstance(current, Mapping):
        return None
    return str(current)


def load_environment_settings(
    *,
    env: str | None = None,
    project_root: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> EnvironmentSettings:
    """Load environment settings supporting layered ``.env`` files.

    Files are layered ``.env``, ``.env.local``, ``.env.<name>`` and
    ``.env.<name>.local``; the named files are only read when ``<name>`` is a
    known deployment environment. Production deployments are expected to inject
    their configuration directly, so no files are read for ``production``.
    Values already present in ``environ`` always win.
    """

    source = dict(os.environ if environ is None else environ)
    root = Path(project_root or Path.cwd())
    name = (env or source.get("API_ENVIRONMENT") or "").strip()

    loaded_files: list[str] = []
    file_values: dict[str, str] = {}
    if name != "production":
        ordered_files: list[Path] = [root / ".env", root / ".env.local"]
        if name in {member.value for member in DeploymentEnvironment}:
            ordered_files.extend([root / f".env.{name}", root / f".env.{name}.local"])
        for candidate in ordered_files:
            if not candidate.exists():
                continue
            if environ is None:
                load_dotenv(candidate, override=False)
            loaded_files.append(str(candidate))
            for key, value in dotenv_values(candidate).items():
                if value is not None:
                    file_values[key] = value

    hierarchical = build_hierarchical_tree({**file_values, **source})
    return EnvironmentSettings(
        name=name,
        loaded_files=tuple(loaded_files),
        file_values=file_values,
        hierarchical=hierarchical,
        environ=source,
    )


def _split_env_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(key: str, value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    if not _DIGITS.fullmatch(value.strip()):
        raise ConfigError(f"{key} must be a non-negative integer, got {value!r}")
    return int(value.strip())


def _parse_port(value: str | None) -> int:
    port = _parse_int("PORT", value, DEFAULT_PORT)
    if not 0 <= port <= 65535:
        raise ConfigError(f"PORT out of range: {port}")
    return port


def load_gateway_config(settings: EnvironmentSettings) -> GatewayConfig:
    """Build the immutable :class:`GatewayConfig` from loaded settings.

    ``API_ENVIRONMENT`` is carried verbatim; validating it is left to the
    startup sequence so that a bad value fails in a single, ordered place.
    """

    get = settings.get
    return GatewayConfig(
        environment=get("API_ENVIRONMENT"),
        port=_parse_port(get("PORT")),
        log_level=(get("LOG_LEVEL") or "INFO").upper(),
        logger_name=get("LOGGER_NAME") or DEFAULT_LOGGER_NAME,
        log_aggregators=tuple(_split_env_list(get("LOG_AGGREGATORS") or "")),
        compression_enabled=_parse_bool(get("COMPRESSION_ENABLED"), True),
        compression_min_size=_parse_int(
            "COMPRESSION_MIN_SIZE", get("COMPRESSION_MIN_SIZE"), 512
        ),
        compression_gzip_level=_parse_int(
            "COMPRESSION_GZIP_LEVEL", get("COMPRESSION_GZIP_LEVEL"), 6
        ),
        compression_br_quality=_parse_int(
            "COMPRESSION_BR_QUALITY", get("COMPRESSION_BR_QUALITY"), 5
        ),
        rate_limit_storage_uri=get("RATE_LIMIT_STORAGE_URI") or "memory://",
        jwt_secret=get("JWT_SECRET") or "",
        env_files=settings.loaded_files,
    )


def _sanitize_value(key: str, value: Any) -> Any:
    markers = ("SECRET", "PASSWORD", "TOKEN", "KEY")
    upper_key = key.upper()
    if any(marker in upper_key for marker in markers):
        return "***"
    return value


def _sanitize_tree(tree: Mapping[str, Any]) -> Mapping[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in tree.items():
        if isinstance(value, Mapping):
            sanitized[key] = _sanitize_tree(value)
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def log_configuration_snapshot(
    *,
    logger: Any,
    config: GatewayConfig,
    keys_of_interest: Iterable[str],
    settings: EnvironmentSettings | None = None,
) -> None:
    """Log a sanitized snapshot of the runtime configuration."""

    values = config.as_mapping()
    snapshot = {
        key: _sanitize_value(key, values.get(key))
        for key in keys_of_interest
        if key in values
    }
    extra: dict[str, Any] = {
        "environment": config.environment,
        "env_files": config.env_files,
        "config_snapshot": snapshot,
    }
    if settings is not None:
        extra["hierarchical_overrides"] = _sanitize_tree(settings.hierarchical)
    logger.info("Runtime configuration initialised", extra=extra)
