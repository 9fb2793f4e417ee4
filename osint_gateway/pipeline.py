"""Ordered middleware pipeline and route group mounting."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable, Optional, Protocol, runtime_checkable

from flask import Blueprint, Flask, Response, g
from werkzeug.exceptions import HTTPException

from .errors import ConfigError, GatewayError, MountError
from .middleware import (
    AdmissionControl,
    CrossOriginPolicy,
    ResponseCompression,
    SecurityHeaders,
    Stage,
)
from .policy import CorsPolicy, RateLimitPolicy

if TYPE_CHECKING:  # pragma: no cover
    from .security.auth import Authenticator

__all__ = [
    "Stage",
    "Pipeline",
    "RouteGroup",
    "BlueprintRouteGroup",
    "compose",
    "mount",
]

_ENTERED = "_pipeline_entered_stages"


class Pipeline:
    """Wraps a Flask application with an explicit, ordered stage chain."""

    def __init__(self, app: Flask, *, authenticator: "Authenticator | None" = None) -> None:
        self.app = app
        self.authenticator = authenticator
        self._stages: list[Stage] = []
        self._composed = False
        self._sealed = False
        self._installed = False

    @property
    def stages(self) -> tuple[Stage, ...]:
        return tuple(self._stages)

    @property
    def composed(self) -> bool:
        return self._composed

    @property
    def sealed(self) -> bool:
        return self._sealed

    def add_stage(self, stage: Stage) -> None:
        if self._sealed:
            raise ConfigError("pipeline is sealed", reason="sealed")
        self._stages.append(stage)
        self._install_hooks()

    def register_blueprint(self, blueprint: Blueprint, **options) -> None:
        if self._sealed:
            raise ConfigError("pipeline is sealed", reason="sealed")
        self.app.register_blueprint(blueprint, **options)

    def mark_composed(self) -> None:
        self._composed = True

    def seal(self) -> None:
        self._sealed = True

    def _install_hooks(self) -> None:
        if self._installed:
            return
        self._installed = True
        self.app.before_request(self._enter_stages)
        self.app.after_request(self._leave_stages)

    def _enter_stages(self) -> Optional[Response]:
        entered: list[Stage] = []
        setattr(g, _ENTERED, entered)
        for stage in self._stages:
            entered.append(stage)
            try:
                result = stage.before()
            except HTTPException as exc:
                self._record_short_circuit(stage, exc.code or 500)
                raise
            if result is not None:
                self._record_short_circuit(stage, result.status_code)
                return result
        return None

    def _leave_stages(self, response: Response) -> Response:
        for stage in reversed(getattr(g, _ENTERED, ())):
            response = stage.after(response)
        return response

    def _record_short_circuit(self, stage: Stage, status: int) -> None:
        g.pipeline_answered_by = stage.name
        metrics = self.app.extensions.get("metrics")
        if metrics:
            metrics.record_short_circuit(stage=stage.name, status=status)
        self.app.logger.debug(
            "Request answered by pipeline stage",
            extra={"stage": stage.name, "status": status},
        )


def compose(
    pipeline: Pipeline,
    rate_limit_policy: RateLimitPolicy,
    cors_policy: CorsPolicy,
    *,
    admission: Stage | None = None,
    compression: Stage | None = None,
    security_headers: Stage | None = None,
    cors: Stage | None = None,
) -> Pipeline:
    """Append admission, compression, security header and CORS stages, in order.

    Any stage may be replaced by keyword; the order is fixed. Composing the
    same pipeline twice raises :class:`ConfigError`.
    """

    if pipeline.composed:
        raise ConfigError("pipeline already composed", reason="already composed")

    config = pipeline.app.config
    stages = (
        admission
        or AdmissionControl(
            rate_limit_policy,
            storage_uri=config.get("RATE_LIMIT_STORAGE_URI", "memory://"),
        ),
        compression
        or ResponseCompression(
            enabled=config.get("COMPRESSION_ENABLED", True),
            min_size=config.get("COMPRESSION_MIN_SIZE", 512),
            gzip_level=config.get("COMPRESSION_GZIP_LEVEL", 6),
            brotli_quality=config.get("COMPRESSION_BR_QUALITY", 5),
        ),
        security_headers or SecurityHeaders(),
        cors or CrossOriginPolicy(pipeline.app, cors_policy),
    )
    for stage in stages:
        pipeline.add_stage(stage)
    pipeline.mark_composed()
    pipeline.app.logger.info(
        "Middleware pipeline composed",
        extra={
            "stages": [stage.name for stage in pipeline.stages],
            "max_requests": rate_limit_policy.max_requests,
            "window_seconds": rate_limit_policy.window_seconds,
        },
    )
    return pipeline


@runtime_checkable
class RouteGroup(Protocol):
    """An externally defined bundle of endpoints."""

    name: str

    def attach(self, pipeline: Pipeline) -> None:
        ...


class BlueprintRouteGroup:
    """Route group backed by a blueprint factory receiving the pipeline."""

    def __init__(self, name: str, factory: Callable[[Pipeline], Blueprint]) -> None:
        self.name = name
        self._factory = factory

    def attach(self, pipeline: Pipeline) -> None:
        pipeline.register_blueprint(self._factory(pipeline))

    def __repr__(self) -> str:
        return f"BlueprintRouteGroup({self.name!r})"


def _group_name(group: RouteGroup) -> str:
    return getattr(group, "name", None) or type(group).__name__


def mount(pipeline: Pipeline, route_groups: Iterable[RouteGroup]) -> None:
    """Attach ``route_groups`` in order, stopping at the first failure."""

    if not pipeline.composed:
        raise MountError("cannot mount route groups before the pipeline is composed")
    if pipeline.sealed:
        raise ConfigError("route groups already mounted", reason="already mounted")

    for group in route_groups:
        name = _group_name(group)
        try:
            group.attach(pipeline)
        except GatewayError:
            raise
        except Exception as exc:
            raise MountError(f"route group {name!r} failed to attach: {exc}") from exc
        pipeline.app.logger.info("Route group mounted", extra={"route_group": name})
    pipeline.seal()
