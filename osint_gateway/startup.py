"""Ordered startup sequence: validate, compose, mount, bind."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

from flask import Flask
from werkzeug.serving import BaseWSGIServer, make_server

from .app import create_app, create_pipeline
from .environment import DeploymentEnvironment, resolve_environment
from .errors import BindError, ConfigError
from .pipeline import Pipeline, RouteGroup, compose, mount
from .policy import ServerBinding, select_rate_limit
from .utils.config import GatewayConfig
from .utils.lifecycle import register_shutdown_task

__all__ = ["StartupState", "StartupSequencer", "ServerFactory", "default_server_factory"]

ServerFactory = Callable[[str, int, Flask], BaseWSGIServer]


def default_server_factory(host: str, port: int, app: Flask) -> BaseWSGIServer:
    return make_server(host, port, app, threaded=True)


class StartupState(str, Enum):
    UNSTARTED = "unstarted"
    VALIDATING = "validating"
    COMPOSING = "composing"
    MOUNTING = "mounting"
    BINDING = "binding"
    READY = "ready"
    FAILED = "failed"


class StartupSequencer:
    """Drive the gateway from configuration to a bound listener.

    Each step runs only after the previous one succeeded. Any failure moves
    the sequencer to ``FAILED`` and propagates; no listener is left bound.
    """

    def __init__(
        self,
        config: GatewayConfig,
        route_groups: Iterable[RouteGroup],
        *,
        server_factory: ServerFactory = default_server_factory,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.route_groups = tuple(route_groups)
        self.server_factory = server_factory
        self.logger = logger or logging.getLogger(config.logger_name)
        self.state = StartupState.UNSTARTED
        self.failed_during: Optional[StartupState] = None
        self.environment: Optional[DeploymentEnvironment] = None
        self.pipeline: Optional[Pipeline] = None
        self.binding: Optional[ServerBinding] = None
        self.server: Optional[BaseWSGIServer] = None

    def _transition(self, state: StartupState) -> None:
        self.logger.debug(
            "Startup transition", extra={"from_state": self.state.value, "to_state": state.value}
        )
        self.state = state

    def start(self) -> BaseWSGIServer:
        """Run every startup step and return the bound, not yet serving, server."""

        if self.state is not StartupState.UNSTARTED:
            raise ConfigError(f"startup already attempted (state={self.state.value})", reason="restarted")
        try:
            self._transition(StartupState.VALIDATING)
            self.environment = resolve_environment(self.config.environment)

            self._transition(StartupState.COMPOSING)
            policy = select_rate_limit(self.environment)
            app = create_app(self.config, self.environment)
            self.pipeline = compose(create_pipeline(app), policy, self.config.cors_policy)

            self._transition(StartupState.MOUNTING)
            mount(self.pipeline, self.route_groups)

            self._transition(StartupState.BINDING)
            self.binding = ServerBinding(host=self.config.host, port=self.config.port)
            self.server = self._bind(app, self.binding)
        except BaseException:
            self.failed_during = self.state
            self.state = StartupState.FAILED
            raise

        self._transition(StartupState.READY)
        self._announce(self.environment, self.binding)
        return self.server

    def _bind(self, app: Flask, binding: ServerBinding) -> BaseWSGIServer:
        try:
            server = self.server_factory(binding.host, binding.port, app)
        except OSError as exc:
            raise BindError(f"unable to bind {binding}: {exc}") from exc
        bound_port = server.server_address[1]
        if bound_port != binding.port:
            self.binding = ServerBinding(host=binding.host, port=bound_port)
        register_shutdown_task("http_server", server.server_close)
        return server

    def _announce(self, environment: DeploymentEnvironment, binding: ServerBinding) -> None:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.logger.info(
            "[%s] [%s/%s] | Server started and listening at [%s]",
            timestamp,
            self.config.version,
            environment.value,
            binding,
            extra={
                "version": self.config.version,
                "environment": environment.value,
                "host": binding.host,
                "port": binding.port,
            },
        )

    def run(self) -> None:
        """Start, then serve until interrupted."""

        server = self.start()
        try:
            server.serve_forever()
        finally:
            server.server_close()
