"""Process entry point."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .errors import GatewayError
from .observability.logging import configure_structured_logging
from .pipeline import RouteGroup
from .startup import ServerFactory, StartupSequencer, default_server_factory
from .utils.config import (
    DEFAULT_LOGGER_NAME,
    load_environment_settings,
    load_gateway_config,
)
from .utils.lifecycle import install_signal_handlers


def main(
    environ: Optional[Mapping[str, str]] = None,
    *,
    project_root: str | Path | None = None,
    route_groups: Optional[Iterable[RouteGroup]] = None,
    server_factory: ServerFactory = default_server_factory,
) -> int:
    """Start the gateway and serve until shutdown.

    Returns the process exit code: ``0`` after a graceful shutdown and ``1``
    when any startup step failed.
    """

    try:
        settings = load_environment_settings(project_root=project_root, environ=environ)
    except OSError:
        configure_structured_logging(DEFAULT_LOGGER_NAME).exception("Failed to start server")
        return 1
    logger = configure_structured_logging(
        settings.get("LOGGER_NAME") or DEFAULT_LOGGER_NAME,
        level=settings.get("LOG_LEVEL") or "INFO",
    )

    if route_groups is None:
        from .routes import DEFAULT_ROUTE_GROUPS

        route_groups = DEFAULT_ROUTE_GROUPS

    try:
        config = load_gateway_config(settings)
        sequencer = StartupSequencer(
            config, route_groups, server_factory=server_factory, logger=logger
        )
        server = sequencer.start()
    except GatewayError as exc:
        logger.error("Failed to start server: %s", exc, extra={"error_type": type(exc).__name__})
        return 1
    except Exception:
        logger.exception("Failed to start server")
        return 1

    install_signal_handlers(logger)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
