"""OSINT gateway application factory."""
import logging

from flask import Flask
from werkzeug.exceptions import HTTPException

from .environment import DeploymentEnvironment
from .middleware.logging import setup_request_logging
from .observability import configure_app_logging, configure_metrics
from .pipeline import Pipeline
from .security.auth import JWTAuthenticator
from .utils.config import GatewayConfig, log_configuration_snapshot
from .utils.responses import error_response


def _configure_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def http_error_handler(error: HTTPException):
        """Return JSON envelopes for Werkzeug HTTP exceptions."""

        status_code = error.code or 500
        message = error.description or error.name or "Error"
        return error_response(status_code, message)

    @app.errorhandler(Exception)
    def generic_error_handler(error: Exception):  # noqa: D401 - brief message sufficient
        """Return a JSON envelope for unexpected errors."""

        app.logger.exception("Unhandled exception", exc_info=error)
        return error_response(500, "Internal Server Error")


def create_app(config: GatewayConfig, environment: DeploymentEnvironment) -> Flask:
    """Create the Flask application with the ambient stack installed.

    The request pipeline is not composed here; see :func:`create_pipeline`.
    """

    app = Flask(__name__)
    app.config.update(
        APP_ENV=environment.value,
        APP_VERSION=config.version,
        APP_HOST=config.host,
        APP_PORT=config.port,
        LOG_LEVEL=getattr(logging, config.log_level, logging.INFO),
        LOGGER_NAME=config.logger_name,
        LOG_AGGREGATORS=config.log_aggregators,
        COMPRESSION_ENABLED=config.compression_enabled,
        COMPRESSION_MIN_SIZE=config.compression_min_size,
        COMPRESSION_GZIP_LEVEL=config.compression_gzip_level,
        COMPRESSION_BR_QUALITY=config.compression_br_quality,
        RATE_LIMIT_STORAGE_URI=config.rate_limit_storage_uri,
        JWT_SECRET=config.jwt_secret,
    )

    configure_app_logging(app)
    configure_metrics(app)
    setup_request_logging(app)
    _configure_error_handlers(app)

    log_configuration_snapshot(
        logger=app.logger,
        config=config,
        keys_of_interest=[
            "environment",
            "port",
            "host",
            "version",
            "log_level",
            "compression_enabled",
            "compression_min_size",
            "rate_limit_storage_uri",
            "jwt_secret",
        ],
    )
    return app


def create_pipeline(app: Flask) -> Pipeline:
    """Wrap ``app`` in a pipeline carrying the configured authenticator."""

    authenticator = JWTAuthenticator(app.config.get("JWT_SECRET", ""))
    if not authenticator.enabled:
        app.logger.warning("JWT_SECRET is not set; authenticated routes will reject every request")
    return Pipeline(app, authenticator=authenticator)
