"""OSINT endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify

from ..pipeline import BlueprintRouteGroup, Pipeline
from ..security.auth import require_auth


def create_osint_blueprint(pipeline: Pipeline) -> Blueprint:
    """Build the OSINT blueprint; protected views use ``pipeline.authenticator``."""

    blueprint = Blueprint("osint", __name__, url_prefix="/osint")

    @blueprint.route("/")
    def index():
        return jsonify(
            {
                "service": "osint",
                "environment": current_app.config["APP_ENV"],
                "authentication": pipeline.authenticator is not None,
            }
        )

    @blueprint.route("/session")
    @require_auth(pipeline.authenticator)
    def session():
        return jsonify({"subject": g.auth_subject})

    return blueprint


osint_routes = BlueprintRouteGroup("osint", create_osint_blueprint)
