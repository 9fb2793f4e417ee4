"""General API endpoints: health and version."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..pipeline import BlueprintRouteGroup, Pipeline


def create_api_blueprint(pipeline: Pipeline) -> Blueprint:
    blueprint = Blueprint("api", __name__, url_prefix="/api")

    @blueprint.route("/health")
    def health():
        return jsonify({"service": "osint-gateway", "status": "ok"})

    @blueprint.route("/version")
    def version():
        return jsonify(
            {
                "version": current_app.config["APP_VERSION"],
                "environment": current_app.config["APP_ENV"],
            }
        )

    return blueprint


api_routes = BlueprintRouteGroup("api", create_api_blueprint)
