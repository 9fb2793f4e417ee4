import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from osint_gateway.app import create_app, create_pipeline  # noqa: E402
from osint_gateway.environment import resolve_environment  # noqa: E402
from osint_gateway.pipeline import compose, mount  # noqa: E402
from osint_gateway.policy import select_rate_limit  # noqa: E402
from osint_gateway.routes import DEFAULT_ROUTE_GROUPS  # noqa: E402
from osint_gateway.utils.config import GatewayConfig  # noqa: E402


@pytest.fixture
def build_gateway():
    """Return a factory assembling a composed and mounted gateway app."""

    def _build(environment="production", route_groups=DEFAULT_ROUTE_GROUPS, **overrides):
        config = GatewayConfig(environment=environment, **overrides)
        resolved = resolve_environment(environment)
        app = create_app(config, resolved)
        pipeline = compose(create_pipeline(app), select_rate_limit(resolved), config.cors_policy)
        mount(pipeline, route_groups)
        app.config["TESTING"] = True
        return app

    return _build
