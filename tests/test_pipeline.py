"""Tests for pipeline composition order, short-circuiting and mounting."""

from __future__ import annotations

import pytest
from flask import Blueprint, Flask

from osint_gateway.errors import ConfigError, MountError
from osint_gateway.middleware import AdmissionControl
from osint_gateway.middleware.base import Stage
from osint_gateway.pipeline import BlueprintRouteGroup, Pipeline, RouteGroup, compose, mount
from osint_gateway.policy import DEFAULT_CORS_POLICY, RateLimitPolicy
from osint_gateway.utils.responses import error_response


class RecordingStage(Stage):
    def __init__(self, name, calls, *, reject_with=None):
        self.name = name
        self.calls = calls
        self.reject_with = reject_with

    def before(self):
        self.calls.append(("before", self.name))
        if self.reject_with is not None:
            return error_response(self.reject_with, "rejected")
        return None

    def after(self, response):
        self.calls.append(("after", self.name))
        return response


def _probe_group(calls):
    def factory(pipeline):
        blueprint = Blueprint("probe", __name__)

        @blueprint.route("/probe", methods=["GET", "OPTIONS"])
        def probe():
            calls.append(("route", "probe"))
            return {"ok": True}

        return blueprint

    return BlueprintRouteGroup("probe", factory)


def _recording_pipeline(calls, **rejections):
    app = Flask(__name__)
    pipeline = Pipeline(app)
    stages = {
        name: RecordingStage(name, calls, reject_with=rejections.get(name))
        for name in ("admission", "compression", "security_headers", "cors")
    }
    compose(pipeline, RateLimitPolicy(max_requests=10), DEFAULT_CORS_POLICY, **stages)
    mount(pipeline, [_probe_group(calls)])
    return app, pipeline


def test_stages_run_in_fixed_order_and_unwind_in_reverse():
    calls = []
    app, pipeline = _recording_pipeline(calls)

    response = app.test_client().get("/probe")

    assert response.status_code == 200
    assert [stage.name for stage in pipeline.stages] == [
        "admission",
        "compression",
        "security_headers",
        "cors",
    ]
    assert calls == [
        ("before", "admission"),
        ("before", "compression"),
        ("before", "security_headers"),
        ("before", "cors"),
        ("route", "probe"),
        ("after", "cors"),
        ("after", "security_headers"),
        ("after", "compression"),
        ("after", "admission"),
    ]


def test_rejection_by_first_stage_skips_downstream_stages_and_routes():
    calls = []
    app, _ = _recording_pipeline(calls, admission=429)

    response = app.test_client().get("/probe")

    assert response.status_code == 429
    assert calls == [("before", "admission"), ("after", "admission")]


def test_rejection_by_cors_stage_never_reaches_route():
    calls = []
    app, _ = _recording_pipeline(calls, cors=403)

    response = app.test_client().get("/probe")

    assert response.status_code == 403
    assert ("route", "probe") not in calls
    assert ("after", "compression") in calls


def test_closed_admission_policy_blocks_everything_downstream():
    calls = []
    app = Flask(__name__)
    pipeline = Pipeline(app)
    compose(
        pipeline,
        RateLimitPolicy(max_requests=0),
        DEFAULT_CORS_POLICY,
        compression=RecordingStage("compression", calls),
        security_headers=RecordingStage("security_headers", calls),
        cors=RecordingStage("cors", calls),
    )
    assert isinstance(pipeline.stages[0], AdmissionControl)
    mount(pipeline, [_probe_group(calls)])

    response = app.test_client().get("/probe")

    assert response.status_code == 429
    assert calls == []


def test_compose_twice_is_rejected_without_duplicating_stages():
    app = Flask(__name__)
    pipeline = compose(Pipeline(app), RateLimitPolicy(max_requests=5), DEFAULT_CORS_POLICY)
    before = len(pipeline.stages)

    with pytest.raises(ConfigError) as excinfo:
        compose(pipeline, RateLimitPolicy(max_requests=5), DEFAULT_CORS_POLICY)

    assert excinfo.value.reason == "already composed"
    assert len(pipeline.stages) == before == 4


def test_mount_requires_composed_pipeline():
    pipeline = Pipeline(Flask(__name__))
    with pytest.raises(MountError):
        mount(pipeline, [])


def test_mount_attaches_groups_in_order():
    order = []

    class Group:
        def __init__(self, name):
            self.name = name

        def attach(self, pipeline):
            order.append(self.name)

    pipeline = compose(Pipeline(Flask(__name__)), RateLimitPolicy(max_requests=5), DEFAULT_CORS_POLICY)
    groups = [Group("osint"), Group("api")]
    assert all(isinstance(group, RouteGroup) for group in groups)

    mount(pipeline, groups)

    assert order == ["osint", "api"]
    assert pipeline.sealed


def test_mount_fails_fast_on_attach_error():
    attached = []

    class Broken:
        name = "broken"

        def attach(self, pipeline):
            raise RuntimeError("boom")

    class Recorder:
        name = "after-broken"

        def attach(self, pipeline):
            attached.append(self.name)

    pipeline = compose(Pipeline(Flask(__name__)), RateLimitPolicy(max_requests=5), DEFAULT_CORS_POLICY)

    with pytest.raises(MountError) as excinfo:
        mount(pipeline, [Broken(), Recorder()])

    assert "broken" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert attached == []
    assert not pipeline.sealed


def test_sealed_pipeline_rejects_changes():
    pipeline = compose(Pipeline(Flask(__name__)), RateLimitPolicy(max_requests=5), DEFAULT_CORS_POLICY)
    mount(pipeline, [])

    with pytest.raises(ConfigError) as excinfo:
        mount(pipeline, [])
    assert excinfo.value.reason == "already mounted"

    with pytest.raises(ConfigError):
        pipeline.add_stage(Stage())
