import json
import logging
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from osint_gateway import __version__

SECRET = "test-secret-value-long-enough-for-hs256"


class _CapturingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _token(subject="analyst-7", secret=SECRET, minutes=5):
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": subject, "exp": now + timedelta(minutes=minutes), "iat": now},
        secret,
        algorithm="HS256",
    )


@pytest.fixture
def app(build_gateway):
    return build_gateway("sandbox", jwt_secret=SECRET)


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


def test_api_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json == {"service": "osint-gateway", "status": "ok"}


def test_api_version_reports_environment(client):
    response = client.get("/api/version")
    assert response.json == {"version": __version__, "environment": "sandbox"}


def test_osint_index(client):
    response = client.get("/osint/")
    assert response.status_code == 200
    assert response.json["service"] == "osint"
    assert response.json["authentication"] is True


def test_osint_session_requires_token(client):
    response = client.get("/osint/session")
    assert response.status_code == 401
    assert response.json == {"error": {"code": 401, "message": "Unauthorized"}}


def test_osint_session_rejects_foreign_signature(client):
    token = _token(secret="another-secret-value-long-enough-hs256")
    response = client.get("/osint/session", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_osint_session_rejects_expired_token(client):
    token = _token(minutes=-5)
    response = client.get("/osint/session", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_osint_session_returns_subject(client):
    response = client.get("/osint/session", headers={"Authorization": f"Bearer {_token()}"})
    assert response.status_code == 200
    assert response.json == {"subject": "analyst-7"}


def test_authentication_disabled_without_secret(build_gateway):
    app = build_gateway("sandbox")
    response = app.test_client().get(
        "/osint/session", headers={"Authorization": f"Bearer {_token()}"}
    )
    assert response.status_code == 401


def test_request_logging_includes_metadata(client):
    handler = _CapturingHandler()
    handler.setLevel(logging.INFO)
    client.application.logger.addHandler(handler)
    try:
        response = client.get(
            "/osint/session",
            headers={
                "Authorization": f"Bearer {_token()}",
                "X-Forwarded-For": "203.0.113.20",
            },
            environ_base={"REMOTE_ADDR": "198.51.100.4"},
        )
    finally:
        client.application.logger.removeHandler(handler)

    assert response.status_code == 200
    payload = json.loads(handler.records[-1].getMessage())
    assert payload["method"] == "GET"
    assert payload["path"] == "/osint/session"
    assert payload["status"] == 200
    assert payload["ip"] == "198.51.100.4"
    assert payload["forwarded_for"] == "203.0.113.20"
    assert payload["user_id"] == "analyst-7"
    assert payload["request_id"] == response.headers["X-Request-ID"]
    assert payload["answered_by"] is None
    assert payload["admission"] == {"admitted": True, "remaining": 99}


def _access_records(app, requests):
    handler = _CapturingHandler()
    handler.setLevel(logging.INFO)
    app.logger.addHandler(handler)
    try:
        client = app.test_client()
        for kwargs in requests:
            client.get("/api/health", **kwargs)
    finally:
        app.logger.removeHandler(handler)
    messages = [record.getMessage() for record in handler.records]
    return [json.loads(message) for message in messages if message.startswith("{")]


def test_access_log_names_stage_that_rejected_origin(app):
    records = _access_records(app, [{"headers": {"Origin": "https://evil.example"}}])

    assert records[-1]["status"] == 403
    assert records[-1]["answered_by"] == "cors"
    assert records[-1]["route"] == "/api/health"


def test_access_log_uses_admission_key_for_client_address(build_gateway):
    app = build_gateway("production")
    spoofed = {
        "environ_base": {"REMOTE_ADDR": "10.0.0.1"},
        "headers": {"X-Forwarded-For": "6.6.6.6"},
    }

    records = _access_records(app, [spoofed] * 61)

    rejected = records[-1]
    assert rejected["status"] == 429
    assert rejected["ip"] == "10.0.0.1"
    assert rejected["forwarded_for"] == "6.6.6.6"
    assert rejected["answered_by"] == "admission"
    assert rejected["admission"] == {"admitted": False, "remaining": 0}


def test_request_id_is_echoed(client):
    response = client.get("/api/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


def test_metrics_record_requests_and_short_circuits(client):
    client.get("/api/health")
    client.get("/api/health", headers={"Origin": "https://evil.example"})

    response = client.get("/metrics")

    assert response.status_code == 200
    payload = response.data.decode()
    assert "osint_gateway_http_requests_total" in payload
    assert 'endpoint="/api/health"' in payload
    assert 'osint_gateway_pipeline_short_circuits_total{stage="cors",status="403"} 1.0' in payload


def test_metrics_count_admission_rejections(build_gateway):
    app = build_gateway("production")
    client = app.test_client()
    for _ in range(61):
        client.get("/api/health", environ_base={"REMOTE_ADDR": "192.0.2.10"})

    payload = client.get("/metrics", environ_base={"REMOTE_ADDR": "192.0.2.11"}).data.decode()

    assert 'osint_gateway_pipeline_short_circuits_total{stage="admission",status="429"} 1.0' in payload
