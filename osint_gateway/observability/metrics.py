"""Prometheus metrics helpers."""

from __future__ import annotations
from flask import Flask, Response
from prometheus_client import (  # type: ignore[import-not-found]
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class MetricsRegistry:
    """Container around the Prometheus collectors used by the gateway."""

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self.http_requests_total = Counter(
            "osint_gateway_http_requests_total",
            "Total number of HTTP requests processed by the gateway.",
            ("method", "endpoint", "status"),
            registry=self.registry,
        )
        self.http_request_latency = Histogram(
            "osint_gateway_http_request_duration_seconds",
            "Latency of HTTP requests processed by the gateway.",
            ("method", "endpoint"),
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self.registry,
        )
        self.pipeline_short_circuits = Counter(
            "osint_gateway_pipeline_short_circuits_total",
            "Requests answered by a middleware stage before reaching a route.",
            ("stage", "status"),
            registry=self.registry,
        )

    def observe_http_request(
        self,
        *,
        method: str,
        endpoint: str,
        status: int,
        duration_seconds: float | None,
    ) -> None:
        self.http_requests_total.labels(method=method, endpoint=endpoint, status=str(status)).inc()
        if duration_seconds is not None:
            self.http_request_latency.labels(method=method, endpoint=endpoint).observe(
                max(duration_seconds, 0.0)
            )

    def record_short_circuit(self, *, stage: str, status: int) -> None:
        self.pipeline_short_circuits.labels(stage=stage, status=str(status)).inc()


def configure_metrics(app: Flask) -> MetricsRegistry:
    """Initialise Prometheus metrics and expose the `/metrics` endpoint."""

    if "metrics" in app.extensions:
        return app.extensions["metrics"]

    metrics = MetricsRegistry()
    app.extensions["metrics"] = metrics

    @app.route("/metrics")
    def metrics_endpoint() -> Response:
        return Response(generate_latest(metrics.registry), mimetype=CONTENT_TYPE_LATEST)

    return metrics
