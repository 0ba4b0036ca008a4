"""
FastAPI app builder for FleetChat services.

Every service app comes with CORS, a /health probe and a Prometheus /metrics
endpoint backed by a per-app registry, so several apps can live in one test
process without clashing collectors.
"""

import time
from typing import Callable, List, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from libs.config import Config


class ServiceMetrics:
    """Request metrics for one service plus any counters the service adds."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.registry = CollectorRegistry()

        self.requests = Counter(
            "fleetchat_requests_total",
            "HTTP requests handled, by route template",
            ["service", "method", "path", "http_status"],
            registry=self.registry,
        )
        self.latency = Histogram(
            "fleetchat_request_duration_seconds",
            "HTTP request latency in seconds",
            ["service", "path"],
            registry=self.registry,
        )

    def counter(self, name: str, description: str, labels: Optional[List[str]] = None) -> Counter:
        """Register a service-specific counter, e.g. translations by event type."""
        return Counter(name, description, labels or [], registry=self.registry)

    def observe(self, method: str, path: str, status_code: int, duration: float) -> None:
        self.requests.labels(
            service=self.service_name,
            method=method,
            path=path,
            http_status=status_code,
        ).inc()
        self.latency.labels(service=self.service_name, path=path).observe(duration)

    def render(self) -> bytes:
        return generate_latest(self.registry)


def _route_path(request: Request) -> str:
    # Label by route template ("/v1/templates"), never the raw URL
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def create_service_app(
    service_name: str,
    title: str,
    description: str,
    version: str = "1.0.0",
    lifespan: Optional[Callable] = None,
) -> FastAPI:
    """
    Create a FastAPI app with the shared FleetChat plumbing.

    Args:
        service_name: Name reported by /health and used as the metrics label
        title: OpenAPI title
        description: OpenAPI description
        version: OpenAPI version
        lifespan: Optional lifespan context manager for startup/shutdown work

    Returns:
        App ready for route registration; its ServiceMetrics is app.state.metrics
    """
    metrics = ServiceMetrics(service_name)

    app = FastAPI(title=title, description=description, version=version, lifespan=lifespan)
    app.state.metrics = metrics
    app.state.service_name = service_name

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def record_request(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        metrics.observe(
            method=request.method,
            path=_route_path(request),
            status_code=response.status_code,
            duration=time.time() - start,
        )
        return response

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": service_name}

    @app.get("/metrics")
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return Response(content=metrics.render(), media_type=CONTENT_TYPE_LATEST)

    return app
