"""
FastAPI service factory.

Every Safe Route service is built here so that CORS, logging, the root and
health endpoints and Prometheus request metrics look the same everywhere.
"""

import logging
import time
from typing import List, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging once per process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


class ServiceMetrics:
    """Prometheus registry plus the request metrics shared by all services."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.registry = CollectorRegistry()

        self.request_count = Counter(
            "service_requests_total",
            "Total HTTP requests handled by the service",
            ["service", "method", "path", "http_status"],
            registry=self.registry,
        )

        self.request_latency = Histogram(
            "service_request_duration_seconds",
            "Request latency in seconds",
            ["service", "path"],
            registry=self.registry,
        )

        self.business_metrics: List[Counter] = []

    def record_request(self, method: str, path: str, status_code: int, duration: float):
        self.request_count.labels(
            service=self.service_name,
            method=method,
            path=path,
            http_status=status_code,
        ).inc()
        self.request_latency.labels(service=self.service_name, path=path).observe(duration)

    def render(self) -> bytes:
        return generate_latest(self.registry)


class ServiceAppConfig:
    """Settings for one service application."""

    def __init__(
        self,
        title: str,
        description: str,
        service_name: str,
        version: str = "1.0.0",
        allow_origins: Optional[List[str]] = None,
        enable_metrics: bool = True,
    ):
        self.title = title
        self.description = description
        self.service_name = service_name
        self.version = version
        self.allow_origins = allow_origins or ["*"]
        self.enable_metrics = enable_metrics


class FastAPIServiceFactory:
    """
    Builds a FastAPI app with the shared middleware and endpoints.

    Routes specific to a service are registered on the returned app by the
    service's own ``main`` module.
    """

    def __init__(self, config: ServiceAppConfig):
        self.config = config
        self.metrics = ServiceMetrics(config.service_name) if config.enable_metrics else None

    def create_app(self) -> FastAPI:
        configure_logging()

        app = FastAPI(
            title=self.config.title,
            description=self.config.description,
            version=self.config.version,
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._add_status_endpoints(app)
        if self.metrics:
            self._add_metrics(app)

        app.state.metrics = self.metrics
        app.state.service_name = self.config.service_name
        return app

    def _add_status_endpoints(self, app: FastAPI):
        service_name = self.config.service_name

        @app.get("/")
        async def root():
            return {"service": service_name, "status": "running"}

        @app.get("/health")
        async def health_check():
            return {"status": "ok", "service": service_name}

    def _add_metrics(self, app: FastAPI):
        metrics = self.metrics

        @app.middleware("http")
        async def prometheus_middleware(request: Request, call_next):
            start = time.time()
            response = await call_next(request)
            metrics.record_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration=time.time() - start,
            )
            return response

        @app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=metrics.render(), media_type=CONTENT_TYPE_LATEST)

    def add_business_metric(
        self, name: str, description: str, labels: Optional[List[str]] = None
    ) -> Counter:
        """
        Register a service-specific counter on the service registry.

        Args:
            name: Metric name
            description: Metric description
            labels: Optional list of label names

        Returns:
            Counter object that can be used to increment metrics
        """
        if not self.metrics:
            raise ValueError("Metrics not enabled for this service")

        counter = Counter(name, description, labels or [], registry=self.metrics.registry)
        self.metrics.business_metrics.append(counter)
        return counter
