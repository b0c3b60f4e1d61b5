"""
Prometheus metrics for the SSO operator.

This module provides metrics collection for monitoring reconciliation
pipelines, waits on cluster state and calls to the Dex identity provider.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
    json_response,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

# Metrics definitions
RECONCILIATION_TOTAL = Counter(
    "sso_operator_reconciliation_total",
    "Total number of reconciliation attempts",
    ["resource_type", "namespace", "name", "result"],
    registry=None,  # Will be set during initialization
)

RECONCILIATION_DURATION = Histogram(
    "sso_operator_reconciliation_duration_seconds",
    "Time spent on reconciliation operations",
    ["resource_type", "namespace", "operation"],
    buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=None,
)

RECONCILIATION_ERRORS = Counter(
    "sso_operator_reconciliation_errors_total",
    "Total number of reconciliation errors",
    ["resource_type", "namespace", "error_type", "retryable"],
    registry=None,
)

RECONCILIATION_SKIPPED_TOTAL = Counter(
    "sso_operator_reconciliation_skipped_total",
    "Total number of events dropped because a pass for the same resource was in flight",
    ["resource_type", "namespace", "name"],
    registry=None,
)

ACTIVE_RESOURCES = Gauge(
    "sso_operator_active_resources",
    "Number of SSO resources per phase",
    ["resource_type", "namespace", "phase"],
    registry=None,
)

COMPENSATIONS_TOTAL = Counter(
    "sso_operator_compensations_total",
    "Total number of OIDC clients deleted after a failed provisioning",
    ["namespace", "step", "result"],
    registry=None,
)

WAIT_DURATION = Histogram(
    "sso_operator_wait_duration_seconds",
    "Time spent polling cluster state until a condition held",
    ["condition", "result"],
    buckets=[0.1, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
    registry=None,
)

WAIT_TIMEOUTS_TOTAL = Counter(
    "sso_operator_wait_timeouts_total",
    "Total number of waits that ran out of time",
    ["condition"],
    registry=None,
)

IDENTITY_PROVIDER_CALLS_TOTAL = Counter(
    "sso_operator_identity_provider_calls_total",
    "Total number of calls to the Dex gRPC API",
    ["method", "result"],
    registry=None,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()

        for metric in [
            RECONCILIATION_TOTAL,
            RECONCILIATION_DURATION,
            RECONCILIATION_ERRORS,
            RECONCILIATION_SKIPPED_TOTAL,
            ACTIVE_RESOURCES,
            COMPENSATIONS_TOTAL,
            WAIT_DURATION,
            WAIT_TIMEOUTS_TOTAL,
            IDENTITY_PROVIDER_CALLS_TOTAL,
        ]:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the SSO operator."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @asynccontextmanager
    async def track_reconciliation(
        self,
        resource_type: str,
        namespace: str,
        name: str,
        operation: str = "reconcile",
    ):
        """
        Context manager to track reconciliation operations.

        Args:
            resource_type: Type of resource being reconciled
            namespace: Namespace of the resource
            name: Name of the resource
            operation: Type of operation being performed
        """
        start_time = time.time()
        result = "unknown"

        try:
            yield
            result = "success"
        except Exception as e:
            result = "error"

            error_type = type(e).__name__
            retryable = "true" if getattr(e, "retryable", False) else "false"

            RECONCILIATION_ERRORS.labels(
                resource_type=resource_type,
                namespace=namespace,
                error_type=error_type,
                retryable=retryable,
            ).inc()

            raise
        finally:
            duration = time.time() - start_time

            RECONCILIATION_TOTAL.labels(
                resource_type=resource_type,
                namespace=namespace,
                name=name,
                result=result,
            ).inc()

            RECONCILIATION_DURATION.labels(
                resource_type=resource_type, namespace=namespace, operation=operation
            ).observe(duration)

    def update_resource_status(
        self, resource_type: str, namespace: str, phase: str, count: int = 1
    ):
        """Update the count of resources in a specific phase."""
        ACTIVE_RESOURCES.labels(
            resource_type=resource_type, namespace=namespace, phase=phase
        ).set(count)

    def record_reconciliation_skip(
        self, resource_type: str, namespace: str, name: str
    ) -> None:
        """
        Record an event dropped by the concurrency guard.

        Args:
            resource_type: Type of resource (e.g., 'SSO')
            namespace: Namespace of the resource
            name: Name of the resource
        """
        RECONCILIATION_SKIPPED_TOTAL.labels(
            resource_type=resource_type,
            namespace=namespace,
            name=name,
        ).inc()

    def record_compensation(self, namespace: str, step: str, success: bool) -> None:
        """Record the outcome of deleting an OIDC client after a failed step."""
        COMPENSATIONS_TOTAL.labels(
            namespace=namespace,
            step=step,
            result="success" if success else "failure",
        ).inc()

    def record_wait(self, condition: str, result: str, duration: float) -> None:
        """
        Record a finished wait on cluster state.

        Args:
            condition: Description of the awaited condition
            result: ready, fatal or timeout
            duration: Seconds spent waiting
        """
        WAIT_DURATION.labels(condition=condition, result=result).observe(duration)
        if result == "timeout":
            WAIT_TIMEOUTS_TOTAL.labels(condition=condition).inc()

    def record_identity_provider_call(self, method: str, success: bool) -> None:
        """Record a call to the Dex gRPC API."""
        IDENTITY_PROVIDER_CALLS_TOTAL.labels(
            method=method, result="success" if success else "failure"
        ).inc()


class MetricsServer:
    """
    aiohttp server publishing the metrics registry and health results.

    Routes: ``/metrics`` (Prometheus text format), ``/health`` (all checks,
    503 when unhealthy), ``/ready`` (API and CRD checks) and ``/healthz``
    (always ``ok``).
    """

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self.app = Application()
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/health", self._health_handler)
        self.app.router.add_get("/ready", self._ready_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        try:
            body = generate_latest(get_metrics_registry())
        except Exception as e:
            logger.error(f"Failed to render metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}", status=500
            )
        return Response(body=body, content_type=CONTENT_TYPE_LATEST)

    async def _health_handler(self, request: Request) -> Response:
        from .health import HealthChecker

        try:
            checker = HealthChecker()
            report = checker.to_dict(await checker.check_all())
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return json_response(
                {
                    "status": "unhealthy",
                    "error": type(e).__name__,
                    "timestamp": time.time(),
                },
                status=500,
            )
        healthy = report["status"] in ("healthy", "degraded")
        return json_response(report, status=200 if healthy else 503)

    async def _ready_handler(self, request: Request) -> Response:
        from .health import HealthChecker

        try:
            checker = HealthChecker()
            checks: dict[str, Any] = {
                "kubernetes_api": await checker.check_kubernetes_api(),
                "crds_installed": await checker.check_crd_installed(),
            }
        except Exception as e:
            logger.error(f"Readiness check failed: {e}")
            return json_response(
                {
                    "status": "not_ready",
                    "error": type(e).__name__,
                    "timestamp": time.time(),
                },
                status=503,
            )
        ready = all(result.status == "healthy" for result in checks.values())
        return json_response(
            {
                "status": "ready" if ready else "not_ready",
                "timestamp": time.time(),
                "checks": {name: result.status for name, result in checks.items()},
            },
            status=200 if ready else 503,
        )

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        self.runner = AppRunner(self.app)
        await self.runner.setup()
        self.site = TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        logger.info(f"Metrics server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self.site:
            await self.site.stop()
            self.site = None
        if self.runner:
            await self.runner.cleanup()
            self.runner = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


metrics_collector = MetricsCollector()
