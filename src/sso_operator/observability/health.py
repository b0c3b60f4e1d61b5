"""
Health check utilities for the SSO operator.

This module checks the components the operator cannot work without: the
Kubernetes API, the SSO custom resource definition and the operator
configuration secret holding the cookie-signing key.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import OPERATOR_SECRET_NAME, SSO_CRD_NAME
from ..settings import settings

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """Result of a health check operation."""

    name: str
    status: str  # "healthy", "unhealthy", "degraded", "unknown"
    message: str
    details: dict[str, Any] | None = None
    duration: float = 0.0
    timestamp: float = 0.0


class HealthChecker:
    """Performs health checks for the operator."""

    def __init__(self, k8s_client: client.ApiClient | None = None):
        self.k8s_client = k8s_client

    def _api_client(self) -> client.ApiClient:
        if not self.k8s_client:
            from ..utils.kubernetes import get_kubernetes_client

            self.k8s_client = get_kubernetes_client()
        return self.k8s_client

    async def check_all(self) -> dict[str, HealthCheckResult]:
        """
        Run all health checks.

        Returns:
            Dictionary of health check results
        """
        checks = {
            "kubernetes_api": self.check_kubernetes_api,
            "crds_installed": self.check_crd_installed,
            "operator_config": self.check_operator_config,
        }

        results = {}
        for name, check in checks.items():
            try:
                results[name] = await check()
            except Exception as e:
                results[name] = HealthCheckResult(
                    name=name,
                    status="unhealthy",
                    message=f"Health check failed: {e}",
                    timestamp=time.time(),
                )

        return results

    async def check_kubernetes_api(self) -> HealthCheckResult:
        """Check Kubernetes API connectivity."""
        start_time = time.time()

        try:
            core_api = client.CoreV1Api(self._api_client())
            core_api.list_namespace(limit=1, timeout_seconds=5)

            duration = time.time() - start_time
            return HealthCheckResult(
                name="kubernetes_api",
                status="healthy",
                message="Kubernetes API is accessible",
                details={"response_time_ms": round(duration * 1000, 2)},
                duration=duration,
                timestamp=time.time(),
            )

        except ApiException as e:
            duration = time.time() - start_time
            return HealthCheckResult(
                name="kubernetes_api",
                status="unhealthy",
                message=f"Kubernetes API error: {e.reason}",
                details={
                    "status_code": e.status,
                    "response_time_ms": round(duration * 1000, 2),
                },
                duration=duration,
                timestamp=time.time(),
            )

        except Exception as e:
            duration = time.time() - start_time
            return HealthCheckResult(
                name="kubernetes_api",
                status="unhealthy",
                message=f"Failed to connect to Kubernetes API: {e}",
                duration=duration,
                timestamp=time.time(),
            )

    async def check_crd_installed(self) -> HealthCheckResult:
        """Check that the SSO custom resource definition is installed."""
        start_time = time.time()

        try:
            api_extensions = client.ApiextensionsV1Api(self._api_client())
            api_extensions.read_custom_resource_definition(name=SSO_CRD_NAME)
            status, message = "healthy", f"CRD {SSO_CRD_NAME} is installed"
        except ApiException as e:
            if e.status != 404:
                status, message = "unhealthy", f"Failed to check CRD: {e.reason}"
            else:
                status, message = "unhealthy", f"Missing required CRD: {SSO_CRD_NAME}"
        except Exception as e:
            status, message = "unhealthy", f"Failed to check CRD: {e}"

        duration = time.time() - start_time
        return HealthCheckResult(
            name="crds_installed",
            status=status,
            message=message,
            details={"required": [SSO_CRD_NAME]},
            duration=duration,
            timestamp=time.time(),
        )

    async def check_operator_config(self) -> HealthCheckResult:
        """Check that the operator configuration secret exists."""
        start_time = time.time()

        try:
            core_api = client.CoreV1Api(self._api_client())
            core_api.read_namespaced_secret(
                name=OPERATOR_SECRET_NAME, namespace=settings.operator_namespace
            )
            status, message = "healthy", "Operator configuration secret is present"
        except ApiException as e:
            if e.status == 404:
                # Created on startup; absent only before the first start completes
                status = "degraded"
                message = f"Secret {OPERATOR_SECRET_NAME} not found"
            else:
                status, message = "unhealthy", f"Failed to read secret: {e.reason}"
        except Exception as e:
            status, message = "unhealthy", f"Failed to read secret: {e}"

        duration = time.time() - start_time
        return HealthCheckResult(
            name="operator_config",
            status=status,
            message=message,
            details={
                "secret": OPERATOR_SECRET_NAME,
                "namespace": settings.operator_namespace,
            },
            duration=duration,
            timestamp=time.time(),
        )

    def get_overall_health(self, results: dict[str, HealthCheckResult]) -> str:
        """Determine overall health status from individual check results."""
        if not results:
            return "unknown"

        statuses = [result.status for result in results.values()]

        if "unhealthy" in statuses:
            return "unhealthy"
        elif "degraded" in statuses or "unknown" in statuses:
            return "degraded"
        else:
            return "healthy"

    def to_dict(self, results: dict[str, HealthCheckResult]) -> dict[str, Any]:
        """
        Convert health check results to dictionary format.

        Args:
            results: Health check results

        Returns:
            Dictionary representation
        """
        return {
            "status": self.get_overall_health(results),
            "timestamp": time.time(),
            "checks": {
                name: {
                    "status": result.status,
                    "message": result.message,
                    "details": result.details,
                    "duration": result.duration,
                    "timestamp": result.timestamp,
                }
                for name, result in results.items()
            },
        }
