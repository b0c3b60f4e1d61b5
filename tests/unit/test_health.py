"""Unit tests for the operator health checks."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException

from sso_operator.observability.health import HealthChecker, HealthCheckResult


def _result(status: str) -> HealthCheckResult:
    return HealthCheckResult(name="check", status=status, message="")


class TestOverallHealth:
    def test_no_results_is_unknown(self):
        assert HealthChecker(MagicMock()).get_overall_health({}) == "unknown"

    def test_unhealthy_wins(self):
        checker = HealthChecker(MagicMock())
        results = {"a": _result("healthy"), "b": _result("degraded"), "c": _result("unhealthy")}
        assert checker.get_overall_health(results) == "unhealthy"

    def test_degraded(self):
        checker = HealthChecker(MagicMock())
        results = {"a": _result("healthy"), "b": _result("degraded")}
        assert checker.get_overall_health(results) == "degraded"


class TestChecks:
    @pytest.mark.asyncio
    async def test_missing_crd_is_unhealthy(self):
        with patch("sso_operator.observability.health.client.ApiextensionsV1Api") as api:
            api.return_value.read_custom_resource_definition.side_effect = ApiException(
                status=404
            )
            result = await HealthChecker(MagicMock()).check_crd_installed()

        assert result.status == "unhealthy"
        assert "ssos.jenkins.io" in result.message

    @pytest.mark.asyncio
    async def test_missing_operator_secret_is_degraded(self):
        with patch("sso_operator.observability.health.client.CoreV1Api") as api:
            api.return_value.read_namespaced_secret.side_effect = ApiException(status=404)
            result = await HealthChecker(MagicMock()).check_operator_config()

        assert result.status == "degraded"

    @pytest.mark.asyncio
    async def test_kubernetes_api_reachable(self):
        with patch("sso_operator.observability.health.client.CoreV1Api"):
            result = await HealthChecker(MagicMock()).check_kubernetes_api()

        assert result.status == "healthy"
        assert "response_time_ms" in result.details
