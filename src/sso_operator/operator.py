#!/usr/bin/env python3
"""
SSO Operator - Main entry point for the Kopf-based SSO operator.

This operator protects Kubernetes services with single sign-on:
- Registers an OIDC client in Dex for every SSO resource
- Deploys an oauth2_proxy in front of the upstream service
- Exposes the proxy through exposecontroller with a cert-manager certificate

Usage:
    python -m sso_operator.operator
    # Or with kopf directly:
    kopf run -m sso_operator.operator --all-namespaces

Environment Variables:
    DEX_GRPC_HOST_PORT: host:port of the Dex gRPC API (required)
    DEX_GRPC_CLIENT_CRT / DEX_GRPC_CLIENT_KEY / DEX_GRPC_CLIENT_CA: mTLS material
    WATCH_NAMESPACE: Comma-separated list of namespaces to watch
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

import functools
import logging
import sys

import kopf

# Import all handler modules to register them with kopf
from sso_operator.handlers import sso  # noqa: F401
from sso_operator.observability.health import HealthChecker
from sso_operator.observability.logging import setup_structured_logging
from sso_operator.observability.metrics import MetricsServer
from sso_operator.observability.tracing import setup_tracing, shutdown_tracing
from sso_operator.services import ExposureInvoker, ProxyProvisioner, SSOReconciler
from sso_operator.settings import settings as operator_settings
from sso_operator.utils.concurrency import ConcurrencyGuard
from sso_operator.utils.dex_client import DexClient
from sso_operator.utils.kubernetes import (
    KubernetesResources,
    SSOStore,
    get_kubernetes_client,
)
from sso_operator.utils.operator_config import ensure_operator_config
from sso_operator.utils.rbac import ensure_cluster_role_binding

# Global reference to metrics server for cleanup
_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
        log_health_probes=operator_settings.log_health_probes,
    )


def get_watched_namespaces() -> list[str] | None:
    """
    Get the list of namespaces to watch from operator_settings.

    Returns:
        List of namespace names, or None to watch all namespaces
    """
    return operator_settings.watched_namespaces


def build_reconciler(dex: DexClient, api_client, cookie_secret: str) -> SSOReconciler:
    """Wire the SSO reconciler to Dex and the cluster."""
    resources = KubernetesResources(api_client)
    return SSOReconciler(
        identity_provider=dex,
        proxy=ProxyProvisioner(resources),
        exposure=ExposureInvoker(
            resources,
            image=operator_settings.expose_image,
            image_tag=operator_settings.expose_image_tag,
        ),
        store=SSOStore(api_client),
        ensure_binding=functools.partial(
            ensure_cluster_role_binding,
            operator_settings.cluster_role_name,
            api_client=api_client,
        ),
        cookie_secret=cookie_secret,
        guard=ConcurrencyGuard(),
    )


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup configuration.

    This handler runs once when the operator starts up and:
    - Tunes kopf watching and execution settings
    - Opens the Dex gRPC channel (a missing or unreadable configuration is fatal)
    - Loads or generates the cookie-signing key
    - Starts the metrics and health endpoints and tracing
    """
    logging.info("Starting SSO Operator...")
    settings.watching.reconnect_backoff = 1.0
    settings.execution.max_workers = 20
    settings.persistence.finalizer = "sso.jenkins.io/finalizer"

    watched_namespaces = get_watched_namespaces()
    if watched_namespaces:
        logging.info(f"Watching namespaces: {', '.join(watched_namespaces)}")
    else:
        logging.info("Watching all namespaces (cluster-wide mode)")

    setup_tracing(
        enabled=operator_settings.tracing_enabled,
        endpoint=operator_settings.tracing_endpoint,
        sample_rate=operator_settings.tracing_sample_rate,
    )

    api_client = get_kubernetes_client()

    # ConfigurationError propagates and stops the operator
    dex = DexClient.from_settings(operator_settings)
    memo.dex_client = dex

    operator_config = ensure_operator_config(
        operator_settings.operator_namespace, api_client
    )
    memo.sso_reconciler = build_reconciler(dex, api_client, operator_config.cookie_key)

    # Start metrics server for Prometheus scraping and health checks
    try:
        metrics_server = MetricsServer(
            port=operator_settings.metrics_port, host=operator_settings.metrics_host
        )
        await metrics_server.start()
        logging.info(
            f"Metrics and health endpoints available on "
            f"{operator_settings.metrics_host}:{operator_settings.metrics_port}"
        )

        global _global_metrics_server
        _global_metrics_server = metrics_server

    except Exception as e:
        logging.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logging.warning("Continuing without metrics server")


@kopf.on.cleanup()
async def cleanup_handler(memo: kopf.Memo, **_) -> None:
    """
    Operator cleanup handler.

    Closes the Dex channel, stops the metrics server and flushes traces.
    """
    logging.info("Shutting down SSO Operator...")

    dex = getattr(memo, "dex_client", None)
    if dex is not None:
        await dex.close()
        logging.info("Dex gRPC channel closed")

    global _global_metrics_server
    if _global_metrics_server:
        try:
            await _global_metrics_server.stop()
            logging.info("Metrics server stopped")
        except Exception as e:
            logging.error(f"Error stopping metrics server: {e}")
        _global_metrics_server = None

    shutdown_tracing()


@kopf.on.probe(id="healthz")
async def health_check(**_) -> dict[str, str]:
    """
    Health check probe for Kubernetes liveness/readiness checks.

    Returns:
        Dictionary indicating operator health status
    """
    try:
        health_checker = HealthChecker()
        health_results = await health_checker.check_all()
        overall_health = health_checker.get_overall_health(health_results)

        timestamp = "unknown"
        k8s_result = health_results.get("kubernetes_api")
        if k8s_result is not None and k8s_result.timestamp is not None:
            timestamp = str(k8s_result.timestamp)

        return {
            "status": overall_health,
            "operator": "sso-operator",
            "timestamp": timestamp,
        }
    except Exception as e:
        logging.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "operator": "sso-operator", "error": str(e)}


@kopf.on.probe(id="ready")
async def readiness_check(**_) -> dict[str, str]:
    """
    Readiness check probe - indicates if operator is ready to handle requests.

    Returns:
        Dictionary indicating operator readiness
    """
    try:
        health_checker = HealthChecker()
        api_result = await health_checker.check_kubernetes_api()
        crd_result = await health_checker.check_crd_installed()

        if api_result.status == "healthy" and crd_result.status == "healthy":
            return {"status": "ready", "operator": "sso-operator"}
        return {"status": "not_ready", "operator": "sso-operator"}

    except Exception as e:
        logging.error(f"Readiness check failed: {e}")
        return {"status": "not_ready", "operator": "sso-operator", "error": str(e)}


def main() -> None:
    """
    Main entry point for the operator.

    This function:
    1. Configures logging
    2. Determines namespace scope
    3. Runs the kopf operator
    """
    configure_logging()

    watched_namespaces = get_watched_namespaces()
    liveness_endpoint = f"http://0.0.0.0:{operator_settings.liveness_port}/healthz"

    try:
        if watched_namespaces:
            kopf.run(namespaces=watched_namespaces, liveness_endpoint=liveness_endpoint)
        else:
            kopf.run(clusterwide=True, liveness_endpoint=liveness_endpoint)
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
