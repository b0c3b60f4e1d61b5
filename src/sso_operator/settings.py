"""Centralized operator settings using pydantic-settings.

This module provides a single source of truth for all operator configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Operator configuration loaded from environment variables.

    All settings have sensible defaults except the Dex connection, which must
    be provided for the operator to start.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Operator identification
    operator_namespace: str = Field(
        default="sso-operator",
        description="Namespace where the operator is deployed",
        validation_alias="OPERATOR_NAMESPACE",
    )
    operator_name: str = Field(
        default="sso-operator",
        description="Name of the operator deployment",
        validation_alias="OPERATOR_NAME",
    )

    # Namespace watching
    watch_namespace: str = Field(
        default="",
        validation_alias="WATCH_NAMESPACE",
        description="Comma-separated list of namespaces to watch (empty = all namespaces)",
    )

    # Dex gRPC connection
    dex_grpc_host_port: str = Field(
        default="",
        validation_alias="DEX_GRPC_HOST_PORT",
        description="Host and port of the Dex gRPC server",
    )
    dex_grpc_client_crt: str = Field(
        default="/etc/dex/tls/tls.crt",
        validation_alias="DEX_GRPC_CLIENT_CRT",
        description="Client certificate used to authenticate to Dex",
    )
    dex_grpc_client_key: str = Field(
        default="/etc/dex/tls/tls.key",
        validation_alias="DEX_GRPC_CLIENT_KEY",
        description="Private key of the Dex client certificate",
    )
    dex_grpc_client_ca: str = Field(
        default="/etc/dex/tls/ca.crt",
        validation_alias="DEX_GRPC_CLIENT_CA",
        description="CA certificate used to verify the Dex server",
    )
    dex_grpc_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="DEX_GRPC_TIMEOUT_SECONDS",
        description="Deadline for a single Dex gRPC call",
    )

    # RBAC
    cluster_role_name: str = Field(
        default="sso-operator",
        validation_alias="CLUSTER_ROLE_NAME",
        description="Cluster role holding the permissions the exposecontroller jobs need",
    )

    # Exposecontroller
    expose_image: str = Field(
        default="jenkinsxio/exposecontroller",
        validation_alias="EXPOSE_IMAGE",
        description="Image used by the expose and cleanup jobs",
    )
    expose_image_tag: str = Field(
        default="latest",
        validation_alias="EXPOSE_IMAGE_TAG",
        description="Tag of the exposecontroller image",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )
    log_health_probes: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_PROBES",
        description="Log requests to health probe endpoints",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )
    liveness_port: int = Field(
        default=8080,
        validation_alias="LIVENESS_PORT",
        description="Port of the kopf liveness endpoint",
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=False,
        validation_alias="TRACING_ENABLED",
        description="Enable OpenTelemetry tracing",
    )
    tracing_endpoint: str = Field(
        default="http://localhost:4317",
        validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT",
        description="OTLP collector endpoint (gRPC)",
    )
    tracing_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        validation_alias="TRACING_SAMPLE_RATE",
        description="Fraction of root spans that are sampled",
    )

    @property
    def watched_namespaces(self) -> list[str] | None:
        """Parse watched namespaces from comma-separated string.

        Returns:
            List of namespace names, or None to watch all namespaces
        """
        if self.watch_namespace:
            return [ns.strip() for ns in self.watch_namespace.split(",") if ns.strip()]
        return None


# Global settings instance - initialized once at module import
settings = Settings()
