"""
Structured logging utilities for the SSO operator.

This module provides correlation ID tracking and structured log formatting
so that every step of a provisioning or cleanup pipeline can be traced back
to the event that triggered it.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across async operations
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Paths that should be filtered from access logs (health probes)
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/health", "/ready", "/metrics"})

# Extra fields promoted to top-level keys of the JSON log line
STRUCTURED_FIELDS = (
    "resource_type",
    "resource_name",
    "namespace",
    "operation",
    "step",
    "duration",
    "error_type",
    "client_id",
    "app_name",
    "job_name",
    "service_account",
)


class HealthProbeFilter(logging.Filter):
    """
    Logging filter that suppresses health probe and metrics endpoint logs.

    These endpoints are hit frequently by Kubernetes probes and monitoring
    systems, generating excessive noise in logs during debugging.
    """

    def __init__(self, suppress_health_logs: bool = True):
        super().__init__()
        self.suppress_health_logs = suppress_health_logs

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.suppress_health_logs:
            return True

        message = record.getMessage()
        return all(path not in message for path in HEALTH_PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        current_correlation_id = correlation_id.get()
        if not current_correlation_id:
            current_correlation_id = generate_correlation_id()
            correlation_id.set(current_correlation_id)

        record.correlation_id = current_correlation_id
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as structured JSON for better parsing and analysis
    in production monitoring systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        Unique correlation ID string
    """
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    """Set the correlation ID for the current context."""
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    """Get the current correlation ID, or an empty string if none is set."""
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_probes: bool = False,
) -> None:
    """
    Set up structured logging for the operator.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
        log_health_probes: Whether to log health probe requests (default: False)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter: logging.Formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    if not log_health_probes:
        handler.addFilter(HealthProbeFilter(suppress_health_logs=True))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Set specific logger levels for third-party libraries
    logging.getLogger("kopf").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)

    # Suppress aiohttp access logs which spam with probe requests
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.server").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.web").setLevel(logging.WARNING)


class OperatorLogger:
    """
    Logger for operator operations with structured logging support.

    Provides convenient methods for logging the lifecycle of an SSO
    reconciliation and each step of its pipelines.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_reconciliation_start(
        self,
        resource_type: str,
        resource_name: str,
        namespace: str,
        operation: str = "reconcile",
        correlation_id: str | None = None,
    ) -> str:
        """
        Log the start of a reconciliation operation.

        Args:
            resource_type: Type of resource being reconciled
            resource_name: Name of the resource
            namespace: Namespace of the resource
            operation: Pipeline being run (provision, cleanup, ...)
            correlation_id: Optional correlation ID (will generate if not provided)

        Returns:
            The correlation ID used for this operation
        """
        if correlation_id is None:
            correlation_id = generate_correlation_id()

        set_correlation_id(correlation_id)

        self.logger.info(
            f"Starting {operation} for {resource_type} {namespace}/{resource_name}",
            extra={
                "resource_type": resource_type,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": f"{operation}_start",
            },
        )

        return correlation_id

    def log_reconciliation_success(
        self,
        resource_type: str,
        resource_name: str,
        namespace: str,
        duration: float,
        operation: str = "reconcile",
    ) -> None:
        """Log successful reconciliation completion."""
        self.logger.info(
            f"{operation.capitalize()} completed successfully for "
            f"{resource_type} {namespace}/{resource_name}",
            extra={
                "resource_type": resource_type,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": f"{operation}_success",
                "duration": duration,
            },
        )

    def log_reconciliation_error(
        self,
        resource_type: str,
        resource_name: str,
        namespace: str,
        error: Exception,
        duration: float,
        operation: str = "reconcile",
        step: str | None = None,
    ) -> None:
        """
        Log reconciliation error.

        Args:
            resource_type: Type of resource
            resource_name: Name of the resource
            namespace: Namespace of the resource
            error: The error that occurred
            duration: Reconciliation duration in seconds
            operation: Pipeline that failed
            step: Pipeline step that failed, when known
        """
        extra = {
            "resource_type": resource_type,
            "resource_name": resource_name,
            "namespace": namespace,
            "operation": f"{operation}_error",
            "error_type": type(error).__name__,
            "duration": duration,
        }
        if step:
            extra["step"] = step

        self.logger.error(
            f"{operation.capitalize()} failed for {resource_type} "
            f"{namespace}/{resource_name}: {error}",
            extra=extra,
            exc_info=True,
        )

    def log_pipeline_step(
        self, step: str, resource_name: str, namespace: str, **details
    ) -> None:
        """Log entry into a pipeline step."""
        self.logger.info(
            f"Step '{step}' for SSO {namespace}/{resource_name}",
            extra={
                "resource_type": "SSO",
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": "pipeline_step",
                "step": step,
                **details,
            },
        )

    def log_compensation(
        self,
        client_id: str,
        resource_name: str,
        namespace: str,
        error: Exception | None = None,
    ) -> None:
        """
        Log the outcome of deleting an OIDC client after a failed provisioning.

        Args:
            client_id: The OIDC client that was (or should have been) deleted
            resource_name: Name of the SSO resource
            namespace: Namespace of the SSO resource
            error: Error raised by the compensation itself, if it failed
        """
        extra = {
            "resource_type": "SSO",
            "resource_name": resource_name,
            "namespace": namespace,
            "operation": "compensation",
            "client_id": client_id,
        }
        if error is None:
            self.logger.warning(
                f"Deleted OIDC client {client_id} after failed provisioning of "
                f"{namespace}/{resource_name}",
                extra=extra,
            )
        else:
            extra["error_type"] = type(error).__name__
            self.logger.error(
                f"Failed to delete OIDC client {client_id} after failed provisioning "
                f"of {namespace}/{resource_name}: {error}",
                extra=extra,
            )

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with extra data."""
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with extra data."""
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with extra data."""
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message with extra data."""
        self.logger.error(message, exc_info=exc_info, extra=kwargs)
