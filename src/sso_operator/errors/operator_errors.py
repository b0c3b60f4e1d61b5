"""
Operator error hierarchy with categorization and retry logic.

This module defines the error types used throughout the SSO operator,
providing clear categorization and integration with kopf's retry mechanisms.
"""

import kopf


class OperatorError(Exception):
    """
    Base error class for all operator-related exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int = 30,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (validation, api, configuration, external)
            retryable: Whether kopf should retry this operation
            delay: Suggested retry delay in seconds
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.delay = delay
        self.user_action = user_action
        self.cause = cause

    def as_kopf_error(self):
        """Convert to appropriate kopf exception type."""
        if self.retryable:
            return kopf.TemporaryError(str(self), delay=self.delay)
        else:
            return kopf.PermanentError(str(self))

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ValidationError(OperatorError):
    """Error in resource specification validation."""

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        action = user_action or "Check resource specification and fix validation errors"
        if field:
            message = f"Validation error in field '{field}': {message}"
        super().__init__(
            message=message, category="validation", retryable=False, user_action=action
        )


class TemporaryError(OperatorError):
    """Temporary error that should be retried."""

    def __init__(self, message: str, delay: int = 30, user_action: str | None = None):
        super().__init__(
            message=message,
            category="temporary",
            retryable=True,
            delay=delay,
            user_action=user_action
            or "Wait for automatic retry or check system status",
        )


class PermanentError(OperatorError):
    """Permanent error that should not be retried."""

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(
            message=message,
            category="permanent",
            retryable=False,
            user_action=user_action or "Manual intervention required to resolve",
        )


class ConfigurationError(OperatorError):
    """Error in operator or resource configuration."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message=message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Review and correct configuration",
        )


class ExternalServiceError(OperatorError):
    """Error communicating with external services."""

    def __init__(
        self,
        service: str,
        message: str,
        retryable: bool = True,
        delay: int = 60,
        user_action: str | None = None,
    ):
        action = user_action or f"Check {service} connectivity and credentials"
        super().__init__(
            message=f"{service} error: {message}",
            category="external",
            retryable=retryable,
            delay=delay,
            user_action=action,
        )


class KubernetesAPIError(ExternalServiceError):
    """Error communicating with Kubernetes API."""

    def __init__(self, message: str, reason: str | None = None, retryable: bool = True):
        if reason:
            message = f"{message} (reason: {reason})"

        # Some K8s errors are not retryable
        non_retryable_reasons = {"Forbidden", "Unauthorized", "Invalid"}
        if reason in non_retryable_reasons:
            retryable = False

        super().__init__(
            service="Kubernetes API",
            message=message,
            retryable=retryable,
            user_action="Check RBAC permissions and cluster connectivity",
        )


class IdentityProviderError(ExternalServiceError):
    """Error communicating with the Dex gRPC API."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        retryable: bool = True,
        user_action: str | None = None,
    ):
        if code:
            message = f"{message} (code: {code})"
        self.code = code
        super().__init__(
            service="Dex gRPC API",
            message=message,
            retryable=retryable,
            delay=30,
            user_action=user_action
            or "Check Dex availability and the operator's gRPC client certificates",
        )


class ClientAlreadyExistsError(IdentityProviderError):
    """Dex reported that the OIDC client being created already exists."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(
            message=f"OIDC client '{client_id}' already exists",
            code="ALREADY_EXISTS",
            user_action="Remove the conflicting client from Dex or wait for a retry",
        )


class ClientNotFoundError(IdentityProviderError):
    """Dex does not know the OIDC client targeted by an update or delete."""

    def __init__(self, client_id: str, operation: str):
        self.client_id = client_id
        self.operation = operation
        super().__init__(
            message=f"{operation} did not find the OIDC client with id '{client_id}'",
            code="NOT_FOUND",
            retryable=False,
            user_action="Check that the client still exists in Dex",
        )


class WaitError(OperatorError):
    """A polled condition reported a terminal failure."""

    def __init__(self, description: str, cause: Exception):
        super().__init__(
            message=f"error waiting for {description}: {cause}",
            category="wait",
            retryable=True,
            delay=30,
            cause=cause,
        )
        self.description = description


class WaitTimeoutError(WaitError):
    """A polled condition did not become ready within its timeout."""

    def __init__(self, description: str, timeout: float, last_reason: str | None = None):
        reason = f"timed out after {timeout:g}s"
        if last_reason:
            reason = f"{reason} ({last_reason})"
        super().__init__(description, TimeoutError(reason))
        self.timeout = timeout
        self.last_reason = last_reason


class ProvisioningError(OperatorError):
    """A step of the provisioning pipeline failed; the OIDC client was compensated."""

    def __init__(self, step: str, name: str, namespace: str, cause: Exception):
        super().__init__(
            message=f"provisioning SSO {namespace}/{name} failed at step '{step}': {cause}",
            category="reconciliation",
            retryable=getattr(cause, "retryable", True),
            delay=getattr(cause, "delay", 60),
            user_action="Inspect operator logs and the SSO specification",
            cause=cause,
        )
        self.step = step


class CleanupError(OperatorError):
    """A step of the cleanup pipeline failed."""

    def __init__(self, step: str, name: str, namespace: str, cause: Exception):
        super().__init__(
            message=f"cleaning up SSO {namespace}/{name} failed at step '{step}': {cause}",
            category="cleanup",
            retryable=getattr(cause, "retryable", True),
            delay=getattr(cause, "delay", 30),
            cause=cause,
        )
        self.step = step
