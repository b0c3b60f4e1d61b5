"""
Error handling module for the SSO operator.

This module provides a comprehensive error hierarchy that integrates with kopf
and provides clear categorization for different types of failures.
"""

from .operator_errors import (
    CleanupError,
    ClientAlreadyExistsError,
    ClientNotFoundError,
    ConfigurationError,
    ExternalServiceError,
    IdentityProviderError,
    KubernetesAPIError,
    OperatorError,
    PermanentError,
    ProvisioningError,
    TemporaryError,
    ValidationError,
    WaitError,
    WaitTimeoutError,
)

__all__ = [
    "OperatorError",
    "ValidationError",
    "TemporaryError",
    "PermanentError",
    "ConfigurationError",
    "ExternalServiceError",
    "KubernetesAPIError",
    "IdentityProviderError",
    "ClientAlreadyExistsError",
    "ClientNotFoundError",
    "WaitError",
    "WaitTimeoutError",
    "ProvisioningError",
    "CleanupError",
]
