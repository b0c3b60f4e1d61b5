"""
Operator configuration persisted in a secret of the operator namespace.

The cookie-signing key shared by all oauth2_proxy deployments is generated
once, stored in the ``sso-operator-secret`` secret and re-read on every start,
so proxies keep accepting existing session cookies across operator restarts.
"""

import base64
import logging
import secrets
import string
from dataclasses import dataclass

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import (
    COOKIE_KEY_FIELD,
    COOKIE_SECRET_LENGTH,
    OPERATOR_LABEL_KEY,
    OPERATOR_LABEL_VALUE,
    OPERATOR_SECRET_NAME,
)
from ..errors import ConfigurationError, KubernetesAPIError

logger = logging.getLogger(__name__)

_COOKIE_KEY_ALPHABET = string.digits + string.ascii_letters


@dataclass(frozen=True)
class OperatorConfig:
    """Configuration shared by every reconciliation."""

    cookie_key: str


def generate_cookie_key(length: int = COOKIE_SECRET_LENGTH) -> str:
    """Generate a random cookie-signing key from ``[0-9A-Za-z]``."""
    return "".join(secrets.choice(_COOKIE_KEY_ALPHABET) for _ in range(length))


def read_operator_config(
    core_api: client.CoreV1Api, namespace: str
) -> OperatorConfig | None:
    """
    Read the operator configuration secret.

    Returns:
        The stored configuration, or None if the secret does not exist

    Raises:
        ConfigurationError: The secret exists but holds no cookie key
    """
    try:
        secret = core_api.read_namespaced_secret(
            name=OPERATOR_SECRET_NAME, namespace=namespace
        )
    except ApiException as e:
        if e.status == 404:
            return None
        raise KubernetesAPIError(
            f"reading secret {namespace}/{OPERATOR_SECRET_NAME} failed",
            reason=e.reason,
        ) from e

    data = secret.data or {}
    if COOKIE_KEY_FIELD not in data:
        raise ConfigurationError(
            f"key '{COOKIE_KEY_FIELD}' not found in secret "
            f"{namespace}/{OPERATOR_SECRET_NAME}",
            user_action=f"Delete the secret {OPERATOR_SECRET_NAME} so the operator regenerates it",
        )
    return OperatorConfig(
        cookie_key=base64.b64decode(data[COOKIE_KEY_FIELD]).decode("utf-8")
    )


def store_operator_config(
    core_api: client.CoreV1Api, namespace: str, config: OperatorConfig
) -> None:
    """Create the operator configuration secret."""
    secret = client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=client.V1ObjectMeta(
            name=OPERATOR_SECRET_NAME,
            namespace=namespace,
            labels={OPERATOR_LABEL_KEY: OPERATOR_LABEL_VALUE},
        ),
        string_data={COOKIE_KEY_FIELD: config.cookie_key},
        type="Opaque",
    )
    core_api.create_namespaced_secret(namespace=namespace, body=secret)


def ensure_operator_config(
    namespace: str, api_client: client.ApiClient | None = None
) -> OperatorConfig:
    """
    Load the operator configuration, generating and storing it on first start.

    When another operator instance creates the secret first, its value wins.
    """
    core_api = client.CoreV1Api(api_client)

    existing = read_operator_config(core_api, namespace)
    if existing is not None:
        logger.info(f"Loaded operator configuration from {namespace}/{OPERATOR_SECRET_NAME}")
        return existing

    generated = OperatorConfig(cookie_key=generate_cookie_key())
    try:
        store_operator_config(core_api, namespace, generated)
    except ApiException as e:
        if e.status != 409:
            raise KubernetesAPIError(
                f"creating secret {namespace}/{OPERATOR_SECRET_NAME} failed",
                reason=e.reason,
            ) from e
        logger.info("Operator configuration secret was created concurrently, re-reading")
        stored = read_operator_config(core_api, namespace)
        if stored is None:
            raise ConfigurationError(
                f"secret {namespace}/{OPERATOR_SECRET_NAME} vanished after a conflict",
                retryable=True,
            ) from e
        return stored

    logger.info(f"Stored new operator configuration in {namespace}/{OPERATOR_SECRET_NAME}")
    return generated
