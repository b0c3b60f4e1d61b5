"""
RBAC utilities for the exposecontroller jobs.

The expose and cleanup jobs run in the namespace of the SSO and need the
permissions of the operator's cluster role there. This module makes sure a
service account of that namespace is a subject of the cluster role binding.
"""

import logging

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import CLUSTER_ROLE_KIND, SERVICE_ACCOUNT_KIND, SERVICE_ACCOUNT_NAME
from ..errors import ConfigurationError, KubernetesAPIError

logger = logging.getLogger(__name__)


def ensure_service_account(
    core_api: client.CoreV1Api, name: str, namespace: str
) -> str:
    """
    Create a service account, reusing it when it already exists.

    Returns:
        Name of the service account
    """
    try:
        existing = core_api.read_namespaced_service_account(name=name, namespace=namespace)
        logger.debug(f"Reusing service account {namespace}/{name}")
        return existing.metadata.name
    except ApiException as e:
        if e.status != 404:
            raise KubernetesAPIError(
                f"reading service account {namespace}/{name} failed", reason=e.reason
            ) from e

    service_account = client.V1ServiceAccount(
        api_version="v1",
        kind=SERVICE_ACCOUNT_KIND,
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
    )
    try:
        created = core_api.create_namespaced_service_account(
            namespace=namespace, body=service_account
        )
    except ApiException as e:
        if e.status == 409:
            return name
        raise KubernetesAPIError(
            f"creating service account {namespace}/{name} failed", reason=e.reason
        ) from e

    logger.info(f"Created service account {namespace}/{name}")
    return created.metadata.name


def ensure_cluster_role_binding(
    cluster_role_name: str,
    namespace: str,
    api_client: client.ApiClient | None = None,
) -> str:
    """
    Ensure a service account in ``namespace`` is bound to ``cluster_role_name``.

    The binding itself is deployed with the operator; this function only
    appends a subject to it. A service account of the namespace that is
    already a subject is reused.

    Args:
        cluster_role_name: Name of the cluster role granting the job permissions
        namespace: Namespace the jobs run in
        api_client: Kubernetes API client

    Returns:
        Name of the bound service account

    Raises:
        ConfigurationError: No binding references the cluster role
        KubernetesAPIError: A Kubernetes API call failed
    """
    rbac_api = client.RbacAuthorizationV1Api(api_client)
    core_api = client.CoreV1Api(api_client)

    try:
        bindings = rbac_api.list_cluster_role_binding()
    except ApiException as e:
        raise KubernetesAPIError(
            "listing cluster role bindings failed", reason=e.reason
        ) from e

    for binding in bindings.items:
        role_ref = binding.role_ref
        if role_ref.kind != CLUSTER_ROLE_KIND or role_ref.name != cluster_role_name:
            continue

        for subject in binding.subjects or []:
            if subject.kind == SERVICE_ACCOUNT_KIND and subject.namespace == namespace:
                return subject.name

        account = ensure_service_account(core_api, SERVICE_ACCOUNT_NAME, namespace)
        binding.subjects = (binding.subjects or []) + [
            client.RbacV1Subject(
                kind=SERVICE_ACCOUNT_KIND, name=account, namespace=namespace
            )
        ]
        binding_name = binding.metadata.name
        try:
            rbac_api.replace_cluster_role_binding(name=binding_name, body=binding)
        except ApiException as e:
            raise KubernetesAPIError(
                f"adding service account {namespace}/{account} to cluster role "
                f"binding {binding_name} failed",
                reason=e.reason,
            ) from e

        logger.info(
            f"Bound service account {namespace}/{account} to cluster role "
            f"{cluster_role_name} via {binding_name}"
        )
        return account

    raise ConfigurationError(
        f"no cluster role binding found for cluster role '{cluster_role_name}'",
        retryable=True,
        user_action="Deploy the operator with a ClusterRoleBinding for its cluster role",
    )
