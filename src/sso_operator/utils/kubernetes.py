"""
Kubernetes utilities for the SSO operator.

This module provides helper functions and classes for interacting with the
Kubernetes API.

Key functionality:
- Kubernetes client management and configuration
- Create-or-update of the objects the pipelines own (secrets, deployments,
  services, config maps) and one-shot jobs
- Ingress host discovery
- Reading and persisting SSO status
"""

import logging
from typing import Any, Protocol

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..constants import SSO_API_VERSION, SSO_GROUP, SSO_KIND, SSO_PLURAL, SSO_VERSION
from ..errors import KubernetesAPIError
from ..models import SSO, SSOStatus
from . import wait

logger = logging.getLogger(__name__)


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Tries the in-cluster configuration first and falls back to the local
    kubeconfig for development.
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def set_owner_reference(resource: Any, sso: SSO) -> None:
    """
    Make ``sso`` the controlling owner of ``resource`` for garbage collection.

    Args:
        resource: Kubernetes object with a ``metadata`` attribute
        sso: The owning SSO resource
    """
    if resource.metadata.owner_references is None:
        resource.metadata.owner_references = []

    resource.metadata.owner_references.append(
        client.V1OwnerReference(
            api_version=SSO_API_VERSION,
            kind=SSO_KIND,
            name=sso.name,
            uid=sso.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        )
    )


def _api_error(action: str, e: ApiException) -> KubernetesAPIError:
    return KubernetesAPIError(f"{action} failed: {e.status}", reason=e.reason)


class ResourceProvisioner(Protocol):
    """Cluster capabilities the proxy and exposure pipelines depend on."""

    def apply_secret(self, secret: client.V1Secret) -> client.V1Secret: ...

    def apply_deployment(
        self, deployment: client.V1Deployment
    ) -> client.V1Deployment: ...

    def apply_service(self, service: client.V1Service) -> client.V1Service: ...

    def apply_config_map(
        self, config_map: client.V1ConfigMap
    ) -> client.V1ConfigMap: ...

    def read_service(self, name: str, namespace: str) -> client.V1Service: ...

    def set_deployment_env(
        self, name: str, namespace: str, env_name: str, value: str
    ) -> None: ...

    def create_job(self, job: client.V1Job) -> client.V1Job: ...

    def job_exists(self, name: str, namespace: str) -> bool: ...

    def delete_job(self, name: str, namespace: str) -> None: ...

    def delete_config_map(self, name: str, namespace: str) -> None: ...

    def find_ingress_hosts(self, name: str, namespace: str) -> list[str]: ...

    def service_presence(self, name: str, namespace: str) -> wait.Predicate: ...

    def pods_running(self, namespace: str, label_selector: str) -> wait.Predicate: ...

    def deployment_stable(self, name: str, namespace: str) -> wait.Predicate: ...

    def job_complete(self, name: str, namespace: str) -> wait.Predicate: ...

    def job_absent(self, name: str, namespace: str) -> wait.Predicate: ...


class KubernetesResources:
    """
    Kubernetes implementation of ``ResourceProvisioner``.

    Objects are created, or updated in place when they already exist, so a
    pipeline re-run adopts whatever an earlier failed attempt left behind.
    """

    def __init__(self, api_client: client.ApiClient | None = None):
        self.api_client = api_client or get_kubernetes_client()
        self.core_api = client.CoreV1Api(self.api_client)
        self.apps_api = client.AppsV1Api(self.api_client)
        self.batch_api = client.BatchV1Api(self.api_client)
        self.networking_api = client.NetworkingV1Api(self.api_client)

    def _apply(self, kind: str, body: Any, create, patch) -> Any:
        name = body.metadata.name
        namespace = body.metadata.namespace
        try:
            created = create(namespace=namespace, body=body)
            logger.info(f"Created {kind} {namespace}/{name}")
            return created
        except ApiException as e:
            if e.status != 409:
                logger.error(f"Failed to create {kind} {namespace}/{name}: {e}")
                raise _api_error(f"creating {kind} {namespace}/{name}", e) from e

        try:
            updated = patch(name=name, namespace=namespace, body=body)
            logger.info(f"Updated existing {kind} {namespace}/{name}")
            return updated
        except ApiException as e:
            logger.error(f"Failed to update {kind} {namespace}/{name}: {e}")
            raise _api_error(f"updating {kind} {namespace}/{name}", e) from e

    def apply_secret(self, secret: client.V1Secret) -> client.V1Secret:
        return self._apply(
            "secret",
            secret,
            self.core_api.create_namespaced_secret,
            self.core_api.patch_namespaced_secret,
        )

    def apply_deployment(self, deployment: client.V1Deployment) -> client.V1Deployment:
        return self._apply(
            "deployment",
            deployment,
            self.apps_api.create_namespaced_deployment,
            self.apps_api.patch_namespaced_deployment,
        )

    def apply_service(self, service: client.V1Service) -> client.V1Service:
        return self._apply(
            "service",
            service,
            self.core_api.create_namespaced_service,
            self.core_api.patch_namespaced_service,
        )

    def apply_config_map(self, config_map: client.V1ConfigMap) -> client.V1ConfigMap:
        return self._apply(
            "config map",
            config_map,
            self.core_api.create_namespaced_config_map,
            self.core_api.patch_namespaced_config_map,
        )

    def read_service(self, name: str, namespace: str) -> client.V1Service:
        try:
            return self.core_api.read_namespaced_service(name=name, namespace=namespace)
        except ApiException as e:
            raise _api_error(f"reading service {namespace}/{name}", e) from e

    def set_deployment_env(
        self, name: str, namespace: str, env_name: str, value: str
    ) -> None:
        """Set an environment variable on every container of a deployment."""
        try:
            deployment = self.apps_api.read_namespaced_deployment(
                name=name, namespace=namespace
            )
            for container in deployment.spec.template.spec.containers:
                env = container.env or []
                for var in env:
                    if var.name == env_name:
                        var.value = value
                        break
                else:
                    env.append(client.V1EnvVar(name=env_name, value=value))
                container.env = env

            self.apps_api.replace_namespaced_deployment(
                name=name, namespace=namespace, body=deployment
            )
            logger.info(f"Set {env_name} on deployment {namespace}/{name}")
        except ApiException as e:
            raise _api_error(f"updating deployment {namespace}/{name}", e) from e

    def create_job(self, job: client.V1Job) -> client.V1Job:
        name = job.metadata.name
        namespace = job.metadata.namespace
        try:
            created = self.batch_api.create_namespaced_job(namespace=namespace, body=job)
            logger.info(f"Created job {namespace}/{name}")
            return created
        except ApiException as e:
            raise _api_error(f"creating job {namespace}/{name}", e) from e

    def job_exists(self, name: str, namespace: str) -> bool:
        try:
            self.batch_api.read_namespaced_job(name=name, namespace=namespace)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise _api_error(f"reading job {namespace}/{name}", e) from e

    def delete_job(self, name: str, namespace: str) -> None:
        """Delete a job and, in the background, its pods. Missing jobs are ignored."""
        try:
            self.batch_api.delete_namespaced_job(
                name=name,
                namespace=namespace,
                body=client.V1DeleteOptions(propagation_policy="Background"),
            )
            logger.info(f"Deleted job {namespace}/{name}")
        except ApiException as e:
            if e.status != 404:
                raise _api_error(f"deleting job {namespace}/{name}", e) from e

    def delete_config_map(self, name: str, namespace: str) -> None:
        try:
            self.core_api.delete_namespaced_config_map(name=name, namespace=namespace)
            logger.info(f"Deleted config map {namespace}/{name}")
        except ApiException as e:
            if e.status != 404:
                raise _api_error(f"deleting config map {namespace}/{name}", e) from e

    def find_ingress_hosts(self, name: str, namespace: str) -> list[str]:
        """
        Return the rule hosts of the ingress called ``name``.

        A missing ingress yields an empty list.
        """
        try:
            ingress = self.networking_api.read_namespaced_ingress(
                name=name, namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                logger.warning(f"Ingress {namespace}/{name} not found")
                return []
            raise _api_error(f"reading ingress {namespace}/{name}", e) from e

        rules = (ingress.spec.rules if ingress.spec else None) or []
        return [rule.host for rule in rules if rule.host]

    def service_presence(self, name: str, namespace: str) -> wait.Predicate:
        return wait.service_presence(self.core_api, name, namespace)

    def pods_running(self, namespace: str, label_selector: str) -> wait.Predicate:
        return wait.pods_running(self.core_api, namespace, label_selector)

    def deployment_stable(self, name: str, namespace: str) -> wait.Predicate:
        return wait.deployment_stable(self.apps_api, name, namespace)

    def job_complete(self, name: str, namespace: str) -> wait.Predicate:
        return wait.job_complete(self.batch_api, name, namespace)

    def job_absent(self, name: str, namespace: str) -> wait.Predicate:
        return wait.job_absent(self.batch_api, name, namespace)


class SSOStore:
    """Reads and persists SSO resources through the custom objects API."""

    def __init__(self, api_client: client.ApiClient | None = None):
        self.custom_api = client.CustomObjectsApi(api_client or get_kubernetes_client())

    def read(self, namespace: str, name: str) -> SSO | None:
        """Fetch the current SSO, or None if it no longer exists."""
        try:
            body = self.custom_api.get_namespaced_custom_object(
                group=SSO_GROUP,
                version=SSO_VERSION,
                namespace=namespace,
                plural=SSO_PLURAL,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error(f"reading SSO {namespace}/{name}", e) from e
        return SSO.from_body(body)

    def read_status(self, namespace: str, name: str) -> SSOStatus | None:
        """Fetch the current status of an SSO, or None if it no longer exists."""
        sso = self.read(namespace, name)
        return sso.status if sso else None

    def update_status(
        self, namespace: str, name: str, client_id: str, initialized: bool
    ) -> None:
        """
        Persist the OIDC client ID and initialization flag of an SSO.

        The status subresource is written when the CRD declares one; on a
        CRD without it the API answers 404 and the status is merged into
        the object itself instead.
        """
        status = SSOStatus(client_id=client_id, initialized=initialized)
        target = dict(
            group=SSO_GROUP,
            version=SSO_VERSION,
            namespace=namespace,
            plural=SSO_PLURAL,
            name=name,
            body={"status": status.model_dump(by_alias=True)},
        )
        try:
            try:
                self.custom_api.patch_namespaced_custom_object_status(**target)
            except ApiException as e:
                if e.status != 404:
                    raise
                logger.debug(
                    f"No status subresource for SSO {namespace}/{name}, "
                    "patching the object"
                )
                self.custom_api.patch_namespaced_custom_object(**target)
        except ApiException as e:
            raise _api_error(f"updating status of SSO {namespace}/{name}", e) from e
        logger.info(
            f"Updated status of SSO {namespace}/{name}: "
            f"clientId={client_id} initialized={initialized}"
        )
