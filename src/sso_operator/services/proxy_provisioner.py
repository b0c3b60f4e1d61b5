"""
oauth2_proxy provisioning for SSO resources.

The proxy sits in front of the upstream service and enforces a Dex login.
Deploying it creates three objects owned by the SSO:

- a secret holding the rendered ``oauth2_proxy.cfg``
- a single-replica deployment mounting that secret; its ``SECRET_VERSION``
  environment variable carries a fingerprint of the configuration so that
  changing the configuration rolls the pods
- a service on port 80 annotated for exposecontroller and cert-manager
"""

import logging
from dataclasses import dataclass

from kubernetes import client

from ..constants import (
    APP_LABEL,
    CERT_MANAGER_ANNOTATION,
    DEPLOYMENT_CHECK_INTERVAL,
    DEPLOYMENT_STABLE_TIMEOUT,
    EXPOSE_ANNOTATION,
    EXPOSE_INGRESS_ANNOTATION,
    INGRESS_CLASS,
    INGRESS_CLASS_ANNOTATION,
    INGRESS_NAME_ANNOTATION,
    POD_CHECK_INTERVAL,
    POD_READY_TIMEOUT,
    PROXY_CONFIG_DIR,
    PROXY_CONFIG_FILE,
    PROXY_CONFIG_PATH,
    PROXY_CONFIG_VOLUME,
    PROXY_DEPLOYMENT_SUFFIX,
    PROXY_HEALTH_PATH,
    PROXY_PORT,
    PROXY_PORT_NAME,
    PROXY_PUBLIC_PORT,
    PROXY_REPLICAS,
    PROXY_SECRET_SUFFIX,
    RELEASE_LABEL,
    SECRET_VERSION_ENV,
    SERVICE_CHECK_INTERVAL,
    SERVICE_CREATE_TIMEOUT,
    SSO_LABEL,
)
from ..errors import ValidationError
from ..models import SSO
from ..utils.dex_client import OIDCClient
from ..utils.kubernetes import ResourceProvisioner, set_owner_reference
from ..utils.naming import build_name
from ..utils.templates import config_fingerprint, proxy_config_for
from ..utils.wait import wait_for

logger = logging.getLogger(__name__)


@dataclass
class ProxyBundle:
    """The Kubernetes objects making up a deployed proxy."""

    app_name: str
    secret: client.V1Secret
    deployment: client.V1Deployment
    service: client.V1Service


def derive_app_name(service: client.V1Service) -> str:
    """
    Application name of an upstream service.

    The ``app`` label wins; otherwise the ``release`` label prefix is stripped
    from the service name; otherwise the service name is used as is.
    """
    labels = service.metadata.labels or {}
    name = service.metadata.name
    if labels.get(APP_LABEL):
        return labels[APP_LABEL]
    release = labels.get(RELEASE_LABEL)
    if release:
        return name.replace(f"{release}-", "", 1)
    return name


def upstream_url(service: client.V1Service) -> str:
    """In-cluster URL of the first port of ``service``."""
    ports = (service.spec.ports if service.spec else None) or []
    if not ports:
        raise ValidationError(
            f"upstream service '{service.metadata.name}' exposes no ports",
            field="upstreamService",
        )
    return f"http://{service.metadata.name}:{ports[0].port}"


def proxy_labels(sso: SSO, app_name: str) -> dict[str, str]:
    return {APP_LABEL: app_name, SSO_LABEL: sso.name}


def service_annotations(sso: SSO, app_name: str) -> dict[str, str]:
    return {
        EXPOSE_ANNOTATION: "true",
        INGRESS_NAME_ANNOTATION: app_name,
        EXPOSE_INGRESS_ANNOTATION: (
            f"{INGRESS_CLASS_ANNOTATION}: {INGRESS_CLASS}\n"
            f"{CERT_MANAGER_ANNOTATION}: {sso.spec.cert_issuer_name}"
        ),
    }


def _probe(initial_delay: int, period: int) -> client.V1Probe:
    return client.V1Probe(
        http_get=client.V1HTTPGetAction(
            path=PROXY_HEALTH_PATH, port=PROXY_PORT, scheme="HTTP"
        ),
        initial_delay_seconds=initial_delay,
        timeout_seconds=10,
        period_seconds=period,
        failure_threshold=3,
    )


def build_proxy_secret(
    sso: SSO, name: str, labels: dict[str, str], config: str
) -> client.V1Secret:
    secret = client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=client.V1ObjectMeta(name=name, namespace=sso.namespace, labels=labels),
        string_data={PROXY_CONFIG_FILE: config},
        type="Opaque",
    )
    set_owner_reference(secret, sso)
    return secret


def build_proxy_deployment(
    sso: SSO, name: str, secret_name: str, labels: dict[str, str], fingerprint: str
) -> client.V1Deployment:
    """Single-replica oauth2_proxy deployment mounting the config secret."""
    spec = sso.spec
    container = client.V1Container(
        name=sso.name,
        image=f"{spec.proxy_image}:{spec.proxy_image_tag}",
        image_pull_policy="IfNotPresent",
        args=[f"--config={PROXY_CONFIG_PATH}"],
        ports=[
            client.V1ContainerPort(
                name=PROXY_PORT_NAME, container_port=PROXY_PORT, protocol="TCP"
            )
        ],
        resources=client.V1ResourceRequirements(
            requests=spec.proxy_resources.get("requests"),
            limits=spec.proxy_resources.get("limits"),
        ),
        volume_mounts=[
            client.V1VolumeMount(
                name=PROXY_CONFIG_VOLUME, read_only=True, mount_path=PROXY_CONFIG_DIR
            )
        ],
        env=[client.V1EnvVar(name=SECRET_VERSION_ENV, value=fingerprint)],
        liveness_probe=_probe(initial_delay=60, period=60),
        readiness_probe=_probe(initial_delay=30, period=10),
    )

    deployment = client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(name=name, namespace=sso.namespace, labels=labels),
        spec=client.V1DeploymentSpec(
            replicas=PROXY_REPLICAS,
            selector=client.V1LabelSelector(match_labels=labels),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=labels),
                spec=client.V1PodSpec(
                    containers=[container],
                    volumes=[
                        client.V1Volume(
                            name=PROXY_CONFIG_VOLUME,
                            secret=client.V1SecretVolumeSource(secret_name=secret_name),
                        )
                    ],
                ),
            ),
            strategy=client.V1DeploymentStrategy(
                type="RollingUpdate",
                rolling_update=client.V1RollingUpdateDeployment(
                    max_unavailable=1, max_surge=1
                ),
            ),
        ),
    )
    set_owner_reference(deployment, sso)
    return deployment


def build_proxy_service(
    sso: SSO, app_name: str, labels: dict[str, str]
) -> client.V1Service:
    """Service named after the SSO, forwarding port 80 to the proxy."""
    service = client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=client.V1ObjectMeta(
            name=sso.name,
            namespace=sso.namespace,
            labels=labels,
            annotations=service_annotations(sso, app_name),
        ),
        spec=client.V1ServiceSpec(
            ports=[
                client.V1ServicePort(
                    name=PROXY_PORT_NAME,
                    protocol="TCP",
                    port=PROXY_PUBLIC_PORT,
                    target_port=PROXY_PORT,
                )
            ],
            selector=labels,
        ),
    )
    set_owner_reference(service, sso)
    return service


class ProxyProvisioner:
    """Deploys and reconfigures the oauth2_proxy of an SSO."""

    def __init__(self, resources: ResourceProvisioner):
        self.resources = resources

    def _render_config(
        self, sso: SSO, oidc_client: OIDCClient, cookie_secret: str
    ) -> tuple[str, str]:
        upstream = self.resources.read_service(sso.spec.upstream_service, sso.namespace)
        config = proxy_config_for(
            sso,
            client_id=oidc_client.id,
            client_secret=oidc_client.secret,
            redirect_uris=oidc_client.redirect_uris,
            upstream_url=upstream_url(upstream),
            cookie_secret=cookie_secret,
        )
        return derive_app_name(upstream), config

    async def deploy(
        self, sso: SSO, oidc_client: OIDCClient, cookie_secret: str
    ) -> ProxyBundle:
        """
        Deploy the proxy for ``sso`` and wait until it runs.

        Args:
            sso: The SSO resource
            oidc_client: OIDC client the proxy authenticates as
            cookie_secret: Key signing the session cookie

        Returns:
            The created objects
        """
        namespace = sso.namespace
        app_name, config = self._render_config(sso, oidc_client, cookie_secret)
        labels = proxy_labels(sso, app_name)

        secret_name = build_name(sso.name, PROXY_SECRET_SUFFIX)
        secret = build_proxy_secret(sso, secret_name, labels, config)
        self.resources.apply_secret(secret)

        fingerprint = config_fingerprint(secret.string_data)
        deployment = build_proxy_deployment(
            sso,
            build_name(sso.name, PROXY_DEPLOYMENT_SUFFIX),
            secret_name,
            labels,
            fingerprint,
        )
        self.resources.apply_deployment(deployment)

        service = build_proxy_service(sso, app_name, labels)
        self.resources.apply_service(service)

        await wait_for(
            self.resources.service_presence(service.metadata.name, namespace),
            interval=SERVICE_CHECK_INTERVAL,
            timeout=SERVICE_CREATE_TIMEOUT,
            description=f"service {namespace}/{service.metadata.name} to appear",
        )
        await self._wait_for_pods(sso)

        logger.info(f"Deployed oauth2_proxy for SSO {namespace}/{sso.name} (app {app_name})")
        return ProxyBundle(
            app_name=app_name, secret=secret, deployment=deployment, service=service
        )

    async def update(
        self,
        bundle: ProxyBundle,
        sso: SSO,
        oidc_client: OIDCClient,
        cookie_secret: str,
    ) -> None:
        """
        Rewrite the proxy configuration and roll the proxy pods.

        The new configuration fingerprint is set on every container of the
        deployment, which triggers a rollout; the call returns once the
        deployment is stable and its pods run.
        """
        namespace = sso.namespace
        _, config = self._render_config(sso, oidc_client, cookie_secret)

        bundle.secret.string_data = {PROXY_CONFIG_FILE: config}
        self.resources.apply_secret(bundle.secret)

        deployment_name = bundle.deployment.metadata.name
        self.resources.set_deployment_env(
            deployment_name,
            namespace,
            SECRET_VERSION_ENV,
            config_fingerprint(bundle.secret.string_data),
        )

        await wait_for(
            self.resources.deployment_stable(deployment_name, namespace),
            interval=DEPLOYMENT_CHECK_INTERVAL,
            timeout=DEPLOYMENT_STABLE_TIMEOUT,
            description=f"deployment {namespace}/{deployment_name} to stabilize",
        )
        await self._wait_for_pods(sso)
        logger.info(f"Reconfigured oauth2_proxy for SSO {namespace}/{sso.name}")

    def ingress_hosts(self, bundle: ProxyBundle, namespace: str) -> list[str]:
        """Hosts of the ingress exposecontroller created for the proxy."""
        return self.resources.find_ingress_hosts(bundle.app_name, namespace)

    async def _wait_for_pods(self, sso: SSO) -> None:
        selector = f"{SSO_LABEL}={sso.name}"
        await wait_for(
            self.resources.pods_running(sso.namespace, selector),
            interval=POD_CHECK_INTERVAL,
            timeout=POD_READY_TIMEOUT,
            description=f"pods {selector} in {sso.namespace} to run",
        )
