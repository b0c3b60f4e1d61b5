"""
SSO reconciler - drives an SSO resource from creation to deletion.

A new SSO goes through the provisioning pipeline:

1. bind a service account of the namespace to the operator cluster role
2. register an OIDC client in Dex with a placeholder redirect URL
3. deploy the oauth2_proxy
4. expose the proxy service through exposecontroller
5. resolve the hosts of the generated ingress
6. point the OIDC client at the real callback URLs
7. reconfigure the proxy with the real redirect URL
8. mark the SSO initialized

The OIDC client is deleted again when any step after its creation fails.
Kubernetes objects are left in place; the next attempt adopts them and the
garbage collector removes them with the SSO.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import assert_never

from ..constants import PHASE_DELETED, PHASE_INITIALIZED, SSO_KIND
from ..errors import CleanupError, ExternalServiceError, ProvisioningError
from ..models import SSO, ResourceEvent, SSOEvent
from ..observability.metrics import metrics_collector
from ..observability.tracing import get_tracer
from ..utils.concurrency import ConcurrencyGuard
from ..utils.dex_client import IdentityProvider
from ..utils.kubernetes import SSOStore
from ..utils.templates import placeholder_redirect_url, redirect_urls_for_hosts
from .base_reconciler import BaseReconciler
from .exposure_invoker import ExposureInvoker
from .proxy_provisioner import ProxyProvisioner

STEP_BIND_SERVICE_ACCOUNT = "bind-service-account"
STEP_CREATE_CLIENT = "create-client"
STEP_DEPLOY_PROXY = "deploy-proxy"
STEP_EXPOSE_SERVICE = "expose-service"
STEP_RESOLVE_HOSTS = "resolve-hosts"
STEP_UPDATE_CLIENT = "update-client"
STEP_UPDATE_PROXY = "update-proxy"
STEP_UPDATE_STATUS = "update-status"
STEP_CLEANUP_EXPOSURE = "cleanup-exposure"
STEP_DELETE_CLIENT = "delete-client"

tracer = get_tracer(__name__)


class SSOReconciler(BaseReconciler):
    """
    Reconciler for SSO resources.

    Collaborators are injected so the pipeline can run against fakes:
    ``identity_provider`` registers OIDC clients, ``proxy`` and ``exposure``
    manage the cluster side, ``store`` persists the SSO status and
    ``ensure_binding`` returns the service account the exposecontroller jobs
    run as in a given namespace.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        proxy: ProxyProvisioner,
        exposure: ExposureInvoker,
        store: SSOStore,
        ensure_binding: Callable[[str], str],
        cookie_secret: str,
        guard: ConcurrencyGuard | None = None,
    ):
        super().__init__(guard=guard)
        self.identity_provider = identity_provider
        self.proxy = proxy
        self.exposure = exposure
        self.store = store
        self.ensure_binding = ensure_binding
        self.cookie_secret = cookie_secret

    async def handle(self, event: ResourceEvent) -> None:
        if isinstance(event, SSOEvent):
            await self._handle_sso(event)
        else:
            assert_never(event)

    async def _handle_sso(self, event: SSOEvent) -> None:
        sso = event.resource

        if event.deleted:
            if sso.status.initialized:
                await self.cleanup(sso)
            else:
                self.logger.info(
                    f"SSO {sso.namespace}/{sso.name} deleted before it was "
                    "initialized, nothing to clean up",
                    resource_type=SSO_KIND,
                    resource_name=sso.name,
                    namespace=sso.namespace,
                )
            return

        # Re-read so a pass that finished in an earlier process is not repeated
        status = self.store.read_status(sso.namespace, sso.name)
        if status is None:
            self.logger.info(
                f"SSO {sso.namespace}/{sso.name} no longer exists, skipping",
                resource_type=SSO_KIND,
                resource_name=sso.name,
                namespace=sso.namespace,
            )
            return
        if status.initialized:
            self.logger.debug(
                f"SSO {sso.namespace}/{sso.name} already initialized",
                resource_type=SSO_KIND,
                resource_name=sso.name,
                namespace=sso.namespace,
                client_id=status.client_id,
            )
            return

        await self.provision(sso)

    @contextmanager
    def _step(self, step: str, sso: SSO, **details) -> Iterator[None]:
        self.logger.log_pipeline_step(step, sso.name, sso.namespace, **details)
        with tracer.start_as_current_span(
            f"sso.{step}",
            attributes={
                "k8s.namespace": sso.namespace,
                "k8s.resource.name": sso.name,
                "sso.step": step,
            },
        ):
            yield

    async def provision(self, sso: SSO) -> None:
        """
        Run the provisioning pipeline for an uninitialized SSO.

        Raises:
            ProvisioningError: A step failed; the error names the step
        """
        name = sso.name
        namespace = sso.namespace

        step = STEP_BIND_SERVICE_ACCOUNT
        try:
            with self._step(step, sso):
                service_account = self.ensure_binding(namespace)

            step = STEP_CREATE_CLIENT
            with self._step(step, sso):
                oidc_client = await self.identity_provider.create_client(
                    [placeholder_redirect_url()], [], False, name, ""
                )
        except Exception as e:
            raise ProvisioningError(step, name, namespace, e) from e

        try:
            step = STEP_DEPLOY_PROXY
            with self._step(step, sso, client_id=oidc_client.id):
                bundle = await self.proxy.deploy(sso, oidc_client, self.cookie_secret)

            service_name = bundle.service.metadata.name
            if sso.spec.skip_expose_service:
                self.logger.info(
                    f"Skipping exposure of service {namespace}/{service_name}",
                    resource_type=SSO_KIND,
                    resource_name=name,
                    namespace=namespace,
                )
            else:
                step = STEP_EXPOSE_SERVICE
                with self._step(step, sso, service_account=service_account):
                    await self.exposure.expose(sso, service_name, service_account)

            step = STEP_RESOLVE_HOSTS
            with self._step(step, sso, app_name=bundle.app_name):
                hosts = self.proxy.ingress_hosts(bundle, namespace)
                if not hosts:
                    raise ExternalServiceError(
                        service="ingress",
                        message=f"no host found on ingress {namespace}/{bundle.app_name}",
                        user_action="Check that exposecontroller created the ingress",
                    )

            step = STEP_UPDATE_CLIENT
            redirect_uris = redirect_urls_for_hosts(hosts)
            with self._step(step, sso, client_id=oidc_client.id):
                await self.identity_provider.update_client(
                    oidc_client.id, redirect_uris, [], name, ""
                )
            oidc_client = replace(oidc_client, redirect_uris=redirect_uris)

            step = STEP_UPDATE_PROXY
            with self._step(step, sso):
                await self.proxy.update(bundle, sso, oidc_client, self.cookie_secret)

            step = STEP_UPDATE_STATUS
            with self._step(step, sso, client_id=oidc_client.id):
                self.store.update_status(namespace, name, oidc_client.id, True)
        except Exception as e:
            await self._compensate(oidc_client.id, sso, step)
            raise ProvisioningError(step, name, namespace, e) from e

        metrics_collector.update_resource_status(
            resource_type=SSO_KIND, namespace=namespace, phase=PHASE_INITIALIZED
        )

    async def _compensate(self, client_id: str, sso: SSO, step: str) -> None:
        """Delete the OIDC client of a failed provisioning; never raises."""
        try:
            await self.identity_provider.delete_client(client_id)
        except Exception as e:
            self.logger.log_compensation(client_id, sso.name, sso.namespace, error=e)
            metrics_collector.record_compensation(sso.namespace, step, success=False)
            return

        self.logger.log_compensation(client_id, sso.name, sso.namespace)
        metrics_collector.record_compensation(sso.namespace, step, success=True)

    async def cleanup(self, sso: SSO) -> None:
        """
        Remove the ingress and the OIDC client of a deleted SSO.

        The proxy objects themselves are owned by the SSO and removed by the
        garbage collector.

        Raises:
            CleanupError: A step failed; the error names the step
        """
        name = sso.name
        namespace = sso.namespace
        client_id = sso.status.client_id

        step = STEP_CLEANUP_EXPOSURE
        try:
            if not sso.spec.skip_expose_service:
                with self._step(step, sso):
                    service_account = self.ensure_binding(namespace)
                    await self.exposure.cleanup(sso, name, service_account)

            step = STEP_DELETE_CLIENT
            with self._step(step, sso, client_id=client_id):
                await self.identity_provider.delete_client(client_id)
        except Exception as e:
            raise CleanupError(step, name, namespace, e) from e

        metrics_collector.update_resource_status(
            resource_type=SSO_KIND, namespace=namespace, phase=PHASE_DELETED
        )
