"""
Exposure of the proxy service through one-shot exposecontroller jobs.

exposecontroller reads a YAML configuration listing the services to expose
and creates (or, in cleanup mode, removes) their ingresses. Each run gets a
transient config map and job that are deleted once the job completes.
"""

import logging

from kubernetes import client

from ..constants import (
    CLEANUP_CHECK_INTERVAL,
    CLEANUP_JOB_SUFFIX,
    CLEANUP_TIMEOUT,
    EXPOSE_CHECK_INTERVAL,
    EXPOSE_COMMAND,
    EXPOSE_CONFIG_DIR,
    EXPOSE_CONFIG_FILE,
    EXPOSE_CONFIG_PATH,
    EXPOSE_CONFIG_SUFFIX,
    EXPOSE_CONFIG_VOLUME,
    EXPOSE_JOB_SUFFIX,
    EXPOSE_NAMESPACE_ENV,
    EXPOSE_TIMEOUT,
    JOB_DELETE_CHECK_INTERVAL,
    JOB_DELETE_TIMEOUT,
)
from ..models import SSO
from ..utils.kubernetes import ResourceProvisioner, set_owner_reference
from ..utils.naming import build_name
from ..utils.templates import render_expose_config
from ..utils.wait import wait_for

logger = logging.getLogger(__name__)


def expose_args() -> list[str]:
    return [f"--config={EXPOSE_CONFIG_PATH}", "--v", "4"]


def cleanup_args(service_name: str) -> list[str]:
    return [f"--config={EXPOSE_CONFIG_PATH}", "--cleanup", f"--filter={service_name}"]


def build_expose_config_map(sso: SSO, service_name: str) -> client.V1ConfigMap:
    config_map = client.V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=client.V1ObjectMeta(
            name=build_name(sso.name, EXPOSE_CONFIG_SUFFIX), namespace=sso.namespace
        ),
        data={
            EXPOSE_CONFIG_FILE: render_expose_config(
                sso.spec.domain, [service_name], sso.spec.url_template
            )
        },
    )
    set_owner_reference(config_map, sso)
    return config_map


def build_expose_job(
    sso: SSO,
    job_suffix: str,
    args: list[str],
    config_map_name: str,
    service_account: str,
    image: str,
) -> client.V1Job:
    """One-shot exposecontroller job mounting the configuration config map."""
    job_name = build_name(sso.name, job_suffix)
    container = client.V1Container(
        name=job_name,
        image=image,
        image_pull_policy="IfNotPresent",
        command=[EXPOSE_COMMAND],
        args=args,
        env=[client.V1EnvVar(name=EXPOSE_NAMESPACE_ENV, value=sso.namespace)],
        volume_mounts=[
            client.V1VolumeMount(
                name=EXPOSE_CONFIG_VOLUME, mount_path=EXPOSE_CONFIG_DIR, read_only=True
            )
        ],
    )
    job = client.V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=client.V1ObjectMeta(name=job_name, namespace=sso.namespace),
        spec=client.V1JobSpec(
            template=client.V1PodTemplateSpec(
                spec=client.V1PodSpec(
                    service_account_name=service_account,
                    restart_policy="Never",
                    containers=[container],
                    volumes=[
                        client.V1Volume(
                            name=EXPOSE_CONFIG_VOLUME,
                            config_map=client.V1ConfigMapVolumeSource(
                                name=config_map_name
                            ),
                        )
                    ],
                )
            )
        ),
    )
    set_owner_reference(job, sso)
    return job


class ExposureInvoker:
    """Runs exposecontroller jobs for SSO proxy services."""

    def __init__(self, resources: ResourceProvisioner, image: str, image_tag: str):
        self.resources = resources
        self.image = f"{image}:{image_tag}"

    async def expose(self, sso: SSO, service_name: str, service_account: str) -> None:
        """
        Create the ingress of ``service_name``.

        Args:
            sso: The owning SSO resource
            service_name: Service to expose
            service_account: Account the job runs as; needs permission to
                manage ingresses in the namespace
        """
        await self._run(
            sso,
            service_name,
            service_account,
            job_suffix=EXPOSE_JOB_SUFFIX,
            args=expose_args(),
            interval=EXPOSE_CHECK_INTERVAL,
            timeout=EXPOSE_TIMEOUT,
        )

    async def cleanup(self, sso: SSO, service_name: str, service_account: str) -> None:
        """Remove the ingress of ``service_name``."""
        await self._run(
            sso,
            service_name,
            service_account,
            job_suffix=CLEANUP_JOB_SUFFIX,
            args=cleanup_args(service_name),
            interval=CLEANUP_CHECK_INTERVAL,
            timeout=CLEANUP_TIMEOUT,
        )

    async def _run(
        self,
        sso: SSO,
        service_name: str,
        service_account: str,
        job_suffix: str,
        args: list[str],
        interval: float,
        timeout: float,
    ) -> None:
        namespace = sso.namespace

        config_map = build_expose_config_map(sso, service_name)
        self.resources.apply_config_map(config_map)
        config_map_name = config_map.metadata.name

        job = build_expose_job(
            sso, job_suffix, args, config_map_name, service_account, self.image
        )
        job_name = job.metadata.name

        # Job specs are immutable, so a leftover run has to go first
        if self.resources.job_exists(job_name, namespace):
            logger.info(f"Removing stale job {namespace}/{job_name}")
            self.resources.delete_job(job_name, namespace)
            await wait_for(
                self.resources.job_absent(job_name, namespace),
                interval=JOB_DELETE_CHECK_INTERVAL,
                timeout=JOB_DELETE_TIMEOUT,
                description=f"job {namespace}/{job_name} to be deleted",
            )

        self.resources.create_job(job)
        await wait_for(
            self.resources.job_complete(job_name, namespace),
            interval=interval,
            timeout=timeout,
            description=f"job {namespace}/{job_name} to complete",
        )

        self.resources.delete_job(job_name, namespace)
        self.resources.delete_config_map(config_map_name, namespace)
        logger.info(
            f"Job {namespace}/{job_name} finished for service {service_name}"
        )
