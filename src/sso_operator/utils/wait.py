"""
Polling utilities for waiting on cluster state.

``wait_for`` polls a predicate at a fixed interval until it reports ready,
reports a terminal failure, or the timeout elapses. The first poll happens
immediately and the last sleep is clamped to the deadline, so a timeout is
raised no earlier than ``timeout`` and no later than one ``interval`` after it.

The predicate factories at the bottom of this module build the checks the
provisioning pipelines wait on (services, pods, jobs and deployments).
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import RETRYABLE_API_REASONS, RETRYABLE_API_STATUSES
from ..errors import WaitError, WaitTimeoutError
from ..observability.metrics import metrics_collector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Poll:
    """Outcome of a single evaluation of a wait predicate."""

    done: bool
    reason: str | None = None
    error: Exception | None = None

    @classmethod
    def ready(cls) -> "Poll":
        return cls(done=True)

    @classmethod
    def not_ready(cls, reason: str | None = None) -> "Poll":
        return cls(done=False, reason=reason)

    @classmethod
    def fatal(cls, error: Exception) -> "Poll":
        return cls(done=False, error=error)


Predicate = Callable[[], Poll | Awaitable[Poll]]


def is_retryable_api_error(error: Exception) -> bool:
    """
    Check whether a Kubernetes API error is transient.

    Timeouts, throttling and internal server errors are retried by polling;
    everything else ends the wait.
    """
    if not isinstance(error, ApiException):
        return False
    return (
        error.status in RETRYABLE_API_STATUSES
        or error.reason in RETRYABLE_API_REASONS
    )


async def _evaluate(predicate: Predicate) -> Poll:
    try:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        return result
    except ApiException as e:
        if is_retryable_api_error(e):
            return Poll.not_ready(f"transient API error: {e.status} {e.reason}")
        return Poll.fatal(e)
    except Exception as e:
        return Poll.fatal(e)


async def wait_for(
    predicate: Predicate,
    *,
    interval: float,
    timeout: float,
    description: str,
) -> None:
    """
    Poll ``predicate`` until it is ready.

    Args:
        predicate: Sync or async callable returning a ``Poll``
        interval: Seconds between polls
        timeout: Seconds after which the wait gives up
        description: Human readable description of the awaited condition

    Raises:
        WaitError: The predicate reported a terminal failure
        WaitTimeoutError: The condition did not hold before the deadline
    """
    loop = asyncio.get_running_loop()
    started = time.monotonic()
    deadline = loop.time() + timeout
    last_reason: str | None = None

    while True:
        poll = await _evaluate(predicate)

        if poll.error is not None:
            metrics_collector.record_wait(
                description, "fatal", time.monotonic() - started
            )
            raise WaitError(description, poll.error) from poll.error

        if poll.done:
            metrics_collector.record_wait(
                description, "ready", time.monotonic() - started
            )
            logger.debug(f"Condition met: {description}")
            return

        if poll.reason and poll.reason != last_reason:
            logger.info(f"Waiting for {description}: {poll.reason}")
        last_reason = poll.reason

        remaining = deadline - loop.time()
        if remaining <= 0:
            metrics_collector.record_wait(
                description, "timeout", time.monotonic() - started
            )
            raise WaitTimeoutError(description, timeout, last_reason)

        await asyncio.sleep(min(interval, remaining))


def service_presence(
    core_api: client.CoreV1Api, name: str, namespace: str, present: bool = True
) -> Predicate:
    """Ready once the service exists (or, with ``present=False``, is gone)."""

    def check() -> Poll:
        try:
            core_api.read_namespaced_service(name=name, namespace=namespace)
        except ApiException as e:
            if e.status != 404:
                raise
            return Poll.ready() if not present else Poll.not_ready("service not found")
        return Poll.ready() if present else Poll.not_ready("service still exists")

    return check


def pod_running(core_api: client.CoreV1Api, name: str, namespace: str) -> Predicate:
    """Ready once the named pod is running; a terminated pod is a failure."""

    def check() -> Poll:
        try:
            pod = core_api.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status != 404:
                raise
            return Poll.not_ready("pod not found")

        phase = pod.status.phase if pod.status else None
        if phase == "Running":
            return Poll.ready()
        if phase in ("Succeeded", "Failed"):
            return Poll.fatal(
                RuntimeError(f"pod {name} already in terminal phase: {phase}")
            )
        return Poll.not_ready(f"pod phase is {phase or 'unknown'}")

    return check


def pods_running(
    core_api: client.CoreV1Api, namespace: str, label_selector: str
) -> Predicate:
    """Ready once at least one pod matches the selector and all of them run."""

    def check() -> Poll:
        pods = core_api.list_namespaced_pod(
            namespace=namespace, label_selector=label_selector
        )
        items = pods.items or []
        if not items:
            return Poll.not_ready(f"no pods match {label_selector}")

        pending = [
            pod.metadata.name
            for pod in items
            if not pod.status or pod.status.phase != "Running"
        ]
        if pending:
            return Poll.not_ready(
                f"{len(pending)}/{len(items)} pods not running yet"
            )
        return Poll.ready()

    return check


def job_complete(batch_api: client.BatchV1Api, name: str, namespace: str) -> Predicate:
    """Ready once the job reports completion; a failed job ends the wait."""

    def check() -> Poll:
        try:
            job = batch_api.read_namespaced_job(name=name, namespace=namespace)
        except ApiException as e:
            if e.status != 404:
                raise
            return Poll.not_ready("job not found")

        conditions = (job.status.conditions if job.status else None) or []
        for condition in conditions:
            if condition.status != "True":
                continue
            if condition.type == "Complete":
                return Poll.ready()
            if condition.type == "Failed":
                return Poll.fatal(
                    RuntimeError(f"job failed: {condition.message or condition.reason}")
                )
        return Poll.not_ready("job has not completed")

    return check


def job_absent(batch_api: client.BatchV1Api, name: str, namespace: str) -> Predicate:
    """Ready once the job no longer exists."""

    def check() -> Poll:
        try:
            batch_api.read_namespaced_job(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return Poll.ready()
            raise
        return Poll.not_ready("job is still being deleted")

    return check


def deployment_stable(
    apps_api: client.AppsV1Api, name: str, namespace: str
) -> Predicate:
    """
    Ready once the deployment controller observed the latest generation and
    the number of replicas matches the spec.
    """

    def check() -> Poll:
        deployment = apps_api.read_namespaced_deployment(name=name, namespace=namespace)
        generation = deployment.metadata.generation or 0
        observed = (deployment.status.observed_generation if deployment.status else 0) or 0
        desired = deployment.spec.replicas
        current = (deployment.status.replicas if deployment.status else 0) or 0

        if observed >= generation and desired == current:
            return Poll.ready()
        return Poll.not_ready(
            f"generation {generation} observed {observed}, "
            f"replicas {current}/{desired}"
        )

    return check
