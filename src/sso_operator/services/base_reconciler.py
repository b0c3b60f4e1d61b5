"""
Base reconciler class providing common patterns for resource reconciliation.

This module defines the BaseReconciler class that implements the standard
wrapping of a reconciliation pass: per-resource admission, metrics, logging
and translation of failures into kopf retry semantics.
"""

import time
from abc import ABC, abstractmethod

from kubernetes.client.rest import ApiException

from ..constants import PHASE_FAILED
from ..errors import KubernetesAPIError, OperatorError, TemporaryError
from ..models import ResourceEvent
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector
from ..utils.concurrency import ConcurrencyGuard


class BaseReconciler(ABC):
    """
    Base class for resource reconcilers.

    Provides common patterns for:
    - Dropping events for a resource that already has a pass in flight
    - Reconciliation metrics and structured logging
    - Error handling and retry logic
    """

    def __init__(self, guard: ConcurrencyGuard | None = None):
        """
        Initialize base reconciler.

        Args:
            guard: Concurrency guard shared by every pass of this reconciler
        """
        self.guard = guard or ConcurrencyGuard()
        self.logger = OperatorLogger(self.__class__.__name__)

    async def reconcile(self, event: ResourceEvent) -> bool:
        """
        Main reconciliation entry point with metrics tracking.

        Args:
            event: The observed change

        Returns:
            True if the event was handled, False if it was dropped because a
            pass for the same resource was already running

        Raises:
            kopf.TemporaryError: A retryable failure; kopf redelivers the event
            kopf.PermanentError: A failure retrying cannot fix
        """
        resource = event.resource
        resource_type = event.kind
        name = resource.name
        namespace = resource.namespace
        operation = "cleanup" if event.deleted else "provision"

        async with self.guard.admit(resource.key) as admitted:
            if not admitted:
                metrics_collector.record_reconciliation_skip(
                    resource_type=resource_type, namespace=namespace, name=name
                )
                self.logger.info(
                    f"Dropping event for {resource_type} {namespace}/{name}: "
                    "a pass is already in flight",
                    resource_type=resource_type,
                    resource_name=name,
                    namespace=namespace,
                )
                return False

            start_time = time.time()
            self.logger.log_reconciliation_start(
                resource_type=resource_type,
                resource_name=name,
                namespace=namespace,
                operation=operation,
            )

            async with metrics_collector.track_reconciliation(
                resource_type=resource_type,
                namespace=namespace,
                name=name,
                operation=operation,
            ):
                try:
                    await self.handle(event)

                    self.logger.log_reconciliation_success(
                        resource_type=resource_type,
                        resource_name=name,
                        namespace=namespace,
                        duration=time.time() - start_time,
                        operation=operation,
                    )
                    return True

                except OperatorError as e:
                    self.logger.log_reconciliation_error(
                        resource_type=resource_type,
                        resource_name=name,
                        namespace=namespace,
                        error=e,
                        duration=time.time() - start_time,
                        operation=operation,
                        step=getattr(e, "step", None),
                    )
                    metrics_collector.update_resource_status(
                        resource_type=resource_type, namespace=namespace, phase=PHASE_FAILED
                    )
                    raise e.as_kopf_error() from e

                except ApiException as e:
                    http_status = getattr(e, "status", None)
                    error = KubernetesAPIError(
                        message=str(e),
                        reason=getattr(e, "reason", None),
                        retryable=http_status is not None
                        and http_status >= 500,  # 5xx errors are retryable
                    )
                    self.logger.log_reconciliation_error(
                        resource_type=resource_type,
                        resource_name=name,
                        namespace=namespace,
                        error=error,
                        duration=time.time() - start_time,
                        operation=operation,
                    )
                    metrics_collector.update_resource_status(
                        resource_type=resource_type, namespace=namespace, phase=PHASE_FAILED
                    )
                    raise error.as_kopf_error() from e

                except Exception as e:
                    # Wrap unexpected errors as temporary to allow retry
                    error = TemporaryError(
                        f"Unexpected error during reconciliation: {str(e)}"
                    )
                    self.logger.log_reconciliation_error(
                        resource_type=resource_type,
                        resource_name=name,
                        namespace=namespace,
                        error=error,
                        duration=time.time() - start_time,
                        operation=operation,
                    )
                    metrics_collector.update_resource_status(
                        resource_type=resource_type, namespace=namespace, phase=PHASE_FAILED
                    )
                    raise error.as_kopf_error() from e

    @abstractmethod
    async def handle(self, event: ResourceEvent) -> None:
        """
        Resource-specific reconciliation logic.

        Args:
            event: The observed change

        Raises:
            OperatorError: When the pass fails
        """
        raise NotImplementedError
