"""
SSO handlers - Turns kopf events for SSO resources into reconciler events.

Creation, resumption after an operator restart and spec updates all ask the
reconciler to provision the resource; the reconciler itself decides from the
persisted status whether anything is left to do. Deletion runs the cleanup
pipeline for resources that were initialized.

The reconciler is created at startup and kept in the kopf memo.
"""

import logging
from typing import Any

import kopf

from sso_operator.constants import SSO_GROUP, SSO_PLURAL, SSO_VERSION
from sso_operator.models import SSO, SSOEvent
from sso_operator.observability.tracing import traced_handler

logger = logging.getLogger(__name__)


def build_event(body: Any, deleted: bool = False) -> SSOEvent:
    """Build a reconciler event from a kopf body."""
    return SSOEvent(resource=SSO.from_body(body), deleted=deleted)


@kopf.on.create(SSO_PLURAL, group=SSO_GROUP, version=SSO_VERSION, backoff=1.5)
@kopf.on.resume(SSO_PLURAL, group=SSO_GROUP, version=SSO_VERSION, backoff=1.5)
@kopf.on.update(SSO_PLURAL, group=SSO_GROUP, version=SSO_VERSION, backoff=1.5)
@traced_handler("reconcile_sso")
async def reconcile_sso(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """
    Provision an SSO resource unless it is already initialized.

    Args:
        body: The SSO resource as delivered by the watch
        name: Name of the SSO resource
        namespace: Namespace of the SSO resource
        memo: Operator memo holding the reconciler
    """
    handled = await memo.sso_reconciler.reconcile(build_event(body))
    if not handled:
        logger.debug(f"Event for SSO {namespace}/{name} dropped while a pass runs")


@kopf.on.delete(SSO_PLURAL, group=SSO_GROUP, version=SSO_VERSION, backoff=1.5)
@traced_handler("delete_sso")
async def delete_sso(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """
    Remove the ingress and OIDC client of a deleted SSO resource.

    The status in ``body`` is the last one persisted, so a resource whose
    provisioning never completed is left alone.
    """
    logger.info(f"SSO {namespace}/{name} deleted, starting cleanup")
    handled = await memo.sso_reconciler.reconcile(build_event(body, deleted=True))
    if not handled:
        # Cleanup must not be lost; kopf keeps the finalizer and retries
        raise kopf.TemporaryError(
            f"a pass for SSO {namespace}/{name} is still running", delay=10
        )
