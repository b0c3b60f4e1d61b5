"""
Service layer for the SSO operator.

This module provides the reconciler and the provisioning services that hold
the business logic for SSO resources, separated from the kopf handler layer.
"""

from .base_reconciler import BaseReconciler
from .exposure_invoker import ExposureInvoker
from .proxy_provisioner import ProxyBundle, ProxyProvisioner
from .sso_reconciler import SSOReconciler

__all__ = [
    "BaseReconciler",
    "ExposureInvoker",
    "ProxyBundle",
    "ProxyProvisioner",
    "SSOReconciler",
]
