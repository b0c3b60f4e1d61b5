"""
Utils package - Utility modules for SSO operator functionality.

Contains helper modules for:
- Dex gRPC API interactions
- Kubernetes resource management and RBAC bootstrap
- Polling cluster state and per-resource concurrency
- Rendering proxy and exposecontroller configuration
"""

from sso_operator.utils.concurrency import ConcurrencyGuard
from sso_operator.utils.naming import build_name
from sso_operator.utils.wait import Poll, wait_for

__all__ = [
    "ConcurrencyGuard",
    "Poll",
    "build_name",
    "wait_for",
]
