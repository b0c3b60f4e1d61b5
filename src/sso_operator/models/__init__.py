"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for the SSO custom resource and the events the
reconciler consumes.
"""

from .sso import SSO, CookieSpec, ResourceEvent, SSOEvent, SSOMetadata, SSOSpec, SSOStatus

__all__ = [
    "SSO",
    "CookieSpec",
    "ResourceEvent",
    "SSOEvent",
    "SSOMetadata",
    "SSOSpec",
    "SSOStatus",
]
