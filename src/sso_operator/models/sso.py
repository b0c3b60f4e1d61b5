"""
Pydantic models for SSO resources.

This module defines type-safe data models for the SSO custom resource
(jenkins.io/v1), its status, and the events handed to the reconciler.
"""

from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, Field

from ..constants import DEFAULT_PROXY_IMAGE, DEFAULT_PROXY_IMAGE_TAG


class CookieSpec(BaseModel):
    """Cookie settings of the oauth2_proxy session cookie."""

    model_config = {"populate_by_name": True}

    name: str = Field("_oauth2_proxy", description="Cookie name")
    expire: str = Field("168h0m", description="Expiration time of the cookie")
    refresh: str = Field("60m", description="Refresh interval of the cookie")
    secure: bool = Field(
        True, description="Cookie is only sent over an HTTPS connection"
    )
    http_only: bool = Field(
        True, alias="httpOnly", description="Cookie is not readable from JavaScript"
    )


class SSOSpec(BaseModel):
    """
    Specification of an SSO resource.

    Describes the upstream service to protect, the Dex issuer to register an
    OIDC client with, and how the oauth2_proxy in front of it is deployed.
    """

    model_config = {"populate_by_name": True}

    oidc_issuer_url: str = Field(
        "", alias="oidcIssuerUrl", description="URL of the Dex identity provider"
    )
    upstream_service: str = Field(
        "",
        alias="upstreamService",
        description="Name of the upstream service for which the SSO is created",
    )
    domain: str = Field("", description="Domain used for the cookie and the ingress")
    cert_issuer_name: str = Field(
        "",
        alias="certIssuerName",
        description="cert-manager issuer used for the proxy ingress certificate",
    )
    proxy_image: str = Field(
        DEFAULT_PROXY_IMAGE, alias="proxyImage", description="oauth2_proxy image"
    )
    proxy_image_tag: str = Field(
        DEFAULT_PROXY_IMAGE_TAG,
        alias="proxyImageTag",
        description="oauth2_proxy image tag",
    )
    proxy_resources: dict[str, Any] = Field(
        default_factory=dict,
        alias="proxyResources",
        description="Resource requirements for the oauth2_proxy pod",
    )
    forward_token: bool = Field(
        False,
        alias="forwardToken",
        description="Forward the access token to the upstream service",
    )
    cookie_spec: CookieSpec = Field(
        default_factory=CookieSpec,
        alias="cookieSpec",
        description="Cookie specification",
    )
    skip_expose_service: bool = Field(
        False,
        alias="skipExposeService",
        description="Do not run exposecontroller; the ingress is managed elsewhere",
    )
    url_template: str | None = Field(
        None,
        alias="urlTemplate",
        description="exposecontroller URL template for the generated ingress host",
    )


class SSOStatus(BaseModel):
    """Status of an SSO resource."""

    model_config = {"populate_by_name": True}

    client_id: str = Field(
        "", alias="clientId", description="ID of the OIDC client registered in Dex"
    )
    initialized: bool = Field(
        False, description="Whether the SSO was configured in Dex and oauth2_proxy"
    )


class SSOMetadata(BaseModel):
    """Identity of an SSO resource."""

    name: str
    namespace: str
    uid: str = ""


class SSO(BaseModel):
    """An SSO custom resource as delivered by the watch."""

    model_config = {"populate_by_name": True}

    metadata: SSOMetadata
    spec: SSOSpec = Field(default_factory=SSOSpec)
    status: SSOStatus = Field(default_factory=SSOStatus)

    @classmethod
    def from_body(cls, body: Any) -> "SSO":
        """Build an SSO from a kopf body or a raw custom object dict."""
        metadata = body.get("metadata", {}) or {}
        return cls.model_validate(
            {
                "metadata": {
                    "name": metadata.get("name"),
                    "namespace": metadata.get("namespace"),
                    "uid": metadata.get("uid") or "",
                },
                "spec": dict(body.get("spec", {}) or {}),
                "status": dict(body.get("status", {}) or {}),
            }
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> tuple[str, str]:
        """Key identifying this resource for the concurrency guard."""
        return (self.metadata.namespace, self.metadata.name)


class SSOEvent(BaseModel):
    """A change observed for an SSO resource."""

    kind: Literal["SSO"] = "SSO"
    resource: SSO
    deleted: bool = False


# Events accepted by the reconciler; new resource kinds join this union
ResourceEvent: TypeAlias = SSOEvent
