"""Shared pytest fixtures for SSO operator unit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from kubernetes import client

from sso_operator.models import SSO
from sso_operator.utils.dex_client import OIDCClient
from sso_operator.utils.templates import placeholder_redirect_url
from sso_operator.utils.wait import Poll


def _ready():
    return Poll.ready()


@pytest.fixture
def sso_body():
    """Raw SSO custom object as returned by the API server."""
    return {
        "apiVersion": "jenkins.io/v1",
        "kind": "SSO",
        "metadata": {
            "name": "my-sso",
            "namespace": "team-a",
            "uid": "0b1c2d3e-uid",
        },
        "spec": {
            "oidcIssuerUrl": "https://dex.example.com",
            "upstreamService": "jenkins",
            "domain": "example.com",
            "certIssuerName": "letsencrypt-prod",
            "cookieSpec": {"name": "_sso", "secure": True},
        },
        "status": {},
    }


@pytest.fixture
def sso(sso_body):
    return SSO.from_body(sso_body)


@pytest.fixture
def oidc_client():
    return OIDCClient(
        id="client-123",
        secret="client-secret",
        redirect_uris=[placeholder_redirect_url()],
        name="my-sso",
    )


@pytest.fixture
def upstream_service():
    """The service the SSO protects."""
    return client.V1Service(
        metadata=client.V1ObjectMeta(
            name="jenkins", namespace="team-a", labels={"app": "jenkins"}
        ),
        spec=client.V1ServiceSpec(ports=[client.V1ServicePort(port=8080)]),
    )


@pytest.fixture
def mock_resources(upstream_service):
    """ResourceProvisioner double whose waits are immediately satisfied."""
    resources = MagicMock()
    resources.read_service.return_value = upstream_service
    resources.job_exists.return_value = False
    resources.find_ingress_hosts.return_value = ["my-sso.example.com"]
    for predicate in (
        "service_presence",
        "pods_running",
        "deployment_stable",
        "job_complete",
        "job_absent",
    ):
        getattr(resources, predicate).return_value = _ready
    return resources


@pytest.fixture
def mock_identity_provider(oidc_client):
    """IdentityProvider double that accepts every call."""
    provider = MagicMock()
    provider.create_client = AsyncMock(return_value=oidc_client)
    provider.update_client = AsyncMock(return_value=None)
    provider.delete_client = AsyncMock(return_value=None)
    return provider
