"""Unit tests for the oauth2_proxy provisioner."""

import pytest
from kubernetes import client

from sso_operator.errors import ValidationError, WaitTimeoutError
from sso_operator.services.proxy_provisioner import (
    ProxyProvisioner,
    derive_app_name,
    upstream_url,
)
from sso_operator.utils.dex_client import OIDCClient
from sso_operator.utils.templates import config_fingerprint
from sso_operator.utils.wait import Poll


def _service(name, labels=None, ports=(80,)):
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=name, labels=labels),
        spec=client.V1ServiceSpec(
            ports=[client.V1ServicePort(port=port) for port in ports]
        ),
    )


class TestDeriveAppName:
    def test_app_label_wins(self):
        service = _service("jx-jenkins", {"app": "jenkins", "release": "jx"})

        assert derive_app_name(service) == "jenkins"

    def test_release_prefix_is_stripped(self):
        assert derive_app_name(_service("jx-jenkins", {"release": "jx"})) == "jenkins"

    def test_falls_back_to_service_name(self):
        assert derive_app_name(_service("jenkins")) == "jenkins"


class TestUpstreamUrl:
    def test_uses_first_port(self):
        assert upstream_url(_service("jenkins", ports=(8080, 50000))) == "http://jenkins:8080"

    def test_service_without_ports(self):
        with pytest.raises(ValidationError):
            upstream_url(_service("jenkins", ports=()))


class TestDeploy:
    @pytest.mark.asyncio
    async def test_creates_secret_deployment_and_service(
        self, sso, oidc_client, mock_resources
    ):
        bundle = await ProxyProvisioner(mock_resources).deploy(
            sso, oidc_client, "cookie-key"
        )

        assert bundle.app_name == "jenkins"

        secret = mock_resources.apply_secret.call_args.args[0]
        config = secret.string_data["oauth2_proxy.cfg"]
        assert 'client_id = "client-123"' in config
        assert '"http://jenkins:8080"' in config
        assert 'redirect_url = "https://fake-oauth2-proxy/oauth2/callback"' in config
        assert secret.metadata.labels == {"app": "jenkins", "sso": "my-sso"}
        assert secret.metadata.owner_references[0].name == "my-sso"

        deployment = mock_resources.apply_deployment.call_args.args[0]
        assert deployment.spec.replicas == 1
        pod_spec = deployment.spec.template.spec
        container = pod_spec.containers[0]
        assert container.image == "quay.io/pusher/oauth2_proxy:v3.1.0"
        assert container.args == ["--config=/config/oauth2_proxy.cfg"]
        assert container.ports[0].container_port == 4180
        assert container.liveness_probe.http_get.path == "/ping"
        assert container.readiness_probe.http_get.path == "/ping"
        assert container.env[0].name == "SECRET_VERSION"
        assert container.env[0].value == config_fingerprint(secret.string_data)
        assert pod_spec.volumes[0].secret.secret_name == secret.metadata.name

        service = mock_resources.apply_service.call_args.args[0]
        assert service.metadata.name == "my-sso"
        assert service.spec.ports[0].port == 80
        assert service.spec.ports[0].target_port == 4180
        assert service.metadata.annotations["fabric8.io/expose"] == "true"
        assert service.metadata.annotations["fabric8.io/ingress.name"] == "jenkins"
        assert (
            "certmanager.k8s.io/issuer: letsencrypt-prod"
            in service.metadata.annotations["fabric8.io/ingress.annotations"]
        )

        assert bundle.service is service
        mock_resources.service_presence.assert_called_once_with("my-sso", "team-a")
        mock_resources.pods_running.assert_called_once_with("team-a", "sso=my-sso")

    @pytest.mark.asyncio
    async def test_times_out_when_pods_never_run(
        self, sso, oidc_client, mock_resources, monkeypatch
    ):
        mock_resources.pods_running.return_value = lambda: Poll.not_ready("pending")
        monkeypatch.setattr(
            "sso_operator.services.proxy_provisioner.POD_READY_TIMEOUT", 0.05
        )
        monkeypatch.setattr(
            "sso_operator.services.proxy_provisioner.POD_CHECK_INTERVAL", 0.01
        )

        with pytest.raises(WaitTimeoutError):
            await ProxyProvisioner(mock_resources).deploy(sso, oidc_client, "cookie-key")


class TestUpdate:
    @pytest.mark.asyncio
    async def test_rolls_pods_with_new_fingerprint(
        self, sso, oidc_client, mock_resources
    ):
        provisioner = ProxyProvisioner(mock_resources)
        bundle = await provisioner.deploy(sso, oidc_client, "cookie-key")
        old_fingerprint = config_fingerprint(bundle.secret.string_data)
        mock_resources.reset_mock()

        real_client = OIDCClient(
            id="client-123",
            secret="client-secret",
            redirect_uris=["https://my-sso.example.com/oauth2/callback"],
        )
        await provisioner.update(bundle, sso, real_client, "cookie-key")

        secret = mock_resources.apply_secret.call_args.args[0]
        assert (
            'redirect_url = "https://my-sso.example.com/oauth2/callback"'
            in secret.string_data["oauth2_proxy.cfg"]
        )

        name, namespace, env_name, value = mock_resources.set_deployment_env.call_args.args
        assert name == bundle.deployment.metadata.name
        assert namespace == "team-a"
        assert env_name == "SECRET_VERSION"
        assert value == config_fingerprint(secret.string_data)
        assert value != old_fingerprint

        mock_resources.deployment_stable.assert_called_once_with(name, "team-a")
        mock_resources.pods_running.assert_called_once_with("team-a", "sso=my-sso")

    @pytest.mark.asyncio
    async def test_same_configuration_keeps_fingerprint(
        self, sso, oidc_client, mock_resources
    ):
        provisioner = ProxyProvisioner(mock_resources)
        bundle = await provisioner.deploy(sso, oidc_client, "cookie-key")
        before = config_fingerprint(bundle.secret.string_data)

        await provisioner.update(bundle, sso, oidc_client, "cookie-key")

        value = mock_resources.set_deployment_env.call_args.args[3]
        assert value == before
