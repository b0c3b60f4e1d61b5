"""Unit tests for operator settings."""

from sso_operator.settings import Settings


def test_defaults():
    settings = Settings()

    assert settings.operator_namespace == "sso-operator"
    assert settings.cluster_role_name == "sso-operator"
    assert settings.expose_image == "jenkinsxio/exposecontroller"
    assert settings.dex_grpc_client_ca == "/etc/dex/tls/ca.crt"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DEX_GRPC_HOST_PORT", "dex.dex:5557")
    monkeypatch.setenv("OPERATOR_NAMESPACE", "jx")

    settings = Settings()

    assert settings.dex_grpc_host_port == "dex.dex:5557"
    assert settings.operator_namespace == "jx"


def test_watched_namespaces():
    assert Settings(WATCH_NAMESPACE="").watched_namespaces is None
    assert Settings(WATCH_NAMESPACE="a, b").watched_namespaces == ["a", "b"]
