"""Unit tests for the persisted operator configuration."""

import base64
import string
from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from sso_operator.errors import ConfigurationError
from sso_operator.utils.operator_config import (
    OperatorConfig,
    ensure_operator_config,
    generate_cookie_key,
    read_operator_config,
)


def _secret(data):
    return client.V1Secret(data=data)


def _encoded(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


class TestGenerateCookieKey:
    def test_length_and_alphabet(self):
        key = generate_cookie_key()

        assert len(key) == 32
        assert set(key) <= set(string.digits + string.ascii_letters)

    def test_keys_differ(self):
        assert generate_cookie_key() != generate_cookie_key()


class TestReadOperatorConfig:
    def test_missing_secret(self):
        core_api = MagicMock()
        core_api.read_namespaced_secret.side_effect = ApiException(status=404)

        assert read_operator_config(core_api, "sso-operator") is None

    def test_decodes_cookie_key(self):
        core_api = MagicMock()
        core_api.read_namespaced_secret.return_value = _secret(
            {"ssoCookieKey": _encoded("abc123")}
        )

        config = read_operator_config(core_api, "sso-operator")

        assert config == OperatorConfig(cookie_key="abc123")
        core_api.read_namespaced_secret.assert_called_once_with(
            name="sso-operator-secret", namespace="sso-operator"
        )

    def test_secret_without_key(self):
        core_api = MagicMock()
        core_api.read_namespaced_secret.return_value = _secret({"other": "eA=="})

        with pytest.raises(ConfigurationError):
            read_operator_config(core_api, "sso-operator")


class TestEnsureOperatorConfig:
    @patch("sso_operator.utils.operator_config.client.CoreV1Api")
    def test_reuses_existing_key(self, mock_core_cls):
        core_api = mock_core_cls.return_value
        core_api.read_namespaced_secret.return_value = _secret(
            {"ssoCookieKey": _encoded("existing")}
        )

        config = ensure_operator_config("sso-operator", api_client=MagicMock())

        assert config.cookie_key == "existing"
        core_api.create_namespaced_secret.assert_not_called()

    @patch("sso_operator.utils.operator_config.client.CoreV1Api")
    def test_generates_and_stores_key(self, mock_core_cls):
        core_api = mock_core_cls.return_value
        core_api.read_namespaced_secret.side_effect = ApiException(status=404)

        config = ensure_operator_config("sso-operator", api_client=MagicMock())

        assert len(config.cookie_key) == 32
        body = core_api.create_namespaced_secret.call_args.kwargs["body"]
        assert body.metadata.name == "sso-operator-secret"
        assert body.string_data == {"ssoCookieKey": config.cookie_key}

    @patch("sso_operator.utils.operator_config.client.CoreV1Api")
    def test_concurrent_creation_rereads(self, mock_core_cls):
        core_api = mock_core_cls.return_value
        core_api.read_namespaced_secret.side_effect = [
            ApiException(status=404),
            _secret({"ssoCookieKey": _encoded("winner")}),
        ]
        core_api.create_namespaced_secret.side_effect = ApiException(status=409)

        config = ensure_operator_config("sso-operator", api_client=MagicMock())

        assert config.cookie_key == "winner"
