"""Unit tests for the service account binding of the exposecontroller jobs."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from sso_operator.errors import ConfigurationError
from sso_operator.utils.rbac import ensure_cluster_role_binding, ensure_service_account


def _binding(role_name, subjects=None):
    return client.V1ClusterRoleBinding(
        metadata=client.V1ObjectMeta(name=f"{role_name}-binding"),
        role_ref=client.V1RoleRef(
            api_group="rbac.authorization.k8s.io", kind="ClusterRole", name=role_name
        ),
        subjects=subjects,
    )


def _subject(name, namespace):
    return client.RbacV1Subject(kind="ServiceAccount", name=name, namespace=namespace)


@pytest.fixture
def rbac_api():
    with patch("sso_operator.utils.rbac.client.RbacAuthorizationV1Api") as cls:
        yield cls.return_value


@pytest.fixture
def core_api():
    with patch("sso_operator.utils.rbac.client.CoreV1Api") as cls:
        api = cls.return_value
        api.read_namespaced_service_account.side_effect = ApiException(status=404)
        api.create_namespaced_service_account.return_value = client.V1ServiceAccount(
            metadata=client.V1ObjectMeta(name="sso-operator-sa", namespace="team-a")
        )
        yield api


class TestEnsureClusterRoleBinding:
    def test_reuses_bound_account(self, rbac_api, core_api):
        rbac_api.list_cluster_role_binding.return_value.items = [
            _binding("sso-operator", [_subject("existing-sa", "team-a")])
        ]

        account = ensure_cluster_role_binding("sso-operator", "team-a")

        assert account == "existing-sa"
        rbac_api.replace_cluster_role_binding.assert_not_called()
        core_api.create_namespaced_service_account.assert_not_called()

    def test_adds_account_of_namespace(self, rbac_api, core_api):
        binding = _binding("sso-operator", [_subject("sso-operator", "sso-operator")])
        rbac_api.list_cluster_role_binding.return_value.items = [
            _binding("unrelated"),
            binding,
        ]

        account = ensure_cluster_role_binding("sso-operator", "team-a")

        assert account == "sso-operator-sa"
        rbac_api.replace_cluster_role_binding.assert_called_once()
        body = rbac_api.replace_cluster_role_binding.call_args.kwargs["body"]
        assert [(s.name, s.namespace) for s in body.subjects] == [
            ("sso-operator", "sso-operator"),
            ("sso-operator-sa", "team-a"),
        ]

    def test_missing_binding(self, rbac_api, core_api):
        rbac_api.list_cluster_role_binding.return_value.items = [_binding("other")]

        with pytest.raises(ConfigurationError) as exc_info:
            ensure_cluster_role_binding("sso-operator", "team-a")

        assert exc_info.value.retryable is True


class TestEnsureServiceAccount:
    def test_reuses_existing(self):
        core_api = MagicMock()
        core_api.read_namespaced_service_account.return_value = client.V1ServiceAccount(
            metadata=client.V1ObjectMeta(name="sso-operator-sa")
        )

        assert ensure_service_account(core_api, "sso-operator-sa", "team-a") == "sso-operator-sa"
        core_api.create_namespaced_service_account.assert_not_called()

    def test_conflict_is_success(self):
        core_api = MagicMock()
        core_api.read_namespaced_service_account.side_effect = ApiException(status=404)
        core_api.create_namespaced_service_account.side_effect = ApiException(status=409)

        assert ensure_service_account(core_api, "sso-operator-sa", "team-a") == "sso-operator-sa"
