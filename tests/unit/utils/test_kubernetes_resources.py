"""Unit tests for the Kubernetes capability layer."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from sso_operator.errors import KubernetesAPIError
from sso_operator.utils.kubernetes import KubernetesResources, SSOStore, set_owner_reference


@pytest.fixture
def resources():
    with (
        patch("sso_operator.utils.kubernetes.client.CoreV1Api"),
        patch("sso_operator.utils.kubernetes.client.AppsV1Api"),
        patch("sso_operator.utils.kubernetes.client.BatchV1Api"),
        patch("sso_operator.utils.kubernetes.client.NetworkingV1Api"),
    ):
        yield KubernetesResources(api_client=MagicMock())


def _secret():
    return client.V1Secret(
        metadata=client.V1ObjectMeta(name="my-sso-proxy-secret", namespace="team-a"),
        string_data={"oauth2_proxy.cfg": "x"},
    )


class TestSetOwnerReference:
    def test_adds_controller_reference(self, sso):
        secret = _secret()

        set_owner_reference(secret, sso)

        (ref,) = secret.metadata.owner_references
        assert ref.kind == "SSO"
        assert ref.api_version == "jenkins.io/v1"
        assert ref.name == "my-sso"
        assert ref.uid == "0b1c2d3e-uid"
        assert ref.controller is True


class TestApply:
    def test_creates_new_object(self, resources):
        resources.apply_secret(_secret())

        resources.core_api.create_namespaced_secret.assert_called_once()
        resources.core_api.patch_namespaced_secret.assert_not_called()

    def test_updates_existing_object(self, resources):
        resources.core_api.create_namespaced_secret.side_effect = ApiException(status=409)

        resources.apply_secret(_secret())

        resources.core_api.patch_namespaced_secret.assert_called_once()
        kwargs = resources.core_api.patch_namespaced_secret.call_args.kwargs
        assert kwargs["name"] == "my-sso-proxy-secret"
        assert kwargs["namespace"] == "team-a"

    def test_other_errors_raise(self, resources):
        resources.core_api.create_namespaced_secret.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            resources.apply_secret(_secret())

        assert exc_info.value.retryable is False


class TestDeploymentEnv:
    def _deployment(self, env):
        container = client.V1Container(name="proxy", env=env)
        return client.V1Deployment(
            spec=client.V1DeploymentSpec(
                selector=client.V1LabelSelector(match_labels={"sso": "my-sso"}),
                template=client.V1PodTemplateSpec(
                    spec=client.V1PodSpec(containers=[container])
                ),
            )
        )

    def test_replaces_existing_value(self, resources):
        deployment = self._deployment([client.V1EnvVar(name="SECRET_VERSION", value="old")])
        resources.apps_api.read_namespaced_deployment.return_value = deployment

        resources.set_deployment_env("proxy", "team-a", "SECRET_VERSION", "new")

        body = resources.apps_api.replace_namespaced_deployment.call_args.kwargs["body"]
        env = body.spec.template.spec.containers[0].env
        assert [(e.name, e.value) for e in env] == [("SECRET_VERSION", "new")]

    def test_appends_missing_value(self, resources):
        deployment = self._deployment(None)
        resources.apps_api.read_namespaced_deployment.return_value = deployment

        resources.set_deployment_env("proxy", "team-a", "SECRET_VERSION", "new")

        env = deployment.spec.template.spec.containers[0].env
        assert [(e.name, e.value) for e in env] == [("SECRET_VERSION", "new")]


class TestJobsAndIngress:
    def test_job_exists(self, resources):
        assert resources.job_exists("job", "team-a") is True

        resources.batch_api.read_namespaced_job.side_effect = ApiException(status=404)
        assert resources.job_exists("job", "team-a") is False

    def test_delete_job_uses_background_propagation(self, resources):
        resources.delete_job("job", "team-a")

        body = resources.batch_api.delete_namespaced_job.call_args.kwargs["body"]
        assert body.propagation_policy == "Background"

    def test_delete_missing_objects_is_ignored(self, resources):
        resources.batch_api.delete_namespaced_job.side_effect = ApiException(status=404)
        resources.core_api.delete_namespaced_config_map.side_effect = ApiException(
            status=404
        )

        resources.delete_job("job", "team-a")
        resources.delete_config_map("cm", "team-a")

    def test_find_ingress_hosts(self, resources):
        resources.networking_api.read_namespaced_ingress.return_value = client.V1Ingress(
            spec=client.V1IngressSpec(
                rules=[
                    client.V1IngressRule(host="jenkins.example.com"),
                    client.V1IngressRule(),
                ]
            )
        )

        assert resources.find_ingress_hosts("jenkins", "team-a") == ["jenkins.example.com"]

    def test_missing_ingress_has_no_hosts(self, resources):
        resources.networking_api.read_namespaced_ingress.side_effect = ApiException(
            status=404
        )

        assert resources.find_ingress_hosts("jenkins", "team-a") == []


class TestSSOStore:
    @pytest.fixture
    def store(self):
        with patch("sso_operator.utils.kubernetes.client.CustomObjectsApi"):
            yield SSOStore(api_client=MagicMock())

    def test_read_status(self, store, sso_body):
        sso_body["status"] = {"clientId": "abc", "initialized": True}
        store.custom_api.get_namespaced_custom_object.return_value = sso_body

        status = store.read_status("team-a", "my-sso")

        assert status.client_id == "abc"
        assert status.initialized is True

    def test_read_status_of_deleted_resource(self, store):
        store.custom_api.get_namespaced_custom_object.side_effect = ApiException(
            status=404
        )

        assert store.read_status("team-a", "my-sso") is None

    def test_update_status(self, store):
        store.update_status("team-a", "my-sso", "abc", True)

        kwargs = store.custom_api.patch_namespaced_custom_object_status.call_args.kwargs
        assert kwargs["group"] == "jenkins.io"
        assert kwargs["plural"] == "ssos"
        assert kwargs["body"] == {"status": {"clientId": "abc", "initialized": True}}

    def test_update_status_without_status_subresource(self, store):
        store.custom_api.patch_namespaced_custom_object_status.side_effect = (
            ApiException(status=404)
        )

        store.update_status("team-a", "my-sso", "abc", True)

        kwargs = store.custom_api.patch_namespaced_custom_object.call_args.kwargs
        assert kwargs["name"] == "my-sso"
        assert kwargs["body"] == {"status": {"clientId": "abc", "initialized": True}}

    def test_update_status_of_deleted_resource_fails(self, store):
        store.custom_api.patch_namespaced_custom_object_status.side_effect = (
            ApiException(status=404)
        )
        store.custom_api.patch_namespaced_custom_object.side_effect = ApiException(
            status=404
        )

        with pytest.raises(KubernetesAPIError):
            store.update_status("team-a", "my-sso", "abc", True)

    def test_update_status_server_error_is_not_retried_on_object(self, store):
        store.custom_api.patch_namespaced_custom_object_status.side_effect = (
            ApiException(status=500)
        )

        with pytest.raises(KubernetesAPIError):
            store.update_status("team-a", "my-sso", "abc", True)

        store.custom_api.patch_namespaced_custom_object.assert_not_called()
