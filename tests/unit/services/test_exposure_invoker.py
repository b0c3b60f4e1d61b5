"""Unit tests for the exposecontroller job runner."""

from unittest.mock import call

import pytest
import yaml

from sso_operator.errors import WaitError
from sso_operator.models import SSO
from sso_operator.services.exposure_invoker import ExposureInvoker, build_expose_job
from sso_operator.utils.wait import Poll


@pytest.fixture
def invoker(mock_resources):
    return ExposureInvoker(
        mock_resources, image="jenkinsxio/exposecontroller", image_tag="2.3.89"
    )


class TestExpose:
    @pytest.mark.asyncio
    async def test_runs_job_and_removes_it(self, invoker, mock_resources, sso):
        await invoker.expose(sso, "my-sso", "sso-operator-sa")

        config_map = mock_resources.apply_config_map.call_args.args[0]
        assert config_map.metadata.name == "my-sso-expose-config"
        config = yaml.safe_load(config_map.data["config.yml"])
        assert config["services"] == ["my-sso"]
        assert config["domain"] == "example.com"
        assert config["exposer"] == "Ingress"

        job = mock_resources.create_job.call_args.args[0]
        assert job.metadata.name == "my-sso-expose"
        assert job.metadata.namespace == "team-a"
        pod_spec = job.spec.template.spec
        assert pod_spec.service_account_name == "sso-operator-sa"
        assert pod_spec.restart_policy == "Never"
        assert pod_spec.volumes[0].config_map.name == "my-sso-expose-config"
        container = pod_spec.containers[0]
        assert container.image == "jenkinsxio/exposecontroller:2.3.89"
        assert container.command == ["/exposecontroller"]
        assert container.args == ["--config=/etc/exposecontroller/config.yml", "--v", "4"]
        assert container.env[0].name == "KUBERNETES_NAMESPACE"
        assert container.env[0].value == "team-a"

        mock_resources.job_complete.assert_called_once_with("my-sso-expose", "team-a")
        mock_resources.delete_job.assert_called_once_with("my-sso-expose", "team-a")
        mock_resources.delete_config_map.assert_called_once_with(
            "my-sso-expose-config", "team-a"
        )

    @pytest.mark.asyncio
    async def test_stale_job_is_replaced(self, invoker, mock_resources, sso):
        mock_resources.job_exists.return_value = True

        await invoker.expose(sso, "my-sso", "sso-operator-sa")

        mock_resources.job_absent.assert_called_once_with("my-sso-expose", "team-a")
        assert mock_resources.delete_job.call_args_list == [
            call("my-sso-expose", "team-a"),
            call("my-sso-expose", "team-a"),
        ]
        mock_resources.create_job.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_job_is_kept_for_inspection(
        self, invoker, mock_resources, sso
    ):
        mock_resources.job_complete.return_value = lambda: Poll.fatal(
            RuntimeError("job failed: BackoffLimitExceeded")
        )

        with pytest.raises(WaitError):
            await invoker.expose(sso, "my-sso", "sso-operator-sa")

        mock_resources.delete_job.assert_not_called()
        mock_resources.delete_config_map.assert_not_called()


class TestCleanup:
    @pytest.mark.asyncio
    async def test_runs_cleanup_job(self, invoker, mock_resources, sso):
        await invoker.cleanup(sso, "my-sso", "sso-operator-sa")

        job = mock_resources.create_job.call_args.args[0]
        assert job.metadata.name == "my-sso-cleanup"
        assert job.spec.template.spec.containers[0].args == [
            "--config=/etc/exposecontroller/config.yml",
            "--cleanup",
            "--filter=my-sso",
        ]
        mock_resources.delete_job.assert_called_once_with("my-sso-cleanup", "team-a")


class TestLongNames:
    @pytest.mark.parametrize("suffix", ["expose", "cleanup"])
    def test_job_and_container_names_fit_a_dns_label(self, sso_body, suffix):
        sso_body["metadata"]["name"] = "a" * 60
        long_sso = SSO.from_body(sso_body)

        job = build_expose_job(
            long_sso,
            suffix,
            ["--v", "4"],
            "expose-config",
            "sso-operator-sa",
            "jenkinsxio/exposecontroller:2.3.89",
        )

        container = job.spec.template.spec.containers[0]
        assert len(job.metadata.name) <= 63
        assert len(container.name) <= 63
        assert container.name == job.metadata.name
        assert container.name.endswith(f"-{suffix}")
