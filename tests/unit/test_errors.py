"""Unit tests for the operator error hierarchy."""

import kopf

from sso_operator.errors import (
    CleanupError,
    ClientNotFoundError,
    ConfigurationError,
    IdentityProviderError,
    KubernetesAPIError,
    ProvisioningError,
    TemporaryError,
    WaitTimeoutError,
)


class TestKopfConversion:
    def test_retryable_becomes_temporary(self):
        error = TemporaryError("try later", delay=15).as_kopf_error()

        assert isinstance(error, kopf.TemporaryError)
        assert error.delay == 15

    def test_non_retryable_becomes_permanent(self):
        assert isinstance(
            ConfigurationError("bad settings").as_kopf_error(), kopf.PermanentError
        )

    def test_user_action_is_appended(self):
        error = ConfigurationError("bad", user_action="Fix it")

        assert str(error) == "bad\nAction required: Fix it"


class TestCategories:
    def test_forbidden_is_not_retryable(self):
        assert KubernetesAPIError("denied", reason="Forbidden").retryable is False
        assert KubernetesAPIError("busy", reason="ServiceUnavailable").retryable is True

    def test_client_not_found(self):
        error = ClientNotFoundError("abc", "delete")

        assert isinstance(error, IdentityProviderError)
        assert error.retryable is False
        assert "delete did not find the OIDC client with id 'abc'" in str(error)

    def test_wait_timeout_message(self):
        error = WaitTimeoutError("pods to run", 300, "0/1 pods running")

        assert "error waiting for pods to run" in str(error)
        assert "timed out after 300s" in str(error)
        assert error.retryable is True

    def test_pipeline_errors_inherit_retry_semantics(self):
        permanent = ProvisioningError(
            "update-client", "my-sso", "team-a", ClientNotFoundError("abc", "update")
        )
        transient = CleanupError("delete-client", "my-sso", "team-a", RuntimeError("x"))

        assert permanent.retryable is False
        assert permanent.step == "update-client"
        assert "team-a/my-sso" in str(permanent)
        assert transient.retryable is True
