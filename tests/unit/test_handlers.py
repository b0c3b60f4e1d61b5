"""Unit tests for the kopf handlers of SSO resources."""

from unittest.mock import AsyncMock, MagicMock

import kopf
import pytest

from sso_operator.handlers.sso import build_event, delete_sso, reconcile_sso


@pytest.fixture
def memo():
    memo = MagicMock()
    memo.sso_reconciler.reconcile = AsyncMock(return_value=True)
    return memo


class TestBuildEvent:
    def test_parses_body(self, sso_body):
        event = build_event(sso_body)

        assert event.kind == "SSO"
        assert event.deleted is False
        assert event.resource.name == "my-sso"
        assert event.resource.spec.upstream_service == "jenkins"

    def test_deletion_keeps_last_status(self, sso_body):
        sso_body["status"] = {"clientId": "client-123", "initialized": True}

        event = build_event(sso_body, deleted=True)

        assert event.deleted is True
        assert event.resource.status.client_id == "client-123"
        assert event.resource.status.initialized is True


class TestHandlers:
    @pytest.mark.asyncio
    async def test_reconcile_passes_provision_event(self, memo, sso_body):
        await reconcile_sso(
            body=sso_body, name="my-sso", namespace="team-a", memo=memo
        )

        event = memo.sso_reconciler.reconcile.call_args.args[0]
        assert event.deleted is False
        assert event.resource.key == ("team-a", "my-sso")

    @pytest.mark.asyncio
    async def test_dropped_update_is_not_an_error(self, memo, sso_body):
        memo.sso_reconciler.reconcile.return_value = False

        await reconcile_sso(
            body=sso_body, name="my-sso", namespace="team-a", memo=memo
        )

    @pytest.mark.asyncio
    async def test_delete_passes_deletion_event(self, memo, sso_body):
        await delete_sso(body=sso_body, name="my-sso", namespace="team-a", memo=memo)

        event = memo.sso_reconciler.reconcile.call_args.args[0]
        assert event.deleted is True

    @pytest.mark.asyncio
    async def test_dropped_deletion_is_retried(self, memo, sso_body):
        memo.sso_reconciler.reconcile.return_value = False

        with pytest.raises(kopf.TemporaryError):
            await delete_sso(
                body=sso_body, name="my-sso", namespace="team-a", memo=memo
            )
