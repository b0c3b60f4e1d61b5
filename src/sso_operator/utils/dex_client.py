"""
Dex gRPC API client.

This module manages OIDC client registrations in Dex over a mutually
authenticated gRPC channel. It is the only component that talks to the
identity provider; the reconciler depends on the ``IdentityProvider``
protocol so tests can substitute an in-memory fake.

The client handles:
- Loading the CA, client certificate and key for mTLS
- Mapping Dex responses (already exists, not found) to operator errors
- Mapping transport failures to retryable or permanent errors
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import grpc

from ..errors import (
    ClientAlreadyExistsError,
    ClientNotFoundError,
    ConfigurationError,
    IdentityProviderError,
)
from ..observability.metrics import metrics_collector
from ..observability.tracing import trace_metadata
from ..settings import Settings
from . import dex_api

logger = logging.getLogger(__name__)

# Status codes worth retrying through kopf redelivery
RETRYABLE_STATUS_CODES = frozenset(
    {
        grpc.StatusCode.UNAVAILABLE,
        grpc.StatusCode.DEADLINE_EXCEEDED,
        grpc.StatusCode.RESOURCE_EXHAUSTED,
    }
)


@dataclass
class OIDCClient:
    """An OIDC client registered in Dex."""

    id: str
    secret: str
    redirect_uris: list[str] = field(default_factory=list)
    trusted_peers: list[str] = field(default_factory=list)
    public: bool = False
    name: str = ""
    logo_url: str = ""

    @classmethod
    def from_message(cls, message) -> "OIDCClient":
        return cls(
            id=message.id,
            secret=message.secret,
            redirect_uris=list(message.redirect_uris),
            trusted_peers=list(message.trusted_peers),
            public=message.public,
            name=message.name,
            logo_url=message.logo_url,
        )


class IdentityProvider(Protocol):
    """Capability of registering OIDC clients with an identity provider."""

    async def create_client(
        self,
        redirect_uris: list[str],
        trusted_peers: list[str],
        public: bool,
        name: str,
        logo_url: str,
    ) -> OIDCClient: ...

    async def update_client(
        self,
        client_id: str,
        redirect_uris: list[str],
        trusted_peers: list[str],
        name: str,
        logo_url: str,
    ) -> None: ...

    async def delete_client(self, client_id: str) -> None: ...


def _read_credential(path: str, description: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ConfigurationError(
            f"cannot read the Dex gRPC {description} at '{path}': {e}",
            user_action="Mount the Dex client TLS secret and check DEX_GRPC_CLIENT_* settings",
        ) from e


class DexClient:
    """
    Async client for the client management API of Dex.

    Example:
        dex = DexClient.from_settings(settings)
        client = await dex.create_client([callback], [], False, "my-app", "")
        await dex.delete_client(client.id)
    """

    def __init__(
        self,
        stub: dex_api.DexStub,
        channel: grpc.aio.Channel | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the Dex client.

        Args:
            stub: Stub bound to an open channel
            channel: Channel owning the connection, closed by ``close()``
            timeout: Deadline for each call in seconds
        """
        self.stub = stub
        self.channel = channel
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "DexClient":
        """
        Open an mTLS channel to Dex using the operator settings.

        Raises:
            ConfigurationError: If the address is missing or a credential file
                cannot be read
        """
        if not settings.dex_grpc_host_port:
            raise ConfigurationError(
                "Dex gRPC address is not configured",
                user_action="Set DEX_GRPC_HOST_PORT to the host:port of the Dex gRPC API",
            )

        credentials = grpc.ssl_channel_credentials(
            root_certificates=_read_credential(settings.dex_grpc_client_ca, "CA"),
            private_key=_read_credential(settings.dex_grpc_client_key, "client key"),
            certificate_chain=_read_credential(
                settings.dex_grpc_client_crt, "client certificate"
            ),
        )
        channel = grpc.aio.secure_channel(settings.dex_grpc_host_port, credentials)
        logger.info(f"Opened Dex gRPC channel to {settings.dex_grpc_host_port}")
        return cls(
            dex_api.DexStub(channel),
            channel=channel,
            timeout=settings.dex_grpc_timeout_seconds,
        )

    async def close(self) -> None:
        """Close the underlying channel."""
        if self.channel is not None:
            await self.channel.close()
            self.channel = None

    async def __aenter__(self) -> "DexClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _call(self, method: str, request):
        rpc = getattr(self.stub, method)
        try:
            response = await rpc(
                request, timeout=self.timeout, metadata=trace_metadata()
            )
        except grpc.aio.AioRpcError as e:
            metrics_collector.record_identity_provider_call(method, success=False)
            code = e.code()
            logger.error(f"Dex {method} failed: {code.name} {e.details()}")
            raise IdentityProviderError(
                f"{method} failed: {e.details()}",
                code=code.name,
                retryable=code in RETRYABLE_STATUS_CODES,
            ) from e
        metrics_collector.record_identity_provider_call(method, success=True)
        return response

    async def create_client(
        self,
        redirect_uris: list[str],
        trusted_peers: list[str],
        public: bool,
        name: str,
        logo_url: str,
    ) -> OIDCClient:
        """
        Register a new OIDC client; Dex generates its ID and secret.

        Raises:
            ClientAlreadyExistsError: Dex already knows a client with that ID
            IdentityProviderError: The call failed
        """
        request = dex_api.CreateClientReq(
            client=dex_api.Client(
                redirect_uris=redirect_uris,
                trusted_peers=trusted_peers,
                public=public,
                name=name,
                logo_url=logo_url,
            )
        )
        response = await self._call("CreateClient", request)
        if response.already_exists:
            raise ClientAlreadyExistsError(response.client.id)

        client = OIDCClient.from_message(response.client)
        logger.info(f"Created OIDC client {client.id} ({name})")
        return client

    async def update_client(
        self,
        client_id: str,
        redirect_uris: list[str],
        trusted_peers: list[str],
        name: str,
        logo_url: str,
    ) -> None:
        """
        Replace the redirect URIs, trusted peers, name and logo of a client.

        Raises:
            ClientNotFoundError: Dex does not know the client
            IdentityProviderError: The call failed
        """
        request = dex_api.UpdateClientReq(
            id=client_id,
            redirect_uris=redirect_uris,
            trusted_peers=trusted_peers,
            name=name,
            logo_url=logo_url,
        )
        response = await self._call("UpdateClient", request)
        if response.not_found:
            raise ClientNotFoundError(client_id, "update")
        logger.info(f"Updated OIDC client {client_id}")

    async def delete_client(self, client_id: str) -> None:
        """
        Delete a client.

        Raises:
            ClientNotFoundError: Dex does not know the client
            IdentityProviderError: The call failed
        """
        response = await self._call("DeleteClient", dex_api.DeleteClientReq(id=client_id))
        if response.not_found:
            raise ClientNotFoundError(client_id, "delete")
        logger.info(f"Deleted OIDC client {client_id}")
