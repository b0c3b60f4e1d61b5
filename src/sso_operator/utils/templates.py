"""
Renderers for the configuration files the operator writes into the cluster.

All functions in this module are pure: they turn an SSO specification and an
OIDC client into the oauth2_proxy configuration file, the exposecontroller
configuration, and the fingerprint that rolls the proxy pods whenever the
configuration changes.
"""

import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any

import yaml

from ..constants import (
    CALLBACK_PATH,
    EXPOSER_KIND,
    OIDC_SCOPE,
    PLACEHOLDER_PROXY_URL,
    PROXY_PORT,
)
from ..errors import ValidationError
from ..models import SSO, CookieSpec


def redirect_url(base_url: str) -> str:
    """Build the oauth2_proxy callback URL below ``base_url``."""
    return f"{base_url}{CALLBACK_PATH}"


def placeholder_redirect_url() -> str:
    """Callback URL registered before the real ingress host is known."""
    return redirect_url(PLACEHOLDER_PROXY_URL)


def redirect_urls_for_hosts(hosts: Iterable[str]) -> list[str]:
    """Convert ingress hosts into HTTPS callback URLs, preserving order."""
    return [redirect_url(f"https://{host}") for host in hosts]


def _quote(value: str) -> str:
    return json.dumps(value)


def _flag(value: bool) -> str:
    return "true" if value else "false"


def render_proxy_config(
    *,
    client_id: str,
    client_secret: str,
    issuer_url: str,
    redirect_uri: str,
    upstream_url: str,
    forward_token: bool,
    cookie: CookieSpec,
    cookie_secret: str,
    cookie_domain: str,
    port: int = PROXY_PORT,
) -> str:
    """
    Render the oauth2_proxy configuration file.

    Args:
        client_id: OIDC client ID registered in Dex
        client_secret: OIDC client secret
        issuer_url: Dex issuer URL (must be HTTPS)
        redirect_uri: Callback URL of the proxy
        upstream_url: URL of the protected service
        forward_token: Pass the access token to the upstream
        cookie: Cookie settings from the SSO spec
        cookie_secret: Seed for the secure session cookie
        cookie_domain: Domain the cookie is bound to
        port: Port the proxy listens on

    Returns:
        The configuration file content

    Raises:
        ValidationError: If the issuer URL does not use HTTPS
    """
    if not issuer_url.startswith("https://"):
        raise ValidationError(
            f"issuer URL must use HTTPS, got '{issuer_url}'", field="oidcIssuerUrl"
        )

    lines = [
        "# oauth2_proxy configuration managed by sso-operator",
        "",
        "## listen address",
        f'http_address = ":{port}"',
        "",
        "## OAuth endpoints",
        f"redirect_url = {_quote(redirect_uri)}",
        f"login_url = {_quote(issuer_url + '/auth')}",
        f"redeem_url = {_quote(issuer_url + '/token')}",
        "",
        "## upstream service",
        "upstreams = [",
        f"    {_quote(upstream_url)}",
        "]",
        "",
        "request_logging = true",
        "",
        "## OIDC client credentials",
        f"client_id = {_quote(client_id)}",
        f"client_secret = {_quote(client_secret)}",
        "",
        "## headers forwarded to the upstream",
        "pass_basic_auth = false",
        "pass_host_header = false",
        f"pass_access_token = {_flag(forward_token)}",
        "",
        "email_domains = [",
        '    "*"',
        "]",
        "",
        "## session cookie",
        f"cookie_name = {_quote(cookie.name)}",
        f"cookie_secret = {_quote(cookie_secret)}",
        f"cookie_domain = {_quote(cookie_domain)}",
        f"cookie_expire = {_quote(cookie.expire)}",
        f"cookie_refresh = {_quote(cookie.refresh)}",
        f"cookie_secure = {_flag(cookie.secure)}",
        f"cookie_httponly = {_flag(cookie.http_only)}",
        "",
        "## provider",
        'provider = "oidc"',
        f"oidc_issuer_url = {_quote(issuer_url)}",
        f"scope = {_quote(OIDC_SCOPE)}",
        "skip_provider_button = true",
        "",
    ]
    return "\n".join(lines)


def proxy_config_for(
    sso: SSO,
    client_id: str,
    client_secret: str,
    redirect_uris: list[str],
    upstream_url: str,
    cookie_secret: str,
) -> str:
    """
    Render the proxy configuration of an SSO for the given OIDC client.

    The first redirect URI of the client becomes the proxy callback URL.
    """
    if not redirect_uris:
        raise ValidationError("no redirect URL provided for the OIDC client")

    spec = sso.spec
    return render_proxy_config(
        client_id=client_id,
        client_secret=client_secret,
        issuer_url=spec.oidc_issuer_url,
        redirect_uri=redirect_uris[0],
        upstream_url=upstream_url,
        forward_token=spec.forward_token,
        cookie=spec.cookie_spec,
        cookie_secret=cookie_secret,
        cookie_domain=spec.domain,
    )


def render_expose_config(
    domain: str, services: list[str], url_template: str | None = None
) -> str:
    """
    Render the exposecontroller configuration as YAML.

    ``domain`` and ``urltemplate`` are omitted when empty.
    """
    config: dict[str, Any] = {}
    if domain:
        config["domain"] = domain
    config.update(
        {
            "exposer": EXPOSER_KIND,
            "path-mode": "",
            "http": False,
            "tls-acme": True,
            "services": list(services),
        }
    )
    if url_template:
        config["urltemplate"] = url_template
    return yaml.safe_dump(config, default_flow_style=False, sort_keys=False)


def config_fingerprint(data: Mapping[str, str]) -> str:
    """
    Compute a short, deterministic fingerprint of configuration data.

    Independent of mapping order; any change to a key or value changes it.
    """
    canonical = json.dumps(sorted(data.items()), separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
