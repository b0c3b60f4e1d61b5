"""
SSO Operator - single sign-on for Kubernetes services through Dex.

For every SSO resource the operator:
- Registers an OIDC client in Dex over its gRPC API
- Deploys an oauth2_proxy in front of the upstream service
- Exposes the proxy through exposecontroller and cert-manager
"""

__version__ = "0.1.0"
