"""
Handlers package - Contains the Kopf event handlers for SSO resources.

- sso.py: SSO resource lifecycle (create, resume, update, delete)
"""
