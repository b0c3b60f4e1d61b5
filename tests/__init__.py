"""
Tests package - Test suite for the SSO operator.

Contains:
- unit/: Unit tests for individual components
"""
