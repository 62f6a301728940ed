"""
Infrastructure Layer - Collaborator implementations.

Contains:
- catalog: YAML-backed authenticator, source registry and policy config
- sources: upstream provider adapters (httpx)
"""
