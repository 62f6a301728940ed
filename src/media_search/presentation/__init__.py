"""
Presentation Layer - External interfaces.

Contains:
- api: FastAPI application (batch, single-source, SSE streaming, health)
"""
