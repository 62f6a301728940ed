"""
HTTP API for media search.
"""

from .server import create_app, run_api_server
from .streaming import EventChannel, sse_frame

__all__ = [
    "create_app",
    "run_api_server",
    "EventChannel",
    "sse_frame",
]
