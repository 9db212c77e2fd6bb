"""
HTTP transport for the agent-tools registry.

Exposes the registry engine as a REST API for tool registration,
discovery and provider onboarding.
"""

from .middleware import RequestLoggingMiddleware
from .server import APIServer, create_app

__all__ = [
    "APIServer",
    "RequestLoggingMiddleware",
    "create_app",
]
