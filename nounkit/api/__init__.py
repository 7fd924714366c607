"""
HTTP surface for nounkit contexts.
"""

from .http_server import create_app, create_router

__all__ = ["create_app", "create_router"]
