"""REST API layer for Vigil.

Exposes:
    create_app -- FastAPI application factory.
"""

from vigil.api.app import create_app

__all__ = ["create_app"]
