"""
API Gateway Module

FastAPI application assembly for the portal.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
