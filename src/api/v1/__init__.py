"""
API v1 package.

Contains versioned routes exposing the session manager.
"""

from src.api.v1.routes import router

__all__ = ["router"]
