"""
API routes package.

This package contains all FastAPI route modules organized by domain.
"""

from app.api.routes import groups

__all__ = [
    "groups"
]
