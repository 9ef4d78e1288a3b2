"""
API route modules.
"""

from app.api.routes import ai, videos

__all__ = ["ai", "videos"]
