"""
asgi.py -- Application assembly for the session service.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
