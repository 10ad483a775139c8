"""
asgi.py -- ASGI entry point for usergate.

Run with:  uvicorn asgi:app --reload

Process lifetime (listener binding, signal handling, graceful shutdown) is
uvicorn's job; application resources are opened and closed by the lifespan
in api/main.py.
"""

from api.main import app

__all__ = ["app"]
