"""
asgi.py -- ASGI entry point for TodoGate.

Run with:  uvicorn asgi:app --reload
           uvicorn asgi:app --host 0.0.0.0 --port 8787
"""

from api.main import app

__all__ = ["app"]
