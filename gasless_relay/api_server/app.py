"""
FastAPI/ASGI application entrypoint.

Run with: uvicorn gasless_relay.api_server.app:app --host 0.0.0.0 --port 8000
"""

from gasless_relay.api_server.server import app, create_app

__all__ = ["app", "create_app"]
