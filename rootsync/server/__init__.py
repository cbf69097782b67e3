"""WebSocket and HTTP server for rootsync.

Serves the sync engine with FastAPI: clients link to root keys over a
WebSocket and the root object table can be read and written over HTTP.
"""

from .app import create_app
from .websocket import WebSocketConnection, WebSocketTransport

__all__ = ["WebSocketConnection", "WebSocketTransport", "create_app"]
