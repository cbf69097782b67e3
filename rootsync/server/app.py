"""FastAPI application exposing the sync engine over WebSocket and HTTP."""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect

from .. import __version__, codec
from ..config import Config
from ..sync import SyncEngine
from ..sync.control import apply_control
from .websocket import WebSocketConnection, WebSocketTransport

logger = logging.getLogger(__name__)


async def stop_pump(sender: asyncio.Task, client_id: str) -> None:
    """Cancel a connection's send task and collect its outcome."""
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.warning(f"WebSocket send failed for {client_id}: {e}")


def create_app(config: Config, engine: SyncEngine | None = None) -> FastAPI:
    """Create the rootsync server application.

    Args:
        config: Application configuration.
        engine: Optional engine to serve. It must use a WebSocketTransport.
            A new engine with an empty table is created if None.

    Returns:
        Configured FastAPI application.
    """
    if engine is None:
        engine = SyncEngine(WebSocketTransport(config.server.client_queue_size))
    if not isinstance(engine.transport, WebSocketTransport):
        raise ValueError("Server engine must use a WebSocketTransport")

    transport: WebSocketTransport = engine.transport

    app = FastAPI(
        title="rootsync",
        description="Real-time root object synchronization",
        version=__version__,
    )

    # Store references for route handlers
    app.state.config = config
    app.state.engine = engine
    app.state.transport = transport

    # ==================== WebSocket ====================

    async def pump(websocket: WebSocket, conn: WebSocketConnection) -> None:
        """Write queued payloads to the socket in order."""
        while True:
            payload = await conn.queue.get()
            await websocket.send_json(payload)

    @app.websocket(config.server.websocket_path)
    async def sync_socket(websocket: WebSocket):
        """Client link/unlink requests in, protocol messages out."""
        await websocket.accept()
        conn = transport.open()
        sender = asyncio.create_task(pump(websocket, conn))

        try:
            while True:
                text = await websocket.receive_text()
                try:
                    frame = json.loads(text)
                except json.JSONDecodeError:
                    transport.send_payload(conn, {"error": "Control frame is not valid JSON"})
                    continue

                error = apply_control(engine, conn, frame)
                if error:
                    transport.send_payload(conn, error)
        except WebSocketDisconnect:
            pass
        finally:
            transport.close(conn)
            await stop_pump(sender, conn.client_id)

    # ==================== Table access ====================

    @app.get("/api/keys")
    async def api_keys() -> dict[str, Any]:
        """List root keys."""
        return {"keys": sorted(engine.data.keys())}

    @app.get("/api/data/{key}")
    async def api_get(key: str) -> dict[str, Any]:
        """Get the encoded value of a root key."""
        if key not in engine.data:
            raise HTTPException(status_code=404, detail=f"No such key: {key}")
        return {"key": key, "value": codec.encode(engine.data[key])}

    @app.put("/api/data/{key}")
    async def api_put(key: str, request: Request) -> dict[str, Any]:
        """Set a root key from a ``{"value": <wire value>}`` body."""
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Body is not valid JSON")

        if not isinstance(body, dict) or "value" not in body:
            raise HTTPException(status_code=400, detail="Body must be an object with a 'value' field")

        try:
            value = codec.decode(body["value"])
        except (KeyError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"Invalid wire value: {e}")

        created = key not in engine.data
        engine.data[key] = value
        return {"key": key, "created": created}

    @app.delete("/api/data/{key}")
    async def api_delete(key: str) -> dict[str, Any]:
        """Delete a root key, finalizing its subscribers."""
        if key not in engine.data:
            raise HTTPException(status_code=404, detail=f"No such key: {key}")
        del engine.data[key]
        return {"key": key, "deleted": True}

    # ==================== Status ====================

    @app.get("/api/stats")
    async def api_stats() -> dict[str, Any]:
        """Get subscription statistics."""
        stats: dict[str, Any] = {
            "node_name": config.node.name,
            "timestamp": datetime.now().isoformat(),
            "connection_count": transport.connection_count,
        }
        stats.update(engine.stats())
        return stats

    @app.get("/api/health")
    async def api_health() -> dict[str, Any]:
        """Health check endpoint for monitoring and load balancers."""
        return {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
            "node_name": config.node.name,
            "version": __version__,
            "components": {
                "engine": True,
                "websocket_path": config.server.websocket_path,
                "mqtt": config.mqtt.enabled,
            },
        }

    return app
