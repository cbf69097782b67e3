"""Client control frames (link/unlink requests) shared by the transports."""

import logging
from typing import Any

from .engine import NoSuchKeyError, SyncEngine

logger = logging.getLogger(__name__)

ACTIONS = ("link", "unlink")


def apply_control(engine: SyncEngine, client: Any, frame: Any) -> dict[str, Any] | None:
    """Apply one control frame sent by a client.

    A frame looks like ``{"action": "link", "key": "foo"}``.

    Args:
        engine: The sync engine to apply the request to.
        client: Transport client handle that sent the frame.
        frame: Decoded JSON frame.

    Returns:
        An error payload to send back to the client, or None on success.
    """
    if not isinstance(frame, dict):
        return {"error": "Control frame must be a JSON object"}

    action = frame.get("action")
    key = frame.get("key")
    if action not in ACTIONS:
        return {"error": f"Unknown action '{action}'", "key": key}
    if not isinstance(key, str):
        return {"error": "Control frame needs a string 'key'", "key": key}

    if action == "link":
        try:
            engine.link(client, key)
        except NoSuchKeyError as e:
            logger.info(f"Rejected link to missing key '{key}'")
            return {"error": str(e), "key": key}
    else:
        engine.unlink(client, key)

    return None
