"""MQTT transport for pub/sub delivery of protocol messages.

Topic layout under the configured prefix:

- ``{prefix}/clients/{client_id}/control``: client requests, JSON
  ``{"action": "link" | "unlink", "key": ...}``
- ``{prefix}/clients/{client_id}/messages``: protocol messages to the client
- ``{prefix}/clients/{client_id}/status``: payload ``offline`` reports a
  disconnect (clients should register it as their last will)

A client handle is its client id string.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import paho.mqtt.client as mqtt

from .. import codec
from ..config import MQTTConfig
from ..sync.messages import Message
from .base import Transport

logger = logging.getLogger(__name__)

ControlHandler = Callable[[str, Any], dict[str, Any] | None]


class MQTTTransport(Transport):
    """Delivers messages over MQTT and reports client presence."""

    def __init__(self, config: MQTTConfig, client: mqtt.Client | None = None):
        super().__init__()
        self.config = config
        self._codec = codec.Codec()
        self._control_handler: ControlHandler | None = None

        # Paho MQTT client
        self._client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self._client.on_connect = self._handle_connect
        self._client.on_message = self._handle_message
        self._client.on_disconnect = self._handle_disconnect

        # Connection state
        self._connected = False
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def control_topic(self) -> str:
        return f"{self.config.topic_prefix}/clients/+/control"

    @property
    def status_topic(self) -> str:
        return f"{self.config.topic_prefix}/clients/+/status"

    def messages_topic(self, client_id: str) -> str:
        return f"{self.config.topic_prefix}/clients/{client_id}/messages"

    def set_control_handler(self, handler: ControlHandler) -> None:
        """Set the callback applied to client control frames.

        The handler returns an error payload to publish back, or None.
        """
        self._control_handler = handler

    def client_id(self, client: str) -> str:
        return client

    def send(self, client: str, message: Message) -> None:
        self.send_payload(client, message.to_dict())

    def send_payload(self, client: str, payload: dict[str, Any]) -> None:
        """Publish a raw JSON payload to a client's message topic."""
        if not self._connected:
            logger.warning(f"Cannot deliver to {client}: not connected to broker")
            return

        result = self._client.publish(
            self.messages_topic(client), self._codec.dumps(payload), qos=1
        )
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"Publish to {client} failed with rc={result.rc}")

    def _handle_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        """Handle connection to broker."""
        if reason_code == 0:
            self._connected = True
            logger.info(f"Connected to MQTT broker at {self.config.broker}:{self.config.port}")

            for topic in (self.control_topic, self.status_topic):
                client.subscribe(topic, qos=1)
                logger.info(f"Subscribed to topic: {topic}")
        else:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")

    def _handle_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        """Handle disconnection from broker."""
        self._connected = False
        logger.warning(f"Disconnected from MQTT broker: {reason_code}")

    def _handle_message(
        self,
        client: mqtt.Client,
        userdata: Any,
        msg: mqtt.MQTTMessage,
    ) -> None:
        """Route control and status messages from clients."""
        prefix = f"{self.config.topic_prefix}/clients/"
        if not msg.topic.startswith(prefix):
            return
        parts = msg.topic[len(prefix):].split("/")
        if len(parts) != 2:
            logger.debug(f"Ignoring message on {msg.topic}")
            return
        client_id, kind = parts

        try:
            payload = msg.payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.error(f"Undecodable payload on {msg.topic}")
            return

        if kind == "status":
            if payload.strip().lower() == "offline":
                self._call_in_loop(self._emit_disconnect, client_id)
        elif kind == "control":
            self._call_in_loop(self._apply_control, client_id, payload)

    def _apply_control(self, client_id: str, payload: str) -> None:
        if self._control_handler is None:
            logger.warning(f"No control handler; ignoring request from {client_id}")
            return

        try:
            frame = json.loads(payload)
        except json.JSONDecodeError:
            self.send_payload(client_id, {"error": "Control frame is not valid JSON"})
            return

        error = self._control_handler(client_id, frame)
        if error:
            self.send_payload(client_id, error)

    def _call_in_loop(self, func: Callable[..., None], *args: Any) -> None:
        # Paho callbacks run on its network thread; hand work to the event loop.
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(func, *args)
        else:
            func(*args)

    async def connect(self) -> bool:
        """Connect to the MQTT broker.

        Returns:
            True if connection successful.
        """
        self._loop = asyncio.get_running_loop()

        if self.config.username and self.config.password:
            self._client.username_pw_set(self.config.username, self.config.password)

        try:
            self._client.connect(self.config.broker, self.config.port, keepalive=60)
            self._client.loop_start()

            # Wait for connection
            for _ in range(50):  # 5 second timeout
                if self._connected:
                    return True
                await asyncio.sleep(0.1)

            logger.error("Timeout waiting for MQTT connection")
            return False

        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            return False

    async def disconnect(self) -> None:
        """Disconnect from the MQTT broker."""
        self._client.loop_stop()
        self._client.disconnect()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if connected to broker."""
        return self._connected

    async def check_connection(self) -> bool:
        """Check if broker is reachable."""
        if self._connected:
            return True

        try:
            test_client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
            test_client.connect(self.config.broker, self.config.port, keepalive=5)
            test_client.disconnect()
            return True
        except Exception:
            return False
