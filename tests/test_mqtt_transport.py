"""Tests for the MQTT transport."""

import json
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest

from rootsync.config import MQTTConfig
from rootsync.store import RootTable
from rootsync.sync import SyncEngine, apply_control
from rootsync.transport.mqtt import MQTTTransport


def mqtt_message(topic: str, payload: str | bytes) -> MagicMock:
    msg = MagicMock()
    msg.topic = topic
    msg.payload = payload.encode("utf-8") if isinstance(payload, str) else payload
    return msg


@pytest.fixture
def paho_client():
    client = MagicMock()
    client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
    return client


@pytest.fixture
def transport(paho_client):
    transport = MQTTTransport(MQTTConfig(topic_prefix="rs"), client=paho_client)
    transport._handle_connect(paho_client, None, None, 0)
    return transport


@pytest.fixture
def engine(transport):
    engine = SyncEngine(transport, table=RootTable({"foo": {"a": 1}}))
    transport.set_control_handler(
        lambda client_id, frame: apply_control(engine, client_id, frame)
    )
    return engine


def published(paho_client):
    """(topic, decoded JSON payload) for every publish call."""
    return [(c.args[0], json.loads(c.args[1])) for c in paho_client.publish.call_args_list]


class TestMQTTTransport:
    """Tests for topic routing and delivery."""

    def test_subscribes_on_connect(self, transport, paho_client):
        topics = [c.args[0] for c in paho_client.subscribe.call_args_list]

        assert topics == ["rs/clients/+/control", "rs/clients/+/status"]
        assert transport.is_connected

    def test_failed_connect(self, paho_client):
        transport = MQTTTransport(MQTTConfig(), client=paho_client)
        transport._handle_connect(paho_client, None, None, 5)

        assert not transport.is_connected

    def test_link_via_control_topic(self, transport, engine, paho_client):
        transport._handle_message(
            paho_client, None,
            mqtt_message("rs/clients/c1/control", '{"action": "link", "key": "foo"}'),
        )

        assert published(paho_client) == [
            ("rs/clients/c1/messages", {"op": "init", "key": "foo", "value": {"a": 1}}),
        ]
        assert engine.subscribers("foo") == frozenset({"c1"})

    def test_changes_are_published(self, transport, engine, paho_client):
        engine.link("c1", "foo")
        paho_client.publish.reset_mock()

        engine.data["foo"]["b"] = 2

        assert published(paho_client) == [
            ("rs/clients/c1/messages", {"op": "insert", "key": "foo", "path": ["b"], "value": 2}),
        ]

    def test_link_missing_key_publishes_error(self, transport, engine, paho_client):
        transport._handle_message(
            paho_client, None,
            mqtt_message("rs/clients/c1/control", '{"action": "link", "key": "nope"}'),
        )

        assert published(paho_client) == [
            ("rs/clients/c1/messages", {"error": "No such key: nope", "key": "nope"}),
        ]

    def test_invalid_control_json(self, transport, engine, paho_client):
        transport._handle_message(paho_client, None, mqtt_message("rs/clients/c1/control", "{"))

        topic, payload = published(paho_client)[0]
        assert topic == "rs/clients/c1/messages"
        assert "error" in payload

    def test_offline_status_disconnects(self, transport, engine, paho_client):
        engine.link("c1", "foo")
        paho_client.publish.reset_mock()

        transport._handle_message(paho_client, None, mqtt_message("rs/clients/c1/status", "offline"))
        engine.data["foo"]["a"] = 5

        assert engine.subscribers("foo") == frozenset()
        paho_client.publish.assert_not_called()

    def test_ignores_unrelated_topics(self, transport, engine, paho_client):
        transport._handle_message(paho_client, None, mqtt_message("other/topic", "x"))
        transport._handle_message(paho_client, None, mqtt_message("rs/clients/c1/extra/deep", "x"))
        transport._handle_message(paho_client, None, mqtt_message("rs/clients/c1/status", b"\xff"))

        paho_client.publish.assert_not_called()

    def test_send_when_disconnected_drops(self, transport, engine, paho_client):
        engine.link("c1", "foo")
        paho_client.publish.reset_mock()
        transport._handle_disconnect(paho_client, None, None, 0)

        engine.data["foo"]["a"] = 2

        paho_client.publish.assert_not_called()

    def test_control_without_handler(self, paho_client):
        transport = MQTTTransport(MQTTConfig(topic_prefix="rs"), client=paho_client)
        transport._handle_connect(paho_client, None, None, 0)

        transport._handle_message(
            paho_client, None,
            mqtt_message("rs/clients/c1/control", '{"action": "link", "key": "foo"}'),
        )

        paho_client.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_connect_uses_credentials(self, paho_client):
        config = MQTTConfig(broker="broker", port=1884, username="u", password="p")
        transport = MQTTTransport(config, client=paho_client)
        paho_client.connect.side_effect = lambda *a, **kw: transport._handle_connect(
            paho_client, None, None, 0
        )

        assert await transport.connect() is True

        paho_client.username_pw_set.assert_called_once_with("u", "p")
        paho_client.connect.assert_called_once_with("broker", 1884, keepalive=60)
        paho_client.loop_start.assert_called_once()

        await transport.disconnect()
        assert not transport.is_connected
