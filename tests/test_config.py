"""Tests for configuration, seed data and the CLI."""

import json

import pytest

from rootsync.__main__ import JSONFormatter, build_table, main
from rootsync.config import Config, DataConfig, load_config, load_seed_data
from rootsync.store import unwrap


class TestConfig:
    """Tests for configuration loading."""

    def test_default_config(self):
        """Test default configuration values."""
        config = load_config()

        assert config.node.name == "rootsync"
        assert config.server.port == 8765
        assert config.server.websocket_path == "/ws"
        assert config.mqtt.enabled is False
        assert config.mqtt.topic_prefix == "rootsync"

    def test_yaml_file(self, tmp_path):
        """Test values are read from a YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "node:\n"
            "  name: yaml-node\n"
            "server:\n"
            "  port: 9000\n"
            "mqtt:\n"
            "  enabled: true\n"
            "  broker: mqtt.local\n"
            "data:\n"
            "  seed_file: seed.yaml\n"
        )

        config = load_config(path)

        assert config.node.name == "yaml-node"
        assert config.server.port == 9000
        assert config.server.host == "127.0.0.1"
        assert config.mqtt.enabled is True
        assert config.mqtt.broker == "mqtt.local"
        assert config.data.seed_file == str(tmp_path / "seed.yaml")

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")

        assert config.node.name == "rootsync"

    def test_env_override(self, monkeypatch):
        """Test environment variable overrides."""
        monkeypatch.setenv("ROOTSYNC_NODE_NAME", "env-node")
        monkeypatch.setenv("ROOTSYNC_SERVER_PORT", "9100")
        monkeypatch.setenv("ROOTSYNC_MQTT_ENABLED", "yes")
        monkeypatch.setenv("ROOTSYNC_MQTT_PREFIX", "sync")

        config = load_config()

        assert config.node.name == "env-node"
        assert config.server.port == 9100
        assert config.mqtt.enabled is True
        assert config.mqtt.topic_prefix == "sync"

    def test_to_dict_masks_password(self):
        config = Config()
        config.mqtt.password = "secret"

        assert config.to_dict()["mqtt"]["password"] == "***"


class TestSeedData:
    """Tests for loading initial root objects."""

    def test_yaml_seed(self, tmp_path):
        path = tmp_path / "seed.yaml"
        path.write_text("foo: abc\nitems:\n  - 1\n  - 2\n")

        assert load_seed_data(path) == {"foo": "abc", "items": [1, 2]}

    def test_json_seed(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps({"foo": {"bar": None}}))

        assert load_seed_data(path) == {"foo": {"bar": None}}

    def test_empty_seed(self, tmp_path):
        path = tmp_path / "seed.yaml"
        path.write_text("")

        assert load_seed_data(path) == {}

    @pytest.mark.parametrize("text", ["- a\n- b\n", "1: one\n"])
    def test_rejects_non_mapping(self, tmp_path, text):
        path = tmp_path / "seed.yaml"
        path.write_text(text)

        with pytest.raises(ValueError):
            load_seed_data(path)

    def test_build_table_from_seed(self, tmp_path):
        path = tmp_path / "seed.yaml"
        path.write_text("foo:\n  bar: [1, 2]\n")

        table = build_table(Config(data=DataConfig(seed_file=str(path))))

        assert unwrap(table) == {"foo": {"bar": [1, 2]}}
        assert table.get_path(("foo", "bar", 1)) == 2


class TestCLI:
    """Tests for the command line entry point."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_config_command(self, capsys, monkeypatch):
        monkeypatch.setenv("ROOTSYNC_NODE_NAME", "cli-node")

        assert main(["config"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["node"]["name"] == "cli-node"
        assert data["server"]["websocket_path"] == "/ws"

    def test_json_formatter(self):
        import logging

        record = logging.LogRecord("rootsync.sync", logging.INFO, __file__, 1, "hello %s", ("x",), None)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello x"
        assert data["component"] == "rootsync.sync"
        assert data["level"] == "INFO"
