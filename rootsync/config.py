"""Configuration loading for rootsync."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class NodeConfig:
    name: str = "rootsync"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8765
    websocket_path: str = "/ws"
    client_queue_size: int = 1000  # per-connection outbound queue; 0 = unbounded

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass
class MQTTConfig:
    enabled: bool = False
    broker: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    topic_prefix: str = "rootsync"


@dataclass
class DataConfig:
    """Initial root objects loaded at startup."""

    seed_file: str | None = None


@dataclass
class Config:
    node: NodeConfig = field(default_factory=NodeConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    data: DataConfig = field(default_factory=DataConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict, with the MQTT password masked."""
        return {
            "node": {"name": self.node.name},
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "websocket_path": self.server.websocket_path,
                "client_queue_size": self.server.client_queue_size,
            },
            "mqtt": {
                "enabled": self.mqtt.enabled,
                "broker": self.mqtt.broker,
                "port": self.mqtt.port,
                "username": self.mqtt.username,
                "password": "***" if self.mqtt.password else None,
                "topic_prefix": self.mqtt.topic_prefix,
            },
            "data": {"seed_file": self.data.seed_file},
        }


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with ROOTSYNC_ prefix."""
    return os.environ.get(f"ROOTSYNC_{key}", default)


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if name := _get_env("NODE_NAME"):
        config.node.name = name

    # Server overrides
    if host := _get_env("SERVER_HOST"):
        config.server.host = host
    if port := _get_env("SERVER_PORT"):
        config.server.port = int(port)
    if queue_size := _get_env("QUEUE_SIZE"):
        config.server.client_queue_size = int(queue_size)

    # MQTT overrides
    if enabled := _get_env("MQTT_ENABLED"):
        config.mqtt.enabled = _parse_bool(enabled)
    if broker := _get_env("MQTT_BROKER"):
        config.mqtt.broker = broker
    if port := _get_env("MQTT_PORT"):
        config.mqtt.port = int(port)
    if username := _get_env("MQTT_USERNAME"):
        config.mqtt.username = username
    if password := _get_env("MQTT_PASSWORD"):
        config.mqtt.password = password
    if prefix := _get_env("MQTT_PREFIX"):
        config.mqtt.topic_prefix = prefix

    if seed_file := _get_env("SEED_FILE"):
        config.data.seed_file = seed_file

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            if "node" in data:
                config.node = NodeConfig(
                    name=data["node"].get("name", config.node.name)
                )

            if "server" in data:
                server_data = data["server"]
                config.server = ServerConfig(
                    host=server_data.get("host", config.server.host),
                    port=server_data.get("port", config.server.port),
                    websocket_path=server_data.get(
                        "websocket_path", config.server.websocket_path
                    ),
                    client_queue_size=server_data.get(
                        "client_queue_size", config.server.client_queue_size
                    ),
                )

            if "mqtt" in data:
                mqtt_data = data["mqtt"]
                config.mqtt = MQTTConfig(
                    enabled=mqtt_data.get("enabled", config.mqtt.enabled),
                    broker=mqtt_data.get("broker", config.mqtt.broker),
                    port=mqtt_data.get("port", config.mqtt.port),
                    username=mqtt_data.get("username"),
                    password=mqtt_data.get("password"),
                    topic_prefix=mqtt_data.get("topic_prefix", config.mqtt.topic_prefix),
                )

            if "data" in data:
                seed_file = data["data"].get("seed_file")
                # Seed paths are relative to the config file
                if seed_file and not Path(seed_file).is_absolute():
                    seed_file = str(path.parent / seed_file)
                config.data = DataConfig(seed_file=seed_file)

    return _apply_env_overrides(config)


def load_seed_data(seed_path: str | Path) -> dict[str, Any]:
    """Load initial root objects from a YAML or JSON file.

    Args:
        seed_path: Path to a file holding a mapping of root key to value.

    Returns:
        Mapping of root key to value.

    Raises:
        ValueError: If the file does not hold a mapping with string keys.
    """
    path = Path(seed_path)
    with open(path) as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict) or not all(isinstance(k, str) for k in data):
        raise ValueError(f"Seed file {path} must contain a mapping with string keys")
    return data
