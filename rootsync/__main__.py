"""CLI entry point for rootsync."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .config import Config, load_config, load_seed_data
from .store import RootTable
from .sync import SyncEngine, apply_control

logger = logging.getLogger(__name__)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    logging.basicConfig(level=level, handlers=[handler])


def build_table(config: Config) -> RootTable:
    """Create the root table, seeded from the configured file if any."""
    table = RootTable()
    if config.data.seed_file:
        seed = load_seed_data(config.data.seed_file)
        table.update(seed)
        logger.info(f"Seeded {len(seed)} root key(s) from {config.data.seed_file}")
    return table


async def start_mqtt_engine(config: Config, table: RootTable):
    """Create an MQTT-bound engine on ``table`` and connect it.

    Returns:
        Tuple of (engine, transport), or None if the broker is unreachable.
    """
    from .transport.mqtt import MQTTTransport

    transport = MQTTTransport(config.mqtt)
    engine = SyncEngine(transport, table=table)
    transport.set_control_handler(
        lambda client_id, frame: apply_control(engine, client_id, frame)
    )

    if not await transport.connect():
        engine.close()
        return None
    return engine, transport


async def cmd_serve(args: argparse.Namespace) -> int:
    """Run the WebSocket/HTTP server."""
    config = load_config(args.config)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    try:
        import uvicorn

        from .server import WebSocketTransport, create_app
    except ImportError as e:
        print(f"Server dependencies not installed: {e}", file=sys.stderr)
        return 1

    try:
        table = build_table(config)
    except (OSError, ValueError) as e:
        print(f"Error loading seed data: {e}", file=sys.stderr)
        return 1

    engine = SyncEngine(WebSocketTransport(config.server.client_queue_size), table=table)
    app = create_app(config, engine=engine)

    mqtt = None
    if config.mqtt.enabled:
        mqtt = await start_mqtt_engine(config, table)
        if mqtt is None:
            print("Warning: MQTT broker unreachable; serving WebSocket only", file=sys.stderr)

    print(f"Starting rootsync node: {config.node.name}")
    print(f"URL: {config.server.base_url}  (WebSocket: {config.server.websocket_path})")
    print(f"Root keys: {len(table)}")

    try:
        verbose = getattr(args, "verbose", False)
        server = uvicorn.Server(uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level="info" if verbose else "warning",
        ))
        await server.serve()
    finally:
        if mqtt is not None:
            await mqtt[1].disconnect()
        engine.close()

    return 0


async def cmd_mqtt(args: argparse.Namespace) -> int:
    """Run an engine over MQTT only."""
    config = load_config(args.config)

    try:
        table = build_table(config)
    except (OSError, ValueError) as e:
        print(f"Error loading seed data: {e}", file=sys.stderr)
        return 1

    print(f"Starting rootsync node: {config.node.name}")
    print(f"MQTT: {config.mqtt.broker}:{config.mqtt.port} (prefix: {config.mqtt.topic_prefix})")

    mqtt = await start_mqtt_engine(config, table)
    if mqtt is None:
        print("Error: could not connect to MQTT broker", file=sys.stderr)
        return 1

    engine, transport = mqtt
    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nShutting down...")
    finally:
        await transport.disconnect()
        engine.close()

    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Check a running server and the MQTT broker."""
    import httpx

    from .transport.mqtt import MQTTTransport

    config = load_config(args.config)
    base_url = args.url or config.server.base_url

    status_data = {
        "timestamp": datetime.now().isoformat(),
        "node": {"name": config.node.name},
    }

    server_status = {"url": base_url, "reachable": False}
    try:
        async with httpx.AsyncClient(base_url=base_url, timeout=5.0) as client:
            health = await client.get("/api/health")
            health.raise_for_status()
            stats = await client.get("/api/stats")
            stats.raise_for_status()
            server_status["reachable"] = True
            server_status["health"] = health.json()
            server_status["stats"] = stats.json()
    except httpx.HTTPError as e:
        server_status["error"] = str(e)

    status_data["server"] = server_status

    mqtt_status = {
        "enabled": config.mqtt.enabled,
        "broker": config.mqtt.broker,
        "port": config.mqtt.port,
        "reachable": False,
    }
    if config.mqtt.enabled:
        mqtt_status["reachable"] = await MQTTTransport(config.mqtt).check_connection()

    status_data["mqtt"] = mqtt_status

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print("rootsync Status Check")
    print("=====================")
    print(f"Node: {config.node.name}")
    print()

    print(f"Server ({base_url}):")
    if server_status["reachable"]:
        stats = server_status["stats"]
        print("  Status: Reachable")
        print(f"  Root keys: {stats.get('key_count', 0)}")
        print(f"  Connections: {stats.get('connection_count', 0)}")
        print(f"  Registrations: {stats.get('registration_count', 0)}")
    else:
        print("  Status: Not reachable")
        print(f"  Error: {server_status.get('error', 'unknown')}")

    print()

    print(f"MQTT ({mqtt_status['broker']}:{mqtt_status['port']}):")
    if not mqtt_status["enabled"]:
        print("  Status: Disabled")
    elif mqtt_status["reachable"]:
        print("  Status: Reachable")
    else:
        print("  Status: Not reachable")

    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    config = load_config(args.config)
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="rootsync",
        description="Stream changes to root objects to subscribed clients",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: none)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Start the WebSocket/HTTP server")
    serve_parser.add_argument("-p", "--port", type=int, default=None, help="Port to bind")
    serve_parser.add_argument("--host", type=str, default=None, help="Host to bind")
    serve_parser.set_defaults(func=cmd_serve)

    mqtt_parser = subparsers.add_parser("mqtt", help="Serve clients over MQTT only")
    mqtt_parser.set_defaults(func=cmd_mqtt)

    status_parser = subparsers.add_parser("status", help="Check server and broker status")
    status_parser.add_argument("--url", type=str, default=None, help="Server base URL")
    status_parser.add_argument("--json", action="store_true", help="Output status as JSON")
    status_parser.set_defaults(func=cmd_status)

    config_parser = subparsers.add_parser("config", help="Print the effective configuration")
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    if asyncio.iscoroutinefunction(func):
        return asyncio.run(func(args))
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
