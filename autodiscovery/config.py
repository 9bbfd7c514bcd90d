"""Configuration loading for autodiscovery."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# Ports used by the reference client/server pair
DEFAULT_QUERY_PORT = 8756
DEFAULT_REPLY_PORT = 8757


@dataclass
class ClientConfig:
    send_port: int = DEFAULT_QUERY_PORT
    receive_port: int = DEFAULT_REPLY_PORT
    address: str = "0.0.0.0"
    broadcast_address: str = "<broadcast>"
    allow_socket_reuse: bool = False


@dataclass
class ServerConfig:
    receive_port: int = DEFAULT_QUERY_PORT
    send_port: int = DEFAULT_REPLY_PORT
    address: str = "0.0.0.0"
    allow_socket_reuse: bool = False
    message: bytes = b""


@dataclass
class Config:
    client: ClientConfig = field(default_factory=ClientConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with AUTODISCOVERY_ prefix."""
    return os.environ.get(f"AUTODISCOVERY_{key}", default)


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _parse_message(value: Any) -> bytes:
    """Response messages may be written as text in YAML."""
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bytes):
        return value
    raise TypeError(
        f"server message must be text or bytes, not {type(value).__name__}"
    )


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Client overrides
    if port := _get_env("CLIENT_SEND_PORT"):
        config.client.send_port = int(port)
    if port := _get_env("CLIENT_RECEIVE_PORT"):
        config.client.receive_port = int(port)
    if address := _get_env("CLIENT_ADDRESS"):
        config.client.address = address
    if broadcast := _get_env("CLIENT_BROADCAST_ADDRESS"):
        config.client.broadcast_address = broadcast
    if reuse := _get_env("CLIENT_ALLOW_REUSE"):
        config.client.allow_socket_reuse = _parse_bool(reuse)

    # Server overrides
    if port := _get_env("SERVER_RECEIVE_PORT"):
        config.server.receive_port = int(port)
    if port := _get_env("SERVER_SEND_PORT"):
        config.server.send_port = int(port)
    if address := _get_env("SERVER_ADDRESS"):
        config.server.address = address
    if reuse := _get_env("SERVER_ALLOW_REUSE"):
        config.server.allow_socket_reuse = _parse_bool(reuse)
    if message := _get_env("SERVER_MESSAGE"):
        config.server.message = _parse_message(message)

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

            # Parse client config
            if "client" in data:
                client_data = data["client"] or {}
                config.client = ClientConfig(
                    send_port=client_data.get("send_port", config.client.send_port),
                    receive_port=client_data.get(
                        "receive_port", config.client.receive_port
                    ),
                    address=client_data.get("address", config.client.address),
                    broadcast_address=client_data.get(
                        "broadcast_address", config.client.broadcast_address
                    ),
                    allow_socket_reuse=client_data.get(
                        "allow_socket_reuse", config.client.allow_socket_reuse
                    ),
                )

            # Parse server config
            if "server" in data:
                server_data = data["server"] or {}
                config.server = ServerConfig(
                    receive_port=server_data.get(
                        "receive_port", config.server.receive_port
                    ),
                    send_port=server_data.get("send_port", config.server.send_port),
                    address=server_data.get("address", config.server.address),
                    allow_socket_reuse=server_data.get(
                        "allow_socket_reuse", config.server.allow_socket_reuse
                    ),
                    message=_parse_message(server_data.get("message")),
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
