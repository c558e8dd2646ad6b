"""Configuration loading for the command line."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mcprobe import bedrock, java, rcon, vote

CONFIG_DIR = Path.home() / ".config" / "mcprobe"
CONFIG_FILE = CONFIG_DIR / "config.toml"
HISTORY_FILE = CONFIG_DIR / "history"

DEFAULT_TIMEOUT = 5.0
DEFAULT_SERVICE_NAME = "mcprobe"


@dataclass(frozen=True)
class CredentialConfig:
    """1Password reference to a secret (RCON password or Votifier token)."""

    vault: str
    item: str
    field: str


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for a single Minecraft server."""

    name: str
    host: str
    port: int = java.DEFAULT_PORT
    rcon_port: int = rcon.DEFAULT_PORT
    query_port: int | None = None
    bedrock_port: int = bedrock.DEFAULT_PORT
    votifier_port: int = vote.DEFAULT_PORT
    credentials: CredentialConfig | None = None
    vote_credentials: CredentialConfig | None = None

    @property
    def effective_query_port(self) -> int:
        """Query listens on the game port unless configured otherwise."""
        return self.query_port if self.query_port is not None else self.port

    def resolve_credentials(
        self, default_credentials: CredentialConfig | None
    ) -> CredentialConfig | None:
        """Return the effective RCON credentials, falling back to the default."""
        return self.credentials or default_credentials


@dataclass(frozen=True)
class VoteConfig:
    """Defaults used when sending Votifier votes."""

    service_name: str = DEFAULT_SERVICE_NAME
    credentials: CredentialConfig | None = None


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    default_server: str | None
    default_credentials: CredentialConfig | None
    servers: dict[str, ServerConfig]
    timeout: float = DEFAULT_TIMEOUT
    enable_srv: bool = True
    vote: VoteConfig = field(default_factory=VoteConfig)


def load_config(path: Path = CONFIG_FILE) -> AppConfig:
    """Load and parse the configuration file.

    Returns built-in defaults if no config file exists.
    """
    if not path.exists():
        return _default_config()

    with path.open("rb") as f:
        raw = tomllib.load(f)

    defaults = raw.get("defaults", {})
    vote_raw = defaults.get("vote", {})

    servers: dict[str, ServerConfig] = {}
    for key, val in raw.get("servers", {}).items():
        servers[key] = _parse_server(key, val)

    return AppConfig(
        default_server=defaults.get("server"),
        default_credentials=_parse_credentials(defaults.get("credentials")),
        servers=servers,
        timeout=float(defaults.get("timeout", DEFAULT_TIMEOUT)),
        enable_srv=bool(defaults.get("srv", True)),
        vote=VoteConfig(
            service_name=vote_raw.get("service_name", DEFAULT_SERVICE_NAME),
            credentials=_parse_credentials(vote_raw.get("credentials")),
        ),
    )


def _parse_server(key: str, val: dict[str, Any]) -> ServerConfig:
    """Parse one ``[servers.<key>]`` table."""
    return ServerConfig(
        name=val.get("name", key),
        host=val["host"],
        port=val.get("port", java.DEFAULT_PORT),
        rcon_port=val.get("rcon_port", rcon.DEFAULT_PORT),
        query_port=val.get("query_port"),
        bedrock_port=val.get("bedrock_port", bedrock.DEFAULT_PORT),
        votifier_port=val.get("votifier_port", vote.DEFAULT_PORT),
        credentials=_parse_credentials(val.get("credentials")),
        vote_credentials=_parse_credentials(val.get("vote_credentials")),
    )


def _parse_credentials(raw: dict | None) -> CredentialConfig | None:
    """Parse a credentials section from the config file."""
    if raw is None:
        return None
    return CredentialConfig(
        vault=raw["vault"],
        item=raw["item"],
        field=raw["field"],
    )


def _default_config() -> AppConfig:
    """Return the built-in configuration: a single local server."""
    return AppConfig(
        default_server="local",
        default_credentials=None,
        servers={
            "local": ServerConfig(name="Local server", host="localhost"),
        },
    )


def ensure_config_dir() -> None:
    """Create the config directory if it does not exist."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
