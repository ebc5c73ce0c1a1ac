"""Client configuration: saved servers and log colours.

Stored as YAML, by default at ``~/.config/odamex-rcon/config.yaml``. Set
``ODAMEX_RCON_CONFIG`` to use another file.

Example:
    servers:
      - name: local
        host: 127.0.0.1
        port: 10666
        password: hunter2
        protoversion: latest
    logcolors:
      error: red
      chat: green
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .protocol import LATEST_PROTOCOL_VERSION, PrintLevel, ProtocolVersion

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ODAMEX_RCON_CONFIG"
LATEST = "latest"

Color = Literal[
    "black",
    "red",
    "green",
    "yellow",
    "blue",
    "magenta",
    "cyan",
    "white",
    "bright_black",
    "bright_red",
    "bright_green",
    "bright_yellow",
    "bright_blue",
    "bright_magenta",
    "bright_cyan",
    "bright_white",
    "reset",
]

DEFAULT_LOG_COLORS: dict[PrintLevel, Color] = {
    PrintLevel.PICKUP: "bright_black",
    PrintLevel.OBITUARY: "white",
    PrintLevel.HIGH: "bright_white",
    PrintLevel.CHAT: "green",
    PrintLevel.TEAMCHAT: "cyan",
    PrintLevel.SERVERCHAT: "magenta",
    PrintLevel.WARNING: "yellow",
    PrintLevel.ERROR: "red",
}


def default_config_path() -> Path:
    """Config file location, honouring ``ODAMEX_RCON_CONFIG``."""
    override = os.getenv(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "odamex-rcon" / "config.yaml"


class ServerConfig(BaseModel):
    """A saved server. Every field must be present in the file."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)
    password: str
    protoversion: str

    @field_validator("protoversion")
    @classmethod
    def _check_protoversion(cls, value: str) -> str:
        if value != LATEST:
            ProtocolVersion.parse(value)
        return value

    def protocol_version(self) -> ProtocolVersion:
        """Protocol version to offer, resolving ``latest``."""
        if self.protoversion == LATEST:
            return LATEST_PROTOCOL_VERSION
        return ProtocolVersion.parse(self.protoversion)


class RconConfig(BaseModel):
    """Top level of the config file."""

    model_config = ConfigDict(extra="forbid")

    servers: list[ServerConfig] = Field(default_factory=list)
    logcolors: dict[PrintLevel, Color] = Field(default_factory=lambda: dict(DEFAULT_LOG_COLORS))

    @model_validator(mode="after")
    def _unique_names(self) -> RconConfig:
        seen: set[str] = set()
        for server in self.servers:
            if server.name in seen:
                raise ValueError(f"Duplicate server name: {server.name}")
            seen.add(server.name)
        return self

    def get_server(self, name: str) -> ServerConfig:
        """Look up a saved server by name.

        Raises:
            KeyError: If no server has that name
        """
        for server in self.servers:
            if server.name == name:
                return server
        raise KeyError(name)

    def add_server(self, server: ServerConfig) -> None:
        """Save a server, replacing any existing one with the same name."""
        self.servers = [s for s in self.servers if s.name != server.name]
        self.servers.append(server)

    def remove_server(self, name: str) -> bool:
        """Remove a server. Returns False if it was not saved."""
        remaining = [s for s in self.servers if s.name != name]
        removed = len(remaining) != len(self.servers)
        self.servers = remaining
        return removed

    def color_for(self, level: PrintLevel | None) -> str | None:
        """Colour for a print level; None for unclassified output."""
        if level is None:
            return None
        return self.logcolors.get(level, DEFAULT_LOG_COLORS[level])


def load_config(path: Path | None = None) -> RconConfig:
    """Load the config file, returning defaults if it does not exist.

    Raises:
        ValueError: If the file is not valid YAML or does not validate
    """
    path = path or default_config_path()
    if not path.exists():
        logger.debug(f"No config file at {path}, using defaults")
        return RconConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return RconConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    return RconConfig.model_validate(data)


def save_config(config: RconConfig, path: Path | None = None) -> Path:
    """Write the config file, creating its directory. Returns the path written."""
    path = path or default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, sort_keys=False)
    logger.info(f"Saved config to {path}")
    return path
