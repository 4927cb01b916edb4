"""
Launch specification for stdio MCP servers.

Turns a server configuration entry into the exact command, arguments and
environment used to spawn the server process. Nothing is spawned here.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from mcptoolkit.config.models import MCPServerConfig
from mcptoolkit.errors import ConfigurationError

# Package runners that ship a .cmd shim on Windows.
_WINDOWS_RUNNERS = {"npx": "npx.cmd"}


@dataclass(frozen=True)
class LaunchSpec:
    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None

    def argv(self) -> List[str]:
        return [self.command, *self.args]

    def describe(self) -> str:
        return " ".join(self.argv())


def resolve_command(command: str, platform: Optional[str] = None) -> str:
    platform = sys.platform if platform is None else platform
    if platform == "win32":
        return _WINDOWS_RUNNERS.get(command, command)
    return command


def merge_env(overrides: Mapping[str, str], base_env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    merged = dict(os.environ if base_env is None else base_env)
    merged.update(overrides)
    return merged


def build_launch_spec(
    config: Union[MCPServerConfig, Mapping[str, Any]],
    *,
    platform: Optional[str] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> LaunchSpec:
    """
    Build the launch specification for a server entry.

    Args:
        config: Server entry, either a model or a plain mapping
        platform: Overrides ``sys.platform`` for command resolution
        base_env: Overrides the inherited ``os.environ``

    Returns:
        LaunchSpec with the resolved command and the merged environment

    Raises:
        ConfigurationError: If the entry is invalid or has no command
    """
    if not isinstance(config, MCPServerConfig):
        if not isinstance(config, Mapping):
            raise ConfigurationError(f"Server config must be a mapping, got {type(config).__name__}")
        try:
            config = MCPServerConfig.model_validate(dict(config))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid MCP server config: {e}") from e

    if not config.command:
        raise ConfigurationError("Server command is required in MCP config")

    return LaunchSpec(
        command=resolve_command(config.command, platform),
        args=list(config.args),
        env=merge_env(config.env, base_env),
        cwd=config.cwd,
    )
