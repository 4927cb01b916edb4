"""
Configuration Manager - server definitions and runtime settings.

Handles YAML/JSON configuration files with environment variable overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from mcptoolkit.config.models import MCPServerConfig, MCPTimeouts
from mcptoolkit.errors import ConfigurationError

try:
    import yaml
    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False


class ConfigManager:
    """
    Configuration manager for mcptoolkit.

    Features:
    - YAML/JSON configuration files
    - Environment variable overrides
    - Claude-desktop style ``mcpServers`` maps
    - Default values
    """

    DEFAULT_CONFIG = {
        "app": {
            "name": "mcptoolkit",
            "debug": False,
        },
        "logging": {
            "level": "INFO",
            "file": None,
        },
        "mcp": {
            "handle_signals": True,
            "timeouts": {
                "start_seconds": 30.0,
                "list_tools_seconds": 30.0,
                "call_tool_seconds": 300.0,
                "shutdown_seconds": 5.0,
            },
            "servers": {},
        },
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to configuration file
        """
        if config_path is None:
            config_path = os.environ.get("MCPTOOLKIT_CONFIG", "mcp.yaml")
        self._config_path = Path(config_path)
        self._config: Dict[str, Any] = self._deep_copy(self.DEFAULT_CONFIG)
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._config_path

    async def load(self) -> None:
        """Load configuration from file."""
        self._config = self._deep_copy(self.DEFAULT_CONFIG)

        if self._config_path.exists():
            content = self._config_path.read_text(encoding="utf-8")
            if self._config_path.suffix in [".yaml", ".yml"]:
                if not YAML_AVAILABLE:
                    raise ConfigurationError(f"PyYAML is required to read {self._config_path}")
                try:
                    file_config = yaml.safe_load(content) or {}
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid configuration file {self._config_path}: {e}") from e
            else:
                try:
                    file_config = json.loads(content)
                except ValueError as e:
                    raise ConfigurationError(f"Invalid configuration file {self._config_path}: {e}") from e

            if not isinstance(file_config, dict):
                raise ConfigurationError(f"Configuration root must be a mapping: {self._config_path}")

            # Claude-desktop style top-level map
            servers = file_config.pop("mcpServers", None)
            if servers is not None:
                file_config.setdefault("mcp", {})
                file_config["mcp"]["servers"] = servers

            self._deep_merge(self._config, file_config)
            logger.info(f"Configuration loaded from {self._config_path}")
        else:
            logger.info(f"No configuration file at {self._config_path}, using defaults")

        self._apply_env_overrides()

        self._loaded = True

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-notation key (e.g., "mcp.timeouts.start_seconds")
            default: Default value if not found

        Returns:
            Configuration value
        """
        parts = key.split(".")
        value = self._config

        for part in parts:
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Dot-notation key
            value: Value to set
        """
        parts = key.split(".")
        config = self._config

        for part in parts[:-1]:
            if part not in config or not isinstance(config[part], dict):
                config[part] = {}
            config = config[part]

        config[parts[-1]] = value

    def server_configs(self) -> Dict[str, MCPServerConfig]:
        """Validate and return every configured server, keyed by name."""
        raw = self.get("mcp.servers", {}) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError("mcp.servers must be a mapping of name to server entry")

        servers: Dict[str, MCPServerConfig] = {}
        for name, entry in raw.items():
            try:
                servers[str(name)] = MCPServerConfig.model_validate(entry or {})
            except ValidationError as e:
                raise ConfigurationError(f"Invalid MCP server entry '{name}': {e}") from e
        return servers

    def timeouts(self) -> MCPTimeouts:
        def _timeout(key: str, default: float) -> float:
            try:
                return float(self.get(f"mcp.timeouts.{key}", default))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid timeout mcp.timeouts.{key}")
                return float(default)

        defaults = MCPTimeouts()
        return MCPTimeouts(
            start_seconds=_timeout("start_seconds", defaults.start_seconds),
            list_tools_seconds=_timeout("list_tools_seconds", defaults.list_tools_seconds),
            call_tool_seconds=_timeout("call_tool_seconds", defaults.call_tool_seconds),
            shutdown_seconds=_timeout("shutdown_seconds", defaults.shutdown_seconds),
        )

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "MCPTOOLKIT_DEBUG": ("app.debug", lambda x: x.lower() == "true"),
            "MCPTOOLKIT_LOG_LEVEL": ("logging.level", str.upper),
            "MCPTOOLKIT_CALL_TIMEOUT": ("mcp.timeouts.call_tool_seconds", float),
        }

        for env_var, (config_key, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                try:
                    self.set(config_key, converter(value))
                    logger.debug(f"Applied env override: {env_var}")
                except ValueError as e:
                    logger.warning(f"Failed to apply {env_var}: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Deep merge override into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _deep_copy(self, obj: Any) -> Any:
        """Deep copy a dictionary."""
        if isinstance(obj, dict):
            return {k: self._deep_copy(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._deep_copy(item) for item in obj]
        return obj

    @property
    def all(self) -> Dict[str, Any]:
        """Get all configuration."""
        return self._deep_copy(self._config)
