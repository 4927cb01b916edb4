"""Configuration - server entries, timeouts and the file-backed manager."""

from mcptoolkit.config.manager import ConfigManager
from mcptoolkit.config.models import MCPServerConfig, MCPTimeouts

__all__ = ["ConfigManager", "MCPServerConfig", "MCPTimeouts"]
