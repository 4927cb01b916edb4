"""
MCP runtime - launch, transport and connection lifecycle for stdio servers.
"""

from __future__ import annotations

from mcptoolkit.mcp.connection import ConnectionState, MCPConnection
from mcptoolkit.mcp.launch import LaunchSpec, build_launch_spec

__all__ = ["ConnectionState", "LaunchSpec", "MCPConnection", "build_launch_spec"]
