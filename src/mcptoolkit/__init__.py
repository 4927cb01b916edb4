"""
mcptoolkit - stdio MCP servers as LangChain tools

Spawns an MCP tool server as a child process, lists its tools, wraps each one
as a callable with resilient reply parsing, and tears everything down exactly
once, including on SIGINT/SIGTERM.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mcptoolkit.toolkit import MCPToolkit as MCPToolkit

__all__ = ["MCPToolkit", "__version__"]


def __getattr__(name: str):
    # Lazy import keeps `import mcptoolkit.errors` free of the mcp/langchain imports.
    if name == "MCPToolkit":
        from mcptoolkit.toolkit import MCPToolkit  # local import

        return MCPToolkit
    raise AttributeError(name)
