"""Tools module - remote MCP tools as callables."""

from mcptoolkit.tools.base import BaseTool, ToolDefinition, ToolDescriptor
from mcptoolkit.tools.mcp_tool import MCPRemoteTool, normalize_reply

__all__ = ["BaseTool", "MCPRemoteTool", "ToolDefinition", "ToolDescriptor", "normalize_reply"]
