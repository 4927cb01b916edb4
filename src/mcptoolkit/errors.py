"""
Error taxonomy for mcptoolkit.

Initialization errors are surfaced to the caller after a best-effort cleanup.
Invocation failures are converted to text by the tool adapter. Teardown
problems are only logged.
"""

from __future__ import annotations


class MCPToolkitError(Exception):
    """Base class for all mcptoolkit errors."""


class ConfigurationError(MCPToolkitError):
    """Missing or invalid launch configuration."""


class DescriptorError(ConfigurationError):
    """A remote tool descriptor cannot be turned into a callable tool."""


class TransportError(MCPToolkitError):
    """The server process could not be spawned or the handshake failed."""


class ProtocolError(MCPToolkitError):
    """An operation was issued against a connection that is not connected."""


class InvocationFailure(MCPToolkitError):
    """A single tool call failed. Never escapes the tool adapter."""

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Tool {tool_name} failed: {reason}")
        self.tool_name = tool_name
        self.reason = reason


class TeardownWarning(UserWarning):
    """A best-effort cleanup step failed."""

    def __init__(self, step: str, reason: str) -> None:
        super().__init__(f"{step}: {reason}")
        self.step = step
        self.reason = reason
