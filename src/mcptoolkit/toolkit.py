"""
MCPToolkit - one stdio MCP server exposed as a set of LangChain tools.

Usage:
    toolkit = MCPToolkit({"command": "npx", "args": ["-y", "@modelcontextprotocol/server-everything"]})
    await toolkit.initialize()
    tools = toolkit.get_tools()          # LangChain StructuredTools
    ...
    await toolkit.cleanup()

A toolkit registers itself in the process-wide active registry as soon as it
owns a connection, so a SIGINT/SIGTERM sweep can reach it even while it is
still initializing.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, List, Mapping, Optional, Union
from uuid import uuid4

from langchain_core.tools import StructuredTool
from loguru import logger

from mcptoolkit.config.models import MCPServerConfig, MCPTimeouts
from mcptoolkit.core.registry import ActiveToolkitRegistry, active_toolkits
from mcptoolkit.core.shutdown import ShutdownCoordinator, shutdown_coordinator
from mcptoolkit.errors import DescriptorError, ProtocolError, TransportError
from mcptoolkit.mcp.connection import MCPConnection
from mcptoolkit.mcp.launch import build_launch_spec
from mcptoolkit.tools.base import ToolDescriptor
from mcptoolkit.tools.mcp_tool import MCPRemoteTool


class ToolkitState(str, Enum):
    CREATED = "created"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


class MCPToolkit:
    def __init__(
        self,
        config: Union[MCPServerConfig, Mapping[str, Any]],
        *,
        name: Optional[str] = None,
        timeouts: Optional[MCPTimeouts] = None,
        registry: Optional[ActiveToolkitRegistry] = None,
        coordinator: Optional[ShutdownCoordinator] = None,
        handle_signals: bool = True,
    ) -> None:
        """
        Args:
            config: Server entry (command, args, env, cwd)
            name: Label used in logs; defaults to the toolkit id
            timeouts: Start/list/call/shutdown timeouts
            registry: Active registry; defaults to the process-wide one
            coordinator: Shutdown coordinator whose signal handlers are
                installed on first registration; defaults to the
                process-wide one when the default registry is used
            handle_signals: Set False to leave signal handling to the host
        """
        self.id = f"mcp-tk-{uuid4().hex[:12]}"
        self.name = name or self.id
        self.config = config
        self.state = ToolkitState.CREATED
        self.connection: Optional[MCPConnection] = None
        self.tools: List[MCPRemoteTool] = []

        self._timeouts = timeouts or MCPTimeouts()
        self._registry = registry if registry is not None else active_toolkits
        if coordinator is None and registry is None:
            coordinator = shutdown_coordinator
        self._coordinator = coordinator if handle_signals else None
        self._lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self.state is ToolkitState.READY

    @property
    def pid(self) -> Optional[int]:
        return self.connection.pid if self.connection is not None else None

    async def initialize(self) -> None:
        async with self._lock:
            if self.state is ToolkitState.READY:
                return

            self.state = ToolkitState.INITIALIZING
            try:
                launch = build_launch_spec(self.config)

                connection = MCPConnection(self.name, timeouts=self._timeouts)
                self.connection = connection
                self._registry.register(self)
                self._install_signal_handlers()

                await connection.connect(launch)
                listing = await connection.list_tools()
                tools = self._build_tools(connection, listing)

                if self.connection is not connection:
                    raise TransportError(f"MCP toolkit {self.id} was cleaned up during initialization")
            except (Exception, asyncio.CancelledError) as e:
                logger.error(f"MCP toolkit {self.id} initialization failed: {e!r}")
                await self.cleanup()
                raise

            self.tools = tools
            self.state = ToolkitState.READY
            logger.info(
                f"MCP toolkit {self.id} ready (pid={connection.pid}): tools={[t.name for t in tools]}"
            )

    @staticmethod
    def _build_tools(connection: MCPConnection, listing: List[Mapping[str, Any]]) -> List[MCPRemoteTool]:
        tools: List[MCPRemoteTool] = []
        seen = set()
        for raw in listing:
            descriptor = ToolDescriptor.from_listing(raw)
            if descriptor.name in seen:
                raise DescriptorError(f"Duplicate tool name '{descriptor.name}' in server listing")
            seen.add(descriptor.name)
            tools.append(MCPRemoteTool(connection=connection, descriptor=descriptor))
        return tools

    def _install_signal_handlers(self) -> None:
        if self._coordinator is not None and not self._coordinator.triggered:
            self._coordinator.install()

    async def cleanup(self) -> None:
        """Release the connection and the server process. Idempotent; never raises."""
        # Check-and-remove first so concurrent cleanups cannot both proceed.
        if not self._registry.unregister(self):
            logger.debug(f"MCP toolkit {self.id}: cleanup called, but not in the active registry")
            self.tools = []
            if self.connection is None:
                self.state = ToolkitState.CLOSED
            return

        connection, self.connection = self.connection, None
        pid = connection.pid if connection is not None else None
        logger.info(f"Cleaning up MCP toolkit {self.id}" + (f" (PID: {pid})" if pid else ""))
        self.tools = []
        self.state = ToolkitState.CLOSED

        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                logger.error(f"MCP toolkit {self.id}: unexpected error while closing connection: {e!r}")

        logger.info(f"Cleanup finished for MCP toolkit {self.id}")

    def get_tools(self) -> List[StructuredTool]:
        if self.state is not ToolkitState.READY:
            raise ProtocolError(f"MCP toolkit {self.id} must be initialized first (state={self.state.value})")
        return [tool.as_langchain_tool() for tool in self.tools]

    def get_tool(self, name: str) -> Optional[MCPRemoteTool]:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    async def __aenter__(self) -> "MCPToolkit":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.cleanup()

    def __repr__(self) -> str:
        return f"<MCPToolkit {self.id} state={self.state.value} tools={len(self.tools)}>"
