"""
MCPConnection - stdio MCP client connection lifecycle.

Owns exactly one server process and one `mcp.ClientSession` bound to its
pipes. The session and transport live inside a single owner task, so the
connection can be closed from any task (a shutdown sweep runs each cleanup in
its own task).
"""

from __future__ import annotations

import asyncio
import os
import signal
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional

from loguru import logger

import mcp.types as types
from mcp import ClientSession

from mcptoolkit.config.models import MCPTimeouts
from mcptoolkit.errors import ProtocolError, TeardownWarning, TransportError
from mcptoolkit.mcp.launch import LaunchSpec
from mcptoolkit.mcp.transport import StdioTransport

# Windows has no SIGKILL; os.kill with SIGTERM already calls TerminateProcess there.
FORCE_SIGNAL = getattr(signal, "SIGKILL", signal.SIGTERM)


class ConnectionState(str, Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


def _root_cause(exc: BaseException) -> BaseException:
    # Task groups wrap failures in exception groups; report the first leaf.
    while getattr(exc, "exceptions", None):
        exc = exc.exceptions[0]  # type: ignore[attr-defined]
    return exc


class MCPConnection:
    def __init__(self, name: str = "mcp", *, timeouts: Optional[MCPTimeouts] = None) -> None:
        self.name = name
        self._timeouts = timeouts or MCPTimeouts()
        self._state = ConnectionState.UNCONNECTED
        self._transport: Optional[StdioTransport] = None
        self._session: Optional[ClientSession] = None
        self._runner: Optional[asyncio.Task] = None
        self._ready = asyncio.Event()
        self._stop = asyncio.Event()
        self._connect_error: Optional[BaseException] = None
        self._pid: Optional[int] = None
        self.teardown_warnings: List[TeardownWarning] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._session is not None

    @property
    def pid(self) -> Optional[int]:
        """Last known pid of the server process."""
        return self._pid

    @property
    def transport(self) -> Optional[StdioTransport]:
        return self._transport

    async def connect(self, launch: LaunchSpec) -> None:
        if self._state is not ConnectionState.UNCONNECTED:
            raise ProtocolError(
                f"MCP connection '{self.name}' cannot be reused (state={self._state.value}); create a new one"
            )

        logger.info(f"Starting MCP server ({self.name}): {launch.describe()}")
        self._state = ConnectionState.CONNECTING
        self._transport = StdioTransport(
            launch, close_grace_seconds=min(2.0, float(self._timeouts.shutdown_seconds))
        )
        self._runner = asyncio.create_task(self._serve(self._transport), name=f"mcp-connection-{self.name}")

        error: Optional[TransportError] = None
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=float(self._timeouts.start_seconds))
        except asyncio.TimeoutError:
            error = TransportError(
                f"MCP server '{self.name}' did not finish the handshake within {self._timeouts.start_seconds}s"
            )
        except asyncio.CancelledError:
            await self.close()
            raise

        if error is None and (self._state is not ConnectionState.CONNECTING or self._session is None):
            cause = self._connect_error
            if isinstance(cause, TransportError):
                error = cause
            elif cause is not None:
                error = TransportError(f"MCP server '{self.name}' failed to start: {cause}")
                error.__cause__ = cause
            else:
                error = TransportError(f"MCP server '{self.name}' closed during connect")

        if error is not None:
            await self.close()
            raise error

        self._state = ConnectionState.CONNECTED
        logger.info(f"MCP server connected ({self.name}, pid={self._pid})")

    async def _serve(self, transport: StdioTransport) -> None:
        try:
            async with transport.open() as (read_stream, write_stream):
                self._pid = transport.pid
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    self._session = session
                    self._ready.set()
                    await self._stop.wait()
        except Exception as e:
            cause = _root_cause(e)
            if not self._ready.is_set():
                self._connect_error = cause
            elif self._state is ConnectionState.CLOSED:
                self._warn("transport close", repr(cause))
            else:
                logger.warning(f"MCP session ended unexpectedly ({self.name}, pid={self._pid}): {cause}")
        finally:
            self._session = None
            self._ready.set()

    def _require_session(self) -> ClientSession:
        session = self._session
        if self._state is not ConnectionState.CONNECTED or session is None:
            raise ProtocolError(f"MCP connection '{self.name}' is not connected (state={self._state.value})")
        return session

    async def _request(self, awaitable: Awaitable[Any], timeout_s: float, operation: str) -> Any:
        """
        Await a session request, failing fast once the connection is closed.

        Raises:
            TransportError: On timeout, or if `close()` runs before the reply arrives
        """
        request = asyncio.ensure_future(awaitable)
        closed = asyncio.ensure_future(self._stop.wait())
        try:
            done, _ = await asyncio.wait({request, closed}, timeout=timeout_s, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed.cancel()
            if not request.done():
                request.cancel()

        if request in done:
            return request.result()
        if closed in done:
            raise TransportError(f"connection closed during {operation} ({self.name})")
        raise TransportError(f"timeout after {timeout_s:g}s during {operation} ({self.name})")

    async def list_tools(self) -> List[Dict[str, Any]]:
        session = self._require_session()
        res = await self._request(session.list_tools(), float(self._timeouts.list_tools_seconds), "list_tools")
        tools = getattr(res, "tools", None) or []
        return [tool.model_dump(by_alias=True, exclude_none=True) for tool in tools]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Call a remote tool and return the raw reply object.

        The reply is deliberately not validated against `CallToolResult`:
        servers answer with several shapes and the tool adapter sorts them out.
        """
        session = self._require_session()
        request = types.ClientRequest(
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name=name, arguments=arguments or {}),
            )
        )
        res = await self._request(
            session.send_request(request, types.Result),
            float(self._timeouts.call_tool_seconds),
            f"call_tool {name}",
        )
        return res.model_dump(by_alias=True, exclude_none=True)

    async def close(self) -> None:
        """Tear down the session and the server process. Idempotent; never raises."""
        if self._state is ConnectionState.CLOSED:
            return
        previous = self._state
        self._state = ConnectionState.CLOSED
        self._stop.set()
        self._ready.set()

        transport = self._transport
        runner, self._runner = self._runner, None
        shutdown_s = float(self._timeouts.shutdown_seconds)

        # 1. Graceful: end the session, close the child's stdin.
        if runner is not None:
            logger.debug(f"Closing MCP transport ({self.name}, pid={self._pid})")
            if previous is ConnectionState.CONNECTING:
                # A pending handshake never observes the stop event.
                runner.cancel()
            done, _ = await asyncio.wait({runner}, timeout=shutdown_s)
            if not done:
                self._warn("transport close", f"timed out after {shutdown_s}s")
                runner.cancel()
                await asyncio.wait({runner}, timeout=shutdown_s)

        # 2. Signal the process if it is still around.
        if transport is not None and transport.pid is not None:
            pid = transport.pid
            if transport.is_alive:
                self._terminate(pid)
                if await transport.wait(shutdown_s) is None:
                    self._warn("terminate", f"pid {pid} still running after {shutdown_s}s, sending kill")
                    self._kill(pid)
                    await transport.wait(shutdown_s)
            else:
                logger.debug(f"MCP server pid {pid} already exited (code={transport.returncode})")
        elif previous is not ConnectionState.UNCONNECTED:
            logger.debug(f"No MCP server process to terminate ({self.name})")

        self._session = None
        self._transport = None
        logger.info(f"MCP connection closed ({self.name}, pid={self._pid})")

    def _terminate(self, pid: int) -> None:
        try:
            os.kill(pid, signal.SIGTERM)
            logger.debug(f"Sent SIGTERM to MCP server pid {pid}")
            return
        except ProcessLookupError:
            logger.debug(f"SIGTERM skipped, pid {pid} already gone")
            return
        except OSError as e:
            self._warn("SIGTERM", f"pid {pid}: {e}")
        self._kill(pid)

    def _kill(self, pid: int) -> None:
        try:
            os.kill(pid, FORCE_SIGNAL)
            logger.debug(f"Sent {signal.Signals(FORCE_SIGNAL).name} to MCP server pid {pid}")
        except ProcessLookupError:
            logger.debug(f"Kill skipped, pid {pid} already gone")
        except OSError as e:
            self._warn("SIGKILL", f"pid {pid}: {e}")

    def _warn(self, step: str, reason: str) -> None:
        warning = TeardownWarning(step, reason)
        self.teardown_warnings.append(warning)
        logger.warning(f"MCP teardown ({self.name}): {warning}")
