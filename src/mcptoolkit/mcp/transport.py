"""
StdioTransport - newline-delimited JSON-RPC over a child process's pipes.

The transport owns the server process so the connection can signal it by pid
during teardown. Framing follows the MCP stdio transport: one JSON-RPC message
per line on stdin/stdout, stderr inherited from the host process.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple, Union

import anyio
import anyio.lowlevel
from anyio.abc import Process
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from anyio.streams.text import TextReceiveStream
from loguru import logger
from pydantic import ValidationError

import mcp.types as types
from mcp.shared.message import SessionMessage

from mcptoolkit.errors import TransportError
from mcptoolkit.mcp.launch import LaunchSpec

ReadStream = MemoryObjectReceiveStream[Union[SessionMessage, Exception]]
WriteStream = MemoryObjectSendStream[SessionMessage]

_PIPE_ERRORS = (OSError, anyio.BrokenResourceError, anyio.ClosedResourceError)


class StdioTransport:
    def __init__(self, launch: LaunchSpec, *, close_grace_seconds: float = 2.0) -> None:
        self.launch = launch
        self.process: Optional[Process] = None
        self._close_grace_seconds = close_grace_seconds

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process is not None else None

    @property
    def is_alive(self) -> bool:
        return self.process is not None and self.process.returncode is None

    @asynccontextmanager
    async def open(self) -> AsyncIterator[Tuple[ReadStream, WriteStream]]:
        """
        Spawn the server and pump its pipes for the lifetime of the context.

        Exiting the context closes the message streams and the child's stdin,
        then waits briefly for the child to exit on EOF. It does not signal
        the process; that is the connection's job.
        """
        if self.process is not None:
            raise TransportError("Transport already opened; create a new one to respawn")

        try:
            self.process = await anyio.open_process(
                self.launch.argv(),
                env=self.launch.env,
                cwd=self.launch.cwd,
                stderr=None,
            )
        except OSError as e:
            raise TransportError(f"Failed to spawn MCP server '{self.launch.describe()}': {e}") from e

        logger.debug(f"Spawned MCP server pid={self.process.pid}: {self.launch.describe()}")

        read_send, read_recv = anyio.create_memory_object_stream[Union[SessionMessage, Exception]](0)
        write_send, write_recv = anyio.create_memory_object_stream[SessionMessage](0)

        async with anyio.create_task_group() as tg:
            tg.start_soon(self._stdout_reader, read_send)
            tg.start_soon(self._stdin_writer, write_recv)
            try:
                yield read_recv, write_send
            finally:
                with anyio.CancelScope(shield=True):
                    await write_send.aclose()
                    await read_recv.aclose()
                    await self._close_stdin()
                    with anyio.move_on_after(self._close_grace_seconds):
                        await self.process.wait()
                tg.cancel_scope.cancel()

    async def wait(self, timeout: float) -> Optional[int]:
        """Wait up to ``timeout`` seconds for the child to exit; returns its exit code."""
        if self.process is None:
            return None
        with anyio.move_on_after(timeout):
            await self.process.wait()
        return self.process.returncode

    async def _close_stdin(self) -> None:
        if self.process is None or self.process.stdin is None:
            return
        try:
            await self.process.stdin.aclose()
        except _PIPE_ERRORS as e:
            logger.debug(f"stdin close failed for pid={self.pid}: {e}")

    async def _stdout_reader(self, read_send: MemoryObjectSendStream) -> None:
        assert self.process is not None and self.process.stdout is not None
        async with read_send:
            buffer = ""
            try:
                async for chunk in TextReceiveStream(self.process.stdout, encoding="utf-8", errors="replace"):
                    lines = (buffer + chunk).split("\n")
                    buffer = lines.pop()
                    for line in lines:
                        if not line.strip():
                            continue
                        try:
                            message = types.JSONRPCMessage.model_validate_json(line)
                        except ValidationError as exc:
                            logger.debug(f"Unparseable line from pid={self.pid}: {line[:200]!r}")
                            await read_send.send(exc)
                            continue
                        await read_send.send(SessionMessage(message))
            except _PIPE_ERRORS:
                await anyio.lowlevel.checkpoint()
        logger.debug(f"stdout closed for pid={self.pid}")

    async def _stdin_writer(self, write_recv: MemoryObjectReceiveStream) -> None:
        assert self.process is not None and self.process.stdin is not None
        async with write_recv:
            try:
                async for session_message in write_recv:
                    payload = session_message.message.model_dump_json(by_alias=True, exclude_none=True)
                    await self.process.stdin.send((payload + "\n").encode("utf-8"))
            except _PIPE_ERRORS as e:
                logger.debug(f"stdin writer stopped for pid={self.pid}: {e}")
