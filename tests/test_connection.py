import signal
import sys

import pytest

from mcptoolkit.config.models import MCPTimeouts
from mcptoolkit.errors import ProtocolError, TransportError
from mcptoolkit.mcp import connection as connection_module
from mcptoolkit.mcp.connection import FORCE_SIGNAL, ConnectionState, MCPConnection
from mcptoolkit.mcp.launch import LaunchSpec, build_launch_spec


class _FakeTransport:
    def __init__(self, pid=4242, alive=True, exit_after_term=True):
        self.pid = pid
        self.is_alive = alive
        self.returncode = None if alive else 0
        self._exit_after_term = exit_after_term
        self.waits = 0

    async def wait(self, timeout=None):
        self.waits += 1
        if self._exit_after_term:
            self.is_alive = False
            self.returncode = -15
            return self.returncode
        return None


def _connected(transport):
    conn = MCPConnection("fake", timeouts=MCPTimeouts(shutdown_seconds=0.1))
    conn._transport = transport
    conn._pid = transport.pid
    conn._state = ConnectionState.CONNECTED
    return conn


@pytest.fixture
def kill_calls(monkeypatch):
    calls = []

    def _kill(pid, sig):
        calls.append((pid, sig))

    monkeypatch.setattr(connection_module.os, "kill", _kill)
    return calls


@pytest.mark.asyncio
async def test_calls_before_connect_are_rejected():
    conn = MCPConnection("idle")
    with pytest.raises(ProtocolError):
        await conn.list_tools()
    with pytest.raises(ProtocolError):
        await conn.call_tool("echo", {"text": "hi"})


@pytest.mark.asyncio
async def test_missing_executable_raises_transport_error():
    conn = MCPConnection("missing", timeouts=MCPTimeouts(start_seconds=5, shutdown_seconds=1))
    with pytest.raises(TransportError):
        await conn.connect(LaunchSpec(command="/nonexistent/definitely-not-an-mcp-server"))
    assert conn.state is ConnectionState.CLOSED
    assert not conn.is_connected


@pytest.mark.asyncio
async def test_closed_connection_cannot_be_reused():
    conn = MCPConnection("once")
    await conn.close()
    with pytest.raises(ProtocolError):
        await conn.connect(LaunchSpec(command=sys.executable))


@pytest.mark.asyncio
async def test_close_is_idempotent_without_a_process(kill_calls):
    conn = MCPConnection("never-started")
    await conn.close()
    await conn.close()
    assert conn.state is ConnectionState.CLOSED
    assert kill_calls == []
    assert conn.teardown_warnings == []


@pytest.mark.asyncio
async def test_close_sends_sigterm_once(kill_calls):
    conn = _connected(_FakeTransport())
    await conn.close()
    await conn.close()
    assert kill_calls == [(4242, signal.SIGTERM)]
    assert conn.teardown_warnings == []
    assert conn.transport is None


@pytest.mark.asyncio
async def test_close_skips_signals_for_exited_process(kill_calls):
    conn = _connected(_FakeTransport(alive=False))
    await conn.close()
    assert kill_calls == []


@pytest.mark.asyncio
async def test_already_gone_process_needs_no_escalation(monkeypatch):
    calls = []

    def _kill(pid, sig):
        calls.append(sig)
        raise ProcessLookupError(3, "No such process")

    monkeypatch.setattr(connection_module.os, "kill", _kill)
    conn = _connected(_FakeTransport())
    await conn.close()
    assert calls == [signal.SIGTERM]
    assert conn.teardown_warnings == []


@pytest.mark.asyncio
async def test_sigterm_failure_escalates_to_kill(monkeypatch):
    calls = []

    def _kill(pid, sig):
        calls.append(sig)
        if sig == signal.SIGTERM:
            raise PermissionError(1, "Operation not permitted")

    monkeypatch.setattr(connection_module.os, "kill", _kill)
    conn = _connected(_FakeTransport())
    await conn.close()
    assert calls == [signal.SIGTERM, FORCE_SIGNAL]
    assert [w.step for w in conn.teardown_warnings] == ["SIGTERM"]


@pytest.mark.asyncio
async def test_process_ignoring_sigterm_is_killed(kill_calls):
    transport = _FakeTransport(exit_after_term=False)
    conn = _connected(transport)
    await conn.close()
    assert kill_calls == [(4242, signal.SIGTERM), (4242, FORCE_SIGNAL)]
    assert [w.step for w in conn.teardown_warnings] == ["terminate"]
    assert transport.waits == 2


@pytest.mark.asyncio
async def test_handshake_timeout_raises_transport_error(raw_server_config):
    conn = MCPConnection("hang", timeouts=MCPTimeouts(start_seconds=0.5, shutdown_seconds=1))
    with pytest.raises(TransportError, match="handshake"):
        await conn.connect(build_launch_spec(raw_server_config("hang")))
    assert conn.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_round_trip_against_sdk_server(fake_server_config):
    conn = MCPConnection("fake", timeouts=MCPTimeouts(start_seconds=20, shutdown_seconds=2))
    await conn.connect(build_launch_spec(fake_server_config))
    try:
        assert conn.is_connected
        assert conn.pid is not None
        names = {t["name"] for t in await conn.list_tools()}
        assert {"echo", "add", "nap"} <= names

        reply = await conn.call_tool("echo", {"text": "hello"})
        assert reply["content"][0]["text"] == "hello"
    finally:
        await conn.close()
    assert conn.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_call_timeout_raises_transport_error(fake_server_config):
    conn = MCPConnection("fake", timeouts=MCPTimeouts(start_seconds=20, call_tool_seconds=0.3, shutdown_seconds=2))
    await conn.connect(build_launch_spec(fake_server_config))
    try:
        with pytest.raises(TransportError, match="timeout"):
            await conn.call_tool("nap", {"seconds": 5})
    finally:
        await conn.close()
