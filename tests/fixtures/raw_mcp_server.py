"""
Hand-written line-delimited JSON-RPC MCP server for tests.

Answers with reply shapes a real SDK server would never produce, so the
client-side normalization can be exercised end to end.

Run:
  python tests/fixtures/raw_mcp_server.py [shapes|bad-schema|hang]

If RAW_MCP_PIDFILE is set, the server writes its pid there on startup.
"""

from __future__ import annotations

import json
import os
import sys

OBJECT_SCHEMA = {"type": "object", "properties": {"value": {"type": "string"}}}

SHAPE_REPLIES = {
    "content_tool": {"content": [{"type": "text", "text": "ok"}]},
    "tool_result_tool": {"toolResult": "plain text"},
    "tool_result_object_tool": {"toolResult": {"rows": 3}},
    "result_tool": {"result": 42},
    "data_tool": {"data": {"items": [1, 2]}},
    "empty_content_tool": {"content": []},
    "other_tool": {"status": "done"},
}

TOOLS = {
    "shapes": [
        {"name": name, "description": f"returns {name}", "inputSchema": OBJECT_SCHEMA} for name in SHAPE_REPLIES
    ],
    "bad-schema": [
        {"name": "fine", "description": "ok", "inputSchema": OBJECT_SCHEMA},
        {"name": "broken", "description": "string schema", "inputSchema": {"type": "string"}},
    ],
}


def send(message: dict) -> None:
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def handle(mode: str, message: dict) -> None:
    method = message.get("method")
    msg_id = message.get("id")
    if msg_id is None:
        return  # notification

    if mode == "hang":
        return

    if method == "initialize":
        params = message.get("params") or {}
        result = {
            "protocolVersion": params.get("protocolVersion", "2025-03-26"),
            "capabilities": {"tools": {}},
            "serverInfo": {"name": "raw-mcp", "version": "0.0.1"},
        }
    elif method == "tools/list":
        result = {"tools": TOOLS.get(mode, [])}
    elif method == "tools/call":
        name = (message.get("params") or {}).get("name")
        result = SHAPE_REPLIES.get(name, {"content": [{"type": "text", "text": f"unknown {name}"}]})
    elif method == "ping":
        result = {}
    else:
        send({"jsonrpc": "2.0", "id": msg_id, "error": {"code": -32601, "message": f"no method {method}"}})
        return

    send({"jsonrpc": "2.0", "id": msg_id, "result": result})


def main() -> None:
    mode = sys.argv[1] if len(sys.argv) > 1 else "shapes"
    pidfile = os.environ.get("RAW_MCP_PIDFILE")
    if pidfile:
        with open(pidfile, "w", encoding="utf-8") as fh:
            fh.write(str(os.getpid()))

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        handle(mode, json.loads(line))


if __name__ == "__main__":
    main()
