"""
MCPRemoteTool - expose an MCP server tool as a callable tool.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple, Type

from langchain_core.tools import StructuredTool
from loguru import logger
from pydantic import BaseModel

from mcptoolkit.errors import InvocationFailure, MCPToolkitError
from mcptoolkit.tools.base import BaseTool, ToolDefinition, ToolDescriptor
from mcptoolkit.tools.converter import args_model_from_schema, to_langchain_tool

if TYPE_CHECKING:
    from mcptoolkit.mcp.connection import MCPConnection


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else _dumps(value)


def _has_content_items(reply: Mapping[str, Any]) -> bool:
    content = reply.get("content")
    return isinstance(content, list) and len(content) > 0


def _field_set(key: str) -> Callable[[Mapping[str, Any]], bool]:
    return lambda reply: reply.get(key) is not None


# Checked in order; the first matching shape wins.
REPLY_SHAPES: Tuple[Tuple[str, Callable[[Mapping[str, Any]], bool], Callable[[Mapping[str, Any]], str]], ...] = (
    ("content", _has_content_items, lambda reply: _dumps(reply["content"])),
    ("toolResult", _field_set("toolResult"), lambda reply: _as_text(reply["toolResult"])),
    ("result", _field_set("result"), lambda reply: _as_text(reply["result"])),
    ("data", _field_set("data"), lambda reply: _as_text(reply["data"])),
    ("content", lambda reply: "content" in reply, lambda reply: _dumps(reply["content"])),
)


def normalize_reply(reply: Any) -> str:
    """
    Turn a ``tools/call`` reply of any known shape into text.

    Raises:
        TypeError, ValueError: If the selected value cannot be serialized
    """
    if isinstance(reply, Mapping):
        for _shape, matches, extract in REPLY_SHAPES:
            if matches(reply):
                return extract(reply)
    return _dumps(reply)


def reply_shape(reply: Any) -> str:
    """Name of the shape `normalize_reply` would use, for logging."""
    if isinstance(reply, Mapping):
        for shape, matches, _extract in REPLY_SHAPES:
            if matches(reply):
                return shape
    return "raw"


class MCPRemoteTool(BaseTool):
    def __init__(self, *, connection: "MCPConnection", descriptor: ToolDescriptor) -> None:
        self._connection = connection
        self._descriptor = descriptor
        # Fails fast on a bad schema so a toolkit never holds a half-usable tool.
        self._args_model = args_model_from_schema(descriptor.name, descriptor.input_schema)
        self._definition = ToolDefinition(
            name=descriptor.name,
            description=descriptor.description,
            parameters=dict(descriptor.input_schema),
            metadata={"server": connection.name},
        )
        self._langchain_tool: Optional[StructuredTool] = None

    @property
    def definition(self) -> ToolDefinition:
        return self._definition

    @property
    def descriptor(self) -> ToolDescriptor:
        return self._descriptor

    @property
    def args_schema(self) -> Type[BaseModel]:
        return self._args_model

    async def invoke(self, arguments: Optional[Dict[str, Any]] = None) -> str:
        name = self._descriptor.name
        try:
            return await self._call(dict(arguments or {}))
        except InvocationFailure as e:
            logger.warning(f"MCP tool call failed: {e}")
            return f"Error: {e}"
        except Exception as e:
            # Contain everything: one broken tool must not abort the agent run.
            failure = InvocationFailure(name, f"{type(e).__name__}: {e}")
            logger.warning(f"MCP tool call failed: {failure}")
            return f"Error: {failure}"

    async def _call(self, arguments: Dict[str, Any]) -> str:
        name = self._descriptor.name
        logger.debug(f"MCP tool {name}: calling with {sorted(arguments)}")
        try:
            reply = await self._connection.call_tool(name, arguments)
        except MCPToolkitError as e:
            raise InvocationFailure(name, str(e)) from e

        if isinstance(reply, Mapping) and reply.get("isError"):
            logger.warning(f"MCP tool {name} reported isError")

        try:
            text = normalize_reply(reply)
        except (TypeError, ValueError) as e:
            raise InvocationFailure(name, f"unrecognized reply ({e})") from e
        logger.debug(f"MCP tool {name}: normalized '{reply_shape(reply)}' reply ({len(text)} chars)")
        return text

    def as_langchain_tool(self) -> StructuredTool:
        if self._langchain_tool is None:
            self._langchain_tool = to_langchain_tool(self, self._args_model)
        return self._langchain_tool
