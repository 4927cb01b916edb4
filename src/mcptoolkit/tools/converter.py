"""
Tool Schema Converter - MCP descriptors to LangChain tools.

Remote argument schemas are described loosely: every property becomes an
optional ``Any`` field, the remote server does the real validation. The one
hard requirement is an object schema with a ``properties`` map.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Type

from langchain_core.tools import StructuredTool
from loguru import logger
from pydantic import BaseModel, ConfigDict, create_model

from mcptoolkit.errors import DescriptorError

if TYPE_CHECKING:
    from mcptoolkit.tools.base import BaseTool


def normalize_model_name(name: str) -> str:
    s = re.sub(r"[^A-Za-z0-9]+", "_", (name or "").strip()).strip("_")
    if not s:
        s = "tool"
    if s[0].isdigit():
        s = "tool_" + s
    return s


def args_model_from_schema(tool_name: str, schema: Optional[Mapping[str, Any]]) -> Type[BaseModel]:
    """
    Build a permissive pydantic model for a tool's input schema.

    Raises:
        DescriptorError: If the schema is not an object schema with properties
    """
    if not isinstance(schema, Mapping) or schema.get("type") != "object":
        raise DescriptorError(f"Tool '{tool_name}': invalid schema type, expected an object schema")
    properties = schema.get("properties")
    if not isinstance(properties, Mapping):
        raise DescriptorError(f"Tool '{tool_name}': object schema is missing its properties map")

    fields: Dict[str, Any] = {str(key): (Any, None) for key in properties}
    try:
        return create_model(
            f"{normalize_model_name(tool_name)}Args",
            __config__=ConfigDict(protected_namespaces=(), extra="allow"),
            **fields,
        )
    except (NameError, TypeError, ValueError) as e:
        raise DescriptorError(f"Tool '{tool_name}': cannot build argument model: {e}") from e


def to_langchain_tool(tool: "BaseTool", args_model: Type[BaseModel]) -> StructuredTool:
    """Wrap a tool as an async-only LangChain StructuredTool."""

    async def _arun(**kwargs: Any) -> str:
        return await tool.invoke(kwargs)

    logger.debug(f"Creating LangChain tool for {tool.name} ({len(args_model.model_fields)} args)")
    return StructuredTool(
        name=tool.name,
        description=tool.description,
        args_schema=args_model,
        coroutine=_arun,
    )
