"""
Configuration models (Pydantic).

These models describe one MCP server launch entry and the timeouts applied to
its connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class MCPServerConfig(BaseModel):
    # Optional here so a missing command surfaces as ConfigurationError, not a validation error.
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    cwd: Optional[str] = None
    transport: Literal["stdio"] = "stdio"

    @field_validator("command")
    @classmethod
    def _strip_command(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip()

    @field_validator("args", mode="before")
    @classmethod
    def _coerce_args(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return [str(a) for a in v]
        return v

    @field_validator("env", mode="before")
    @classmethod
    def _coerce_env(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v


@dataclass(frozen=True)
class MCPTimeouts:
    start_seconds: float = 30.0
    list_tools_seconds: float = 30.0
    call_tool_seconds: float = 300.0
    shutdown_seconds: float = 5.0
