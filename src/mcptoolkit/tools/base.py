"""
Base Tool - tool definitions and the abstract callable tool.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mcptoolkit.errors import DescriptorError


class ToolDescriptor(BaseModel):
    """A remote tool as advertised by ``tools/list``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict, alias="inputSchema")

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("tool name cannot be empty")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @classmethod
    def from_listing(cls, raw: Mapping[str, Any]) -> "ToolDescriptor":
        try:
            return cls.model_validate(dict(raw))
        except (TypeError, ValueError, ValidationError) as e:
            raise DescriptorError(f"Invalid tool descriptor {raw!r}: {e}") from e


class ToolDefinition(BaseModel):
    """Tool definition exposed to consumers."""

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)  # JSON Schema
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BaseTool(ABC):
    """
    Abstract base class for mcptoolkit tools.

    All tools must implement:
    - definition: Tool metadata
    - invoke: Call the tool and return its result as text
    """

    @property
    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Get tool definition."""

    @abstractmethod
    async def invoke(self, arguments: Optional[Dict[str, Any]] = None) -> str:
        """
        Invoke the tool.

        Args:
            arguments: Tool-specific parameters

        Returns:
            The tool result as a string. Implementations never raise.
        """

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
