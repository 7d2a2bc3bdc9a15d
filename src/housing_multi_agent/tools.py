"""
Tools for the multi-agent housing system.

A tool is a named operation an agent exposes through ``list_tools`` and
``call_tool``. Every tool returns a ``ToolResult``: a single text payload
(usually JSON) plus an error flag, so callers never need per-tool return types.
"""

import json
import logging
from typing import Dict, Any, Optional, List, Type, Callable, Awaitable
from abc import ABC, abstractmethod
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ToolInputSchema(BaseModel):
    """Structural description of a tool's arguments."""
    model_config = ConfigDict(populate_by_name=True)

    type: str = "object"
    properties: Dict[str, Any] = {}
    required: List[str] = []
    defs: Optional[Dict[str, Any]] = Field(default=None, alias="$defs")


class Tool(BaseModel):
    """Advertised tool descriptor."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: ToolInputSchema = Field(alias="inputSchema")


class ToolContent(BaseModel):
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    """Universal return envelope of a tool call."""
    model_config = ConfigDict(populate_by_name=True)

    content: List[ToolContent]
    is_error: bool = Field(default=False, alias="isError")

    @property
    def text(self) -> str:
        return self.content[0].text if self.content else ""

    def payload(self) -> Any:
        """Decode the inner JSON payload."""
        return json.loads(self.text)


def text_result(text: str) -> ToolResult:
    return ToolResult(content=[ToolContent(text=text)])


def json_result(data: Any) -> ToolResult:
    return text_result(json.dumps(data, indent=2, default=str))


def error_result(error: str) -> ToolResult:
    return ToolResult(content=[ToolContent(text=error)], is_error=True)


def schema_from_model(model: Optional[Type[BaseModel]]) -> ToolInputSchema:
    """Build the advertised input schema from an arguments model."""
    if model is None:
        return ToolInputSchema()
    schema = model.model_json_schema(by_alias=True)
    return ToolInputSchema(
        type=schema.get("type", "object"),
        properties=schema.get("properties", {}),
        required=schema.get("required", []),
        defs=schema.get("$defs"),
    )


class BaseTool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    args_model: Optional[Type[BaseModel]] = None

    def __init__(self, logger: logging.Logger):
        """Initialize tool with a logger."""
        self.logger = logger

    def descriptor(self) -> Tool:
        return Tool(name=self.name, description=self.description, input_schema=schema_from_model(self.args_model))

    async def execute(self, arguments: Dict[str, Any]) -> ToolResult:
        """Validate arguments and run the tool."""
        if self.args_model is None:
            return await self.run(arguments)

        try:
            args = self.args_model.model_validate(arguments or {})
        except ValidationError as e:
            return error_result(f"Invalid arguments for tool {self.name}: {e.error_count()} validation error(s): {e.errors()[0]['msg']}")
        return await self.run(args)

    @abstractmethod
    async def run(self, args: Any) -> ToolResult:
        """Execute the tool with validated arguments."""
        pass


class FunctionTool(BaseTool):
    """Tool backed by a plain async callable."""

    def __init__(self, name: str, description: str, func: Callable[[Any], Awaitable[ToolResult]],
                 logger: logging.Logger, args_model: Optional[Type[BaseModel]] = None):
        super().__init__(logger)
        self.name = name
        self.description = description
        self.args_model = args_model
        self._func = func

    async def run(self, args: Any) -> ToolResult:
        return await self._func(args)


class ToolRegistry:
    """Registry of the tools one agent exposes."""

    def __init__(self, logger: logging.Logger):
        """Initialize tool registry."""
        self.logger = logger
        self.tools: Dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool; a second registration under the same name replaces the first."""
        self.tools[tool.name] = tool

    def list_tools(self) -> List[Tool]:
        """List tool descriptors in registration order."""
        return [tool.descriptor() for tool in self.tools.values()]

    def list_tool_names(self) -> List[str]:
        return list(self.tools.keys())

    def get_tool(self, tool_name: str) -> Optional[BaseTool]:
        """Get a tool instance by name."""
        return self.tools.get(tool_name)

