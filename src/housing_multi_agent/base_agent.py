"""
Base agent classes for the multi-agent housing system.

``BaseAgent`` owns the action -> handler table and the fault boundary around
it. ``ToolServerAgent`` adds the capability-exchange actions (``list_tools``,
``call_tool``, ``get_capabilities``) on top of that table.
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Callable, Awaitable, Type

from pydantic import BaseModel, ValidationError

from .exceptions import InferenceError
from .inference import InferenceService
from .messages import Message, Response, Capability, CallToolPayload, parse_payload
from .observers import AgentObserver, NoOpObserver
from .tools import BaseTool, FunctionTool, ToolRegistry, ToolResult, error_result

Handler = Callable[[Message, Any], Awaitable[Response]]


class BaseAgent(ABC):
    """Base class for all agents."""

    def __init__(self, name: str, logger: logging.Logger,
                 inference: Optional[InferenceService] = None,
                 observer: Optional[AgentObserver] = None):
        """Initialize base agent and its built-in handlers."""
        self.name = name
        self.agent_id = f"{name}-{uuid.uuid4().hex[:8]}"
        self.logger = logger
        self.inference = inference
        self.observer = observer or NoOpObserver()
        self.started_at = time.time()
        self._handlers: Dict[str, Handler] = {}

        self.register_handler("ping", self._handle_ping)
        self.register_handler("get_capabilities", self._handle_get_capabilities)
        self.register_handler("get_status", self._handle_get_status)

    def register_handler(self, action: str, handler: Handler) -> None:
        """Register a handler for an action. Re-registering replaces the previous handler."""
        self._handlers[action] = handler

    @property
    def actions(self) -> List[str]:
        return list(self._handlers.keys())

    async def dispatch(self, message: Message) -> Response:
        """Route a message to its handler. Never raises."""
        self.observer.on_message(self.name, message)
        response = await self._dispatch(message)
        self.observer.on_response(self.name, message, response)
        return response

    async def _dispatch(self, message: Message) -> Response:
        handler = self._handlers.get(message.action)
        if handler is None:
            return Response.fail(f"Unknown action: {message.action}")

        try:
            payload = parse_payload(message)
        except ValidationError as e:
            return Response.fail(f"Invalid payload for action {message.action}: {e.errors()[0]['msg']}")

        try:
            return await handler(message, payload)
        except Exception as e:
            self.logger.error(f"{self.name} failed handling '{message.action}': {str(e)}")
            return Response.fail(str(e) or e.__class__.__name__)

    async def initialize(self) -> None:
        """Hook for agents that need async setup before serving."""
        pass

    @abstractmethod
    def get_capabilities(self) -> List[Capability]:
        """Describe what this agent can do."""
        pass

    def get_status(self) -> Dict[str, Any]:
        """Diagnostic snapshot of this agent."""
        return {
            "name": self.name,
            "id": self.agent_id,
            "actions": self.actions,
            "uptime_seconds": round(time.time() - self.started_at, 3),
            "inference_available": self.inference is not None,
        }

    async def _handle_ping(self, message: Message, payload: Any) -> Response:
        return Response.ok({"pong": True, "agent": self.name, "id": self.agent_id})

    async def _handle_get_capabilities(self, message: Message, payload: Any) -> Response:
        return Response.ok([capability.model_dump() for capability in self.get_capabilities()])

    async def _handle_get_status(self, message: Message, payload: Any) -> Response:
        return Response.ok(self.get_status())

    async def _infer(self, prompt: str) -> str:
        """Call the inference service and notify the observer."""
        if self.inference is None:
            raise InferenceError(f"No inference service configured for {self.name}", "NO_INFERENCE")
        response = await self.inference.infer(prompt)
        self.observer.on_inference(self.name, prompt, response)
        return response


class ToolServerAgent(BaseAgent):
    """Agent that exposes named tools to other agents."""

    server_version = "1.0.0"

    def __init__(self, name: str, logger: logging.Logger,
                 inference: Optional[InferenceService] = None,
                 observer: Optional[AgentObserver] = None):
        """Initialize the agent and register its tools."""
        super().__init__(name, logger, inference, observer)
        self.tool_registry = ToolRegistry(logger)

        self.register_handler("list_tools", self._handle_list_tools)
        self.register_handler("call_tool", self._handle_call_tool)
        # Replaces the plain capability list with capabilities plus server info
        self.register_handler("get_capabilities", self._handle_server_capabilities)

        self.register_tools()
        self.logger.info(f"{self.name} registered {len(self.tool_registry.tools)} tools")

    @abstractmethod
    def register_tools(self) -> None:
        """Register this agent's tool implementations."""
        pass

    def register_tool(self, tool: BaseTool) -> None:
        self.tool_registry.register(tool)

    def register_function_tool(self, name: str, description: str,
                               func: Callable[[Any], Awaitable[ToolResult]],
                               args_model: Optional[Type[BaseModel]] = None) -> None:
        self.tool_registry.register(FunctionTool(name, description, func, self.logger, args_model))

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["tools"] = self.tool_registry.list_tool_names()
        return status

    async def _handle_list_tools(self, message: Message, payload: Any) -> Response:
        tools = [tool.model_dump(by_alias=True, exclude_none=True) for tool in self.tool_registry.list_tools()]
        return Response.ok({"tools": tools})

    async def _handle_call_tool(self, message: Message, payload: CallToolPayload) -> Response:
        tool = self.tool_registry.get_tool(payload.name)
        if tool is None:
            return Response.fail(f"Tool {payload.name} not found")

        try:
            result = await tool.execute(payload.arguments)
            return Response.ok(result.model_dump(by_alias=True))
        except Exception as e:
            error = str(e) or e.__class__.__name__
            self.logger.error(f"{self.name} tool '{payload.name}' raised: {error}")
            return Response.fail(
                error,
                data=error_result(f"Error executing tool {payload.name}: {error}").model_dump(by_alias=True)
            )

    async def _handle_server_capabilities(self, message: Message, payload: Any) -> Response:
        return Response.ok({
            "capabilities": [capability.model_dump() for capability in self.get_capabilities()],
            "server": {"tools": {"listChanged": False}},
            "serverInfo": {"name": self.name, "version": self.server_version},
        })
