"""
Client side of the capability exchange.

An ``AgentClient`` wraps one target agent. Every method composes a single
``Message``, dispatches it, and unwraps the ``Response`` or raises.
"""

import asyncio
from typing import Dict, Any, List, Optional

from .base_agent import BaseAgent
from .exceptions import AgentError, ToolError
from .messages import Message, Response
from .tools import Tool, ToolResult


class AgentClient:
    """Calls tools on another agent through its message dispatcher."""

    def __init__(self, target_agent: BaseAgent, client_name: str, timeout: Optional[float] = None):
        """Initialize the client for one target agent."""
        self.target_agent = target_agent
        self.client_name = client_name
        self.timeout = timeout

    @property
    def target_name(self) -> str:
        return self.target_agent.name

    async def _send(self, action: str, payload: Optional[Dict[str, Any]] = None) -> Response:
        message = Message.request(self.client_name, self.target_agent.agent_id, action, payload)
        if self.timeout is None:
            return await self.target_agent.dispatch(message)

        try:
            return await asyncio.wait_for(self.target_agent.dispatch(message), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise AgentError(
                f"{action} on {self.target_name} timed out after {self.timeout}s",
                self.target_name, "AGENT_TIMEOUT"
            )

    async def list_tools(self) -> List[Tool]:
        """Discover the target's tools."""
        response = await self._send("list_tools")
        if response.success and isinstance(response.data, dict) and "tools" in response.data:
            return [Tool.model_validate(tool) for tool in response.data["tools"]]
        raise AgentError(f"Failed to list tools: {response.error}", self.target_name, "LIST_TOOLS_FAILED")

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Invoke a tool; raises ``ToolError`` when the call itself fails."""
        response = await self._send("call_tool", {"name": name, "arguments": arguments or {}})
        if response.success and response.data:
            return ToolResult.model_validate(response.data)
        raise ToolError(f"Failed to call tool {name}: {response.error}", name, "CALL_TOOL_FAILED")

    async def call_tool_json(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke a tool and decode its JSON payload, raising on tool-reported errors."""
        result = await self.call_tool(name, arguments)
        if result.is_error:
            raise ToolError(result.text, name, "TOOL_REPORTED_ERROR")
        return result.payload()

    async def get_capabilities(self) -> Dict[str, Any]:
        response = await self._send("get_capabilities")
        if response.success and response.data is not None:
            return response.data
        raise AgentError(f"Failed to get capabilities: {response.error}", self.target_name, "CAPABILITIES_FAILED")

    async def get_status(self) -> Dict[str, Any]:
        response = await self._send("get_status")
        if response.success and response.data is not None:
            return response.data
        raise AgentError(f"Failed to get status: {response.error}", self.target_name, "STATUS_FAILED")

    async def ping(self) -> bool:
        response = await self._send("ping")
        return response.success
