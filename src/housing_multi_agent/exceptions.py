"""
Custom exceptions for the multi-agent housing system.
Provides specific error types for better error handling and debugging.
"""

from typing import Optional, Dict, Any


class MultiAgentError(Exception):
    """Base exception for all multi-agent system errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize the exception."""
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class AgentError(MultiAgentError):
    """Raised when an agent encounters an error."""

    def __init__(self, message: str, agent_name: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize the agent error."""
        super().__init__(message, error_code, details)
        self.agent_name = agent_name


class ToolError(MultiAgentError):
    """Raised when a tool call reports failure to its caller."""

    def __init__(self, message: str, tool_name: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize the tool error."""
        super().__init__(message, error_code, details)
        self.tool_name = tool_name


class InferenceError(MultiAgentError):
    """Raised when the inference service call fails or times out."""
    pass


class DataLoadError(MultiAgentError):
    """Raised when the listing store cannot be populated at startup."""

    def __init__(self, message: str, path: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize the data load error."""
        super().__init__(message, error_code, details)
        self.path = path
