"""
Message envelope models shared by every agent.

A ``Message`` is the only way one agent talks to another. Its ``payload`` is
validated against the payload model registered for its ``action`` before the
handler runs, so handlers receive typed arguments instead of raw dicts.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Dict, Any, Optional, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


MessageType = Literal["request", "response", "broadcast"]


class Message(BaseModel):
    """Immutable request/response envelope exchanged between agents."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: f"msg-{uuid.uuid4().hex}")
    from_agent: str = Field(alias="fromAgent")
    to_agent: str = Field(alias="toAgent")
    type: MessageType = "request"
    action: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def request(cls, from_agent: str, to_agent: str, action: str,
                payload: Optional[Dict[str, Any]] = None) -> "Message":
        """Compose a new request message with a fresh id."""
        return cls(from_agent=from_agent, to_agent=to_agent, type="request",
                   action=action, payload=payload or {})


class Response(BaseModel):
    """Result of dispatching a message. Failures always carry an error string."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = {}

    @model_validator(mode="after")
    def _failure_has_error(self) -> "Response":
        if not self.success and not self.error:
            self.error = "Unknown error"
        return self

    @classmethod
    def ok(cls, data: Any = None, **kwargs) -> "Response":
        return cls(success=True, data=data, **kwargs)

    @classmethod
    def fail(cls, error: str, data: Any = None, **kwargs) -> "Response":
        return cls(success=False, error=error, data=data, **kwargs)


class Capability(BaseModel):
    """Advertised (not enforced) description of something an agent can do."""
    name: str
    description: str
    parameters: Dict[str, str] = {}


# Payload variants, one per built-in action

class PingPayload(BaseModel):
    action: Literal["ping"] = "ping"


class GetCapabilitiesPayload(BaseModel):
    action: Literal["get_capabilities"] = "get_capabilities"


class GetStatusPayload(BaseModel):
    action: Literal["get_status"] = "get_status"


class ListToolsPayload(BaseModel):
    action: Literal["list_tools"] = "list_tools"


class CallToolPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["call_tool"] = "call_tool"
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class GenericPayload(BaseModel):
    """Fallback for actions registered without a dedicated payload model."""
    action: str
    data: Dict[str, Any] = {}


MessagePayload = Annotated[
    Union[PingPayload, GetCapabilitiesPayload, GetStatusPayload, ListToolsPayload, CallToolPayload],
    Field(discriminator="action"),
]

_PAYLOAD_ADAPTER = TypeAdapter(MessagePayload)

PAYLOAD_TYPES = {
    "ping": PingPayload,
    "get_capabilities": GetCapabilitiesPayload,
    "get_status": GetStatusPayload,
    "list_tools": ListToolsPayload,
    "call_tool": CallToolPayload,
}


def parse_payload(message: Message) -> BaseModel:
    """Validate a message payload into the variant tagged by its action.

    Raises ``pydantic.ValidationError`` when the payload does not fit.
    """
    if message.action in PAYLOAD_TYPES:
        return _PAYLOAD_ADAPTER.validate_python({**message.payload, "action": message.action})
    return GenericPayload(action=message.action, data=dict(message.payload))
