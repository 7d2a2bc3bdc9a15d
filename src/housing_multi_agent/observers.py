"""
Observer hooks for tracing agent traffic.

Agents accept an observer at construction; the default does nothing. Tracing
backends plug in by implementing the same three methods.
"""

import logging
from typing import Protocol

from .messages import Message, Response


class AgentObserver(Protocol):
    """Receives dispatch and inference events from agents."""

    def on_message(self, agent_name: str, message: Message) -> None:
        ...

    def on_response(self, agent_name: str, message: Message, response: Response) -> None:
        ...

    def on_inference(self, agent_name: str, prompt: str, response: str) -> None:
        ...


class NoOpObserver:
    """Default observer."""

    def on_message(self, agent_name: str, message: Message) -> None:
        pass

    def on_response(self, agent_name: str, message: Message, response: Response) -> None:
        pass

    def on_inference(self, agent_name: str, prompt: str, response: str) -> None:
        pass


class LoggingObserver:
    """Writes every message, response and inference call to a logger at DEBUG."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def on_message(self, agent_name: str, message: Message) -> None:
        self.logger.debug(f"[{agent_name}] <- {message.action} from {message.from_agent} ({message.id})")

    def on_response(self, agent_name: str, message: Message, response: Response) -> None:
        status = "ok" if response.success else f"error: {response.error}"
        self.logger.debug(f"[{agent_name}] -> {message.action} {status} ({message.id})")

    def on_inference(self, agent_name: str, prompt: str, response: str) -> None:
        self.logger.debug(f"[{agent_name}] inference prompt={len(prompt)} chars response={len(response)} chars")
