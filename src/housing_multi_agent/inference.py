"""
Inference service used for intent classification and semantic scoring.

The core only depends on the ``InferenceService`` protocol: one prompt in,
free text out. ``BedrockInferenceService`` is the production implementation.
"""

import asyncio
import logging
from typing import Optional, Protocol

from langchain_aws import ChatBedrock
from langchain_core.messages import HumanMessage

from .config import Config
from .exceptions import InferenceError


class InferenceService(Protocol):
    """Anything that turns a prompt into response text."""

    async def infer(self, prompt: str) -> str:
        ...


class BedrockInferenceService:
    """Inference through AWS Bedrock via LangChain."""

    def __init__(self, config: Config, logger: logging.Logger, timeout: Optional[float] = None):
        """Initialize the Bedrock chat model."""
        self.config = config
        self.logger = logger
        self.timeout = timeout

        try:
            self.llm = ChatBedrock(
                model_id=config.aws.model,
                region_name=config.aws.region,
                model_kwargs={
                    "temperature": config.aws.temperature,
                    "max_tokens": config.aws.max_tokens,
                }
            )
        except Exception as e:
            raise InferenceError("Failed to initialize Bedrock client", "LLM_INIT_ERROR", {"original_error": str(e)})

    async def infer(self, prompt: str) -> str:
        """Send a single-turn prompt and return the text content."""
        try:
            call = self.llm.ainvoke([HumanMessage(content=prompt)])
            if self.timeout:
                response = await asyncio.wait_for(call, timeout=self.timeout)
            else:
                response = await call
            return response.content if isinstance(response.content, str) else str(response.content)
        except asyncio.TimeoutError:
            self.logger.error(f"Inference call timed out after {self.timeout}s")
            raise InferenceError("Inference call timed out", "LLM_TIMEOUT", {"timeout": self.timeout})
        except Exception as e:
            self.logger.error(f"Inference call failed: {str(e)}")
            raise InferenceError("Inference call failed", "LLM_CALL_ERROR", {"original_error": str(e)})
