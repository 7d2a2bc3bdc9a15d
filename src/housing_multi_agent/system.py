"""
Main multi-agent housing system.

Wires configuration, logging, inference, the listing store and every agent
together, and exposes a single ``process_query`` entry point.
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, List

from .client import AgentClient
from .commute_agent import CommuteAgent
from .config import ConfigManager
from .housing_agent import HousingAgent
from .inference import InferenceService, BedrockInferenceService
from .listings import ListingStore
from .location_agent import LocationScoringAgent
from .logging_manager import LoggingManager
from .messenger_agent import MessengerAgent, MessageSender, LoginHandler
from .models import OrchestratedResult
from .observers import AgentObserver, NoOpObserver
from .orchestrator import OrchestratorAgent
from .validation import InputValidator


class MultiAgentHousingSystem:
    """Entry point that owns every agent for the lifetime of the process."""

    def __init__(self, config_path: Optional[str] = None,
                 inference: Optional[InferenceService] = None,
                 observer: Optional[AgentObserver] = None,
                 sender: Optional[MessageSender] = None,
                 login_handler: Optional[LoginHandler] = None,
                 console_logging: bool = False):
        """Initialize the multi-agent housing system."""
        self.config_manager = ConfigManager(config_path)
        self.config = self.config_manager.load_config()
        # Credentials only matter for the Bedrock backend
        self.config_manager.validate_config(self.config, require_credentials=inference is None)

        self.logging_manager = LoggingManager(self.config, console=console_logging)
        self.logger = self.logging_manager.get_logger()
        self.observer = observer or NoOpObserver()
        self.inference = inference or BedrockInferenceService(
            self.config, self.logging_manager.get_logger("inference"), timeout=self.config.orchestration.call_timeout
        )

        base_dir = Path(self.config_manager.config_path).resolve().parent
        self.store = ListingStore.from_sources(
            self.config.data.sources, self.logging_manager.get_logger("listings"), base_dir
        )
        self.validator = InputValidator(self.config, self.logging_manager.get_logger("validation"))

        self.agents = {
            "housing": HousingAgent(self.config, self.store, self._agent_logger("housing"),
                                    self.inference, self.observer),
            "commute": CommuteAgent(self.config, self._agent_logger("commute"), self.inference, self.observer),
            "location": LocationScoringAgent(self.config, self._agent_logger("location"),
                                             self.inference, self.observer),
            "messenger": MessengerAgent(self.config, self.store, self._agent_logger("messenger"),
                                        sender, login_handler, self.observer),
        }

        orchestrator_name = self.config.agents.orchestrator.name
        self.clients = {
            name: AgentClient(agent, orchestrator_name, timeout=self.config.orchestration.tool_timeout)
            for name, agent in self.agents.items()
        }
        self.orchestrator = OrchestratorAgent(
            self.config, self.clients, self.validator, self._agent_logger("orchestrator"),
            self.inference, self.observer
        )
        self._initialized = False

        self.logger.info(f"Multi-agent housing system initialized with {len(self.store)} listings")

    def _agent_logger(self, name: str) -> logging.Logger:
        return self.logging_manager.get_logger(f"agents.{name}")

    @property
    def all_agents(self):
        return {**self.agents, "orchestrator": self.orchestrator}

    async def initialize(self) -> None:
        """Run async agent setup once. Called lazily by ``process_query``."""
        if self._initialized:
            return
        for agent in self.all_agents.values():
            await agent.initialize()
        self._initialized = True

    async def process_query(self, query: str, work_location: Optional[str] = None,
                            housing_filters: Optional[Dict[str, Any]] = None,
                            max_results: Optional[int] = None) -> OrchestratedResult:
        """Process a user query through the orchestrator."""
        await self.initialize()
        self.logger.info(f"Processing query: {query}")
        result = await self.orchestrator.process_query(query, work_location, housing_filters, max_results)
        self.logger.info(f"Query processing completed: intent={result.intent} success={result.success}")
        return result

    async def get_system_status(self) -> Dict[str, Any]:
        """Status snapshot of every agent, collected through ``get_status`` messages."""
        statuses = {}
        for name, agent in self.all_agents.items():
            try:
                statuses[name] = await AgentClient(agent, "system").get_status()
            except Exception as e:
                statuses[name] = {"error": str(e)}
        return {
            "initialized": self._initialized,
            "listings": len(self.store),
            "agents": statuses,
        }

    async def list_agent_tools(self) -> Dict[str, List[str]]:
        """Tool names per agent, discovered through ``list_tools``."""
        tools = {}
        for name, agent in self.all_agents.items():
            tools[name] = [tool.name for tool in await AgentClient(agent, "system").list_tools()]
        return tools

    def get_system_info(self) -> Dict[str, Any]:
        """Get system information."""
        return {
            "agents": {name: agent.name for name, agent in self.all_agents.items()},
            "listings": len(self.store),
            "sources": self.store.sources,
            "config": {
                "model": self.config.aws.model,
                "temperature": self.config.aws.temperature,
                "max_tokens": self.config.aws.max_tokens,
                "region": self.config.aws.region,
                "location_scoring": self.config.orchestration.enable_location_scoring,
            },
            "logging": self.logging_manager.get_system_info(),
        }
