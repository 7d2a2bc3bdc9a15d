"""
Configuration management for the multi-agent housing system.
"""

import os
import yaml
from typing import Dict, Any, Optional, List
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv


class AWSConfig(BaseModel):
    """AWS Bedrock configuration for the inference service."""
    access_key_id: str = ""
    secret_access_key: str = ""
    region: str = "us-east-1"
    model: str = "anthropic.claude-3-5-sonnet-20240620-v1:0"
    temperature: float = 0.1
    max_tokens: int = 1000


class AgentConfig(BaseModel):
    """Individual agent configuration."""
    name: str
    description: str = ""


class AgentsConfig(BaseModel):
    """Configuration for all agents."""
    orchestrator: AgentConfig = AgentConfig(name="OrchestratorAgent")
    housing: AgentConfig = AgentConfig(name="HousingAgent")
    commute: AgentConfig = AgentConfig(name="CommuteAgent")
    location: AgentConfig = AgentConfig(name="LocationScoringAgent")
    messenger: AgentConfig = AgentConfig(name="MessengerAgent")


class ScoringConfig(BaseModel):
    """Batch scoring and score combination settings."""
    group_count: int = 5
    min_score: float = 60
    default_max_results: int = 5
    housing_weight: float = 0.6
    commute_weight: float = 0.4
    three_way_weights: Dict[str, float] = Field(
        default_factory=lambda: {"housing": 0.5, "commute": 0.3, "location": 0.2}
    )


class OrchestrationConfig(BaseModel):
    """Intent routing and fan-out settings."""
    default_intent: str = "housing_search"
    fallback_confidence: float = 0.5
    max_concurrency: int = 5
    call_timeout: float = 60.0
    tool_timeout: float = 150.0
    enable_location_scoring: bool = False


class DataSourceConfig(BaseModel):
    """A flat JSON file of listings and the source name it is tagged with."""
    name: str
    path: str


class DataConfig(BaseModel):
    """Listing data configuration."""
    sources: List[DataSourceConfig] = Field(
        default_factory=lambda: [DataSourceConfig(name="local", path="data/listings.json")]
    )


class MessagingConfig(BaseModel):
    """Messenger session configuration."""
    session_file: str = "sessions/messenger_session.json"
    session_max_age_hours: int = 24
    sendable_sources: List[str] = Field(default_factory=lambda: ["facebook"])


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str = "logs/agent_system.log"


class ValidationConfig(BaseModel):
    """Input validation configuration."""
    max_query_length: int = 1000
    min_query_length: int = 3


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = "127.0.0.1"
    port: int = 3001


class Config(BaseModel):
    """Main configuration class."""
    aws: AWSConfig = AWSConfig()
    agents: AgentsConfig = AgentsConfig()
    scoring: ScoringConfig = ScoringConfig()
    orchestration: OrchestrationConfig = OrchestrationConfig()
    data: DataConfig = DataConfig()
    messaging: MessagingConfig = MessagingConfig()
    logging: LoggingConfig = LoggingConfig()
    validation: ValidationConfig = ValidationConfig()
    server: ServerConfig = ServerConfig()


class ConfigManager:
    """Configuration manager for the multi-agent housing system."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager."""
        self.config_path = config_path or "config.yaml"
        load_dotenv()  # Load environment variables

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        try:
            config_file = Path(self.config_path)
            if not config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(config_file, 'r', encoding='utf-8') as file:
                config_data = yaml.safe_load(file) or {}

            # Substitute environment variables
            config_data = self._substitute_env_vars(config_data)

            return Config(**config_data)

        except Exception as e:
            raise RuntimeError(f"Failed to load configuration: {str(e)}")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute environment variables in configuration."""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
            env_var = data[2:-1]
            # Handle default values like ${AWS_REGION:-us-east-1}
            if ":-" in env_var:
                var_name, default_value = env_var.split(":-", 1)
                return os.getenv(var_name, default_value)
            else:
                return os.getenv(env_var, "")
        else:
            return data

    def validate_config(self, config: Config, require_credentials: bool = True) -> None:
        """Validate configuration values."""
        if require_credentials:
            if not config.aws.access_key_id or config.aws.access_key_id.strip() == "":
                raise ValueError("AWS access key ID is required. Please set AWS_ACCESS_KEY_ID environment variable.")

            if not config.aws.secret_access_key or config.aws.secret_access_key.strip() == "":
                raise ValueError("AWS secret access key is required. Please set AWS_SECRET_ACCESS_KEY environment variable.")

            if not config.aws.region or config.aws.region.strip() == "":
                raise ValueError("AWS region is required. Please set AWS_REGION environment variable or use default 'us-east-1'.")

        # Validate temperature and token limits
        if config.aws.temperature < 0 or config.aws.temperature > 1:
            raise ValueError("Temperature must be between 0 and 1")

        if config.aws.max_tokens < 1:
            raise ValueError("Max tokens must be positive")

        scoring = config.scoring
        if scoring.group_count < 1:
            raise ValueError("Scoring group count must be at least 1")

        if scoring.min_score < 0 or scoring.min_score > 100:
            raise ValueError("Minimum match score must be between 0 and 100")

        if abs(scoring.housing_weight + scoring.commute_weight - 1.0) > 1e-6:
            raise ValueError("Housing and commute weights must sum to 1.0")

        if abs(sum(scoring.three_way_weights.values()) - 1.0) > 1e-6:
            raise ValueError("Three-way score weights must sum to 1.0")

        if config.orchestration.max_concurrency < 1:
            raise ValueError("Max concurrency must be positive")

        if config.orchestration.call_timeout <= 0:
            raise ValueError("Call timeout must be positive")

        # search_housing runs two inference calls back to back
        if config.orchestration.tool_timeout < 2 * config.orchestration.call_timeout:
            raise ValueError("Tool timeout must be at least twice the call timeout")

        if not config.data.sources:
            raise ValueError("At least one listing data source is required")

        # Create necessary directories
        logs_dir = Path(config.logging.file).parent
        logs_dir.mkdir(parents=True, exist_ok=True)
