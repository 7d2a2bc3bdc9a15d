"""
Common data models used across the multi-agent housing system.
"""

from typing import Dict, Any, Optional, List
from pydantic import BaseModel, ConfigDict, Field

INTENTS = (
    "housing_search",
    "commute_analysis",
    "combined_search",
    "market_summary",
    "message_request",
    "session_management",
)

SESSION_ACTIONS = ("login", "check", "clear")


class HousingCriteria(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = None
    filters: Dict[str, Any] = {}
    max_results: Optional[int] = Field(default=None, alias="maxResults")


class CommuteCriteria(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    work_location: Optional[str] = Field(default=None, alias="workLocation")
    travel_mode: str = Field(default="driving-traffic", alias="travelMode")
    max_distance: Optional[float] = Field(default=None, alias="maxDistance")
    max_time: Optional[float] = Field(default=None, alias="maxTime")


class QueryAnalysis(BaseModel):
    """Structured output of intent classification."""
    model_config = ConfigDict(populate_by_name=True)

    intent: str
    confidence: float = Field(ge=0.0, le=1.0)
    housing_criteria: Optional[HousingCriteria] = Field(default=None, alias="housingCriteria")
    commute_criteria: Optional[CommuteCriteria] = Field(default=None, alias="commuteCriteria")
    session_action: Optional[str] = Field(default=None, alias="sessionAction")
    reasoning: str = ""


class OrchestratedResult(BaseModel):
    """Outcome of one orchestrated query."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    intent: str
    results: Any = None
    housing_results: Any = Field(default=None, alias="housingResults")
    reasoning: str = ""
    agents_used: List[str] = Field(default_factory=list, alias="agentsUsed")
    metadata: Dict[str, Any] = {}
