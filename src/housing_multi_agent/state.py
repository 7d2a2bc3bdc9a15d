"""
State model for the orchestration workflow.
"""

from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict

from .models import QueryAnalysis, OrchestratedResult
from .validation import ValidationResult


class OrchestrationState(BaseModel):
    """State carried through one run of the orchestration graph."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    query: str
    work_location: Optional[str] = None
    housing_filters: Optional[Dict[str, Any]] = None
    max_results: Optional[int] = None
    validation_result: Optional[ValidationResult] = None
    analysis: Optional[QueryAnalysis] = None
    result: Optional[OrchestratedResult] = None
    agents_used: List[str] = []
    error: Optional[str] = None
