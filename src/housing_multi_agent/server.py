"""
HTTP front for the multi-agent housing system.

POST /query runs one query through the orchestrator. The system instance is
built on first use and shared by every request.
"""

import logging
from typing import Dict, Any, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from .models import OrchestratedResult
from .system import MultiAgentHousingSystem

logger = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1, description="Free-text housing query")
    work_location: Optional[str] = Field(default=None, alias="workLocation")
    housing_filters: Optional[Dict[str, Any]] = Field(default=None, alias="housingFilters")
    max_results: Optional[int] = Field(default=None, ge=1, alias="maxResults")


def create_app(system: Optional[MultiAgentHousingSystem] = None, config_path: Optional[str] = None) -> FastAPI:
    """Build the FastAPI app around an existing or lazily created system."""
    app = FastAPI(title="Housing Multi-Agent System", version="1.0.0")
    app.state.system = system
    app.state.config_path = config_path

    def get_system(request: Request) -> MultiAgentHousingSystem:
        if request.app.state.system is None:
            try:
                request.app.state.system = MultiAgentHousingSystem(request.app.state.config_path)
            except Exception as e:
                logger.error(f"System initialization failed: {str(e)}")
                raise HTTPException(status_code=503, detail=f"System unavailable: {str(e)}")
        return request.app.state.system

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/query", response_model=OrchestratedResult, summary="Run a housing query through the agents")
    async def query(body: QueryRequest,
                    system: MultiAgentHousingSystem = Depends(get_system)) -> OrchestratedResult:
        return await system.process_query(body.query, body.work_location, body.housing_filters, body.max_results)

    @app.get("/status")
    async def status(system: MultiAgentHousingSystem = Depends(get_system)) -> Dict[str, Any]:
        return await system.get_system_status()

    return app


def run(host: str, port: int, config_path: Optional[str] = None) -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(create_app(config_path=config_path), host=host, port=port)
