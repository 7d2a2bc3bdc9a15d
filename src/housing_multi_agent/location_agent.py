"""
Location scoring agent: walkability, bikeability, transit access and safety.
"""

import asyncio
import logging
from typing import Dict, Optional, List

from pydantic import BaseModel, ConfigDict, Field

from .base_agent import ToolServerAgent
from .config import Config
from .inference import InferenceService
from .messages import Capability
from .observers import AgentObserver
from .parsing import parse_structured
from .tools import ToolResult, json_result, error_result


class PointArgs(BaseModel):
    latitude: float = Field(description="Latitude coordinate")
    longitude: float = Field(description="Longitude coordinate")


class LocatedListing(BaseModel):
    coordinates: PointArgs
    title: str = ""
    location: str = ""
    url: str


class ScoreMultipleArgs(BaseModel):
    listings: List[LocatedListing]


class ScoreValues(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    walk_score: float = Field(default=0, alias="walkScore")
    bike_score: float = Field(default=0, alias="bikeScore")
    transit_score: float = Field(default=0, alias="transitScore")


class LocationEstimate(BaseModel):
    """Shape expected back from the inference service."""
    model_config = ConfigDict(populate_by_name=True)

    scores: ScoreValues
    safety_sentiment: Optional[str] = Field(default=None, alias="safetySentiment")


class LocationScores(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    walk_score: float = Field(alias="walkScore")
    bike_score: float = Field(alias="bikeScore")
    transit_score: float = Field(alias="transitScore")
    safety_sentiment: str = Field(alias="safetySentiment")
    coordinates: PointArgs


class LocationScoringAgent(ToolServerAgent):
    """Scores neighbourhood quality at listing coordinates."""

    def __init__(self, config: Config, logger: logging.Logger,
                 inference: Optional[InferenceService] = None,
                 observer: Optional[AgentObserver] = None):
        """Initialize location scoring agent."""
        self.config = config
        super().__init__(config.agents.location.name, logger, inference, observer)

    def register_tools(self) -> None:
        self.register_function_tool(
            "get_location_scores",
            "Get walk score, bike score, transit score, and safety sentiment for coordinates",
            self._location_scores_tool, PointArgs
        )
        self.register_function_tool(
            "score_multiple_locations",
            "Score multiple locations with bounded concurrency",
            self._score_multiple_tool, ScoreMultipleArgs
        )

    def get_capabilities(self) -> List[Capability]:
        return [
            Capability(
                name="location_scoring",
                description="Get walkability, bikeability, transit access, and safety information for any location"
            ),
            Capability(
                name="batch_location_analysis",
                description="Analyze multiple locations for comprehensive location insights"
            ),
        ]

    async def _location_scores_tool(self, args: PointArgs) -> ToolResult:
        scores = await self.get_location_scores(args.latitude, args.longitude)
        return json_result(scores.model_dump(by_alias=True))

    async def _score_multiple_tool(self, args: ScoreMultipleArgs) -> ToolResult:
        try:
            results = await self.score_multiple_locations(args.listings)
            return json_result({url: scores.model_dump(by_alias=True) for url, scores in results.items()})
        except Exception as e:
            return error_result(f"Location scoring failed: {str(e)}")

    def _create_scores_prompt(self, latitude: float, longitude: float) -> str:
        """Create the location scoring prompt."""
        return f"""
Get the walk score, bike score, transit score, and safety sentiment at these coordinates:
"latitude": "{latitude}", "longitude": "{longitude}"

Scores are integers from 0 to 100. Respond with ONLY a JSON object:
{{
  "scores": {{"walkScore": 70, "bikeScore": 55, "transitScore": 60}},
  "safetySentiment": "How residents perceive safety in the area"
}}
"""

    async def get_location_scores(self, latitude: float, longitude: float) -> LocationScores:
        """Scores for one point; falls back to neutral values when unavailable."""
        self.logger.info(f"Getting location scores for coordinates: {latitude}, {longitude}")
        coordinates = PointArgs(latitude=latitude, longitude=longitude)

        try:
            response = await self._infer(self._create_scores_prompt(latitude, longitude))
            parsed = parse_structured(response, LocationEstimate)
            if not parsed.ok:
                raise ValueError(parsed.error)

            estimate = parsed.value
            return LocationScores(
                walk_score=estimate.scores.walk_score,
                bike_score=estimate.scores.bike_score,
                transit_score=estimate.scores.transit_score,
                safety_sentiment=estimate.safety_sentiment or "Location analysis unavailable.",
                coordinates=coordinates,
            )
        except Exception as e:
            self.logger.warning(f"Using fallback location data for {latitude}, {longitude}: {str(e)}")
            return LocationScores(
                walk_score=65,
                bike_score=45,
                transit_score=55,
                safety_sentiment="Location analysis temporarily unavailable. Please check back later "
                                 "for detailed safety and walkability information.",
                coordinates=coordinates,
            )

    async def score_multiple_locations(self, listings: List[LocatedListing]) -> Dict[str, LocationScores]:
        """Scores keyed by listing URL."""
        self.logger.info(f"Scoring {len(listings)} locations")
        semaphore = asyncio.Semaphore(self.config.orchestration.max_concurrency)

        async def score(listing: LocatedListing) -> LocationScores:
            async with semaphore:
                try:
                    return await self.get_location_scores(listing.coordinates.latitude, listing.coordinates.longitude)
                except Exception as e:
                    self.logger.error(f"Failed to score location for {listing.title}: {str(e)}")
                    return LocationScores(
                        walk_score=50,
                        bike_score=40,
                        transit_score=45,
                        safety_sentiment="Location analysis temporarily unavailable.",
                        coordinates=listing.coordinates,
                    )

        scores = await asyncio.gather(*(score(listing) for listing in listings))
        return {listing.url: result for listing, result in zip(listings, scores)}
