"""
Commute agent: estimates commutes between a home and a work location.

There is no routing backend. Distance and duration are estimated by the
inference service and rated deterministically; when no estimate can be
obtained a fixed fallback estimate is used. A fallback-based analysis is
reported as unsuccessful so callers never rank it as a real commute.
"""

import asyncio
import logging
from typing import Dict, Any, Optional, List, Literal

from pydantic import BaseModel, ConfigDict, Field

from .base_agent import ToolServerAgent
from .config import Config
from .inference import InferenceService
from .messages import Capability
from .observers import AgentObserver
from .parsing import parse_structured
from .score_combiner import round_half_up
from .tools import ToolResult, json_result, error_result

TravelMode = Literal["driving-traffic", "driving", "walking", "cycling"]

MAX_ACCEPTABLE_DISTANCE = 50000  # meters
MAX_ACCEPTABLE_TIME = 3600  # seconds


class LatLng(BaseModel):
    lat: float
    lng: float


class Place(BaseModel):
    address: str = Field(description="Street address or place name")
    coordinates: Optional[LatLng] = None


class CommuteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    home_location: Place = Field(alias="homeLocation")
    work_location: Place = Field(alias="workLocation")
    travel_mode: TravelMode = Field(default="driving-traffic", alias="travelMode")
    departure_time: Optional[str] = Field(default=None, alias="departureTime")
    arrival_time: Optional[str] = Field(default=None, alias="arrivalTime")


class RouteArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    origin: str
    destination: str
    travel_mode: TravelMode = Field(default="driving-traffic", alias="travelMode")


class BatchCommuteArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    home_locations: List[Place] = Field(alias="homeLocations")
    work_location: Place = Field(alias="workLocation")
    travel_mode: TravelMode = Field(default="driving-traffic", alias="travelMode")


class CommuteEstimate(BaseModel):
    """Shape expected back from the inference service."""
    distance_km: Optional[float] = None
    duration_minutes: Optional[float] = None
    traffic_duration_minutes: Optional[float] = None
    analysis: Optional[str] = None


FALLBACK_ESTIMATE = CommuteEstimate(distance_km=15, duration_minutes=25, traffic_duration_minutes=30)
FALLBACK_SOURCE = "fallback_estimate"


class Measure(BaseModel):
    text: str
    value: int


class CommuteAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    distance: Measure
    duration: Measure
    duration_in_traffic: Optional[Measure] = Field(default=None, alias="durationInTraffic")
    rating: int
    recommendation: str
    route: Dict[str, Any] = {}

    @property
    def is_fallback(self) -> bool:
        return self.route.get("source") == FALLBACK_SOURCE


def calculate_commute_rating(distance_meters: float, duration_seconds: float) -> int:
    """Rate a commute 1-10."""
    score = 10.0

    if distance_meters > MAX_ACCEPTABLE_DISTANCE:
        score -= min(5, (distance_meters - MAX_ACCEPTABLE_DISTANCE) / 10000)

    if duration_seconds > MAX_ACCEPTABLE_TIME:
        score -= min(5, (duration_seconds - MAX_ACCEPTABLE_TIME) / 600)

    if duration_seconds > 0:
        avg_speed_kmh = (distance_meters / 1000) / (duration_seconds / 3600)
        if avg_speed_kmh < 20:
            score -= 2
        elif avg_speed_kmh < 30:
            score -= 1

    return max(1, min(10, round_half_up(score)))


def generate_recommendation(distance_meters: float, duration_seconds: float, rating: int) -> str:
    distance_km = distance_meters / 1000
    duration_min = duration_seconds / 60

    if rating >= 8:
        return f"Excellent commute! {distance_km:.1f}km in {duration_min:.0f} minutes is very reasonable."
    elif rating >= 6:
        return f"Good commute. {distance_km:.1f}km in {duration_min:.0f} minutes is manageable for most people."
    elif rating >= 4:
        return f"Moderate commute. {distance_km:.1f}km in {duration_min:.0f} minutes might be tiring daily."
    else:
        return f"Challenging commute. {distance_km:.1f}km in {duration_min:.0f} minutes is quite long for daily travel."


class CommuteAgent(ToolServerAgent):
    """Estimates and rates commutes."""

    def __init__(self, config: Config, logger: logging.Logger,
                 inference: Optional[InferenceService] = None,
                 observer: Optional[AgentObserver] = None):
        """Initialize commute agent."""
        self.config = config
        super().__init__(config.agents.commute.name, logger, inference, observer)

    def register_tools(self) -> None:
        self.register_function_tool(
            "analyze_commute",
            "Analyze commute between two locations",
            self._analyze_commute_tool, CommuteRequest
        )
        self.register_function_tool(
            "get_route",
            "Get route information between two locations",
            self._get_route_tool, RouteArgs
        )
        self.register_function_tool(
            "batch_commute_analysis",
            "Analyze commutes for multiple home locations to a single work location",
            self._batch_commute_tool, BatchCommuteArgs
        )

    def get_capabilities(self) -> List[Capability]:
        return [
            Capability(
                name="commute_analysis",
                description="Analyze commute between two locations",
                parameters={"homeLocation": "object", "workLocation": "object", "travelMode": "string"}
            ),
            Capability(
                name="route_optimization",
                description="Describe the route between two locations",
                parameters={"origin": "string", "destination": "string"}
            ),
        ]

    async def _analyze_commute_tool(self, request: CommuteRequest) -> ToolResult:
        try:
            analysis = await self.analyze_commute(request)
        except Exception as e:
            return error_result(f"Commute analysis failed: {str(e)}")

        data: Dict[str, Any] = {
            "success": not analysis.is_fallback,
            "analysis": analysis.model_dump(by_alias=True, exclude_none=True),
        }
        if analysis.is_fallback:
            data["error"] = "No commute estimate available; analysis uses the fallback estimate"
        return json_result(data)

    async def _get_route_tool(self, args: RouteArgs) -> ToolResult:
        return json_result({
            "success": True,
            "route": {
                "source": "estimate",
                "origin": args.origin,
                "destination": args.destination,
                "travelMode": args.travel_mode,
            }
        })

    async def _batch_commute_tool(self, args: BatchCommuteArgs) -> ToolResult:
        semaphore = asyncio.Semaphore(self.config.orchestration.max_concurrency)

        async def analyze(home: Place) -> Dict[str, Any]:
            async with semaphore:
                analysis = await self.analyze_commute(CommuteRequest(
                    home_location=home, work_location=args.work_location, travel_mode=args.travel_mode
                ))
            return {
                "homeLocation": home.address,
                "success": not analysis.is_fallback,
                "analysis": analysis.model_dump(by_alias=True, exclude_none=True),
            }

        try:
            analyses = await asyncio.gather(*(analyze(home) for home in args.home_locations))
            return json_result({"success": True, "analyses": list(analyses)})
        except Exception as e:
            return error_result(f"Batch commute analysis failed: {str(e)}")

    def _create_estimation_prompt(self, request: CommuteRequest) -> str:
        """Create the commute estimation prompt."""
        return f"""
Estimate the commute between these locations:
- From: {self._describe(request.home_location)}
- To: {self._describe(request.work_location)}
- Mode: {request.travel_mode}

Provide realistic estimates for:
1. Distance in kilometers
2. Duration in minutes without traffic
3. Duration in minutes with traffic

Consider typical urban commute patterns. Respond with ONLY a JSON object:
{{
  "distance_km": 15.5,
  "duration_minutes": 25,
  "traffic_duration_minutes": 35,
  "analysis": "Brief analysis of the commute quality"
}}
"""

    @staticmethod
    def _describe(place: Place) -> str:
        if place.coordinates:
            return f"{place.address} ({place.coordinates.lat}, {place.coordinates.lng})"
        return place.address

    async def analyze_commute(self, request: CommuteRequest) -> CommuteAnalysis:
        """Estimate, rate and describe one commute."""
        self.logger.info(f"Analyzing commute from {request.home_location.address} to {request.work_location.address}")
        estimate, source = await self._estimate(request)

        distance_m = (estimate.distance_km or FALLBACK_ESTIMATE.distance_km) * 1000
        duration_s = (estimate.duration_minutes or FALLBACK_ESTIMATE.duration_minutes) * 60
        traffic_s = (estimate.traffic_duration_minutes or FALLBACK_ESTIMATE.traffic_duration_minutes) * 60

        rating = calculate_commute_rating(distance_m, duration_s)
        return CommuteAnalysis(
            distance=Measure(text=f"{distance_m / 1000:.1f} km", value=round(distance_m)),
            duration=Measure(text=f"{round(duration_s / 60)} min", value=round(duration_s)),
            duration_in_traffic=Measure(text=f"{round(traffic_s / 60)} min", value=round(traffic_s)),
            rating=rating,
            recommendation=estimate.analysis or generate_recommendation(distance_m, duration_s, rating),
            route={
                "source": source,
                "from": request.home_location.address,
                "to": request.work_location.address,
                "mode": request.travel_mode,
            },
        )

    async def _estimate(self, request: CommuteRequest):
        if self.inference is None:
            return FALLBACK_ESTIMATE, FALLBACK_SOURCE

        try:
            response = await self._infer(self._create_estimation_prompt(request))
        except Exception as e:
            self.logger.warning(f"Commute estimation failed, using fallback estimate: {str(e)}")
            return FALLBACK_ESTIMATE, FALLBACK_SOURCE

        parsed = parse_structured(response, CommuteEstimate)
        if not parsed.ok:
            self.logger.warning(f"Could not parse commute estimate ({parsed.error}), using fallback estimate")
            return FALLBACK_ESTIMATE, FALLBACK_SOURCE
        return parsed.value, "ai_analysis"
