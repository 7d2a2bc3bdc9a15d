"""
Housing agent: search, filter and summarize the listing store.
"""

import logging
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, ConfigDict, Field

from .base_agent import ToolServerAgent
from .batch_scoring import BatchScoringEngine, MatchResult
from .config import Config
from .inference import InferenceService
from .listings import Listing, ListingFilters, ListingStore
from .messages import Capability
from .observers import AgentObserver
from .tools import ToolResult, json_result, error_result


class SearchHousingArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(description="Natural language search query for housing preferences")
    filters: ListingFilters = Field(default_factory=ListingFilters)
    max_results: int = Field(default=5, ge=1, alias="maxResults", description="Maximum number of results to return")


class HousingSummaryArgs(BaseModel):
    source: str = Field(default="all", description="Data source to summarize")


class FilterHousingArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filters: ListingFilters
    max_results: int = Field(default=10, ge=1, alias="maxResults")


def format_listing(listing: Listing) -> str:
    """Salient listing fields for a scoring prompt."""
    description = (listing.description or "No description")[:300]
    return (
        f"{listing.title}\n"
        f"   Price: ${listing.price:g}\n"
        f"   Location: {listing.location}\n"
        f"   Type: {listing.housing_type}, {listing.bedrooms or 0:g}BR/{listing.bathrooms or 0:g}BA\n"
        f"   Private Room: {'Yes' if listing.private_room else 'No'}\n"
        f"   Private Bath: {'Yes' if listing.private_bath else 'No'}\n"
        f"   Gender Preference: {listing.gender_preference}\n"
        f"   Description: {description}"
    )


def match_to_dict(match: MatchResult) -> Dict[str, Any]:
    return {
        "listing": match.candidate.to_dict(),
        "matchPercentage": match.match_score,
        "explanation": match.rationale,
    }


class HousingAgent(ToolServerAgent):
    """Searches listings with deterministic filters and semantic batch scoring."""

    def __init__(self, config: Config, store: ListingStore, logger: logging.Logger,
                 inference: Optional[InferenceService] = None,
                 observer: Optional[AgentObserver] = None):
        """Initialize housing agent."""
        self.config = config
        self.store = store
        super().__init__(config.agents.housing.name, logger, inference, observer)

        self.scoring_engine = None
        if inference is not None:
            self.scoring_engine = BatchScoringEngine(
                inference, logger,
                group_count=config.scoring.group_count,
                min_score=config.scoring.min_score,
                formatter=format_listing,
                timeout=config.orchestration.call_timeout,
                observer=self.observer,
                agent_name=self.name,
            )

    def register_tools(self) -> None:
        self.register_function_tool(
            "search_housing",
            "Search for housing listings based on criteria and natural language query",
            self._search_housing_tool, SearchHousingArgs
        )
        self.register_function_tool(
            "get_housing_summary",
            "Get a summary of available housing data",
            self._housing_summary_tool, HousingSummaryArgs
        )
        self.register_function_tool(
            "filter_housing",
            "Apply deterministic filters to housing listings",
            self._filter_housing_tool, FilterHousingArgs
        )

    def get_capabilities(self) -> List[Capability]:
        return [
            Capability(
                name="housing_search",
                description="Search and filter housing listings from multiple sources",
                parameters={"query": "string", "filters": "object", "maxResults": "number"}
            )
        ]

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["listings"] = len(self.store)
        status["sources"] = self.store.sources
        return status

    async def _search_housing_tool(self, args: SearchHousingArgs) -> ToolResult:
        try:
            results = await self.search_housing(args.query, args.filters, args.max_results)
            return json_result({
                "success": True,
                "results": [match_to_dict(match) for match in results],
                "count": len(results),
            })
        except Exception as e:
            return error_result(f"Housing search failed: {str(e)}")

    async def _housing_summary_tool(self, args: HousingSummaryArgs) -> ToolResult:
        try:
            return json_result(self.store.summary(args.source))
        except Exception as e:
            return error_result(f"Failed to get housing summary: {str(e)}")

    async def _filter_housing_tool(self, args: FilterHousingArgs) -> ToolResult:
        try:
            results = self.store.filter(args.filters, args.max_results)
            return json_result({
                "success": True,
                "results": [listing.to_dict() for listing in results],
                "count": len(results),
            })
        except Exception as e:
            return error_result(f"Housing filter failed: {str(e)}")

    async def search_housing(self, query: str, filters: Optional[ListingFilters] = None,
                             max_results: int = 5) -> List[MatchResult]:
        """Filter deterministically, then rank semantically when the query needs it."""
        filters = filters or ListingFilters()
        self.logger.info(f"Searching housing with query: '{query}'")

        filtered = self.store.filter(filters)
        if not filtered:
            return []

        if not await self._has_natural_language_requirements(query):
            self.logger.info("Returning deterministic results")
            return [
                MatchResult(
                    candidate=listing,
                    match_score=100,
                    rationale=f"100% match: {self._deterministic_summary(listing, query, filters)}",
                )
                for listing in filtered[:max_results]
            ]

        matches = await self.scoring_engine.score(filtered, query, max_results)
        self.logger.info(f"{len(matches)} listings match natural language criteria")
        return matches

    def _create_requirements_prompt(self, query: str) -> str:
        """Create the yes/no prompt that detects non-filterable requirements."""
        return f"""
Does this query contain natural language requirements that can't be handled by deterministic filters?

Query: "{query}"

Deterministic filters can handle: price, bedrooms, bathrooms, housing type, private room/bath, gender preference, location.

Natural language requirements include: roommate lifestyle preferences, personality traits, cleanliness, social preferences, specific amenities descriptions, etc.

Respond with ONLY: yes or no
"""

    async def _has_natural_language_requirements(self, query: str) -> bool:
        if self.scoring_engine is None:
            return False
        try:
            response = await self._infer(self._create_requirements_prompt(query))
            return "yes" in response.strip().lower()
        except Exception as e:
            self.logger.warning(f"Requirement check failed, using deterministic results: {str(e)}")
            return False

    def _deterministic_summary(self, listing: Listing, query: str, filters: ListingFilters) -> str:
        factors = []
        if filters.max_price and listing.price <= filters.max_price:
            factors.append(f"under ${filters.max_price:g} budget")
        if filters.min_price and listing.price >= filters.min_price:
            factors.append(f"above ${filters.min_price:g} minimum")
        if filters.housing_type and listing.housing_type == filters.housing_type:
            factors.append(f"{filters.housing_type} type")
        if filters.min_bedrooms and (listing.bedrooms or 0) >= filters.min_bedrooms:
            factors.append(f"{listing.bedrooms:g}+ bedrooms")
        if filters.max_bedrooms and (listing.bedrooms or 0) <= filters.max_bedrooms:
            factors.append(f"<={filters.max_bedrooms:g} bedrooms")
        if filters.private_bath and listing.private_bath:
            factors.append("private bathroom")
        if filters.private_room and listing.private_room:
            factors.append("private room")
        if filters.gender_preference and filters.gender_preference != "any":
            factors.append(f"{filters.gender_preference} preference match")

        if not factors:
            return f'Meets all basic criteria for "{query}"'
        return f"Matches {', '.join(factors)} requirements"
