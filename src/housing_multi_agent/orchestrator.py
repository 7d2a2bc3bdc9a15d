"""
Orchestrator agent for the multi-agent housing system.

Classifies a free-text query into an intent and runs that intent's plan
against the other agents. The per-query flow is a LangGraph workflow:
validate -> classify -> one plan node per intent -> END, with an error node
for rejected input. Every call to another agent goes through an
``AgentClient``.
"""

import asyncio
import logging
import re
from typing import Dict, Any, Optional, List, Callable, Awaitable

from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel, ConfigDict, Field

from .base_agent import ToolServerAgent
from .client import AgentClient
from .config import Config
from .inference import InferenceService
from .messages import Capability
from .messenger_agent import DraftMessageArgs, SendMessageArgs, ListingIdArgs, NoArgs
from .models import INTENTS, SESSION_ACTIONS, HousingCriteria, QueryAnalysis, OrchestratedResult
from .observers import AgentObserver
from .parsing import parse_structured
from .score_combiner import ScoreCombiner, commute_score, location_score
from .state import OrchestrationState
from .tools import ToolResult, json_result, error_result
from .validation import InputValidator

Plan = Callable[[OrchestrationState, List[str]], Awaitable[OrchestratedResult]]

LISTING_ID_PATTERN = re.compile(r"\b\d{10,}\b")
EXPLICIT_LISTING_PATTERN = re.compile(r"\blisting\s+(?:id\s+)?#?([A-Za-z0-9_-]*\d[A-Za-z0-9_-]*)", re.IGNORECASE)
QUOTED_MESSAGE_PATTERN = re.compile(r"[\"“]([^\"”]+)[\"”]")
DRAFT_PATTERN = re.compile(r"\b(draft|write|prepare)\b", re.IGNORECASE)
SEND_PATTERN = re.compile(r"\bsend\b", re.IGNORECASE)
SESSION_PATTERNS = [
    ("clear", re.compile(r"\b(log ?out|sign out|clear)\b", re.IGNORECASE)),
    ("check", re.compile(r"\b(check|status)\b", re.IGNORECASE)),
    ("login", re.compile(r"\b(log ?in|sign in|authenticate)\b", re.IGNORECASE)),
]


class AnalyzeQueryArgs(BaseModel):
    query: str


class OrchestrateSearchArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(description="Natural language housing query")
    work_location: Optional[str] = Field(default=None, alias="workLocation")
    housing_filters: Optional[Dict[str, Any]] = Field(default=None, alias="housingFilters")
    max_results: int = Field(default=5, ge=1, alias="maxResults")


class AgentCapabilitiesArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agent_name: Optional[str] = Field(default=None, alias="agentName")


class CallAgentToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agent_name: str = Field(alias="agentName")
    tool_name: str = Field(alias="toolName")
    arguments: Dict[str, Any] = {}


def extract_listing_id(query: str) -> Optional[str]:
    """Pull a listing id out of free text."""
    match = LISTING_ID_PATTERN.search(query)
    if match:
        return match.group(0)
    match = EXPLICIT_LISTING_PATTERN.search(query)
    return match.group(1) if match else None


def detect_session_action(query: str) -> Optional[str]:
    for action, pattern in SESSION_PATTERNS:
        if pattern.search(query):
            return action
    return None


class OrchestratorAgent(ToolServerAgent):
    """Routes queries to intent plans and composes the other agents."""

    def __init__(self, config: Config, clients: Dict[str, AgentClient], validator: InputValidator,
                 logger: logging.Logger, inference: Optional[InferenceService] = None,
                 observer: Optional[AgentObserver] = None):
        """Initialize orchestrator agent."""
        self.config = config
        self.clients = clients
        self.validator = validator
        super().__init__(config.agents.orchestrator.name, logger, inference, observer)

        self.pairwise_combiner = ScoreCombiner.pairwise(config.scoring)
        self.three_way_combiner = ScoreCombiner.three_way(config.scoring)
        self.analysis_prompt = self._create_analysis_prompt()
        self.workflow = self._build_workflow()

    def register_tools(self) -> None:
        self.register_function_tool(
            "analyze_query", "Classify a query into an intent with extracted criteria",
            self._analyze_query_tool, AnalyzeQueryArgs
        )
        self.register_function_tool(
            "orchestrate_search", "Run the full multi-agent plan for a housing query",
            self._orchestrate_search_tool, OrchestrateSearchArgs
        )
        self.register_function_tool(
            "get_agent_capabilities", "Get tools and capabilities of one or all agents",
            self._agent_capabilities_tool, AgentCapabilitiesArgs
        )
        self.register_function_tool(
            "call_agent_tool", "Call a tool on a specific agent",
            self._call_agent_tool, CallAgentToolArgs
        )
        for name, args_model in (
            ("draft_message", DraftMessageArgs),
            ("send_message", SendMessageArgs),
            ("get_listing_details", ListingIdArgs),
            ("session_login", NoArgs),
            ("session_check", NoArgs),
            ("session_clear", NoArgs),
        ):
            self.register_function_tool(name, f"Forward {name} to the messenger agent",
                                        self._forward_to_messenger(name), args_model)

    def get_capabilities(self) -> List[Capability]:
        return [
            Capability(
                name="intelligent_search",
                description="Classify housing queries and coordinate housing, commute and location agents",
                parameters={"query": "string", "workLocation": "string", "maxResults": "number"}
            ),
            Capability(
                name="multi_agent_coordination",
                description="Discover and call tools on every registered agent",
                parameters={"agentName": "string", "toolName": "string", "arguments": "object"}
            ),
        ]

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["agents"] = list(self.clients.keys())
        return status

    async def initialize(self) -> None:
        """Discover every agent's tools and log them."""
        self.logger.info("Discovering agent capabilities")
        for agent_name, client in self.clients.items():
            try:
                tools = await client.list_tools()
                self.logger.info(f"{agent_name}: {', '.join(tool.name for tool in tools)}")
            except Exception as e:
                self.logger.warning(f"Could not discover capabilities for {agent_name}: {str(e)}")

    # Tools

    async def _analyze_query_tool(self, args: AnalyzeQueryArgs) -> ToolResult:
        analysis = await self.analyze_query(args.query)
        return json_result(analysis.model_dump(by_alias=True, exclude_none=True))

    async def _orchestrate_search_tool(self, args: OrchestrateSearchArgs) -> ToolResult:
        result = await self.process_query(args.query, args.work_location, args.housing_filters, args.max_results)
        return json_result(result.model_dump(by_alias=True))

    async def _agent_capabilities_tool(self, args: AgentCapabilitiesArgs) -> ToolResult:
        if args.agent_name:
            client = self.clients.get(args.agent_name)
            if client is None:
                return error_result(f"Agent {args.agent_name} not found")
            try:
                return json_result({"agentName": args.agent_name, **await self._describe_agent(client)})
            except Exception as e:
                return error_result(f"Failed to get capabilities: {str(e)}")

        capabilities = {}
        for name, client in self.clients.items():
            try:
                capabilities[name] = await self._describe_agent(client)
            except Exception as e:
                capabilities[name] = {"error": f"Failed to get capabilities: {str(e)}"}
        return json_result(capabilities)

    async def _describe_agent(self, client: AgentClient) -> Dict[str, Any]:
        tools = await client.list_tools()
        return {
            "tools": [tool.model_dump(by_alias=True, exclude_none=True) for tool in tools],
            "capabilities": await client.get_capabilities(),
        }

    async def _call_agent_tool(self, args: CallAgentToolArgs) -> ToolResult:
        client = self.clients.get(args.agent_name)
        if client is None:
            return error_result(f"Agent {args.agent_name} not found")
        try:
            return await client.call_tool(args.tool_name, args.arguments)
        except Exception as e:
            return error_result(str(e))

    def _forward_to_messenger(self, tool_name: str) -> Callable[[BaseModel], Awaitable[ToolResult]]:
        async def forward(args: BaseModel) -> ToolResult:
            client = self.clients.get("messenger")
            if client is None:
                return error_result("Messenger agent not available")
            try:
                return await client.call_tool(tool_name, args.model_dump(by_alias=True, exclude_none=True))
            except Exception as e:
                return error_result(str(e))
        return forward

    # Classification

    def _create_analysis_prompt(self) -> str:
        """Create the intent classification prompt."""
        return """
Analyze this user query for a housing search application and determine the intent and required actions.

Query: "{query}"

Determine:
1. Primary intent: housing_search, commute_analysis, combined_search, market_summary, message_request, or session_management
2. Confidence level (0-1)
3. Housing criteria if relevant
4. Commute criteria if relevant
5. Session action if relevant
6. Reasoning for the classification

Use "combined_search" when the user also cares about the commute to a work location.

Use "message_request" when the user wants to draft or send a message to a listing (words like "message", "send", "draft", "contact", "write" with a listing ID or reference).

Use "session_management" when the user wants to manage the messaging login session (words like "login", "logout", "sign in", "session", "authenticate").

For session_management, set sessionAction to:
- "login" for login, sign in, authenticate
- "check" for check session, session status
- "clear" for logout, sign out, clear session

Respond with ONLY a JSON object:
{{
  "intent": "combined_search",
  "confidence": 0.9,
  "housingCriteria": {{
    "query": "extracted housing preferences",
    "filters": {{
      "maxPrice": 2000,
      "privateRoom": true
    }},
    "maxResults": 5
  }},
  "commuteCriteria": {{
    "workLocation": "extracted work location",
    "travelMode": "driving-traffic"
  }},
  "sessionAction": "login",
  "reasoning": "User wants housing with commute consideration"
}}
"""

    def _fallback_analysis(self, query: str, cause: str) -> QueryAnalysis:
        return QueryAnalysis(
            intent=self.config.orchestration.default_intent,
            confidence=self.config.orchestration.fallback_confidence,
            housing_criteria=HousingCriteria(query=query, max_results=self.config.scoring.default_max_results),
            reasoning=f"Fallback analysis due to {cause}",
        )

    async def analyze_query(self, query: str) -> QueryAnalysis:
        """Classify ``query``. Never raises; failures yield the default intent."""
        self.logger.info(f"Analyzing query: '{query}'")
        try:
            response = await self._infer(self.analysis_prompt.format(query=query))
        except Exception as e:
            self.logger.warning(f"Query analysis failed: {str(e)}")
            return self._fallback_analysis(query, f"classification error: {str(e)}")

        parsed = parse_structured(response, QueryAnalysis)
        if not parsed.ok:
            self.logger.warning(f"Could not parse query analysis: {parsed.error}")
            return self._fallback_analysis(query, f"parsing error: {parsed.error}")

        analysis = parsed.value
        self.logger.info(f"Intent: {analysis.intent} (confidence: {analysis.confidence})")
        return analysis

    # Workflow

    def _build_workflow(self):
        """Build the LangGraph workflow."""
        workflow = StateGraph(OrchestrationState)

        workflow.add_node("validate_input", self._validate_input)
        workflow.add_node("classify", self._classify)
        workflow.add_node("handle_error", self._handle_error)
        workflow.add_node("unknown_intent", self._unknown_intent)
        for intent, plan in self._plans().items():
            workflow.add_node(intent, self._plan_node(plan))

        workflow.add_edge(START, "validate_input")
        workflow.add_conditional_edges(
            "validate_input",
            self._validation_router,
            {"valid": "classify", "invalid": "handle_error"}
        )
        workflow.add_conditional_edges(
            "classify",
            self._intent_router,
            {**{intent: intent for intent in INTENTS}, "unknown": "unknown_intent"}
        )

        for node in (*INTENTS, "unknown_intent", "handle_error"):
            workflow.add_edge(node, END)

        return workflow.compile()

    def _plans(self) -> Dict[str, Plan]:
        return {
            "housing_search": self._execute_housing_search,
            "commute_analysis": self._execute_commute_analysis,
            "combined_search": self._execute_combined_search,
            "market_summary": self._execute_market_summary,
            "message_request": self._execute_message_request,
            "session_management": self._execute_session_management,
        }

    async def _validate_input(self, state: OrchestrationState) -> Dict[str, Any]:
        validation = self.validator.validate_query(state.query)
        if not validation.is_valid:
            self.logger.warning(f"Input validation failed: {validation.error_message}")
            return {"validation_result": validation, "error": validation.error_message}
        return {"validation_result": validation, "query": validation.sanitized_input}

    def _validation_router(self, state: OrchestrationState) -> str:
        if state.validation_result and state.validation_result.is_valid:
            return "valid"
        return "invalid"

    async def _classify(self, state: OrchestrationState) -> Dict[str, Any]:
        return {"analysis": await self.analyze_query(state.query)}

    def _intent_router(self, state: OrchestrationState) -> str:
        return state.analysis.intent if state.analysis.intent in INTENTS else "unknown"

    def _plan_node(self, plan: Plan):
        async def node(state: OrchestrationState) -> Dict[str, Any]:
            agents_used: List[str] = []
            try:
                result = await plan(state, agents_used)
            except Exception as e:
                self.logger.error(f"Plan {state.analysis.intent} failed: {str(e)}")
                result = OrchestratedResult(
                    success=False,
                    intent=state.analysis.intent,
                    reasoning=f"Orchestration failed: {str(e)}",
                    agents_used=agents_used,
                )
            return {"result": result, "agents_used": result.agents_used}
        return node

    async def _unknown_intent(self, state: OrchestrationState) -> Dict[str, Any]:
        intent = state.analysis.intent
        self.logger.warning(f"Unknown intent: {intent}")
        return {"result": OrchestratedResult(success=False, intent=intent, reasoning=f"Unknown intent: {intent}")}

    async def _handle_error(self, state: OrchestrationState) -> Dict[str, Any]:
        error = state.error or "An unexpected error occurred"
        return {"result": OrchestratedResult(success=False, intent="invalid_query", reasoning=error)}

    async def process_query(self, query: str, work_location: Optional[str] = None,
                            housing_filters: Optional[Dict[str, Any]] = None,
                            max_results: Optional[int] = None) -> OrchestratedResult:
        """Run one query through the workflow."""
        try:
            initial_state = OrchestrationState(
                query=query or "",
                work_location=work_location,
                housing_filters=housing_filters,
                max_results=max_results,
            )
            final = await self.workflow.ainvoke(initial_state)
            result = final.get("result") if isinstance(final, dict) else getattr(final, "result", None)
            if result is None:
                return OrchestratedResult(success=False, intent="unknown", reasoning="No result produced")
            return result
        except Exception as e:
            self.logger.error(f"Error in workflow processing: {str(e)}")
            return OrchestratedResult(success=False, intent="unknown", reasoning=f"Orchestration failed: {str(e)}")

    # Plans

    def _search_args(self, state: OrchestrationState) -> Dict[str, Any]:
        criteria = state.analysis.housing_criteria or HousingCriteria()
        return {
            "query": criteria.query or state.query,
            "filters": state.housing_filters or criteria.filters or {},
            "maxResults": state.max_results or criteria.max_results or self.config.scoring.default_max_results,
        }

    async def _execute_housing_search(self, state: OrchestrationState, agents_used: List[str]) -> OrchestratedResult:
        agents_used.append("housing")
        data = await self.clients["housing"].call_tool_json("search_housing", self._search_args(state))
        return OrchestratedResult(
            success=data["success"],
            intent=state.analysis.intent,
            results=data["results"],
            housing_results=data["results"],
            reasoning=f"Found {data['count']} housing matches",
            agents_used=agents_used,
        )

    async def _execute_combined_search(self, state: OrchestrationState, agents_used: List[str]) -> OrchestratedResult:
        intent = state.analysis.intent
        agents_used.append("housing")
        housing = await self.clients["housing"].call_tool_json("search_housing", self._search_args(state))

        if not housing.get("success") or not housing.get("results"):
            return OrchestratedResult(success=False, intent=intent, reasoning="No housing results found",
                                      agents_used=agents_used)

        matches = housing["results"]
        commute_criteria = state.analysis.commute_criteria
        work_location = state.work_location or (commute_criteria.work_location if commute_criteria else None)
        if not work_location:
            return OrchestratedResult(
                success=True,
                intent=intent,
                results=matches,
                housing_results=matches,
                reasoning="Housing search completed without commute analysis (no work location)",
                agents_used=agents_used,
            )

        agents_used.append("commute")
        travel_mode = commute_criteria.travel_mode if commute_criteria else "driving-traffic"
        enriched = await self._add_commute_scores(matches, work_location, travel_mode)

        combiner = self.pairwise_combiner
        if self.config.orchestration.enable_location_scoring and "location" in self.clients:
            enriched = await self._add_location_scores(enriched, agents_used)
            combiner = self.three_way_combiner

        degraded = 0
        for item in enriched:
            if item["scores"].get("commute") is None:
                degraded += 1
            item["combinedScore"] = combiner.combine(item["scores"])
            item["scores"]["combined"] = item["combinedScore"]

        enriched = sorted(enriched, key=lambda item: item["combinedScore"], reverse=True)
        return OrchestratedResult(
            success=True,
            intent=intent,
            results=enriched,
            housing_results=matches,
            reasoning=f"Combined search completed with {len(enriched)} enhanced results",
            agents_used=agents_used,
            metadata={"workLocation": work_location, "degradedResults": degraded},
        )

    async def _add_commute_scores(self, matches: List[Dict[str, Any]], work_location: str,
                                  travel_mode: str) -> List[Dict[str, Any]]:
        """Commute-score every match; a failed branch keeps only its housing score."""
        semaphore = asyncio.Semaphore(self.config.orchestration.max_concurrency)
        client = self.clients["commute"]

        async def enrich(match: Dict[str, Any]) -> Dict[str, Any]:
            listing = match.get("listing", {})
            home: Dict[str, Any] = {"address": listing.get("location") or listing.get("title") or "unknown"}
            coordinates = listing.get("coordinates") or {}
            if coordinates.get("latitude") is not None and coordinates.get("longitude") is not None:
                home["coordinates"] = {"lat": coordinates["latitude"], "lng": coordinates["longitude"]}

            housing_score = match.get("matchPercentage")
            try:
                async with semaphore:
                    data = await client.call_tool_json("analyze_commute", {
                        "homeLocation": home,
                        "workLocation": {"address": work_location},
                        "travelMode": travel_mode,
                    })
                if not data.get("success"):
                    raise ValueError("commute analysis reported failure")
            except Exception as e:
                self.logger.warning(f"Commute analysis failed for {home['address']}: {str(e)}")
                return {**match, "scores": {"housing": housing_score}}

            return {
                **match,
                "commuteAnalysis": data["analysis"],
                "scores": {"housing": housing_score, "commute": commute_score(data["analysis"]["rating"])},
            }

        return list(await asyncio.gather(*(enrich(match) for match in matches)))

    async def _add_location_scores(self, items: List[Dict[str, Any]], agents_used: List[str]) -> List[Dict[str, Any]]:
        located = []
        for item in items:
            listing = item.get("listing", {})
            coordinates = listing.get("coordinates") or {}
            if coordinates.get("latitude") is not None and coordinates.get("longitude") is not None and listing.get("url"):
                located.append({
                    "coordinates": {"latitude": coordinates["latitude"], "longitude": coordinates["longitude"]},
                    "title": listing.get("title", ""),
                    "location": listing.get("location", ""),
                    "url": listing["url"],
                })

        if not located:
            self.logger.warning("No listings with valid coordinates found for location scoring")
            return items

        agents_used.append("location")
        try:
            scores_by_url = await self.clients["location"].call_tool_json(
                "score_multiple_locations", {"listings": located}
            )
        except Exception as e:
            self.logger.error(f"Error adding location scores: {str(e)}")
            return items

        for item in items:
            scores = scores_by_url.get(item.get("listing", {}).get("url"))
            if scores:
                item["locationAnalysis"] = {
                    key: scores[key] for key in ("walkScore", "bikeScore", "transitScore", "safetySentiment")
                }
                item["scores"]["location"] = location_score(
                    scores["walkScore"], scores["bikeScore"], scores["transitScore"]
                )
        return items

    async def _execute_commute_analysis(self, state: OrchestrationState, agents_used: List[str]) -> OrchestratedResult:
        agents_used.append("commute")
        commute_criteria = state.analysis.commute_criteria
        work_location = state.work_location or (commute_criteria.work_location if commute_criteria else None)
        if not work_location:
            reasoning = "Work location required for commute analysis"
        else:
            reasoning = "Commute analysis needs home locations; try a combined search to rate commutes from listings"
        return OrchestratedResult(success=False, intent=state.analysis.intent, reasoning=reasoning,
                                  agents_used=agents_used)

    async def _execute_market_summary(self, state: OrchestrationState, agents_used: List[str]) -> OrchestratedResult:
        agents_used.append("housing")
        summary = await self.clients["housing"].call_tool_json("get_housing_summary", {"source": "all"})
        success = "error" not in summary
        return OrchestratedResult(
            success=success,
            intent=state.analysis.intent,
            results=summary,
            reasoning="Market summary generated" if success else summary["error"],
            agents_used=agents_used,
        )

    async def _execute_message_request(self, state: OrchestrationState, agents_used: List[str]) -> OrchestratedResult:
        intent = state.analysis.intent
        agents_used.append("messenger")
        listing_id = extract_listing_id(state.query)
        if not listing_id:
            return OrchestratedResult(
                success=False, intent=intent, agents_used=agents_used,
                reasoning="Could not extract listing ID from query. Please provide a listing ID.",
            )

        client = self.clients["messenger"]
        is_draft = DRAFT_PATTERN.search(state.query) is not None
        is_send = SEND_PATTERN.search(state.query) is not None

        if is_draft or not is_send:
            draft = await client.call_tool("draft_message", {"listingId": listing_id, "includeQuestions": True})
            if draft.is_error:
                return OrchestratedResult(success=False, intent=intent, reasoning=draft.text, agents_used=agents_used)
            return OrchestratedResult(
                success=True, intent=intent, results=draft.payload(), agents_used=agents_used,
                reasoning="Message drafted successfully. Use send_message to send it.",
            )

        quoted = QUOTED_MESSAGE_PATTERN.search(state.query)
        if quoted:
            message = quoted.group(1)
        else:
            draft = await client.call_tool("draft_message", {"listingId": listing_id, "includeQuestions": True})
            if draft.is_error:
                return OrchestratedResult(success=False, intent=intent, reasoning=draft.text, agents_used=agents_used)
            message = draft.payload()["draftedMessage"]

        sent = await client.call_tool("send_message", {"listingId": listing_id, "message": message})
        if sent.is_error:
            return OrchestratedResult(success=False, intent=intent, reasoning=sent.text, agents_used=agents_used)

        data = sent.payload()
        return OrchestratedResult(
            success=data.get("success", False),
            intent=intent,
            results=data,
            reasoning="Message sent successfully" if data.get("success") else f"Message not sent: {data.get('error')}",
            agents_used=agents_used,
        )

    async def _execute_session_management(self, state: OrchestrationState, agents_used: List[str]) -> OrchestratedResult:
        intent = state.analysis.intent
        agents_used.append("messenger")
        action = state.analysis.session_action
        if action not in SESSION_ACTIONS:
            action = detect_session_action(state.query)
        if action is None:
            return OrchestratedResult(success=False, intent=intent, reasoning="No session action specified",
                                      agents_used=agents_used)

        tool_name, success_message = {
            "login": ("session_login", "Login completed successfully. Session saved for future use."),
            "check": ("session_check", "Session status checked."),
            "clear": ("session_clear", "Session cleared successfully."),
        }[action]

        result = await self.clients["messenger"].call_tool(tool_name, {})
        if result.is_error:
            return OrchestratedResult(success=False, intent=intent, agents_used=agents_used,
                                      reasoning=f"Session management failed: {result.text}")
        return OrchestratedResult(success=True, intent=intent, results=result.payload(),
                                  reasoning=success_message, agents_used=agents_used)
