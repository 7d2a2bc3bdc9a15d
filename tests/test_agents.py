"""
Test the housing, commute, location and messenger agents.
"""

import json
import threading
import time
from unittest.mock import AsyncMock

import pytest

from housing_multi_agent.client import AgentClient
from housing_multi_agent.commute_agent import (
    CommuteAgent, CommuteRequest, calculate_commute_rating, generate_recommendation
)
from housing_multi_agent.housing_agent import HousingAgent
from housing_multi_agent.listings import ListingFilters
from housing_multi_agent.location_agent import LocationScoringAgent, LocatedListing, PointArgs
from housing_multi_agent.messenger_agent import MessengerAgent, SessionData

from conftest import StubInference


def housing_responder(needs_scoring: bool, score: float = 88):
    def respond(prompt):
        if "natural language requirements" in prompt:
            return "yes" if needs_scoring else "no"
        count = prompt.count("   Price: $")
        return json.dumps([{"index": i, "score": score, "reason": "quiet and clean"} for i in range(1, count + 1)])
    return respond


class TestHousingAgent:
    """Test housing search."""

    @pytest.mark.asyncio
    async def test_deterministic_without_inference(self, config, store, mock_logger):
        agent = HousingAgent(config, store, mock_logger)
        results = await agent.search_housing("apartment", ListingFilters(max_price=2000), 5)

        assert [r.candidate.title for r in results] == ["Sunny 1BR downtown", "Private room in shared Victorian"]
        assert all(r.match_score == 100 for r in results)
        assert results[0].rationale == "100% match: Matches under $2000 budget requirements"

    @pytest.mark.asyncio
    async def test_deterministic_when_no_natural_language_requirements(self, config, store, mock_logger):
        inference = StubInference(housing_responder(needs_scoring=False))
        agent = HousingAgent(config, store, mock_logger, inference)

        results = await agent.search_housing("2 bedroom", ListingFilters(), 2)

        assert len(results) == 2
        assert results[0].rationale == '100% match: Meets all basic criteria for "2 bedroom"'
        assert len(inference.prompts) == 1

    @pytest.mark.asyncio
    async def test_semantic_scoring(self, config, store, mock_logger):
        inference = StubInference(housing_responder(needs_scoring=True))
        agent = HousingAgent(config, store, mock_logger, inference)

        results = await agent.search_housing("quiet and clean housemates", ListingFilters(), 3)

        assert len(results) == 3
        assert all(r.match_score == 88 for r in results)
        assert results[0].rationale == "88% match: quiet and clean"
        # one yes/no check plus one call per non-empty group
        assert len(inference.prompts) == 1 + 4

    @pytest.mark.asyncio
    async def test_inference_failure_degrades_to_deterministic(self, config, store, mock_logger):
        inference = StubInference(lambda prompt: RuntimeError("bedrock down"))
        agent = HousingAgent(config, store, mock_logger, inference)

        results = await agent.search_housing("quiet", ListingFilters(), 5)

        assert len(results) == 4
        assert all(r.match_score == 100 for r in results)

    @pytest.mark.asyncio
    async def test_no_filter_matches_skips_inference(self, config, store, mock_logger):
        inference = StubInference(housing_responder(needs_scoring=True))
        agent = HousingAgent(config, store, mock_logger, inference)

        assert await agent.search_housing("anything", ListingFilters(max_price=100), 5) == []
        assert inference.prompts == []

    @pytest.mark.asyncio
    async def test_search_tool(self, config, store, mock_logger):
        client = AgentClient(HousingAgent(config, store, mock_logger), "tester")

        data = await client.call_tool_json("search_housing", {
            "query": "Find apartments under $2000 near downtown",
            "filters": {"maxPrice": 2000, "location": "downtown"},
            "maxResults": 5,
        })

        assert data["success"] is True
        assert data["count"] == 1
        match = data["results"][0]
        assert match["listing"]["title"] == "Sunny 1BR downtown"
        assert match["listing"]["price"] <= 2000
        assert match["matchPercentage"] == 100
        assert match["explanation"].startswith("100% match:")

    @pytest.mark.asyncio
    async def test_search_tool_rejects_bad_arguments(self, config, store, mock_logger):
        client = AgentClient(HousingAgent(config, store, mock_logger), "tester")
        result = await client.call_tool("search_housing", {"query": "x", "maxResults": 0})
        assert result.is_error

    @pytest.mark.asyncio
    async def test_summary_and_filter_tools(self, config, store, mock_logger):
        client = AgentClient(HousingAgent(config, store, mock_logger), "tester")

        summary = await client.call_tool_json("get_housing_summary", {"source": "facebook"})
        assert summary["totalListings"] == 2

        filtered = await client.call_tool_json("filter_housing", {"filters": {"housingType": "apartment"}})
        assert filtered["count"] == 2
        assert {listing["source"] for listing in filtered["results"]} == {"facebook", "craigslist"}

    @pytest.mark.asyncio
    async def test_status(self, config, store, mock_logger):
        status = await AgentClient(HousingAgent(config, store, mock_logger), "tester").get_status()

        assert status["listings"] == 4
        assert status["tools"] == ["search_housing", "get_housing_summary", "filter_housing"]


class TestCommuteRating:
    """Test the deterministic commute rating."""

    def test_short_fast_commute(self):
        assert calculate_commute_rating(15000, 1500) == 10

    def test_slow_speed_penalties(self):
        # 5 km in 30 min = 10 km/h
        assert calculate_commute_rating(5000, 1800) == 8
        # 12.5 km in 30 min = 25 km/h
        assert calculate_commute_rating(12500, 1800) == 9

    def test_long_commute(self):
        # 80 km in 90 min: distance -3, time -3
        assert calculate_commute_rating(80000, 5400) == 4

    def test_clamped_to_one(self):
        assert calculate_commute_rating(200000, 36000) == 1

    def test_half_ratings_round_up(self):
        # 65 km in an hour: 10 - 1.5
        assert calculate_commute_rating(65000, 3600) == 9

    def test_recommendation_bands(self):
        assert generate_recommendation(15000, 1500, 9).startswith("Excellent commute! 15.0km in 25 minutes")
        assert generate_recommendation(15000, 1500, 6).startswith("Good commute.")
        assert generate_recommendation(15000, 1500, 4).startswith("Moderate commute.")
        assert generate_recommendation(15000, 1500, 2).startswith("Challenging commute.")


class TestCommuteAgent:
    """Test commute analysis."""

    @pytest.fixture
    def request_args(self):
        return {
            "homeLocation": {"address": "Mission District", "coordinates": {"lat": 37.76, "lng": -122.41}},
            "workLocation": {"address": "1 Market St"},
        }

    @pytest.mark.asyncio
    async def test_ai_estimate(self, config, mock_logger, request_args):
        inference = StubInference(lambda prompt: json.dumps(
            {"distance_km": 80, "duration_minutes": 90, "traffic_duration_minutes": 110}
        ))
        agent = CommuteAgent(config, mock_logger, inference)

        analysis = await agent.analyze_commute(CommuteRequest.model_validate(request_args))

        assert analysis.distance.value == 80000
        assert analysis.duration.text == "90 min"
        assert analysis.duration_in_traffic.value == 6600
        assert analysis.rating == 4
        assert analysis.recommendation.startswith("Moderate commute.")
        assert analysis.route["source"] == "ai_analysis"
        assert "(37.76, -122.41)" in inference.prompts[0]

    @pytest.mark.asyncio
    async def test_fallback_estimate_without_inference(self, config, mock_logger, request_args):
        agent = CommuteAgent(config, mock_logger)
        analysis = await agent.analyze_commute(CommuteRequest.model_validate(request_args))

        assert analysis.distance.text == "15.0 km"
        assert analysis.duration.value == 1500
        assert analysis.duration_in_traffic.value == 1800
        assert analysis.rating == 10
        assert analysis.route["source"] == "fallback_estimate"

    @pytest.mark.asyncio
    async def test_fallback_estimate_on_unparseable_response(self, config, mock_logger, request_args):
        agent = CommuteAgent(config, mock_logger, StubInference(lambda prompt: "About half an hour."))
        analysis = await agent.analyze_commute(CommuteRequest.model_validate(request_args))

        assert analysis.route["source"] == "fallback_estimate"
        assert analysis.distance.value == 15000

    @pytest.mark.asyncio
    async def test_analysis_text_used_as_recommendation(self, config, mock_logger, request_args):
        inference = StubInference(lambda prompt: json.dumps(
            {"distance_km": 10, "duration_minutes": 20, "analysis": "Easy ride along the waterfront."}
        ))
        agent = CommuteAgent(config, mock_logger, inference)
        analysis = await agent.analyze_commute(CommuteRequest.model_validate(request_args))

        assert analysis.recommendation == "Easy ride along the waterfront."
        # traffic duration missing: fallback value used
        assert analysis.duration_in_traffic.value == 1800

    @pytest.mark.asyncio
    async def test_tools(self, config, mock_logger, request_args):
        inference = StubInference(lambda prompt: json.dumps({"distance_km": 12, "duration_minutes": 30}))
        client = AgentClient(CommuteAgent(config, mock_logger, inference), "tester")

        data = await client.call_tool_json("analyze_commute", {**request_args, "travelMode": "cycling"})
        assert data["success"] is True
        assert data["analysis"]["route"]["mode"] == "cycling"
        assert data["analysis"]["durationInTraffic"]["value"] == 1800

        batch = await client.call_tool_json("batch_commute_analysis", {
            "homeLocations": [{"address": "A"}, {"address": "B"}],
            "workLocation": {"address": "Office"},
        })
        assert [item["homeLocation"] for item in batch["analyses"]] == ["A", "B"]
        assert all(item["success"] for item in batch["analyses"])

        route = await client.call_tool_json("get_route", {"origin": "A", "destination": "B"})
        assert route["route"]["travelMode"] == "driving-traffic"

    @pytest.mark.asyncio
    async def test_fallback_estimate_reported_as_failure(self, config, mock_logger, request_args):
        inference = StubInference(lambda prompt: RuntimeError("throttled"))
        client = AgentClient(CommuteAgent(config, mock_logger, inference), "tester")

        data = await client.call_tool_json("analyze_commute", request_args)
        assert data["success"] is False
        assert "fallback estimate" in data["error"]
        assert data["analysis"]["route"]["source"] == "fallback_estimate"

        batch = await client.call_tool_json("batch_commute_analysis", {
            "homeLocations": [{"address": "A"}],
            "workLocation": {"address": "Office"},
        })
        assert batch["analyses"][0]["success"] is False

    @pytest.mark.asyncio
    async def test_invalid_travel_mode(self, config, mock_logger, request_args):
        client = AgentClient(CommuteAgent(config, mock_logger), "tester")
        result = await client.call_tool("analyze_commute", {**request_args, "travelMode": "teleport"})
        assert result.is_error


class TestLocationScoringAgent:
    """Test location scoring."""

    @pytest.mark.asyncio
    async def test_scores_from_inference(self, config, mock_logger):
        inference = StubInference(lambda prompt: json.dumps({
            "scores": {"walkScore": 92, "bikeScore": 71, "transitScore": 88},
            "safetySentiment": "Busy and well lit.",
        }))
        agent = LocationScoringAgent(config, mock_logger, inference)

        scores = await agent.get_location_scores(37.79, -122.4)

        assert (scores.walk_score, scores.bike_score, scores.transit_score) == (92, 71, 88)
        assert scores.safety_sentiment == "Busy and well lit."
        assert scores.coordinates == PointArgs(latitude=37.79, longitude=-122.4)

    @pytest.mark.asyncio
    async def test_fallback_values(self, config, mock_logger):
        agent = LocationScoringAgent(config, mock_logger, StubInference(lambda prompt: "no idea"))
        scores = await agent.get_location_scores(37.79, -122.4)

        assert (scores.walk_score, scores.bike_score, scores.transit_score) == (65, 45, 55)
        assert "temporarily unavailable" in scores.safety_sentiment

    @pytest.mark.asyncio
    async def test_multiple_keyed_by_url(self, config, mock_logger):
        agent = LocationScoringAgent(config, mock_logger)
        listings = [
            LocatedListing(coordinates=PointArgs(latitude=37.7, longitude=-122.4), url="https://a"),
            LocatedListing(coordinates=PointArgs(latitude=37.8, longitude=-122.3), url="https://b"),
        ]

        results = await agent.score_multiple_locations(listings)

        assert set(results) == {"https://a", "https://b"}
        assert results["https://b"].coordinates.latitude == 37.8

    @pytest.mark.asyncio
    async def test_tools(self, config, mock_logger):
        client = AgentClient(LocationScoringAgent(config, mock_logger), "tester")

        single = await client.call_tool_json("get_location_scores", {"latitude": 37.7, "longitude": -122.4})
        assert single["walkScore"] == 65

        multiple = await client.call_tool_json("score_multiple_locations", {"listings": [
            {"coordinates": {"latitude": 37.7, "longitude": -122.4}, "title": "A", "url": "https://a"},
        ]})
        assert multiple["https://a"]["transitScore"] == 55


class FakeLoginHandler:
    async def login(self):
        return SessionData(cookies=[{"name": "c_user", "value": "1"}], user_agent="test-agent")


class TestMessengerAgent:
    """Test drafting, sending and session management."""

    @pytest.fixture
    def sender(self):
        sender = AsyncMock()
        sender.send = AsyncMock(return_value=None)
        return sender

    def test_draft_asks_about_missing_details(self, config, store, mock_logger):
        agent = MessengerAgent(config, store, mock_logger)
        message = agent.draft_message(store.get("2345678901234"))

        assert message.startswith('Hi! I\'m interested in your room listing "Private room in shared Victorian" '
                                  'for $1150 in Mission District, San Francisco.')
        assert "1. When would this be available?" in message
        assert "How many people would be sharing the bathroom?" in message
        assert "What is the security deposit?" in message
        assert "Would it be possible to schedule a viewing?" in message
        assert message.endswith("\nThank you for your time!")

    def test_draft_skips_answered_questions(self, config, store, mock_logger):
        agent = MessengerAgent(config, store, mock_logger)
        message = agent.draft_message(store.get("7712345678"))

        assert "lease term" not in message
        assert "security deposit" not in message
        assert "schedule a viewing" not in message

    def test_draft_without_questions(self, config, store, mock_logger):
        agent = MessengerAgent(config, store, mock_logger)
        message = agent.draft_message(store.get("7712345678"), include_questions=False)
        assert "questions" not in message

    @pytest.mark.asyncio
    async def test_draft_tool(self, config, store, mock_logger, sender):
        client = AgentClient(MessengerAgent(config, store, mock_logger, sender), "tester")

        data = await client.call_tool_json("draft_message", {"listingId": "1234567890123"})
        assert data["listingTitle"] == "Sunny 1BR downtown"
        assert data["messageType"] == "seller"
        assert data["canSend"] is True

        custom = await client.call_tool_json("draft_message", {"listingId": "7712345678", "userMessage": "Hello!"})
        assert custom["draftedMessage"] == "Hello!"
        assert custom["canSend"] is False

        missing = await client.call_tool("draft_message", {"listingId": "999"})
        assert missing.is_error
        assert missing.text == "Listing with ID 999 not found"

    @pytest.mark.asyncio
    async def test_send_requires_sendable_source_and_sender(self, config, store, mock_logger):
        client = AgentClient(MessengerAgent(config, store, mock_logger), "tester")

        wrong_source = await client.call_tool("send_message", {"listingId": "7712345678", "message": "Hi"})
        assert wrong_source.text == "Cannot send messages to craigslist listings"

        no_sender = await client.call_tool("send_message", {"listingId": "1234567890123", "message": "Hi"})
        assert no_sender.text == "No message sender configured"

    @pytest.mark.asyncio
    async def test_send_without_session(self, config, store, mock_logger, sender):
        client = AgentClient(MessengerAgent(config, store, mock_logger, sender), "tester")

        data = await client.call_tool_json("send_message", {"listingId": "1234567890123", "message": "Hi"})

        assert data["success"] is False
        assert "session_login" in data["error"]
        sender.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_login_then_send(self, config, store, mock_logger, sender):
        agent = MessengerAgent(config, store, mock_logger, sender, FakeLoginHandler())
        client = AgentClient(agent, "tester")

        login = await client.call_tool_json("session_login")
        assert login["success"] is True
        assert login["sessionInfo"]["cookieCount"] == 1

        data = await client.call_tool_json("send_message", {"listingId": "1234567890123", "message": "Still available?"})

        assert data["success"] is True
        assert data["listingTitle"] == "Sunny 1BR downtown"
        assert "timestamp" in data
        listing, message, session = sender.send.call_args.args
        assert listing.id == "1234567890123"
        assert message == "Still available?"
        assert session.user_agent == "test-agent"

    @pytest.mark.asyncio
    async def test_sender_failure_reported(self, config, store, mock_logger, sender):
        sender.send.side_effect = RuntimeError("message box not found")
        agent = MessengerAgent(config, store, mock_logger, sender)
        agent.sessions.save_session(SessionData())

        data = await AgentClient(agent, "tester").call_tool_json(
            "send_message", {"listingId": "1234567890123", "message": "Hi"}
        )

        assert data["success"] is False
        assert data["error"] == "message box not found"

    @pytest.mark.asyncio
    async def test_login_without_handler(self, config, store, mock_logger):
        result = await AgentClient(MessengerAgent(config, store, mock_logger), "tester").call_tool("session_login")
        assert result.is_error
        assert "no login handler" in result.text

    @pytest.mark.asyncio
    async def test_session_check_and_clear(self, config, store, mock_logger):
        agent = MessengerAgent(config, store, mock_logger)
        client = AgentClient(agent, "tester")

        assert (await client.call_tool_json("session_check"))["hasValidSession"] is False

        agent.sessions.save_session(SessionData())
        check = await client.call_tool_json("session_check")
        assert check["hasValidSession"] is True
        assert check["message"] == "Valid session found"

        cleared = await client.call_tool_json("session_clear")
        assert cleared["success"] is True
        assert agent.sessions.has_valid_session() is False
        assert agent.sessions.get_session_info()["isValid"] is False

    @pytest.mark.asyncio
    async def test_session_file_access_runs_off_the_event_loop(self, config, store, mock_logger, sender):
        agent = MessengerAgent(config, store, mock_logger, sender)
        agent.sessions.save_session(SessionData())
        client = AgentClient(agent, "tester")
        loop_thread = threading.get_ident()
        reader_threads = []
        real_load = agent.sessions.load_session

        def load_session():
            reader_threads.append(threading.get_ident())
            return real_load()

        agent.sessions.load_session = load_session

        await client.call_tool_json("session_check")
        await client.call_tool_json("send_message", {"listingId": "1234567890123", "message": "Hi"})

        assert reader_threads
        assert loop_thread not in reader_threads
        assert sender.send.await_args.args[2].is_valid is True

    def test_expired_session(self, config, store, mock_logger):
        agent = MessengerAgent(config, store, mock_logger)
        agent.sessions.save_session(SessionData(timestamp=time.time() - 25 * 3600))

        assert agent.sessions.has_valid_session() is False
        assert agent.sessions.get_session_info()["ageHours"] == 25
