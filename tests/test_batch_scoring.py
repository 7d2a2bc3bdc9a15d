"""
Test batch scoring: partitioning, per-group scoring and merging.
"""

import asyncio
import json
import re
from unittest.mock import Mock

import pytest

from housing_multi_agent.batch_scoring import BatchScoringEngine, partition

from conftest import StubInference

CANDIDATE_LINE = re.compile(r"^(\d+)\. (c\d+)$", re.MULTILINE)


def candidates(n):
    return [f"c{i}" for i in range(n)]


def scores_by_candidate(table, reason="fits"):
    """Responder that scores each listed candidate from ``table`` (default 80)."""
    def respond(prompt):
        entries = [
            {"index": int(index), "score": table.get(name, 80), "reason": f"{reason} {name}"}
            for index, name in CANDIDATE_LINE.findall(prompt)
        ]
        return json.dumps(entries)
    return respond


class TestPartition:
    """Test contiguous grouping."""

    def test_twenty_three_into_five(self):
        groups = partition(candidates(23), 5)

        assert [len(group) for group in groups] == [5, 5, 5, 5, 3]
        assert [c for group in groups for c in group] == candidates(23)

    def test_fewer_candidates_than_groups(self):
        assert partition(candidates(3), 5) == [["c0"], ["c1"], ["c2"]]

    def test_uneven_split_uses_fewer_groups(self):
        assert [len(group) for group in partition(candidates(6), 5)] == [2, 2, 2]

    def test_empty(self):
        assert partition([], 5) == []


class TestBatchScoringEngine:
    """Test scoring semantics."""

    @pytest.mark.asyncio
    async def test_one_call_per_group(self, mock_logger):
        inference = StubInference(scores_by_candidate({}))
        engine = BatchScoringEngine(inference, mock_logger)

        results = await engine.score(candidates(23), "quiet place", max_results=50)

        assert len(inference.prompts) == 5
        assert len(results) == 23
        assert all('"quiet place"' in prompt for prompt in inference.prompts)

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self, mock_logger):
        inference = StubInference(scores_by_candidate({}))
        engine = BatchScoringEngine(inference, mock_logger)

        assert await engine.score([], "anything", max_results=5) == []
        assert inference.prompts == []

    @pytest.mark.asyncio
    async def test_threshold_and_upper_bound(self, mock_logger):
        table = {"c0": 59, "c1": 60, "c2": 100, "c3": 101, "c4": 75}
        engine = BatchScoringEngine(StubInference(scores_by_candidate(table)), mock_logger, group_count=1)

        results = await engine.score(candidates(5), "req", max_results=10)

        assert [r.candidate for r in results] == ["c2", "c4", "c1"]
        assert [r.match_score for r in results] == [100, 75, 60]

    @pytest.mark.asyncio
    async def test_out_of_range_indices_dropped(self, mock_logger):
        response = json.dumps([
            {"index": 0, "score": 90, "reason": "zero"},
            {"index": 2, "score": 90, "reason": "ok"},
            {"index": 3, "score": 90, "reason": "past the end"},
        ])
        engine = BatchScoringEngine(StubInference(lambda prompt: response), mock_logger, group_count=1)

        results = await engine.score(["a", "b"], "req", max_results=5)

        assert [r.candidate for r in results] == ["b"]

    @pytest.mark.asyncio
    async def test_malformed_entries_dropped_individually(self, mock_logger):
        response = json.dumps([
            {"index": 1, "score": 90, "reason": "great"},
            {"index": 2, "score": 75, "reason": None},
            {"index": 3, "score": "N/A", "reason": "unsure"},
            {"index": 1.5, "score": 95, "reason": "between"},
            "not an entry",
        ])
        engine = BatchScoringEngine(StubInference(lambda prompt: response), mock_logger, group_count=1)

        results = await engine.score(["a", "b", "c"], "req", max_results=5)

        assert [r.candidate for r in results] == ["a", "b"]
        assert results[0].rationale == "90% match: great"
        assert results[1].rationale == "75% match:"
        mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_group_contributes_nothing(self, mock_logger):
        def respond(prompt):
            if "c0" in prompt:
                return RuntimeError("throttled")
            return scores_by_candidate({})(prompt)

        engine = BatchScoringEngine(StubInference(respond), mock_logger)
        results = await engine.score(candidates(10), "req", max_results=20)

        assert len(results) == 8
        assert "c0" not in [r.candidate for r in results]
        assert "c1" not in [r.candidate for r in results]
        mock_logger.warning.assert_called()

    @pytest.mark.asyncio
    async def test_unparseable_group_contributes_nothing(self, mock_logger):
        def respond(prompt):
            if "c2" in prompt:
                return "Sorry, I can't rate these."
            return scores_by_candidate({})(prompt)

        engine = BatchScoringEngine(StubInference(respond), mock_logger, group_count=2)
        results = await engine.score(candidates(4), "req", max_results=10)

        assert [r.candidate for r in results] == ["c0", "c1"]

    @pytest.mark.asyncio
    async def test_stable_order_and_truncation(self, mock_logger):
        table = {"c0": 70, "c1": 90, "c2": 70, "c3": 90, "c4": 70}
        engine = BatchScoringEngine(StubInference(scores_by_candidate(table)), mock_logger, group_count=5)

        results = await engine.score(candidates(5), "req", max_results=3)

        assert [r.candidate for r in results] == ["c1", "c3", "c0"]

    @pytest.mark.asyncio
    async def test_rationale_format(self, mock_logger):
        engine = BatchScoringEngine(StubInference(scores_by_candidate({"c0": 85})), mock_logger)
        results = await engine.score(["c0"], "req", max_results=1)

        assert results[0].rationale == "85% match: fits c0"

    @pytest.mark.asyncio
    async def test_slow_group_times_out(self, mock_logger):
        class SlowInference:
            async def infer(self, prompt):
                if "c0" in prompt:
                    await asyncio.sleep(1)
                return scores_by_candidate({})(prompt)

        engine = BatchScoringEngine(SlowInference(), mock_logger, group_count=2, timeout=0.05)
        results = await engine.score(candidates(4), "req", max_results=10)

        assert [r.candidate for r in results] == ["c2", "c3"]

    @pytest.mark.asyncio
    async def test_observer_notified(self, mock_logger):
        observer = Mock()
        engine = BatchScoringEngine(StubInference(scores_by_candidate({})), mock_logger,
                                    group_count=2, observer=observer, agent_name="HousingAgent")

        await engine.score(candidates(4), "req", max_results=10)

        assert observer.on_inference.call_count == 2
        assert observer.on_inference.call_args.args[0] == "HousingAgent"
