"""
Parallel batch scoring of candidates against a free-text requirement.

The candidate list is split into a fixed number of contiguous groups, each
group is scored by one inference call, and the surviving scores are merged
into a single descending ranking.
"""

import asyncio
import logging
import math
from typing import Any, Callable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .inference import InferenceService
from .observers import AgentObserver, NoOpObserver
from .parsing import parse_structured


class GroupScore(BaseModel):
    """One entry of a group's scoring response. ``index`` is 1-based within the group."""
    index: int
    score: float
    reason: Optional[str] = None


class MatchResult(BaseModel):
    """A candidate paired with its match score and the reason for it."""
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    candidate: Any
    match_score: float = Field(alias="matchScore")
    rationale: str = ""


def partition(candidates: Sequence[Any], group_count: int) -> List[List[Any]]:
    """Split into at most ``group_count`` contiguous groups of ``ceil(n / group_count)``."""
    if not candidates:
        return []
    size = math.ceil(len(candidates) / group_count)
    return [list(candidates[i:i + size]) for i in range(0, len(candidates), size)]


def default_formatter(candidate: Any) -> str:
    return str(candidate)


SCORING_PROMPT = """
You are analyzing candidates for this requirement: "{requirement}"

Rate each candidate 0-100 based on how well it matches the requirement. Focus on
the specific preferences stated, compatibility of the situation described, and
anything the requirement explicitly asks for.

Candidates to analyze:
{candidates}

Respond with ONLY a JSON array of objects (no other text):
[
  {{
    "index": 1,
    "score": 85,
    "reason": "Why this score was given, citing specific details of the candidate"
  }}
]

Only include candidates with scores >= {min_score}.
"""


class BatchScoringEngine:
    """Scores candidates in concurrent groups and merges the results."""

    def __init__(self, inference: InferenceService, logger: logging.Logger,
                 group_count: int = 5, min_score: float = 60,
                 formatter: Callable[[Any], str] = default_formatter,
                 timeout: Optional[float] = None,
                 observer: Optional[AgentObserver] = None,
                 agent_name: str = "BatchScoringEngine"):
        """Initialize the engine."""
        self.inference = inference
        self.logger = logger
        self.group_count = group_count
        self.min_score = min_score
        self.formatter = formatter
        self.timeout = timeout
        self.observer = observer or NoOpObserver()
        self.agent_name = agent_name

    def build_prompt(self, group: List[Any], requirement: str) -> str:
        lines = [f"{idx}. {self.formatter(candidate)}" for idx, candidate in enumerate(group, 1)]
        return SCORING_PROMPT.format(requirement=requirement, candidates="\n".join(lines), min_score=int(self.min_score))

    async def score(self, candidates: Sequence[Any], requirement: str, max_results: int) -> List[MatchResult]:
        """Rank ``candidates`` against ``requirement`` and keep the best ``max_results``."""
        groups = partition(candidates, self.group_count)
        if not groups:
            return []

        self.logger.info(f"Scoring {len(candidates)} candidates in {len(groups)} groups "
                         f"({', '.join(str(len(g)) for g in groups)})")

        group_results = await asyncio.gather(
            *(self._score_group(group, group_index, requirement) for group_index, group in enumerate(groups))
        )

        merged = [result for results in group_results for result in results]
        # sorted() is stable, so ties keep group order
        merged = sorted(merged, key=lambda result: result.match_score, reverse=True)
        return merged[:max_results]

    async def _score_group(self, group: List[Any], group_index: int, requirement: str) -> List[MatchResult]:
        prompt = self.build_prompt(group, requirement)
        try:
            call = self.inference.infer(prompt)
            response = await (asyncio.wait_for(call, timeout=self.timeout) if self.timeout else call)
        except Exception as e:
            self.logger.warning(f"Group {group_index + 1}: inference failed: {str(e) or e.__class__.__name__}")
            return []

        self.observer.on_inference(self.agent_name, prompt, response)

        parsed = parse_structured(response, List[Any])
        if not parsed.ok:
            self.logger.warning(f"Group {group_index + 1}: no usable scores ({parsed.error})")
            return []

        results = []
        skipped = 0
        for raw_entry in parsed.value:
            # A malformed entry only costs itself
            try:
                entry = GroupScore.model_validate(raw_entry)
            except ValidationError:
                skipped += 1
                continue
            if not 1 <= entry.index <= len(group):
                continue
            if entry.score < self.min_score or entry.score > 100:
                continue
            results.append(MatchResult(
                candidate=group[entry.index - 1],
                match_score=entry.score,
                rationale=f"{entry.score:g}% match: {entry.reason or ''}".rstrip(),
            ))

        if skipped:
            self.logger.warning(f"Group {group_index + 1}: skipped {skipped} malformed score entries")
        self.logger.info(f"Group {group_index + 1}: {len(results)} matches")
        return results
