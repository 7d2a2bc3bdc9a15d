"""
Cross-agent score combination.

Every contributing agent reports on a 0-100 scale. The combiner blends the
scores actually present for a candidate with fixed per-source weights,
renormalized over those sources.
"""

import math
from typing import Dict, Mapping, Optional

from .config import ScoringConfig


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves up."""
    return math.floor(value + 0.5)


def commute_score(rating: float) -> float:
    """Commute rating (1-10) on the common 0-100 scale."""
    return float(rating) * 10


def location_score(walk_score: float, bike_score: float, transit_score: float) -> float:
    """Mean of walk, bike and transit scores."""
    return round_half_up((walk_score + bike_score + transit_score) / 3)


class ScoreCombiner:
    """Weighted linear blend of per-source scores."""

    def __init__(self, weights: Mapping[str, float], primary: str = "housing"):
        if primary not in weights:
            raise ValueError(f"Primary source '{primary}' has no weight")
        if any(weight < 0 for weight in weights.values()):
            raise ValueError("Score weights must be non-negative")
        self.weights = dict(weights)
        self.primary = primary

    @classmethod
    def pairwise(cls, config: ScoringConfig) -> "ScoreCombiner":
        return cls({"housing": config.housing_weight, "commute": config.commute_weight})

    @classmethod
    def three_way(cls, config: ScoringConfig) -> "ScoreCombiner":
        return cls(config.three_way_weights)

    def effective_weights(self, scores: Mapping[str, Optional[float]]) -> Dict[str, float]:
        """Weights renormalized over the sources with a score for this candidate."""
        present = {source: self.weights[source] for source, score in scores.items()
                   if score is not None and source in self.weights}
        total = sum(present.values())
        if total <= 0:
            return {}
        return {source: weight / total for source, weight in present.items()}

    def combine(self, scores: Mapping[str, Optional[float]]) -> float:
        """Blend ``scores`` into one ranking key; missing sources are dropped, not zeroed."""
        weights = self.effective_weights(scores)
        if not weights:
            primary = scores.get(self.primary)
            return float(primary) if primary is not None else 0.0
        return float(round_half_up(sum(scores[source] * weight for source, weight in weights.items())))
