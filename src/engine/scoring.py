"""
Efficiency scoring for candidate slots.

Travel time dominates: the travel score falls along a piecewise-linear
curve through the UI's travel bands (20 min -> 90, 35 -> 70, 50 -> 50,
90+ -> 0), so a slot in the "long" band can never reach "Optimal". Idle
time before the technician's next commitment costs a few points on top.
A slot without a travel estimate is pinned to the floor score.

Tiers (fixed UI contract):
    >= 90 Optimal, >= 70 Bra, >= 50 OK, otherwise Låg
"""

import logging
from typing import Optional

from src.config import ScoringConfig
from src.schemas.suggestion_schema import EfficiencyLabel, TravelBand

logger = logging.getLogger(__name__)

UNAVAILABLE_SCORE = 0
OPTIMAL_THRESHOLD = 90
GOOD_THRESHOLD = 70
OK_THRESHOLD = 50

# (travel minutes, score) knots, interpolated linearly between them.
TRAVEL_SCORE_CURVE: list[tuple[float, float]] = [
    (0, 100),
    (20, 90),
    (35, 70),
    (50, 50),
    (90, 0),
]

SHORT_TRAVEL_MAX = 20
MEDIUM_TRAVEL_MAX = 35
LONGER_TRAVEL_MAX = 50


def travel_score(minutes: float) -> float:
    """Non-increasing score for a drive time in minutes."""
    if minutes <= TRAVEL_SCORE_CURVE[0][0]:
        return TRAVEL_SCORE_CURVE[0][1]
    for (x0, y0), (x1, y1) in zip(TRAVEL_SCORE_CURVE, TRAVEL_SCORE_CURVE[1:]):
        if minutes <= x1:
            return y0 + (y1 - y0) * (minutes - x0) / (x1 - x0)
    return TRAVEL_SCORE_CURVE[-1][1]


def travel_band(minutes: Optional[int]) -> Optional[TravelBand]:
    if minutes is None:
        return None
    if minutes <= SHORT_TRAVEL_MAX:
        return TravelBand.SHORT
    if minutes <= MEDIUM_TRAVEL_MAX:
        return TravelBand.MEDIUM
    if minutes <= LONGER_TRAVEL_MAX:
        return TravelBand.LONGER
    return TravelBand.LONG


def efficiency_label(score: int) -> EfficiencyLabel:
    if score >= OPTIMAL_THRESHOLD:
        return EfficiencyLabel.OPTIMAL
    if score >= GOOD_THRESHOLD:
        return EfficiencyLabel.GOOD
    if score >= OK_THRESHOLD:
        return EfficiencyLabel.OK
    return EfficiencyLabel.LOW


class EfficiencyScorer:
    """Turns travel time and schedule fit into a 0-100 score."""

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self.config = config or ScoringConfig()

    def idle_penalty(self, slack_minutes: int, is_first_job: bool) -> float:
        excess = max(0, slack_minutes - self.config.idle_gap_grace_minutes)
        penalty = min(
            float(self.config.max_idle_penalty),
            excess / self.config.idle_gap_step_minutes,
        )
        return penalty / 2 if is_first_job else penalty

    def score(
        self,
        travel_minutes: Optional[int],
        is_first_job: bool,
        slack_minutes: int,
        degraded: bool = False,
    ) -> int:
        if travel_minutes is None:
            return UNAVAILABLE_SCORE

        value = travel_score(travel_minutes) - self.idle_penalty(slack_minutes, is_first_job)
        if degraded:
            value = min(value - self.config.degraded_origin_penalty, OPTIMAL_THRESHOLD - 1)
        return max(0, min(100, round(value)))
