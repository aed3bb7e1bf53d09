"""
Ranking of scored suggestions into top picks and day groups.

Ordering rule (used everywhere): efficiency score descending, then
travel time ascending with unknown travel last, then earliest start,
then technician id. The first ``top_n`` become top picks regardless of
day or technician; the rest are grouped by calendar day, and groups are
ordered by their best score (earliest day first on ties).
"""

import logging
import math
from collections import defaultdict
from datetime import date
from typing import Iterable

from src.schemas.suggestion_schema import DayGroup, RankedSuggestions, SingleSuggestion

logger = logging.getLogger(__name__)

DEFAULT_TOP_PICKS = 3


def suggestion_sort_key(suggestion: SingleSuggestion) -> tuple:
    travel = (
        suggestion.travel_time_minutes
        if suggestion.travel_time_minutes is not None
        else math.inf
    )
    return (
        -suggestion.efficiency_score,
        travel,
        suggestion.start_time,
        suggestion.technician_id,
    )


def rank(
    suggestions: Iterable[SingleSuggestion], top_n: int = DEFAULT_TOP_PICKS
) -> RankedSuggestions:
    ordered = sorted(suggestions, key=suggestion_sort_key)
    top_picks = ordered[:top_n]

    groups: dict[date, list[SingleSuggestion]] = defaultdict(list)
    for suggestion in ordered[top_n:]:
        groups[suggestion.day].append(suggestion)

    by_day = [
        DayGroup(
            date=day,
            best_score=max(s.efficiency_score for s in members),
            suggestions=members,
        )
        for day, members in groups.items()
    ]
    by_day.sort(key=lambda group: (-group.best_score, group.date))

    logger.debug(
        "Ranked %d suggestion(s): %d top pick(s), %d day group(s)",
        len(ordered), len(top_picks), len(by_day),
    )
    return RankedSuggestions(
        top_picks=top_picks,
        by_day=by_day,
        total_candidates=len(ordered),
    )
