"""Tests for ranking suggestions into top picks and day groups."""

from datetime import date, timedelta
from typing import Optional

from src.engine.ranking import rank
from src.engine.scoring import efficiency_label
from src.schemas.suggestion_schema import OriginDescriptor, OriginSource, SingleSuggestion
from tests.conftest import MONDAY, at


def make_suggestion(
    tech_id: str = "tech-1",
    day: date = MONDAY,
    hour: int = 8,
    score: int = 80,
    travel: Optional[int] = 10,
) -> SingleSuggestion:
    start = at(day, hour)
    return SingleSuggestion(
        technician_id=tech_id,
        technician_name=tech_id,
        start_time=start,
        end_time=start + timedelta(hours=1),
        travel_time_minutes=travel,
        estimate_available=travel is not None,
        origin=OriginDescriptor(source=OriginSource.HOME),
        efficiency_score=score,
        efficiency_label=efficiency_label(score),
    )


TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)


class TestTopPicks:
    def test_highest_scores_become_top_picks(self):
        suggestions = [make_suggestion(hour=h, score=s) for h, s in [(8, 60), (9, 95), (10, 75), (11, 85)]]
        result = rank(suggestions)
        assert [s.efficiency_score for s in result.top_picks] == [95, 85, 75]

    def test_at_most_three_top_picks(self):
        result = rank([make_suggestion(hour=h) for h in range(8, 16)])
        assert len(result.top_picks) == 3
        assert result.total_candidates == 8

    def test_fewer_candidates_than_top_n(self):
        result = rank([make_suggestion()])
        assert len(result.top_picks) == 1
        assert result.by_day == []

    def test_top_picks_are_not_repeated_in_day_groups(self):
        suggestions = [make_suggestion(day=d, hour=h, score=50 + h) for d in (MONDAY, TUESDAY) for h in range(8, 12)]
        result = rank(suggestions)
        grouped = [s for g in result.by_day for s in g.suggestions]
        keys = {(s.technician_id, s.start_time) for s in result.top_picks}
        assert not keys & {(s.technician_id, s.start_time) for s in grouped}
        assert len(result.top_picks) + len(grouped) == len(suggestions)

    def test_score_tie_broken_by_travel_then_start_then_technician(self):
        suggestions = [
            make_suggestion("tech-b", hour=9, score=80, travel=10),
            make_suggestion("tech-a", hour=9, score=80, travel=10),
            make_suggestion("tech-c", hour=8, score=80, travel=10),
            make_suggestion("tech-d", hour=8, score=80, travel=5),
        ]
        result = rank(suggestions, top_n=4)
        assert [s.technician_id for s in result.top_picks] == ["tech-d", "tech-c", "tech-a", "tech-b"]

    def test_unknown_travel_sorts_after_known(self):
        suggestions = [
            make_suggestion("tech-a", score=0, travel=None),
            make_suggestion("tech-b", score=0, travel=60, hour=9),
        ]
        assert rank(suggestions).top_picks[0].technician_id == "tech-b"


class TestDayGroups:
    def test_groups_ordered_by_best_score(self):
        suggestions = [
            make_suggestion(day=MONDAY, hour=8, score=99),
            make_suggestion(day=MONDAY, hour=9, score=98),
            make_suggestion(day=MONDAY, hour=10, score=97),
            make_suggestion(day=MONDAY, hour=11, score=40),
            make_suggestion(day=TUESDAY, hour=8, score=60),
            make_suggestion(day=WEDNESDAY, hour=8, score=75),
        ]
        result = rank(suggestions)
        assert [g.date for g in result.by_day] == [WEDNESDAY, TUESDAY, MONDAY]
        assert [g.best_score for g in result.by_day] == [75, 60, 40]

    def test_groups_with_equal_best_score_ordered_by_date(self):
        suggestions = [make_suggestion(day=d, score=0, travel=None) for d in (WEDNESDAY, MONDAY, TUESDAY)]
        result = rank(suggestions, top_n=0)
        assert [g.date for g in result.by_day] == [MONDAY, TUESDAY, WEDNESDAY]

    def test_members_sorted_within_group(self):
        suggestions = [make_suggestion(hour=h, score=s) for h, s in [(8, 50), (9, 70), (10, 60)]]
        result = rank(suggestions, top_n=0)
        assert [s.efficiency_score for s in result.by_day[0].suggestions] == [70, 60, 50]

    def test_empty_input(self):
        result = rank([])
        assert result.top_picks == []
        assert result.by_day == []
        assert result.total_candidates == 0


class TestDeterminism:
    def test_input_order_does_not_change_output(self):
        suggestions = [
            make_suggestion(f"tech-{i % 3}", day=MONDAY + timedelta(days=i % 2), hour=8 + i, score=70 + (i % 4))
            for i in range(8)
        ]
        forward = rank(suggestions).model_dump_json()
        backward = rank(list(reversed(suggestions))).model_dump_json()
        assert forward == backward
