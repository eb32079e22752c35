"""Tests for tapa ranking aggregation."""

from decimal import Decimal

import pytest

from tapas_route.aggregation.ranking import compute_ranking, round_one_decimal
from tapas_route.shared.models import Tapa, Venue, Vote

VENUES = [
    Venue(id="v1", event_id="e1", name="Bar Uno", lat=0, lng=0),
    Venue(id="v2", event_id="e1", name="Bar Dos", lat=0, lng=0),
    Venue(id="v3", event_id="e2", name="Bar Tres", lat=0, lng=0),
]

TAPAS = [
    Tapa(id="T1", venue_id="v1", name="Croqueta", price=Decimal("3")),
    Tapa(id="T2", venue_id="v2", name="Bravas", price=Decimal("4")),
    Tapa(id="T3", venue_id="v2", name="Gilda", price=Decimal("2")),
    Tapa(id="T4", venue_id="v3", name="Pulpo", price=Decimal("6")),
]


def votes_for(stars_by_tapa):
    votes = []
    for tapa_id, stars_list in stars_by_tapa.items():
        for i, stars in enumerate(stars_list):
            votes.append(Vote(id=f"{tapa_id}-{i}", user_id=f"u{i}", tapa_id=tapa_id, stars=stars))
    return votes


class TestRanking:
    """Tests for compute_ranking."""

    def test_orders_by_average_and_excludes_unvoted(self):
        votes = votes_for({"T1": [5, 4], "T2": [5, 5, 5], "T3": []})
        ranking = compute_ranking(votes, TAPAS, VENUES, event_id="e1")

        assert [r.tapa_id for r in ranking] == ["T2", "T1"]
        assert ranking[0].avg_stars == 5.0
        assert ranking[0].vote_count == 3
        assert ranking[1].avg_stars == 4.5
        assert ranking[1].vote_count == 2

    def test_ties_broken_by_vote_count(self):
        votes = votes_for({"T1": [4], "T2": [4, 4, 4], "T3": [4, 4]})
        ranking = compute_ranking(votes, TAPAS, VENUES, event_id="e1")
        assert [r.tapa_id for r in ranking] == ["T2", "T3", "T1"]

    def test_event_scope(self):
        votes = votes_for({"T1": [3], "T4": [5]})
        scoped = compute_ranking(votes, TAPAS, VENUES, event_id="e2")
        assert [r.tapa_id for r in scoped] == ["T4"]

    def test_global_ranking_spans_events(self):
        votes = votes_for({"T1": [3], "T4": [5]})
        ranking = compute_ranking(votes, TAPAS, VENUES)
        assert [r.tapa_id for r in ranking] == ["T4", "T1"]

    def test_limit(self):
        votes = votes_for({"T1": [1], "T2": [2], "T3": [3], "T4": [4]})
        assert len(compute_ranking(votes, TAPAS, VENUES)) == 4
        assert [r.tapa_id for r in compute_ranking(votes, TAPAS, VENUES, limit=2)] == ["T4", "T3"]
        assert compute_ranking(votes, TAPAS, VENUES, limit=0) == []

    def test_default_limit_is_five(self):
        tapas = [Tapa(id=f"X{i}", venue_id="v1", name=f"X{i}") for i in range(8)]
        votes = [Vote(id=f"x{i}", user_id="u", tapa_id=f"X{i}", stars=3) for i in range(8)]
        assert len(compute_ranking(votes, tapas, VENUES)) == 5

    def test_unknown_event_is_empty(self):
        votes = votes_for({"T1": [5]})
        assert compute_ranking(votes, TAPAS, VENUES, event_id="missing") == []

    def test_no_votes_is_empty(self):
        assert compute_ranking([], TAPAS, VENUES, event_id="e1") == []

    def test_rows_carry_venue_name(self):
        ranking = compute_ranking(votes_for({"T2": [4]}), TAPAS, VENUES)
        assert ranking[0].name == "Bravas"
        assert ranking[0].venue_name == "Bar Dos"

    def test_recompute_is_stable(self):
        votes = votes_for({"T1": [5, 4], "T2": [5, 5, 5]})
        assert compute_ranking(votes, TAPAS, VENUES) == compute_ranking(votes, TAPAS, VENUES)

    def test_average_rounded_to_one_decimal(self):
        votes = votes_for({"T1": [5, 4, 4]})
        assert compute_ranking(votes, TAPAS, VENUES)[0].avg_stars == 4.3


class TestRoundOneDecimal:
    @pytest.mark.parametrize("value,expected", [
        (4.333, 4.3),
        (4.25, 4.3),
        (4.75, 4.8),
        (4.0, 4.0),
    ])
    def test_half_up(self, value, expected):
        assert round_one_decimal(value) == pytest.approx(expected)
