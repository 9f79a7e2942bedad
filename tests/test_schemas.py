"""
Tests for schemas.py

Run with: pytest tests/test_schemas.py -v
"""

from datetime import datetime

import pytest
from pydantic import ValidationError

from football_edge.schemas import (
    CalibrationRecordPayload,
    FixtureInput,
    HeadToHead,
    MarketOdds,
    OddsSnapshotPayload,
    TeamSeasonStats,
)


def _fixture_payload(**overrides):
    payload = {
        "fixture_id": 1,
        "home_team": {"id": 42, "name": "Arsenal"},
        "away_team": {"id": 49, "name": "Chelsea"},
        "league": {"id": 39, "name": "Premier League"},
        "kickoff": "2026-10-24T15:00:00Z",
    }
    payload.update(overrides)
    return payload


class TestMarketOdds:

    def test_prices_skips_missing(self):
        odds = MarketOdds(home=1.85, draw=3.6, over25=1.9)
        assert odds.prices() == {"home": 1.85, "draw": 3.6, "over25": 1.9}

    def test_rejects_sub_one_price(self):
        with pytest.raises(ValidationError):
            MarketOdds(home=0.9)

    def test_has_1x2(self):
        assert MarketOdds(home=1.85, draw=3.6, away=4.3).has_1x2()
        assert not MarketOdds(home=1.85, draw=3.6).has_1x2()
        assert not MarketOdds(home=1.0, draw=3.6, away=4.3).has_1x2()


class TestFixtureInput:

    def test_minimal_payload(self):
        fixture = FixtureInput.model_validate(_fixture_payload())
        assert fixture.home_team.name == "Arsenal"
        assert not fixture.has_stats

    def test_stats_present(self):
        stats = {"goals_scored": 30, "goals_conceded": 20, "matches_played": 19}
        fixture = FixtureInput.model_validate(
            _fixture_payload(home_stats=stats, away_stats=stats)
        )
        assert fixture.has_stats

    def test_missing_team_rejected(self):
        payload = _fixture_payload()
        del payload["home_team"]
        with pytest.raises(ValidationError):
            FixtureInput.model_validate(payload)

    def test_negative_recent_goals_rejected(self):
        with pytest.raises(ValidationError):
            TeamSeasonStats(goals_scored=10, goals_conceded=5, matches_played=5,
                            recent_goals=[1, -1, 2])


def test_head_to_head_total_checked():
    with pytest.raises(ValidationError):
        HeadToHead(home_wins=3, draws=2, away_wins=1, total_matches=5)
    assert HeadToHead(home_wins=3, draws=1, away_wins=1, total_matches=5).total_matches == 5


def test_snapshot_payload_round_trip():
    payload = OddsSnapshotPayload(
        fixture_id=7, market="home", price=1.9, observed_at=datetime(2026, 10, 19, 12, 0)
    )
    snapshot = payload.to_snapshot()
    assert snapshot.fixture_id == 7
    assert snapshot.price == 1.9


def test_calibration_payload_rejects_unknown_market():
    with pytest.raises(ValidationError):
        CalibrationRecordPayload(
            fixture_id=1, market="corners", predicted_probability=0.5, realized_outcome=1
        )
