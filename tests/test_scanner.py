"""
Tests for services/scanner.py

Run with: pytest tests/test_scanner.py -v
"""

import threading
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from football_edge.config import EngineConfig
from football_edge.schemas import FixtureInput
from football_edge.services.calibration import CalibrationStore
from football_edge.services.categorize import MatchCategory
from football_edge.services.coupon_builder import CouponConstraintSet
from football_edge.services.scanner import (
    ScanCache,
    ScanResult,
    Scanner,
    analyze_fixture,
    scan_and_build_coupon,
    sort_analyses,
)

CFG = EngineConfig(mc_trials=2000, scan_workers=2)


def _payload(fixture_id=1, with_stats=True, odds=None, league_id=39):
    payload = {
        "fixture_id": fixture_id,
        "home_team": {"id": 100 + fixture_id, "name": f"Home {fixture_id}"},
        "away_team": {"id": 200 + fixture_id, "name": f"Away {fixture_id}"},
        "league": {"id": league_id, "name": "Premier League"},
        "kickoff": f"2026-10-24T{12 + fixture_id % 8:02d}:00:00Z",
    }
    if with_stats:
        payload["home_stats"] = {
            "goals_scored": 38, "goals_conceded": 14, "matches_played": 19,
            "possession": 58, "shots_per_match": 15,
        }
        payload["away_stats"] = {
            "goals_scored": 22, "goals_conceded": 28, "matches_played": 19,
            "possession": 44, "shots_per_match": 10,
        }
    if odds is not None:
        payload["odds"] = odds
    return payload


def _fixture(**kwargs):
    return FixtureInput.model_validate(_payload(**kwargs))


class TestAnalyzeFixture:

    def test_full_pipeline(self):
        analysis = analyze_fixture(
            _fixture(odds={"home": 1.85, "draw": 3.6, "away": 4.3, "over25": 1.9}),
            config=CFG, seed=7,
        )
        probs = analysis.probabilities
        assert probs["home"] + probs["draw"] + probs["away"] == pytest.approx(1.0, abs=1e-6)
        assert probs["home"] > probs["away"]
        assert analysis.distribution is not None
        assert analysis.simulation is not None
        assert analysis.matchup is not None
        assert analysis.home_profile.team_name == "Home 1"
        assert len(analysis.value_bets) == 4
        assert 0.0 <= analysis.confidence_score <= 100.0
        assert "Most likely score" in analysis.rationale
        assert analysis.contrarian is None or analysis.contrarian.fixture_id == 1

    def test_seeded_runs_are_reproducible(self):
        a = analyze_fixture(_fixture(), config=CFG, seed=11)
        b = analyze_fixture(_fixture(), config=CFG, seed=11)
        assert a.probabilities == b.probabilities

    def test_no_stats_uses_league_baseline(self):
        analysis = analyze_fixture(_fixture(with_stats=False), config=CFG)
        assert analysis.probabilities["home"] == pytest.approx(0.44)
        assert analysis.probabilities["draw"] == pytest.approx(0.25)
        assert analysis.distribution is None
        assert analysis.simulation is None
        assert analysis.chaos_level == 0.5
        assert any("league baseline" in w for w in analysis.warnings)
        # base 50 + known league 5
        assert analysis.confidence_score == pytest.approx(55.0)
        assert analysis.category == MatchCategory.VALUE
        assert "No value at current prices" in analysis.rationale

    def test_calibration_multipliers_applied(self):
        analysis = analyze_fixture(
            _fixture(with_stats=False), config=CFG, calibration={"over25": 1.2}
        )
        assert analysis.probabilities["over25"] == pytest.approx(0.56 * 1.2)

    def test_best_bet_is_highest_rated_value_bet(self):
        analysis = analyze_fixture(
            _fixture(with_stats=False, odds={"home": 2.6, "draw": 3.0, "away": 2.2}),
            config=CFG,
        )
        assert analysis.best_bet is not None
        assert analysis.best_bet.market == "home"
        legs = analysis.coupon_legs()
        assert legs and all(leg.confidence == analysis.confidence_score for leg in legs)
        assert legs[0].model_probability == pytest.approx(0.44)

    def test_to_dict(self):
        d = analyze_fixture(_fixture(), config=CFG, seed=3).to_dict()
        assert d["fixture_id"] == 1
        assert d["category"] in ("safe", "value", "surprise")
        assert d["distribution"] is not None


class TestScanner:

    def test_scan_keeps_input_order(self):
        scanner = Scanner(config=CFG)
        result = scanner.scan([_payload(3), _payload(1), _payload(2)], seed=1)
        assert [a.fixture_id for a in result.analyses] == [3, 1, 2]
        assert not result.errors
        assert not result.timed_out

    def test_invalid_payload_reported(self):
        bad = _payload(9)
        del bad["home_team"]
        result = Scanner(config=CFG).scan([_payload(1), bad])
        assert [a.fixture_id for a in result.analyses] == [1]
        assert 9 in result.errors
        assert result.errors[9].startswith("Invalid payload")

    def test_failure_is_isolated(self, monkeypatch):
        scanner = Scanner(config=CFG)
        original = scanner._analyze

        def flaky(fixture, multipliers, seed):
            if fixture.fixture_id == 2:
                raise RuntimeError("stats provider returned garbage")
            return original(fixture, multipliers, seed)

        monkeypatch.setattr(scanner, "_analyze", flaky)
        result = scanner.scan([_payload(1), _payload(2), _payload(3)])
        assert [a.fixture_id for a in result.analyses] == [1, 3]
        assert "garbage" in result.errors[2]

    def test_timeout_returns_finished_analyses(self, monkeypatch):
        cache = ScanCache()
        scanner = Scanner(config=CFG, scan_cache=cache)
        original = scanner._analyze
        release = threading.Event()

        def slow(fixture, multipliers, seed):
            if fixture.fixture_id == 2:
                release.wait(5)
            return original(fixture, multipliers, seed)

        monkeypatch.setattr(scanner, "_analyze", slow)
        fixtures = [_payload(i, with_stats=False) for i in (1, 2, 3)]
        try:
            result = scanner.scan(fixtures, timeout=1.0, cache_key="slate")
        finally:
            release.set()
        assert result.timed_out
        assert result.pending == [2]
        assert [a.fixture_id for a in result.analyses] == [1, 3]
        assert len(cache) == 0

    def test_scan_cache_reused(self):
        cache = ScanCache()
        scanner = Scanner(config=CFG, scan_cache=cache)
        first = scanner.scan([_payload(1, with_stats=False)], cache_key="slate")
        second = scanner.scan([_payload(5, with_stats=False)], cache_key="slate")
        assert second is first

    def test_calibration_store_feeds_multipliers(self):
        store = CalibrationStore()
        for i in range(10):
            store.settle(i, "over25", 0.5, 1 if i < 6 else 0)
        scanner = Scanner(config=CFG, calibration_store=store)
        assert scanner.calibration_multipliers()["over25"] == pytest.approx(1.2)
        result = scanner.scan([_payload(1, with_stats=False)])
        assert result.analyses[0].probabilities["over25"] == pytest.approx(0.672)

    def test_thin_calibration_store_is_ignored(self):
        store = CalibrationStore()
        store.settle(1, "home", 0.6, 1)
        assert Scanner(config=CFG, calibration_store=store).calibration_multipliers() == {}

    def test_result_buckets(self):
        result = Scanner(config=CFG).scan([_payload(i) for i in (1, 2)], seed=5)
        d = result.to_dict()
        assert d["total"] == 2
        total = len(result.safe) + len(result.value) + len(result.surprise)
        assert total == 2


class TestScanCache:

    def test_scanned_at_is_utc_aware(self):
        assert ScanResult().scanned_at.tzinfo is timezone.utc

    def test_get_set(self):
        cache = ScanCache()
        result = ScanResult()
        cache.set("k", result)
        assert cache.get("k") is result
        assert cache.get("other") is None

    def test_expiry(self):
        cache = ScanCache(ttl_seconds=-1)
        cache.set("k", ScanResult())
        assert cache.get("k") is None

    def test_new_day_drops_entries(self):
        cache = ScanCache()
        today = datetime(2026, 10, 19, 23, 0)
        tomorrow = today + timedelta(days=1)
        cache.set("k", ScanResult(), now=today)
        assert cache.get("k", now=tomorrow) is None
        cache.set("j", ScanResult(), now=tomorrow)
        assert len(cache) == 1


class TestSortAnalyses:

    def _items(self):
        return [
            SimpleNamespace(name="a", value_score=2.0, confidence_score=70.0,
                            goal_probability=0.4, btts_probability=0.6,
                            kickoff=datetime(2026, 10, 24, 18)),
            SimpleNamespace(name="b", value_score=8.0, confidence_score=60.0,
                            goal_probability=0.7, btts_probability=0.3,
                            kickoff=datetime(2026, 10, 24, 12)),
        ]

    def test_sort_keys(self):
        items = self._items()
        assert [a.name for a in sort_analyses(items, "value")] == ["b", "a"]
        assert [a.name for a in sort_analyses(items, "confidence")] == ["a", "b"]
        assert [a.name for a in sort_analyses(items, "goals")] == ["b", "a"]
        assert [a.name for a in sort_analyses(items, "btts")] == ["a", "b"]
        assert [a.name for a in sort_analyses(items, "kickoff")] == ["b", "a"]

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            sort_analyses(self._items(), "corners")


def test_scan_and_build_coupon():
    fixtures = [
        _payload(i, odds={"home": 2.4, "draw": 3.4, "away": 3.1, "over25": 2.1})
        for i in (1, 2, 3)
    ]
    constraints = CouponConstraintSet(target_odds=4.0, min_confidence=0.0)
    result, coupon = scan_and_build_coupon(
        fixtures, constraints, scanner=Scanner(config=CFG), seed=1,
    )
    assert len(result.analyses) == 3
    assert coupon.status in ("ok", "cannot_meet_constraints")
    if coupon.is_ok:
        assert len({leg.fixture_id for leg in coupon.legs}) == len(coupon.legs)
        assert coupon.combined_odds == pytest.approx(4.0, rel=0.15)
