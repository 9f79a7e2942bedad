"""
Tests for services/contrarian.py

Run with: pytest tests/test_contrarian.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from football_edge.config import EngineConfig
from football_edge.services.contrarian import (
    detect_contrarian,
    detect_odds_anomalies,
    model_consensus,
    public_consensus,
    scan_contrarian,
)
from football_edge.services.odds_history import OddsHistoryBuffer, OddsSnapshot

CFG = EngineConfig()
PRICES = {"home": 2.0, "draw": 3.4, "away": 3.8}


def _buffer_with_opening(fixture_id, market, price):
    buffer = OddsHistoryBuffer()
    buffer.record(OddsSnapshot(
        fixture_id=fixture_id,
        market=market,
        price=price,
        observed_at=datetime.now(timezone.utc) - timedelta(hours=3),
    ))
    return buffer


class TestPublicConsensus:

    def test_from_prices(self):
        assert public_consensus(PRICES) == ("home", 47)

    def test_blended_with_external(self):
        side, conf = public_consensus(PRICES, external={"home": 20, "draw": 30, "away": 50})
        assert side == "home"
        assert conf == 36

    def test_external_only(self):
        assert public_consensus({}, external={"home": 20, "draw": 30, "away": 50}) == ("away", 50)

    def test_no_information(self):
        assert public_consensus({}) == ("home", 33)

    def test_head_to_head_and_form_cues(self):
        _, base = public_consensus(PRICES)
        _, with_h2h = public_consensus(PRICES, h2h_home_advantage=80)
        assert with_h2h > base
        side, _ = public_consensus(
            {"home": 2.6, "draw": 3.2, "away": 2.6}, form_difference=-30,
        )
        assert side == "away"


class TestModelConsensus:

    def test_tie_breaks_home_then_away(self):
        assert model_consensus(40, 20, 40) == ("home", 40)
        assert model_consensus(20, 40, 40) == ("away", 40)

    def test_draw_when_clear(self):
        assert model_consensus(30, 40, 30) == ("draw", 40)


class TestDetectContrarian:

    def test_same_side_small_gap_is_none(self):
        model = {"home": 0.52, "draw": 0.26, "away": 0.22}
        assert detect_contrarian(1, model, PRICES, config=CFG) is None

    def test_same_side_large_gap(self):
        model = {"home": 0.70, "draw": 0.18, "away": 0.12}
        signal = detect_contrarian(1, model, PRICES, config=CFG)
        assert signal is not None
        assert signal.is_contrarian is False
        assert signal.contrary_edge == 23

    def test_opposite_side(self):
        model = {"home": 0.20, "draw": 0.20, "away": 0.60}
        signal = detect_contrarian(7, model, PRICES, home_team="Lyon", away_team="Nice", config=CFG)
        assert signal.is_contrarian is True
        assert signal.public_side == "home"
        assert signal.model_side == "away"
        # 60 - (100 - 47)
        assert signal.contrary_edge == 7
        assert "Nice" in signal.reason

    def test_scan_sorted_by_edge(self):
        signals = scan_contrarian([
            {"fixture_id": 1, "model_probs": {"home": 0.20, "draw": 0.20, "away": 0.60},
             "prices": PRICES},
            {"fixture_id": 2, "model_probs": {"home": 0.75, "draw": 0.15, "away": 0.10},
             "prices": PRICES},
            {"fixture_id": 3, "model_probs": {"home": 0.50, "draw": 0.27, "away": 0.23},
             "prices": PRICES},
        ], config=CFG)
        assert [s.fixture_id for s in signals] == [2, 1]


class TestOddsMovement:

    def test_favourite_drift_is_suspicious(self):
        buffer = _buffer_with_opening(10, "home", 1.80)
        (a,) = detect_odds_anomalies(10, {"home": 2.00}, buffer, config=CFG)
        assert a.direction == "up"
        assert a.change_percent == pytest.approx(11.11, abs=0.01)
        assert a.is_anomaly is True
        assert a.is_suspicious is True
        assert a.implied_prob_shift == pytest.approx(5.56, abs=0.01)
        assert a.source == "movement"

    def test_drift_below_anomaly_threshold_still_suspicious(self):
        buffer = _buffer_with_opening(10, "home", 1.90)
        (a,) = detect_odds_anomalies(10, {"home": 2.06}, buffer, config=CFG)
        assert a.is_anomaly is False
        assert a.is_suspicious is True

    def test_shortening_price_is_anomaly(self):
        buffer = _buffer_with_opening(11, "away", 3.0)
        (a,) = detect_odds_anomalies(11, {"away": 2.5}, buffer, config=CFG)
        assert a.direction == "down"
        assert a.is_anomaly is True
        assert a.is_suspicious is False

    def test_small_move_ignored(self):
        buffer = _buffer_with_opening(12, "home", 2.0)
        assert detect_odds_anomalies(12, {"home": 2.05}, buffer, config=CFG) == []

    def test_invalid_prices_skipped(self):
        buffer = _buffer_with_opening(13, "home", 1.5)
        assert detect_odds_anomalies(13, {"home": 1.0}, buffer, config=CFG) == []


class TestModelGapFallback:

    def test_large_gap_without_opening(self):
        (a,) = detect_odds_anomalies(20, {"home": 2.0}, None, {"home": 0.75}, config=CFG)
        assert a.source == "model_gap"
        assert a.opening_price is None
        assert a.implied_prob_shift == pytest.approx(25.0)
        assert a.is_anomaly is True
        assert a.is_suspicious is True

    def test_market_against_model(self):
        (a,) = detect_odds_anomalies(20, {"home": 2.0}, None, {"home": 0.25}, config=CFG)
        assert a.is_anomaly is True
        assert a.is_suspicious is False

    def test_small_gap_ignored(self):
        assert detect_odds_anomalies(20, {"home": 2.0}, None, {"home": 0.60}, config=CFG) == []

    def test_buffer_without_this_market_falls_back(self):
        buffer = _buffer_with_opening(21, "away", 3.0)
        anomalies = detect_odds_anomalies(
            21, {"home": 2.0, "away": 3.05}, buffer, {"home": 0.75, "away": 0.30}, config=CFG,
        )
        assert [(a.market, a.source) for a in anomalies] == [("home", "model_gap")]

    def test_one_signal_per_market(self):
        anomalies = detect_odds_anomalies(
            22, {"home": 2.0, "draw": 2.0, "btts_no": 2.0}, None,
            {"home": 0.75, "draw": 0.75, "btts_no": 0.9}, config=CFG,
        )
        assert sorted(a.market for a in anomalies) == ["draw", "home"]
