"""
Tests for core/odds_math.py

Run with: pytest tests/test_odds_math.py -v
"""

import pytest

from football_edge.core.odds_math import (
    MAX_FAIR_ODDS,
    fair_odds,
    implied_probability,
    normalize_implied,
    overround,
)


class TestImpliedProbability:

    def test_even_money(self):
        assert implied_probability(2.0) == pytest.approx(0.5)

    def test_short_price(self):
        assert implied_probability(1.5) == pytest.approx(0.6667, abs=1e-4)

    def test_price_of_one_is_certainty(self):
        assert implied_probability(1.0) == pytest.approx(1.0)

    def test_below_one_raises(self):
        with pytest.raises(ValueError):
            implied_probability(0.9)


class TestFairOdds:

    def test_quarter_probability(self):
        assert fair_odds(0.25) == pytest.approx(4.0)

    def test_zero_probability_is_finite(self):
        assert fair_odds(0.0) == MAX_FAIR_ODDS

    def test_out_of_range_raises(self):
        with pytest.raises(ValueError):
            fair_odds(1.2)
        with pytest.raises(ValueError):
            fair_odds(-0.1)


class TestOverround:

    def test_typical_three_way_margin(self):
        margin = overround({"home": 2.0, "draw": 3.4, "away": 3.8})
        assert margin == pytest.approx(0.0573, abs=1e-3)

    def test_fair_book_has_no_margin(self):
        assert overround({"home": 2.0, "away": 2.0}) == pytest.approx(0.0)


class TestNormalizeImplied:

    def test_sums_to_one(self):
        probs = normalize_implied({"home": 2.0, "draw": 3.4, "away": 3.8})
        assert sum(probs.values()) == pytest.approx(1.0)

    def test_known_values(self):
        probs = normalize_implied({"home": 2.0, "draw": 3.4, "away": 3.8})
        assert probs["home"] == pytest.approx(0.473, abs=1e-3)
        assert probs["draw"] == pytest.approx(0.278, abs=1e-3)
        assert probs["away"] == pytest.approx(0.249, abs=1e-3)

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            normalize_implied({})
