"""
Tests for core/poisson_model.py

Run with: pytest tests/test_poisson_model.py -v
"""

import math

import pytest

from football_edge.core.poisson_model import (
    GOAL_LINES,
    LAMBDA_FLOOR,
    blend_with_league,
    clamp_rate,
    expected_goals,
    outcome_distribution,
    score_matrix,
)


class TestScoreMatrix:

    def test_matrix_is_normalised(self):
        m = score_matrix(1.8, 1.1)
        assert m.sum() == pytest.approx(1.0)

    def test_grid_grows_for_high_rates(self):
        m = score_matrix(6.0, 1.0, max_goals=5)
        assert m.shape[0] > 6

    def test_grid_never_exceeds_cap(self):
        m = score_matrix(40.0, 40.0)
        assert m.shape == (21, 21)


class TestOutcomeDistribution:

    def test_one_x_two_sums_to_one(self):
        d = outcome_distribution(1.8, 1.1)
        assert d.home_win + d.draw + d.away_win == pytest.approx(1.0, abs=1e-6)

    def test_over_two_point_five_reference_value(self):
        d = outcome_distribution(1.8, 1.1)
        assert 0.55 <= d.over[2.5] <= 0.60

    def test_over_under_complement(self):
        d = outcome_distribution(1.8, 1.1)
        for line in GOAL_LINES:
            assert d.over[line] + d.under[line] == pytest.approx(1.0)
            assert d.over_line(line) == d.over[line]

    def test_btts_matches_closed_form(self):
        d = outcome_distribution(1.8, 1.1)
        expected = (1 - math.exp(-1.8)) * (1 - math.exp(-1.1))
        assert d.btts_yes == pytest.approx(expected, abs=1e-3)
        assert d.btts_yes + d.btts_no == pytest.approx(1.0)

    def test_stronger_home_side_favoured(self):
        d = outcome_distribution(1.8, 1.1)
        assert d.home_win > d.away_win

    def test_degenerate_rates_are_clamped(self):
        d = outcome_distribution(0.0, -1.0)
        assert d.lambda_home == LAMBDA_FLOOR
        assert d.lambda_away == LAMBDA_FLOOR
        assert d.most_likely_score == "0-0"
        assert d.home_win + d.draw + d.away_win == pytest.approx(1.0, abs=1e-6)

    def test_top_scores_sorted(self):
        d = outcome_distribution(1.8, 1.1)
        probs = [p for _, p in d.top_scores]
        assert len(probs) == 10
        assert probs == sorted(probs, reverse=True)

    def test_confidence_capped(self):
        d = outcome_distribution(4.0, 0.1)
        assert d.confidence == 95.0

    def test_to_dict(self):
        d = outcome_distribution(1.8, 1.1).to_dict()
        assert d["most_likely_score"] == "1-1"
        assert set(d["over"]) == {str(line) for line in GOAL_LINES}


class TestExpectedGoals:

    def test_average_teams(self):
        xg = expected_goals(1.5, 1.2, 1.2, 1.5)
        assert xg.home_attack == pytest.approx(1.0)
        assert xg.away_defence == pytest.approx(1.0)
        assert xg.home_xg == pytest.approx(1.65)
        assert xg.away_xg == pytest.approx(1.2)
        assert xg.total_xg == pytest.approx(2.85)

    def test_rates_clamped(self):
        high = expected_goals(5.0, 3.0, 4.0, 3.0)
        assert high.home_xg == 4.0
        assert high.away_xg == 3.5
        low = expected_goals(0.0, 0.0, 0.0, 0.0)
        assert low.home_xg == 0.2
        assert low.away_xg == 0.1

    def test_invalid_league_average_raises(self):
        with pytest.raises(ValueError):
            expected_goals(1.0, 1.0, 1.0, 1.0, league_avg_home=0.0)


def test_blend_with_league():
    assert blend_with_league(2.0, 2.8) == pytest.approx(1.82)


def test_blend_with_league_rejects_bad_weight():
    with pytest.raises(ValueError):
        blend_with_league(2.0, 2.8, weight=1.5)


def test_clamp_rate_handles_nan():
    assert clamp_rate(float("nan")) == LAMBDA_FLOOR
    assert clamp_rate(1.3) == 1.3
