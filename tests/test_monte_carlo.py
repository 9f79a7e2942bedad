"""
Tests for services/monte_carlo.py

Run with: pytest tests/test_monte_carlo.py -v
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from football_edge.core.poisson_model import outcome_distribution
from football_edge.services.monte_carlo import (
    DEFAULT_GOAL_VARIANCE,
    HOME_ADVANTAGE,
    MonteCarloSimulator,
    SimTeamInput,
    SimulationCache,
    chaos_index,
    confidence_level,
    interpret_simulation,
    run_simulation,
)


def _teams():
    home = SimTeamInput.from_season(32, 18, 19, is_home=True)
    away = SimTeamInput.from_season(21, 27, 19, is_home=False)
    return home, away


class TestSimTeamInput:

    def test_from_season_rate_and_home_advantage(self):
        home, away = _teams()
        assert home.expected_goals == pytest.approx(32 / 19)
        assert home.home_advantage == HOME_ADVANTAGE
        assert away.home_advantage == 1.0
        assert home.goal_variance == DEFAULT_GOAL_VARIANCE

    def test_variance_from_recent_goals(self):
        team = SimTeamInput.from_season(20, 20, 10, is_home=False, recent_goals=[0, 1, 2, 3])
        assert team.goal_variance == pytest.approx(np.std([0, 1, 2, 3]))

    def test_variance_clamped(self):
        flat = SimTeamInput.from_season(20, 20, 10, is_home=False, recent_goals=[2, 2, 2])
        wild = SimTeamInput.from_season(20, 20, 10, is_home=False, recent_goals=[0, 6, 0, 7])
        assert flat.goal_variance == 0.3
        assert wild.goal_variance == 1.5

    def test_short_history_uses_default(self):
        team = SimTeamInput.from_season(20, 20, 10, is_home=False, recent_goals=[0, 5])
        assert team.goal_variance == DEFAULT_GOAL_VARIANCE

    def test_zero_matches_does_not_raise(self):
        team = SimTeamInput.from_season(0, 0, 0, is_home=True)
        assert team.expected_goals == 0.0

    def test_effective_rate(self):
        team = SimTeamInput(expected_goals=1.5, form_factor=1.1, home_advantage=1.2)
        assert team.effective_rate == pytest.approx(1.98)


class TestSimulate:

    def test_trial_rates_stay_within_twenty_percent(self):
        team = SimTeamInput(expected_goals=1.0, goal_variance=1.5)
        rates = MonteCarloSimulator._trial_rates(np.random.default_rng(3), team, 20_000)
        assert rates.min() >= 0.8
        assert rates.max() <= 1.2

    def test_goal_variance_does_not_change_draws(self):
        calm = SimTeamInput(expected_goals=1.4, goal_variance=0.3)
        wild = SimTeamInput(expected_goals=1.4, goal_variance=1.5)
        away = SimTeamInput(expected_goals=1.1)
        sim = MonteCarloSimulator()
        a = sim.simulate(calm, away, trials=2000, seed=9)
        b = sim.simulate(wild, away, trials=2000, seed=9)
        assert a.std_deviation == b.std_deviation
        assert a.home_win_prob == b.home_win_prob

    def test_outcomes_sum_to_one(self):
        home, away = _teams()
        result = MonteCarloSimulator().simulate(home, away, trials=5000, seed=1)
        total = result.home_win_prob + result.draw_prob + result.away_win_prob
        assert total == pytest.approx(1.0, abs=1e-9)

    def test_seed_is_reproducible(self):
        home, away = _teams()
        sim = MonteCarloSimulator()
        a = sim.simulate(home, away, trials=5000, seed=42)
        b = sim.simulate(home, away, trials=5000, seed=42)
        assert a.to_dict() == b.to_dict()

    def test_different_seeds_differ(self):
        home, away = _teams()
        sim = MonteCarloSimulator()
        a = sim.simulate(home, away, trials=5000, seed=1)
        b = sim.simulate(home, away, trials=5000, seed=2)
        assert a.to_dict() != b.to_dict()

    def test_converges_to_poisson(self):
        """At 100k trials the simulated markets sit within 2pp of the closed form."""
        result = MonteCarloSimulator().simulate_rates(1.8, 1.1, trials=100_000, seed=7)
        exact = outcome_distribution(1.8, 1.1)
        assert result.home_win_prob == pytest.approx(exact.home_win, abs=0.02)
        assert result.draw_prob == pytest.approx(exact.draw, abs=0.02)
        assert result.away_win_prob == pytest.approx(exact.away_win, abs=0.02)
        assert result.over25_prob == pytest.approx(exact.over[2.5], abs=0.02)
        assert result.btts_prob == pytest.approx(exact.btts_yes, abs=0.02)

    def test_top_scores_sorted(self):
        home, away = _teams()
        result = MonteCarloSimulator().simulate(home, away, trials=5000, seed=3)
        probs = [p for _, p in result.top_scores]
        assert len(probs) == 5
        assert probs == sorted(probs, reverse=True)

    def test_zero_rates_do_not_raise(self):
        result = MonteCarloSimulator().simulate_rates(0.0, 0.0, trials=2000, seed=5)
        assert result.draw_prob > 0.5

    def test_invalid_trials_raise(self):
        home, away = _teams()
        with pytest.raises(ValueError):
            MonteCarloSimulator().simulate(home, away, trials=0)

    def test_parallel_runs_are_isolated(self):
        home, away = _teams()
        sim = MonteCarloSimulator()
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(
                lambda _: sim.simulate(home, away, trials=3000, seed=11).to_dict(),
                range(8),
            ))
        assert all(r == results[0] for r in results)


class TestIndicators:

    def test_chaos_index(self):
        assert chaos_index(1.0) == 0.0
        assert chaos_index(1.75) == pytest.approx(0.5)
        assert chaos_index(3.0) == 1.0

    def test_confidence_level(self):
        assert confidence_level(1.2, 0.50) == "high"
        assert confidence_level(1.5, 0.40) == "medium"
        assert confidence_level(2.0, 0.30) == "low"
        assert confidence_level(2.5, 0.60) == "avoid"

    def test_interpretation_mentions_outcome(self):
        home, away = _teams()
        result = MonteCarloSimulator().simulate(home, away, trials=2000, seed=9)
        insights = interpret_simulation(result)
        assert any("most likely" in line for line in insights)


class TestSimulationCache:

    def test_seeded_runs_cached(self):
        home, away = _teams()
        cache = SimulationCache()
        first = run_simulation(home, away, trials=2000, seed=4, cache=cache)
        second = run_simulation(home, away, trials=2000, seed=4, cache=cache)
        assert second is first
        assert len(cache) == 1

    def test_unseeded_runs_not_cached(self):
        home, away = _teams()
        cache = SimulationCache()
        run_simulation(home, away, trials=2000, cache=cache)
        assert len(cache) == 0

    def test_zero_ttl_disables_cache(self):
        home, away = _teams()
        cache = SimulationCache(ttl_seconds=0)
        run_simulation(home, away, trials=2000, seed=4, cache=cache)
        assert len(cache) == 0

    def test_key_depends_on_inputs(self):
        home, away = _teams()
        assert SimulationCache.make_key(home, away, 1000, 1) != SimulationCache.make_key(home, away, 1000, 2)
