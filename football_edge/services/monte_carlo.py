"""
Monte Carlo match simulation engine.

The closed-form Poisson model assumes each side's scoring rate is known
exactly.  In practice a team's rate moves from match to match (line-ups,
weather, game state), so this engine re-draws the rate for every trial:

    λ_trial = max(0.1, λ · (0.8 + 0.4 · U)),   U ~ Uniform(0, 1)

then samples goals from Poisson(λ_trial).  ``goal_variance`` is carried
on the inputs for reporting; it does not widen the jitter.

By running 10,000 trials the engine produces:
    - Empirical 1X2, over/under and BTTS probabilities
    - Dispersion of total goals (population standard deviation)
    - A chaos index and a four-tier confidence level
    - The five most frequent scorelines

Determinism: every call builds its own ``np.random.default_rng(seed)``
unless a ``Generator`` is passed in explicitly, so concurrent simulations
never share generator state and seeded runs are bit-for-bit reproducible.

Usage::

    sim = MonteCarloSimulator()
    home = SimTeamInput.from_season(32, 18, 19, is_home=True)
    away = SimTeamInput.from_season(21, 27, 19, is_home=False)
    result = sim.simulate(home, away, trials=10000, seed=42)
    print(result.home_win_prob, result.top_scores)
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Simulation constants
# ---------------------------------------------------------------------------

DEFAULT_TRIALS = 10_000
TOP_SCORES = 5

# Per-trial rate jitter: uniform ±20%
_JITTER_LOW = 0.8
_JITTER_SPAN = 0.4
DEFAULT_GOAL_VARIANCE = 0.8
_VARIANCE_BOUNDS = (0.3, 1.5)

# Floor on a single trial's Poisson rate
_TRIAL_LAMBDA_FLOOR = 0.1

# Multiplier applied to the home side's rate in season-based inputs
HOME_ADVANTAGE = 1.2

# chaos = clamp((σ - 1.0) / 1.5, 0, 1)
_CHAOS_OFFSET = 1.0
_CHAOS_SPAN = 1.5

# (max σ, min share of the modal 1X2 outcome) per tier, checked in order
_CONFIDENCE_TIERS: Tuple[Tuple[str, float, float], ...] = (
    ("high", 1.3, 0.45),
    ("medium", 1.8, 0.35),
    ("low", 2.2, 0.0),
)


# ---------------------------------------------------------------------------
# Inputs and results
# ---------------------------------------------------------------------------

@dataclass
class SimTeamInput:
    """
    One side's simulation inputs.

        expected_goals  – base scoring rate (goals per match)
        goal_variance   – match-to-match inconsistency, 0.3–1.5
        form_factor     – recent-form multiplier (≈0.7–1.3)
        home_advantage  – rate multiplier for the home side (1.0 = none)
    """

    expected_goals: float
    goal_variance: float = DEFAULT_GOAL_VARIANCE
    form_factor: float = 1.0
    home_advantage: float = 1.0

    @property
    def effective_rate(self) -> float:
        return max(0.0, self.expected_goals) * self.form_factor * self.home_advantage

    @classmethod
    def from_season(
        cls,
        goals_scored: float,
        goals_conceded: float,
        matches_played: int,
        is_home: bool,
        recent_goals: Optional[Sequence[float]] = None,
        form_factor: float = 1.0,
    ) -> "SimTeamInput":
        """
        Derive inputs from season totals.

        ``goal_variance`` is the population std-dev of ``recent_goals``
        (at least three matches), clamped to 0.3–1.5; otherwise 0.8.
        ``goals_conceded`` is accepted for symmetry with the other
        profile builders; the rate model uses goals scored only.
        """
        avg = max(0.0, goals_scored) / max(1, matches_played or 0)
        variance = DEFAULT_GOAL_VARIANCE
        if recent_goals is not None and len(recent_goals) >= 3:
            lo, hi = _VARIANCE_BOUNDS
            variance = float(np.clip(np.std(np.asarray(recent_goals, dtype=float)), lo, hi))
        return cls(
            expected_goals=avg,
            goal_variance=variance,
            form_factor=form_factor,
            home_advantage=HOME_ADVANTAGE if is_home else 1.0,
        )


@dataclass
class SimulationResult:
    """Empirical outcome statistics from a batch of simulated matches."""

    trials: int
    home_win_prob: float
    draw_prob: float
    away_win_prob: float
    over15_prob: float
    over25_prob: float
    over35_prob: float
    btts_prob: float
    avg_home_goals: float
    avg_away_goals: float
    std_deviation: float
    chaos_index: float
    confidence_level: str
    top_scores: List[Tuple[str, float]] = field(default_factory=list)
    seed: Optional[int] = None

    @property
    def under15_prob(self) -> float:
        return 1.0 - self.over15_prob

    @property
    def under25_prob(self) -> float:
        return 1.0 - self.over25_prob

    @property
    def btts_no_prob(self) -> float:
        return 1.0 - self.btts_prob

    @property
    def avg_total_goals(self) -> float:
        return self.avg_home_goals + self.avg_away_goals

    @property
    def modal_outcome_prob(self) -> float:
        return max(self.home_win_prob, self.draw_prob, self.away_win_prob)

    def to_dict(self) -> Dict:
        return {
            "trials": self.trials,
            "home_win_prob": round(self.home_win_prob, 4),
            "draw_prob": round(self.draw_prob, 4),
            "away_win_prob": round(self.away_win_prob, 4),
            "over15_prob": round(self.over15_prob, 4),
            "over25_prob": round(self.over25_prob, 4),
            "over35_prob": round(self.over35_prob, 4),
            "under25_prob": round(self.under25_prob, 4),
            "btts_prob": round(self.btts_prob, 4),
            "avg_home_goals": round(self.avg_home_goals, 2),
            "avg_away_goals": round(self.avg_away_goals, 2),
            "avg_total_goals": round(self.avg_total_goals, 2),
            "std_deviation": round(self.std_deviation, 3),
            "chaos_index": round(self.chaos_index, 3),
            "confidence_level": self.confidence_level,
            "top_scores": [
                {"score": s, "probability": round(p, 4)} for s, p in self.top_scores
            ],
            "seed": self.seed,
        }


def chaos_index(std_deviation: float) -> float:
    return float(min(1.0, max(0.0, (std_deviation - _CHAOS_OFFSET) / _CHAOS_SPAN)))


def confidence_level(std_deviation: float, modal_share: float) -> str:
    for label, max_sd, min_share in _CONFIDENCE_TIERS:
        if std_deviation <= max_sd and modal_share >= min_share:
            return label
    return "avoid"


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------

class MonteCarloSimulator:
    """
    Vectorised Monte Carlo match simulator.

    ``rng`` may be injected for tests that need to drive the generator
    directly; a simulator holding an injected generator must not be
    shared across threads.  Without one, every :meth:`simulate` call
    creates an isolated generator from its ``seed``.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self._rng = rng

    def simulate(
        self,
        home: SimTeamInput,
        away: SimTeamInput,
        trials: int = DEFAULT_TRIALS,
        seed: Optional[int] = None,
    ) -> SimulationResult:
        if trials <= 0:
            raise ValueError(f"trials must be > 0, got {trials!r}")

        rng = self._rng if self._rng is not None else np.random.default_rng(seed)

        home_goals = self._draw_goals(rng, home, trials)
        away_goals = self._draw_goals(rng, away, trials)
        totals = home_goals + away_goals

        n = float(trials)
        home_wins = int(np.count_nonzero(home_goals > away_goals))
        away_wins = int(np.count_nonzero(home_goals < away_goals))
        draws = trials - home_wins - away_wins

        std = float(np.std(totals))
        modal_share = max(home_wins, draws, away_wins) / n

        result = SimulationResult(
            trials=trials,
            home_win_prob=home_wins / n,
            draw_prob=draws / n,
            away_win_prob=away_wins / n,
            over15_prob=int(np.count_nonzero(totals > 1.5)) / n,
            over25_prob=int(np.count_nonzero(totals > 2.5)) / n,
            over35_prob=int(np.count_nonzero(totals > 3.5)) / n,
            btts_prob=int(np.count_nonzero((home_goals > 0) & (away_goals > 0))) / n,
            avg_home_goals=float(home_goals.mean()),
            avg_away_goals=float(away_goals.mean()),
            std_deviation=std,
            chaos_index=chaos_index(std),
            confidence_level=confidence_level(std, modal_share),
            top_scores=self._top_scores(home_goals, away_goals, trials),
            seed=seed,
        )
        logger.debug(
            "Simulated %d trials: H %.3f D %.3f A %.3f σ=%.2f (%s)",
            trials, result.home_win_prob, result.draw_prob,
            result.away_win_prob, std, result.confidence_level,
        )
        return result

    def simulate_rates(
        self,
        lambda_home: float,
        lambda_away: float,
        trials: int = DEFAULT_TRIALS,
        seed: Optional[int] = None,
    ) -> SimulationResult:
        """Simulate from final (already adjusted) goal rates."""
        return self.simulate(
            SimTeamInput(expected_goals=lambda_home),
            SimTeamInput(expected_goals=lambda_away),
            trials=trials,
            seed=seed,
        )

    @staticmethod
    def _trial_rates(
        rng: np.random.Generator, team: SimTeamInput, trials: int
    ) -> np.ndarray:
        jitter = _JITTER_LOW + _JITTER_SPAN * rng.random(trials)
        return np.maximum(_TRIAL_LAMBDA_FLOOR, team.effective_rate * jitter)

    @classmethod
    def _draw_goals(
        cls, rng: np.random.Generator, team: SimTeamInput, trials: int
    ) -> np.ndarray:
        return rng.poisson(cls._trial_rates(rng, team, trials))

    @staticmethod
    def _top_scores(
        home_goals: np.ndarray, away_goals: np.ndarray, trials: int
    ) -> List[Tuple[str, float]]:
        pairs, counts = np.unique(
            np.stack([home_goals, away_goals], axis=1), axis=0, return_counts=True
        )
        # np.unique sorts pairs lexicographically; a stable sort keeps that
        # order among equal counts.
        order = np.argsort(-counts, kind="stable")[:TOP_SCORES]
        return [
            (f"{int(pairs[i][0])}-{int(pairs[i][1])}", int(counts[i]) / trials)
            for i in order
        ]


# ---------------------------------------------------------------------------
# Seeded-result cache
# ---------------------------------------------------------------------------

class SimulationCache:
    """
    Short-lived cache of seeded simulation results.

    Keys are a SHA-256 of both inputs, the trial count and the seed.
    Unseeded runs are never cached since they are not reproducible.
    """

    def __init__(self, ttl_seconds: float = 600.0, max_entries: int = 1024):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: Dict[str, Tuple[float, SimulationResult]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(
        home: SimTeamInput, away: SimTeamInput, trials: int, seed: Optional[int]
    ) -> str:
        payload = json.dumps(
            {"home": asdict(home), "away": asdict(away), "trials": trials, "seed": seed},
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[SimulationResult]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, result = entry
            if now - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return result

    def set(self, key: str, result: SimulationResult) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            if len(self._entries) >= self.max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
            self._entries[key] = (time.monotonic(), result)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def run_simulation(
    home: SimTeamInput,
    away: SimTeamInput,
    trials: int = DEFAULT_TRIALS,
    seed: Optional[int] = None,
    cache: Optional[SimulationCache] = None,
    simulator: Optional[MonteCarloSimulator] = None,
) -> SimulationResult:
    """Simulate, serving seeded runs from ``cache`` when possible."""
    sim = simulator or MonteCarloSimulator()
    if cache is None or seed is None:
        return sim.simulate(home, away, trials=trials, seed=seed)

    key = SimulationCache.make_key(home, away, trials, seed)
    cached = cache.get(key)
    if cached is not None:
        logger.debug("Simulation cache hit %s", key[:12])
        return cached
    result = sim.simulate(home, away, trials=trials, seed=seed)
    cache.set(key, result)
    return result


# ---------------------------------------------------------------------------
# Interpretation
# ---------------------------------------------------------------------------

def interpret_simulation(result: SimulationResult) -> List[str]:
    """Plain-language insights for a simulation result."""
    insights: List[str] = []

    top = result.modal_outcome_prob
    if result.home_win_prob == top:
        insights.append(f"Home win most likely ({top:.0%})")
    elif result.away_win_prob == top:
        insights.append(f"Away win most likely ({top:.0%})")
    else:
        insights.append(f"Draw most likely ({top:.0%})")

    if result.over25_prob >= 0.65:
        insights.append(f"Over 2.5 looks strong ({result.over25_prob:.0%})")
    elif result.under25_prob >= 0.60:
        insights.append(f"Under 2.5 looks strong ({result.under25_prob:.0%})")

    if result.btts_prob >= 0.65:
        insights.append(f"Both teams to score likely ({result.btts_prob:.0%})")
    elif result.btts_no_prob >= 0.60:
        insights.append(f"Clean sheet for one side likely ({result.btts_no_prob:.0%})")

    if result.confidence_level == "avoid":
        insights.append(
            f"Very high uncertainty (σ={result.std_deviation:.2f}); avoid this match"
        )
    elif result.confidence_level == "low":
        insights.append("High risk: small stakes only")
    elif result.confidence_level == "high":
        insights.append("Simulated outcomes are consistent")

    if result.top_scores:
        score, prob = result.top_scores[0]
        insights.append(f"Most likely score: {score} ({prob:.1%})")

    return insights
