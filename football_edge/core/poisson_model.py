"""Independent-Poisson outcome model for football scorelines.

Given the two expected-goals rates of a fixture, this module builds the
joint scoreline probability matrix and derives every market the engine
prices from it: 1X2, over/under lines, both-teams-to-score, and the most
likely exact scores.

Model
-----
Home and away goal counts are treated as independent Poisson variables::

    P(h, a)  =  Pois(h; λ_home) · Pois(a; λ_away)                  (1)

The grid is truncated at ``max_goals`` (default 10) and grown until each
marginal's cumulative mass reaches 0.999, then renormalised so that all
derived complementary markets sum to exactly 1.  Rates ``λ ≤ 0`` are
degenerate inputs and are clamped to a small positive floor rather than
rejected.

The caller is responsible for home advantage and recent-form multipliers:
this module consumes final rates only.  :func:`expected_goals` and
:func:`blend_with_league` are provided for callers that only hold
season aggregates.

Everything here is deterministic and pure.

Run tests with::

    pytest tests/test_poisson_model.py -v
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

import numpy as np
from scipy.stats import poisson

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Floor applied to non-positive or vanishing expected-goals rates.
LAMBDA_FLOOR: Final[float] = 0.05

#: Minimum cumulative mass each marginal must cover inside the grid.
_MIN_GRID_MASS: Final[float] = 0.999

#: Hard upper bound on the grid size, whatever the rates.
_MAX_GRID_GOALS: Final[int] = 20

#: Over/under lines derived for every distribution.
GOAL_LINES: Final[tuple[float, ...]] = (0.5, 1.5, 2.5, 3.5, 4.5)

#: Ceiling on the reported model confidence, in percent.
_MAX_CONFIDENCE: Final[float] = 95.0

# Clamp bands for the attack/defence expected-goals helper.
_HOME_XG_BOUNDS: Final[tuple[float, float]] = (0.2, 4.0)
_AWAY_XG_BOUNDS: Final[tuple[float, float]] = (0.1, 3.5)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreDistribution:
    """Scoreline matrix plus the market probabilities derived from it.

    All probabilities are fractions in ``[0, 1]``.  ``matrix[h, a]`` is the
    probability of the final score ``h-a``.
    """

    lambda_home: float
    lambda_away: float
    matrix: np.ndarray = field(repr=False)
    home_win: float
    draw: float
    away_win: float
    over: dict[float, float]
    under: dict[float, float]
    btts_yes: float
    btts_no: float
    top_scores: list[tuple[str, float]]

    @property
    def max_goals(self) -> int:
        return self.matrix.shape[0] - 1

    @property
    def most_likely_score(self) -> str:
        return self.top_scores[0][0] if self.top_scores else "1-1"

    @property
    def confidence(self) -> float:
        """Headline confidence in percent: ``min(95, 50 + 100·max(1X2))``."""
        top = max(self.home_win, self.draw, self.away_win)
        return min(_MAX_CONFIDENCE, 50.0 + top * 100.0)

    def over_line(self, line: float) -> float:
        return self.over[line]

    def under_line(self, line: float) -> float:
        return self.under[line]

    def to_dict(self) -> dict:
        return {
            "lambda_home": round(self.lambda_home, 4),
            "lambda_away": round(self.lambda_away, 4),
            "home_win": round(self.home_win, 4),
            "draw": round(self.draw, 4),
            "away_win": round(self.away_win, 4),
            "over": {str(k): round(v, 4) for k, v in self.over.items()},
            "under": {str(k): round(v, 4) for k, v in self.under.items()},
            "btts_yes": round(self.btts_yes, 4),
            "btts_no": round(self.btts_no, 4),
            "top_scores": [
                {"score": s, "probability": round(p, 4)} for s, p in self.top_scores
            ],
            "most_likely_score": self.most_likely_score,
            "confidence": round(self.confidence, 1),
        }


# ---------------------------------------------------------------------------
# Matrix construction
# ---------------------------------------------------------------------------


def clamp_rate(rate: float) -> float:
    """Clamp a goal rate to :data:`LAMBDA_FLOOR` (NaN is treated as 0)."""
    if rate != rate or rate < LAMBDA_FLOOR:
        return LAMBDA_FLOOR
    return float(rate)


def _grid_size(lambda_home: float, lambda_away: float, max_goals: int) -> int:
    n = max(1, max_goals)
    while n < _MAX_GRID_GOALS and (
        poisson.cdf(n, lambda_home) < _MIN_GRID_MASS
        or poisson.cdf(n, lambda_away) < _MIN_GRID_MASS
    ):
        n += 1
    return n


def score_matrix(
    lambda_home: float,
    lambda_away: float,
    max_goals: int = 10,
) -> np.ndarray:
    """Build the normalised joint scoreline matrix of equation (1).

    Args:
        lambda_home: Home expected goals.  Values ≤ 0 are clamped.
        lambda_away: Away expected goals.  Values ≤ 0 are clamped.
        max_goals: Initial truncation; grown while the tail mass of either
            marginal exceeds 0.001 (never beyond 20).

    Returns:
        Square array ``m`` with ``m[h, a] = P(home=h, away=a)`` and
        ``m.sum() == 1``.
    """
    lam_h = clamp_rate(lambda_home)
    lam_a = clamp_rate(lambda_away)
    n = _grid_size(lam_h, lam_a, max_goals)

    goals = np.arange(n + 1)
    matrix = np.outer(poisson.pmf(goals, lam_h), poisson.pmf(goals, lam_a))
    return matrix / matrix.sum()


def _top_scores(matrix: np.ndarray, top_n: int) -> list[tuple[str, float]]:
    flat = matrix.ravel()
    order = np.argsort(-flat, kind="stable")[:top_n]
    size = matrix.shape[1]
    return [(f"{idx // size}-{idx % size}", float(flat[idx])) for idx in order]


def outcome_distribution(
    lambda_home: float,
    lambda_away: float,
    max_goals: int = 10,
    top_n: int = 10,
) -> ScoreDistribution:
    """Full outcome distribution for a fixture.

    Examples::

        d = outcome_distribution(1.8, 1.1)
        d.home_win + d.draw + d.away_win   →  1.0
        d.over[2.5]                        →  0.554
    """
    lam_h = clamp_rate(lambda_home)
    lam_a = clamp_rate(lambda_away)
    matrix = score_matrix(lam_h, lam_a, max_goals)

    home_goals, away_goals = np.indices(matrix.shape)
    totals = home_goals + away_goals

    home_win = float(matrix[home_goals > away_goals].sum())
    draw = float(np.trace(matrix))
    away_win = float(matrix[home_goals < away_goals].sum())

    over: dict[float, float] = {}
    under: dict[float, float] = {}
    for line in GOAL_LINES:
        over_mass = float(matrix[totals > line].sum())
        over[line] = over_mass
        under[line] = 1.0 - over_mass

    btts_yes = float(matrix[1:, 1:].sum())

    return ScoreDistribution(
        lambda_home=lam_h,
        lambda_away=lam_a,
        matrix=matrix,
        home_win=home_win,
        draw=draw,
        away_win=away_win,
        over=over,
        under=under,
        btts_yes=btts_yes,
        btts_no=1.0 - btts_yes,
        top_scores=_top_scores(matrix, top_n),
    )


# ---------------------------------------------------------------------------
# Expected-goals helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpectedGoals:
    """Attack/defence strength breakdown behind a pair of goal rates."""

    home_xg: float
    away_xg: float
    home_attack: float
    home_defence: float
    away_attack: float
    away_defence: float

    @property
    def total_xg(self) -> float:
        return self.home_xg + self.away_xg


def expected_goals(
    home_scored: float,
    home_conceded: float,
    away_scored: float,
    away_conceded: float,
    *,
    league_avg_home: float = 1.5,
    league_avg_away: float = 1.2,
    home_advantage: float = 1.1,
) -> ExpectedGoals:
    """Attack/defence strength model for a fixture's goal rates.

    Inputs are per-match averages.  Strengths are ratios to the league
    averages; a defence strength above 1 is a weak defence::

        λ_home = avg_home · att_home · def_away · home_advantage
        λ_away = avg_away · att_away · def_home

    The home rate is clamped to ``[0.2, 4.0]`` and the away rate to
    ``[0.1, 3.5]``.

    Raises:
        ValueError: If a league average is not positive.
    """
    if league_avg_home <= 0.0 or league_avg_away <= 0.0:
        raise ValueError(
            f"league averages must be > 0, got {league_avg_home!r}/{league_avg_away!r}."
        )

    home_attack = max(0.0, home_scored) / league_avg_home
    away_attack = max(0.0, away_scored) / league_avg_away
    home_defence = max(0.0, home_conceded) / league_avg_away
    away_defence = max(0.0, away_conceded) / league_avg_home

    raw_home = league_avg_home * home_attack * away_defence * home_advantage
    raw_away = league_avg_away * away_attack * home_defence

    lo_h, hi_h = _HOME_XG_BOUNDS
    lo_a, hi_a = _AWAY_XG_BOUNDS
    return ExpectedGoals(
        home_xg=min(hi_h, max(lo_h, raw_home)),
        away_xg=min(hi_a, max(lo_a, raw_away)),
        home_attack=home_attack,
        home_defence=home_defence,
        away_attack=away_attack,
        away_defence=away_defence,
    )


def blend_with_league(
    team_rate: float,
    league_avg_goals: float,
    weight: float = 0.7,
) -> float:
    """Shrink a team's scoring rate toward half the league's goals per match.

    ``weight`` is the share kept from the team's own rate.

    Examples::

        blend_with_league(2.0, 2.8)   →  1.82
    """
    if not (0.0 <= weight <= 1.0):
        raise ValueError(f"weight must be in [0, 1], got {weight!r}.")
    return team_rate * weight + (league_avg_goals / 2.0) * (1.0 - weight)
