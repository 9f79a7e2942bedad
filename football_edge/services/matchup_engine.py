"""
Style matchup engine.

Models *how* two playing styles interact instead of treating each team's
rates in isolation.  Every ordered pair of :class:`TeamStyle` values maps
to a fixed set of additive probability nudges:

    btts_boost, over_boost, home_win_boost, away_win_boost, draw_boost

plus a ``chaos_level`` in [0, 1] and a one-line rationale.

The table is asymmetric on purpose: an Offensive home side against a
Counter away side is not the mirror of a Counter home side against an
Offensive visitor, because the team that cedes the ball is the one that
gets to break.

The table is built once at import time and exposed read-only; tune it by
editing ``_MATRIX`` below, never by branching in callers.
"""

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from football_edge.services.team_style import TeamStyle

logger = logging.getLogger(__name__)

_OFF = TeamStyle.OFFENSIVE
_CTR = TeamStyle.COUNTER
_DEF = TeamStyle.DEFENSIVE
_CHA = TeamStyle.CHAOTIC


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StyleMatchup:
    """Additive market nudges for one ordered (home, away) style pair."""

    home_style: TeamStyle
    away_style: TeamStyle
    btts_boost: float
    over_boost: float
    home_win_boost: float
    away_win_boost: float
    draw_boost: float
    chaos_level: float
    reasoning: str

    def to_dict(self) -> dict:
        return {
            "home_style": self.home_style.value,
            "away_style": self.away_style.value,
            "btts_boost": self.btts_boost,
            "over_boost": self.over_boost,
            "home_win_boost": self.home_win_boost,
            "away_win_boost": self.away_win_boost,
            "draw_boost": self.draw_boost,
            "chaos_level": self.chaos_level,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class MarketProbabilities:
    """Headline market probabilities for one fixture, as fractions."""

    home: float
    draw: float
    away: float
    over25: float
    btts: float

    @property
    def under25(self) -> float:
        return 1.0 - self.over25

    @property
    def btts_no(self) -> float:
        return 1.0 - self.btts

    def as_market_dict(self) -> Dict[str, float]:
        """Keyed by market name as used by the value and calibration layers."""
        return {
            "home": self.home,
            "draw": self.draw,
            "away": self.away,
            "over25": self.over25,
            "under25": self.under25,
            "btts_yes": self.btts,
            "btts_no": self.btts_no,
        }

    def to_dict(self) -> dict:
        return {k: round(v, 4) for k, v in self.as_market_dict().items()}


# ---------------------------------------------------------------------------
# Matchup table
# ---------------------------------------------------------------------------

# (btts, over, home_win, away_win, draw, chaos, reasoning)
_MATRIX: Dict[Tuple[TeamStyle, TeamStyle], Tuple[float, float, float, float, float, float, str]] = {
    (_OFF, _OFF): (0.25, 0.30, 0.05, 0.05, -0.10, 0.8,
                   "Two attacking sides: open, high-scoring game expected"),
    (_OFF, _CTR): (0.15, 0.10, -0.10, 0.15, 0.00, 0.5,
                   "Attack vs counter: the counter-attacking visitors are dangerous on the break"),
    (_OFF, _DEF): (-0.10, -0.15, 0.10, -0.15, 0.10, 0.3,
                   "Attack vs low block: home side dominates the ball but may struggle to score"),
    (_OFF, _CHA): (0.20, 0.25, 0.10, 0.00, -0.05, 0.9,
                   "Attack vs chaos: anything can happen, goals likely"),
    (_CTR, _OFF): (0.15, 0.10, 0.15, -0.10, 0.00, 0.5,
                   "Counter side at home: an open visitor leaves space to break into"),
    (_CTR, _CTR): (-0.15, -0.20, 0.05, -0.05, 0.15, 0.2,
                   "Two counter sides: cagey, low-scoring, draw favoured"),
    (_CTR, _DEF): (-0.20, -0.25, 0.05, -0.10, 0.20, 0.1,
                   "Counter vs low block: very tight game, under 1.5 in play"),
    (_CTR, _CHA): (0.10, 0.05, 0.10, -0.05, 0.00, 0.6,
                   "Counter vs chaos: the disciplined side punishes mistakes"),
    (_DEF, _OFF): (-0.10, -0.15, -0.15, 0.10, 0.10, 0.3,
                   "Low block vs attack: visitors press, few goals"),
    (_DEF, _CTR): (-0.20, -0.25, -0.10, 0.05, 0.20, 0.1,
                   "Low block vs counter: closed game, draw likely"),
    (_DEF, _DEF): (-0.25, -0.30, 0.05, -0.05, 0.25, 0.0,
                   "Two defensive sides: under 1.5 candidate, 0-0 or 1-0"),
    (_DEF, _CHA): (0.00, -0.05, 0.05, 0.00, 0.05, 0.4,
                   "Low block vs chaos: the defensive side controls the tempo"),
    (_CHA, _OFF): (0.20, 0.25, 0.00, 0.10, -0.05, 0.9,
                   "Chaos vs attack: goal fest, anything can happen"),
    (_CHA, _CTR): (0.10, 0.05, -0.05, 0.10, 0.00, 0.6,
                   "Chaos vs counter: home errors get punished on the break"),
    (_CHA, _DEF): (0.00, -0.05, 0.00, 0.05, 0.05, 0.4,
                   "Chaos vs low block: the defensive visitors contain the game"),
    (_CHA, _CHA): (0.30, 0.35, 0.05, 0.05, -0.15, 1.0,
                   "Two chaotic sides: wild game, 4-3 type scorelines possible"),
}


def _build_table() -> Mapping[Tuple[TeamStyle, TeamStyle], StyleMatchup]:
    table = {}
    for (home, away), (btts, over, hw, aw, dr, chaos, why) in _MATRIX.items():
        table[(home, away)] = StyleMatchup(
            home_style=home,
            away_style=away,
            btts_boost=btts,
            over_boost=over,
            home_win_boost=hw,
            away_win_boost=aw,
            draw_boost=dr,
            chaos_level=chaos,
            reasoning=why,
        )
    missing = [(h, a) for h in TeamStyle for a in TeamStyle if (h, a) not in table]
    if missing:
        raise RuntimeError(f"Style matchup table incomplete: {missing}")
    return MappingProxyType(table)


#: Read-only 4×4 table keyed by ``(home_style, away_style)``.
MATCHUP_TABLE: Mapping[Tuple[TeamStyle, TeamStyle], StyleMatchup] = _build_table()


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class MatchupEngine:
    """
    Applies style matchup nudges to a fixture's market probabilities.

    Boosts are *additive* deltas.  After adding them the 1X2 triple is
    renormalised to sum to one, and the over 2.5 / BTTS probabilities are
    clamped to ``[MIN_PROB, MAX_PROB]`` so no style pair can push a market
    to certainty.
    """

    MIN_PROB = 0.05
    MAX_PROB = 0.95

    def __init__(
        self,
        table: Optional[Mapping[Tuple[TeamStyle, TeamStyle], StyleMatchup]] = None,
    ):
        self._table = table if table is not None else MATCHUP_TABLE

    def lookup(self, home_style: TeamStyle, away_style: TeamStyle) -> StyleMatchup:
        try:
            return self._table[(TeamStyle(home_style), TeamStyle(away_style))]
        except KeyError:
            raise ValueError(
                f"No matchup entry for ({home_style!r}, {away_style!r})"
            ) from None

    def apply(
        self, probs: MarketProbabilities, matchup: StyleMatchup
    ) -> MarketProbabilities:
        home = max(0.0, probs.home + matchup.home_win_boost)
        draw = max(0.0, probs.draw + matchup.draw_boost)
        away = max(0.0, probs.away + matchup.away_win_boost)
        total = home + draw + away
        if total <= 0.0:
            logger.warning(
                "Matchup %s/%s zeroed the 1X2 triple, keeping base probabilities",
                matchup.home_style.value, matchup.away_style.value,
            )
            home, draw, away, total = probs.home, probs.draw, probs.away, 1.0

        return replace(
            probs,
            home=home / total,
            draw=draw / total,
            away=away / total,
            over25=self._clamp(probs.over25 + matchup.over_boost),
            btts=self._clamp(probs.btts + matchup.btts_boost),
        )

    def _clamp(self, p: float) -> float:
        return min(self.MAX_PROB, max(self.MIN_PROB, p))


# ---------------------------------------------------------------------------
# Singleton / module-level helpers
# ---------------------------------------------------------------------------

_matchup_engine: Optional[MatchupEngine] = None


def get_matchup_engine() -> MatchupEngine:
    global _matchup_engine
    if _matchup_engine is None:
        _matchup_engine = MatchupEngine()
    return _matchup_engine


def lookup_matchup(home_style: TeamStyle, away_style: TeamStyle) -> StyleMatchup:
    return get_matchup_engine().lookup(home_style, away_style)


def apply_matchup(probs: MarketProbabilities, matchup: StyleMatchup) -> MarketProbabilities:
    return get_matchup_engine().apply(probs, matchup)
