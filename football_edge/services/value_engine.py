"""
Value and stake engine.

Turns a model probability and a market price into a :class:`ValueAssessment`:

    fair_odds  = 1 / p
    edge %     = (p · price − 1) · 100
    value %    = (price / fair_odds − 1) · 100
    stake      = capped fractional Kelly (see ``football_edge.core.kelly``)

The assessment also carries a 0–100 rating and a four-level
recommendation (``skip`` / ``consider`` / ``bet`` / ``strong_bet``).
Anything with edge ≤ 0 is a first-class ``skip`` with a zero stake and the
Kelly layer's ``-EV`` warning attached.

Calibration multipliers produced by ``services.calibration`` are applied
here, to the raw probabilities of the *next* run, via
:func:`apply_calibration`.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from football_edge.config import EngineConfig, get_config
from football_edge.core.kelly import KellyStake, kelly_stake
from football_edge.core.odds_math import fair_odds

logger = logging.getLogger(__name__)

# Display pick for each market key
MARKET_PICKS: Dict[str, str] = {
    "home": "1",
    "draw": "X",
    "away": "2",
    "over25": "Over 2.5",
    "under25": "Under 2.5",
    "btts_yes": "BTTS Yes",
    "btts_no": "BTTS No",
}

# Rating weights: value% · 2 + probability% · 0.3 + half-Kelly% · 3
_RATING_VALUE_W = 2.0
_RATING_PROB_W = 0.3
_RATING_KELLY_W = 3.0

# (label, min rating, min value %, min half-Kelly %) checked in order
_RECOMMENDATION_TIERS = (
    ("strong_bet", 80.0, 15.0, 3.0),
    ("bet", 60.0, 10.0, 2.0),
    ("consider", 40.0, 5.0, 1.0),
)

# Calibrated probabilities are kept away from certainty
_CALIBRATED_MIN = 0.01
_CALIBRATED_MAX = 0.99


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class ValueAssessment:
    """Value verdict for one market/pick at one price."""

    market: str
    pick: str
    model_probability: float          # percent, 0-100
    fair_odds: float
    market_odds: float
    edge_percent: float
    value_percent: float
    kelly: KellyStake
    risk_tier: str
    rating: float
    recommendation: str
    is_value: bool
    warnings: List[str] = field(default_factory=list)

    @property
    def suggested_stake(self) -> float:
        return self.kelly.suggested_stake

    @property
    def half_kelly_pct(self) -> float:
        return max(0.0, self.kelly.full) * 50.0

    def to_dict(self) -> Dict:
        return {
            "market": self.market,
            "pick": self.pick,
            "model_probability": round(self.model_probability, 2),
            "fair_odds": round(self.fair_odds, 2),
            "market_odds": self.market_odds,
            "edge_percent": round(self.edge_percent, 2),
            "value_percent": round(self.value_percent, 2),
            "kelly": self.kelly.to_dict(),
            "risk_tier": self.risk_tier,
            "rating": round(self.rating),
            "recommendation": self.recommendation,
            "is_value": self.is_value,
            "warnings": list(self.warnings),
        }


@dataclass
class ValueSummary:
    """Roll-up of several assessments for the same fixture or slate."""

    assessments: List[ValueAssessment]
    total_value_bets: int
    avg_value: float
    total_suggested_stake: float
    best_bet: Optional[ValueAssessment]
    system_suggestion: str

    def to_dict(self) -> Dict:
        return {
            "total_value_bets": self.total_value_bets,
            "avg_value": round(self.avg_value, 2),
            "total_suggested_stake": round(self.total_suggested_stake, 2),
            "best_bet": self.best_bet.to_dict() if self.best_bet else None,
            "system_suggestion": self.system_suggestion,
            "assessments": [a.to_dict() for a in self.assessments],
        }


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------

def _recommend(rating: float, value_pct: float, half_kelly_pct: float) -> str:
    for label, min_rating, min_value, min_kelly in _RECOMMENDATION_TIERS:
        if rating >= min_rating and value_pct >= min_value and half_kelly_pct >= min_kelly:
            return label
    return "skip"


def assess_value(
    market: str,
    pick: str,
    model_probability: float,
    market_odds: float,
    *,
    bankroll: Optional[float] = None,
    config: Optional[EngineConfig] = None,
) -> ValueAssessment:
    """
    Assess one price.

    Args:
        market: Market key (``home``, ``over25``, ...).
        pick: Display label of the selection.
        model_probability: Model probability in percent (0–100).
        market_odds: Decimal price offered, > 1.0.
        bankroll: Bankroll to size against (defaults to ``config.bankroll``).
        config: Engine configuration (defaults to :func:`get_config`).

    Raises:
        ValueError: If ``model_probability`` is outside 0–100 or the price
            is ≤ 1.0.
    """
    cfg = config or get_config()
    if not (0.0 <= model_probability <= 100.0):
        raise ValueError(
            f"model_probability must be a percentage in [0, 100], got {model_probability!r}"
        )
    p = model_probability / 100.0
    fair = fair_odds(p)

    kelly = kelly_stake(
        p,
        market_odds,
        cfg.bankroll if bankroll is None else bankroll,
        kelly_fraction=cfg.kelly_fraction,
        max_bet_pct=cfg.max_bet_pct,
        max_single_bet=cfg.max_single_bet,
    )

    edge = (p * market_odds - 1.0) * 100.0
    value = (market_odds / fair - 1.0) * 100.0
    half_kelly_pct = max(0.0, kelly.full) * 50.0
    is_value = kelly.is_value and value >= cfg.min_value_pct

    rating = 0.0
    if is_value:
        rating = min(
            100.0,
            value * _RATING_VALUE_W
            + model_probability * _RATING_PROB_W
            + half_kelly_pct * _RATING_KELLY_W,
        )

    recommendation = "skip"
    if kelly.is_value:
        recommendation = _recommend(rating, value, half_kelly_pct)

    return ValueAssessment(
        market=market,
        pick=pick,
        model_probability=model_probability,
        fair_odds=fair,
        market_odds=market_odds,
        edge_percent=edge,
        value_percent=value,
        kelly=kelly,
        risk_tier=kelly.risk_level,
        rating=rating,
        recommendation=recommendation,
        is_value=is_value,
        warnings=list(kelly.warnings),
    )


def assess_markets(
    probabilities: Mapping[str, float],
    odds: Mapping[str, Optional[float]],
    *,
    bankroll: Optional[float] = None,
    config: Optional[EngineConfig] = None,
) -> List[ValueAssessment]:
    """
    Assess every market that has both a model probability and a usable price.

    ``probabilities`` are fractions keyed like :data:`MARKET_PICKS`; prices
    ≤ 1.0 or missing are skipped.  Results are sorted by rating, best first.
    """
    assessments = []
    for market, pick in MARKET_PICKS.items():
        price = odds.get(market)
        prob = probabilities.get(market)
        if price is None or prob is None or price <= 1.0:
            continue
        assessments.append(
            assess_value(
                market, pick, min(100.0, max(0.0, prob * 100.0)), price,
                bankroll=bankroll, config=config,
            )
        )
    assessments.sort(key=lambda a: (a.rating, a.edge_percent), reverse=True)
    return assessments


def summarize_value_bets(assessments: Iterable[ValueAssessment]) -> ValueSummary:
    """Count, average and pick the best of the value bets in ``assessments``."""
    assessments = list(assessments)
    value_bets = [a for a in assessments if a.is_value]
    n = len(value_bets)
    avg_value = sum(a.value_percent for a in value_bets) / n if n else 0.0
    best = max(value_bets, key=lambda a: a.rating) if value_bets else None

    if n == 0:
        suggestion = "No value found. Wait."
    elif n == 1:
        suggestion = f"Single value bet: {best.market} - {best.pick}"
    elif n >= 3 and avg_value >= 10.0:
        suggestion = f"{n} value bets found. A system bet is worth considering."
    else:
        suggestion = f"{n} value bets available. Best: {best.market}"

    return ValueSummary(
        assessments=assessments,
        total_value_bets=n,
        avg_value=avg_value,
        total_suggested_stake=sum(a.suggested_stake for a in value_bets),
        best_bet=best,
        system_suggestion=suggestion,
    )


# ---------------------------------------------------------------------------
# Calibration hook
# ---------------------------------------------------------------------------

def apply_calibration(
    probabilities: Mapping[str, float],
    multipliers: Mapping[str, float],
) -> Dict[str, float]:
    """
    Scale raw market probabilities by per-market calibration multipliers.

    Markets without a multiplier pass through unchanged.  Scaled values
    are clamped to ``[0.01, 0.99]``.
    """
    calibrated = {}
    for market, prob in probabilities.items():
        mult = multipliers.get(market)
        if mult is None:
            calibrated[market] = prob
            continue
        calibrated[market] = min(_CALIBRATED_MAX, max(_CALIBRATED_MIN, prob * mult))
    return calibrated
