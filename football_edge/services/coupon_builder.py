"""
Constrained multi-leg coupon builder.

Selects a subset of candidate legs whose combined price lands inside a
tolerance band around a caller-supplied target, without ever relaxing the
confidence or value floors to get there.  Legs are treated as independent
(one leg per fixture), so the combined probability is the product of the
leg probabilities.

Coupons compound variance as well as price, so sizing is a fraction of the
quarter-Kelly stake for singles, scaled by the requested risk level.
"""

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from football_edge.config import EngineConfig, get_config
from football_edge.core.kelly import kelly_stake

logger = logging.getLogger(__name__)

# Stake multiplier per requested risk level
RISK_MULTIPLIERS: Dict[str, float] = {"low": 0.7, "medium": 1.0, "high": 1.3}

# Subsets evaluated before the exhaustive search gives way to greedy
MAX_EVALUATED_SUBSETS = 50_000


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class CouponConstraintSet:
    """Caller-supplied coupon constraints."""

    target_odds: float
    risk_level: str = "medium"
    max_legs: int = 3
    min_confidence: float = 60.0
    min_value: float = 0.0
    bankroll: Optional[float] = None
    tolerance: Optional[float] = None
    pool_cap: Optional[int] = None

    def __post_init__(self):
        if self.target_odds <= 1.0:
            raise ValueError(f"target_odds must be > 1.0, got {self.target_odds!r}")
        if self.risk_level not in RISK_MULTIPLIERS:
            raise ValueError(
                f"risk_level must be one of {sorted(RISK_MULTIPLIERS)}, got {self.risk_level!r}"
            )
        if self.max_legs < 1:
            raise ValueError(f"max_legs must be >= 1, got {self.max_legs!r}")


@dataclass
class CouponLeg:
    """One selection offered to the builder."""

    fixture_id: int
    home_team: str
    away_team: str
    market: str
    pick: str
    odds: float
    confidence: float            # 0-100
    value: float                 # value %, may be negative
    model_probability: float     # fraction

    @property
    def rating(self) -> float:
        return self.value + self.confidence

    @property
    def label(self) -> str:
        return f"{self.home_team} vs {self.away_team}: {self.pick} @ {self.odds:.2f}"

    def to_dict(self) -> Dict:
        return {
            "fixture_id": self.fixture_id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "market": self.market,
            "pick": self.pick,
            "odds": self.odds,
            "confidence": round(self.confidence, 1),
            "value": round(self.value, 2),
            "model_probability": round(self.model_probability, 4),
        }


@dataclass
class GeneratedCoupon:
    status: str                          # "ok" | "cannot_meet_constraints"
    legs: List[CouponLeg] = field(default_factory=list)
    combined_odds: float = 0.0
    combined_probability: float = 0.0
    total_stake: float = 0.0
    potential_return: float = 0.0
    expected_value: float = 0.0
    risk_level: str = "medium"
    evaluated_subsets: int = 0
    method: str = "exhaustive"
    reason: str = ""

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "legs": [leg.to_dict() for leg in self.legs],
            "combined_odds": round(self.combined_odds, 2),
            "combined_probability": round(self.combined_probability, 4),
            "total_stake": round(self.total_stake, 2),
            "potential_return": round(self.potential_return, 2),
            "expected_value": round(self.expected_value, 4),
            "risk_level": self.risk_level,
            "evaluated_subsets": self.evaluated_subsets,
            "method": self.method,
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Search helpers
# ---------------------------------------------------------------------------

def _combined_odds(legs: Sequence[CouponLeg]) -> float:
    odds = 1.0
    for leg in legs:
        odds *= leg.odds
    return odds


def _distance(odds: float, target: float) -> float:
    return abs(math.log(odds / target))


def _score(legs: Sequence[CouponLeg], target: float) -> Tuple[float, float]:
    mean_conf = sum(leg.confidence for leg in legs) / len(legs)
    return (_distance(_combined_odds(legs), target), -mean_conf)


def _within(odds: float, target: float, tolerance: float) -> bool:
    return abs(odds / target - 1.0) <= tolerance


def _qualified_pool(
    candidates: Iterable[CouponLeg], constraints: CouponConstraintSet, pool_cap: int
) -> List[CouponLeg]:
    """Hard filters, then the best leg per fixture, then the top ``pool_cap``."""
    best_per_fixture: Dict[int, CouponLeg] = {}
    for leg in candidates:
        if leg.odds <= 1.0:
            continue
        if leg.confidence < constraints.min_confidence:
            continue
        if leg.value < constraints.min_value or leg.value <= 0:
            continue
        current = best_per_fixture.get(leg.fixture_id)
        if current is None or leg.rating > current.rating:
            best_per_fixture[leg.fixture_id] = leg
    pool = sorted(best_per_fixture.values(), key=lambda l: l.rating, reverse=True)
    return pool[:pool_cap]


def _subset_count(pool_size: int, max_legs: int) -> int:
    return sum(math.comb(pool_size, k) for k in range(1, min(max_legs, pool_size) + 1))


def _exhaustive(
    pool: List[CouponLeg], constraints: CouponConstraintSet, tolerance: float
) -> Tuple[Optional[Tuple[CouponLeg, ...]], Optional[Tuple[CouponLeg, ...]], int]:
    """Best in-band subset, closest subset overall, subsets evaluated."""
    target = constraints.target_odds
    best = closest = None
    best_score = closest_score = None
    evaluated = 0
    for size in range(1, min(constraints.max_legs, len(pool)) + 1):
        for combo in itertools.combinations(pool, size):
            evaluated += 1
            score = _score(combo, target)
            if closest_score is None or score < closest_score:
                closest, closest_score = combo, score
            if _within(_combined_odds(combo), target, tolerance):
                if best_score is None or score < best_score:
                    best, best_score = combo, score
    return best, closest, evaluated


def _greedy(
    pool: List[CouponLeg], constraints: CouponConstraintSet
) -> Tuple[Tuple[CouponLeg, ...], int]:
    """Add whichever leg moves the combined price closest to target, until none helps."""
    target = constraints.target_odds
    chosen: List[CouponLeg] = []
    remaining = list(pool)
    evaluated = 0
    while remaining and len(chosen) < constraints.max_legs:
        current = _distance(_combined_odds(chosen), target) if chosen else float("inf")
        pick = None
        pick_dist = current
        for leg in remaining:
            evaluated += 1
            dist = _distance(_combined_odds(chosen + [leg]), target)
            if dist < pick_dist:
                pick, pick_dist = leg, dist
        if pick is None:
            break
        chosen.append(pick)
        remaining.remove(pick)
    return tuple(chosen), evaluated


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def build_coupon(
    candidates: Iterable[CouponLeg],
    constraints: CouponConstraintSet,
    config: Optional[EngineConfig] = None,
) -> GeneratedCoupon:
    """
    Build one coupon meeting ``constraints`` from ``candidates``.

    Search:
        1. Hard filter: confidence ≥ ``min_confidence``, value ≥
           ``min_value`` and > 0.  Filtered legs are never reconsidered.
        2. Keep the best leg per fixture and the top ``pool_cap`` by
           value + confidence.
        3. Evaluate every subset of 1..``max_legs`` legs when that is at most
           :data:`MAX_EVALUATED_SUBSETS` subsets, else build greedily by
           nearest combined price.
        4. Among subsets within ``tolerance`` (relative) of the target, take
           the one closest in log-odds, then highest mean confidence.

    Returns:
        :class:`GeneratedCoupon`.  When nothing lands inside the band the
        status is ``cannot_meet_constraints`` and no legs are returned.
    """
    cfg = config or get_config()
    tolerance = constraints.tolerance if constraints.tolerance is not None else cfg.coupon_tolerance
    pool_cap = constraints.pool_cap if constraints.pool_cap is not None else cfg.coupon_pool_cap
    target = constraints.target_odds

    pool = _qualified_pool(candidates, constraints, pool_cap)
    logger.info(
        "Building coupon: target %.2f ±%.0f%%, %d qualified legs (max_legs=%d)",
        target, tolerance * 100, len(pool), constraints.max_legs,
    )
    if not pool:
        return GeneratedCoupon(
            status="cannot_meet_constraints",
            risk_level=constraints.risk_level,
            reason="No leg passes the confidence and value floors",
        )

    if _subset_count(len(pool), constraints.max_legs) <= MAX_EVALUATED_SUBSETS:
        method = "exhaustive"
        best, closest, evaluated = _exhaustive(pool, constraints, tolerance)
    else:
        method = "greedy"
        closest, evaluated = _greedy(pool, constraints)
        best = closest if closest and _within(_combined_odds(closest), target, tolerance) else None

    if best is None:
        closest_odds = _combined_odds(closest) if closest else 0.0
        reason = (
            f"No combination within ±{tolerance:.0%} of {target:.2f}; "
            f"closest was {closest_odds:.2f} with {len(closest or ())} legs"
        )
        logger.info("Coupon not built: %s", reason)
        return GeneratedCoupon(
            status="cannot_meet_constraints",
            risk_level=constraints.risk_level,
            evaluated_subsets=evaluated,
            method=method,
            reason=reason,
        )

    legs = list(best)
    combined = _combined_odds(legs)
    joint_prob = 1.0
    for leg in legs:
        joint_prob *= min(1.0, max(0.0, leg.model_probability))

    bankroll = constraints.bankroll if constraints.bankroll is not None else cfg.bankroll
    sizing = kelly_stake(
        joint_prob,
        combined,
        bankroll,
        kelly_fraction=min(1.0, cfg.kelly_fraction * RISK_MULTIPLIERS[constraints.risk_level]),
        max_bet_pct=cfg.max_bet_pct,
        max_single_bet=cfg.max_single_bet,
    )
    stake = sizing.suggested_stake

    coupon = GeneratedCoupon(
        status="ok",
        legs=legs,
        combined_odds=combined,
        combined_probability=joint_prob,
        total_stake=stake,
        potential_return=round(stake * combined, 2),
        expected_value=joint_prob * combined - 1.0,
        risk_level=constraints.risk_level,
        evaluated_subsets=evaluated,
        method=method,
        reason="; ".join(sizing.warnings),
    )
    logger.info(
        "Coupon built: %d legs @ %.2f (stake %.2f, %d subsets, %s)",
        len(legs), combined, stake, evaluated, method,
    )
    return coupon


def format_coupon(coupon: GeneratedCoupon) -> str:
    """Human-readable ticket for a generated coupon."""
    if not coupon.is_ok:
        return f"No coupon: {coupon.reason}"
    lines = [f"🎫 {len(coupon.legs)}-Leg Coupon @ {coupon.combined_odds:.2f}"]
    for i, leg in enumerate(coupon.legs, 1):
        lines.append(f"   {i}. {leg.label} (conf {leg.confidence:.0f}%)")
    lines.append(f"   Joint Prob: {coupon.combined_probability:.2%}")
    lines.append(f"   Stake: {coupon.total_stake:.2f} ({coupon.risk_level} risk)")
    lines.append(f"   Potential Return: {coupon.potential_return:.2f}")
    return "\n".join(lines)
