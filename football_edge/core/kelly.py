"""Kelly criterion sizing: the single source of truth for stake math.

All functions here are **pure**: no I/O, no logging.
Import from this module; never reimplement Kelly locally in services.

The functions cover the sizing contexts of the engine:

1. :func:`full_kelly`: the raw Kelly fraction, negative for −EV prices.
2. :func:`kelly_stake`: fractional Kelly with percentage and absolute caps,
   a risk tier, and the warnings a caller should surface.
3. :func:`probability_of_ruin` and :func:`flat_stake`: bankroll sanity
   checks for users who prefer fixed-unit staking.

Design decisions
----------------
* **Fractional Kelly** defaults to a quarter of full Kelly.  Football model
  probabilities are noisy estimates and overbetting is punished
  asymmetrically (geometric ruin vs. forgone EV).
* A **−EV price is not an error**.  It is returned as a zero stake with an
  explicit warning so that callers can show *why* nothing was staked.
* The **risk tier** is read off the capped fraction actually recommended,
  never off full Kelly.

Run tests with::

    pytest tests/test_kelly.py -v
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Optional

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Default multiplier applied to full Kelly (quarter Kelly).
DEFAULT_KELLY_FRACTION: Final[float] = 0.25

#: Default cap on the fractional stake, percent of bankroll.
DEFAULT_MAX_BET_PCT: Final[float] = 5.0

#: Full Kelly above this is flagged as an aggressive estimate.
AGGRESSIVE_FULL_KELLY: Final[float] = 0.25

#: Stakes below one currency unit are rounded to zero.
MIN_STAKE: Final[float] = 1.0

#: Risk tier thresholds on the capped fraction, checked in order.
_RISK_TIERS: Final[tuple[tuple[float, str], ...]] = (
    (0.10, "extreme"),
    (0.05, "high"),
    (0.02, "medium"),
)

NEGATIVE_EV_WARNING: Final[str] = "-EV, do not bet"


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


@dataclass
class KellyStake:
    """Outcome of a Kelly sizing call.

    ``full`` and ``fractional`` are fractions of bankroll; ``edge_percent``
    is the expected value per unit staked, in percent.
    """

    full: float
    fractional: float
    suggested_stake: float
    expected_value: float
    edge_percent: float
    risk_level: str
    is_value: bool
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "full": round(self.full, 6),
            "fractional": round(self.fractional, 6),
            "suggested_stake": round(self.suggested_stake, 2),
            "expected_value": round(self.expected_value, 6),
            "edge_percent": round(self.edge_percent, 3),
            "risk_level": self.risk_level,
            "is_value": self.is_value,
            "warnings": list(self.warnings),
        }


# ---------------------------------------------------------------------------
# Kelly
# ---------------------------------------------------------------------------


def _check_inputs(win_prob: float, decimal_odds: float) -> None:
    if not (0.0 <= win_prob <= 1.0):
        raise ValueError(
            f"win_prob must be in [0, 1], got {win_prob!r}. "
            "Pass probabilities as fractions, not percentages."
        )
    if decimal_odds <= 1.0:
        raise ValueError(
            f"decimal_odds must be > 1.0 (no profit otherwise), got {decimal_odds!r}."
        )


def full_kelly(win_prob: float, decimal_odds: float) -> float:
    """Full Kelly fraction for a win/lose bet.

    Solves ``max_f E[log(1 + f·X)]`` for a payoff of ``b = odds − 1`` with
    probability ``p`` and ``−1`` with probability ``q = 1 − p``::

        f*  =  (b·p − q) / b                                      (1)

    The value is returned unclipped, so a negative result identifies a −EV
    price.

    Raises:
        ValueError: If ``win_prob`` is outside ``[0, 1]`` or
            ``decimal_odds ≤ 1.0``.

    Examples::

        full_kelly(0.55, 2.00)  →   0.10
        full_kelly(0.55, 1.50)  →  -0.35
    """
    _check_inputs(win_prob, decimal_odds)
    b = decimal_odds - 1.0
    return (b * win_prob - (1.0 - win_prob)) / b


def risk_tier(fraction: float) -> str:
    """Classify a recommended bankroll fraction.

    ``> 10%`` extreme, ``> 5%`` high, ``> 2%`` medium, else low.
    """
    for threshold, label in _RISK_TIERS:
        if fraction > threshold:
            return label
    return "low"


def kelly_stake(
    win_prob: float,
    decimal_odds: float,
    bankroll: float,
    *,
    kelly_fraction: float = DEFAULT_KELLY_FRACTION,
    max_bet_pct: float = DEFAULT_MAX_BET_PCT,
    max_single_bet: Optional[float] = None,
) -> KellyStake:
    """Size a single bet with capped fractional Kelly.

    Steps:

    1. ``f* = full_kelly(p, odds)``.  If ``f* ≤ 0`` the stake is 0 and the
       ``-EV, do not bet`` warning is attached.
    2. ``f = f* · kelly_fraction``, capped at ``max_bet_pct / 100``.
    3. ``stake = f · bankroll``, capped at ``max_single_bet``.  Stakes
       below one unit become 0.  ``f`` is restated as ``stake / bankroll``
       after either adjustment, and the risk tier is read from it.

    Every cap that bites adds a warning rather than failing silently.

    Args:
        win_prob: Model probability of the pick, in ``[0, 1]``.
        decimal_odds: Market price (> 1.0).
        bankroll: Current bankroll, ≥ 0.
        kelly_fraction: Multiplier on full Kelly, in ``(0, 1]``.
        max_bet_pct: Cap on the fraction, in percent of bankroll.
        max_single_bet: Optional absolute stake cap.

    Returns:
        :class:`KellyStake`.

    Raises:
        ValueError: On out-of-range probability, odds, bankroll or fraction.

    Examples::

        kelly_stake(0.60, 2.00, 1000).suggested_stake   →  50.0   (quarter Kelly)
        kelly_stake(0.55, 1.50, 1000).suggested_stake   →   0.0   (−EV)
    """
    _check_inputs(win_prob, decimal_odds)
    if bankroll < 0.0:
        raise ValueError(f"bankroll must be ≥ 0, got {bankroll!r}.")
    if not (0.0 < kelly_fraction <= 1.0):
        raise ValueError(f"kelly_fraction must be in (0, 1], got {kelly_fraction!r}.")

    b = decimal_odds - 1.0
    full = full_kelly(win_prob, decimal_odds)
    ev = win_prob * b - (1.0 - win_prob)
    warnings: list[str] = []

    # p·odds ≤ 1 is the exact break-even test; f* can round just above 0.
    if full <= 0.0 or win_prob * decimal_odds <= 1.0:
        warnings.append(NEGATIVE_EV_WARNING)
        return KellyStake(
            full=full,
            fractional=0.0,
            suggested_stake=0.0,
            expected_value=ev,
            edge_percent=ev * 100.0,
            risk_level=risk_tier(0.0),
            is_value=False,
            warnings=warnings,
        )

    if full > AGGRESSIVE_FULL_KELLY:
        warnings.append(
            f"Full Kelly is {full:.1%}; edge estimate may be too optimistic"
        )

    fractional = full * kelly_fraction
    cap = max_bet_pct / 100.0
    if fractional > cap:
        warnings.append(f"Stake capped at {max_bet_pct:g}% of bankroll")
        fractional = cap

    stake = fractional * bankroll
    if max_single_bet is not None and stake > max_single_bet:
        warnings.append(f"Stake capped at max single bet {max_single_bet:g}")
        stake = max_single_bet
        fractional = stake / bankroll
    if stake < MIN_STAKE:
        if bankroll > 0.0:
            warnings.append("Stake below minimum unit, rounded to 0")
            fractional = 0.0
        stake = 0.0

    return KellyStake(
        full=full,
        fractional=fractional,
        suggested_stake=round(stake, 2),
        expected_value=ev,
        edge_percent=ev * 100.0,
        risk_level=risk_tier(fractional),
        is_value=True,
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Bankroll checks
# ---------------------------------------------------------------------------


def probability_of_ruin(
    win_rate: float,
    avg_odds: float,
    bankroll_units: float,
) -> float:
    """Classic gambler's-ruin approximation for flat-unit staking.

    With per-bet edge ``e = win_rate · avg_odds − 1``::

        P(ruin)  =  ((1 − e) / (1 + e)) ^ bankroll_units

    A non-positive edge is certain ruin in the long run (returns 1.0).

    Examples::

        probability_of_ruin(0.55, 2.00, 20)  →  0.018
    """
    edge = win_rate * avg_odds - 1.0
    if edge <= 0.0:
        return 1.0
    if edge >= 1.0:
        return 0.0
    ratio = (1.0 - edge) / (1.0 + edge)
    return ratio ** max(0.0, bankroll_units)


def flat_stake(bankroll: float, percentage: float = 2.0) -> float:
    """Fixed-percentage stake, rounded to cents.

    Examples::

        flat_stake(1000.0)        →  20.0
        flat_stake(1250.0, 1.5)   →  18.75
    """
    return round(bankroll * (percentage / 100.0), 2)
