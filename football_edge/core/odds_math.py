"""Fundamental decimal-odds mathematics.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services.

Design decisions
----------------
* All prices are **decimal odds** (European format), the format used by
  every football data provider the engine is fed from.  A price of ``2.50``
  returns 2.50 per unit staked, including the stake.
* Overround removal is **multiplicative normalisation**.  Football 1X2
  markets carry three outcomes, and the three-way market is what the
  contrarian detector reads as "public consensus", so the simple
  proportional method is used consistently across the engine.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

from typing import Final, Mapping

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Fair odds reported for a zero-probability outcome (a finite sentinel
#: instead of ``inf`` so results stay JSON-serialisable).
MAX_FAIR_ODDS: Final[float] = 100.0

#: Lowest price that carries any payout information.  A price of exactly
#: 1.00 returns only the stake.
MIN_DECIMAL_ODDS: Final[float] = 1.0


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


def implied_probability(decimal_odds: float) -> float:
    """Convert a decimal price to its raw implied probability (with vig).

    Args:
        decimal_odds: Decimal price, must be ≥ 1.0.

    Returns:
        ``1 / decimal_odds`` in ``(0, 1]``.

    Raises:
        ValueError: If ``decimal_odds < 1.0``.

    Examples::

        implied_probability(2.00)  →  0.500
        implied_probability(1.50)  →  0.667
    """
    if decimal_odds < MIN_DECIMAL_ODDS:
        raise ValueError(
            f"decimal_odds must be ≥ 1.0, got {decimal_odds!r}."
        )
    return 1.0 / decimal_odds


def fair_odds(probability: float) -> float:
    """Break-even decimal price for a probability in ``[0, 1]``.

    A zero probability maps to :data:`MAX_FAIR_ODDS` rather than infinity.
    """
    if not (0.0 <= probability <= 1.0):
        raise ValueError(f"probability must be in [0, 1], got {probability!r}.")
    if probability == 0.0:
        return MAX_FAIR_ODDS
    return 1.0 / probability


def overround(prices: Mapping[str, float]) -> float:
    """Bookmaker margin of a complete market: ``Σ 1/price − 1``."""
    return sum(implied_probability(p) for p in prices.values()) - 1.0


def normalize_implied(prices: Mapping[str, float]) -> dict[str, float]:
    """Remove the overround from a complete market by proportional scaling.

    Args:
        prices: Outcome key → decimal price.  Must describe a complete,
            mutually exclusive market (e.g. ``{"home", "draw", "away"}``).

    Returns:
        Outcome key → no-vig probability, summing to 1.

    Raises:
        ValueError: If ``prices`` is empty or any price is < 1.0.

    Examples::

        normalize_implied({"home": 2.0, "draw": 3.4, "away": 3.8})
        →  {"home": 0.473, "draw": 0.278, "away": 0.249}
    """
    if not prices:
        raise ValueError("prices must contain at least one outcome.")
    raw = {k: implied_probability(v) for k, v in prices.items()}
    total = sum(raw.values())
    return {k: v / total for k, v in raw.items()}
