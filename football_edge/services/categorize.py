"""
Safe / value / surprise bucketing of a fixture's headline pick.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)

SAFE_MIN_CONFIDENCE = 75.0
SAFE_MAX_ODDS = 1.65
SURPRISE_MIN_ODDS = 2.50
SURPRISE_MAX_CONFIDENCE = 65.0
FALLBACK_VALUE_CONFIDENCE = 55.0


class MatchCategory(str, Enum):
    SAFE = "safe"
    VALUE = "value"
    SURPRISE = "surprise"


def categorize_pick(confidence: float, odds: Optional[float], value: float = 0.0) -> MatchCategory:
    """
    Bucket a pick by confidence (0–100), decimal price and value %.

    Rules are checked in order::

        confidence ≥ 75 and odds ≤ 1.65   → SAFE
        odds ≥ 2.50 and confidence ≤ 65   → SURPRISE
        value > 0                         → VALUE
        otherwise by confidence alone     → SAFE (≥ 75) / VALUE (≥ 55) / SURPRISE

    A missing price skips the two price rules.
    """
    if odds is not None:
        if confidence >= SAFE_MIN_CONFIDENCE and odds <= SAFE_MAX_ODDS:
            return MatchCategory.SAFE
        if odds >= SURPRISE_MIN_ODDS and confidence <= SURPRISE_MAX_CONFIDENCE:
            return MatchCategory.SURPRISE
    if value > 0:
        return MatchCategory.VALUE
    if confidence >= SAFE_MIN_CONFIDENCE:
        return MatchCategory.SAFE
    if confidence >= FALLBACK_VALUE_CONFIDENCE:
        return MatchCategory.VALUE
    return MatchCategory.SURPRISE


def category_stats(analyses: Iterable) -> Dict[str, Dict]:
    """
    Count, average confidence and average best-bet price per category.

    Accepts anything exposing ``category``, ``confidence_score`` and
    ``best_bet`` (a value assessment with ``market_odds``, or None).
    """
    buckets: Dict[str, Dict] = {
        c.value: {"count": 0, "conf_sum": 0.0, "odds_sum": 0.0, "odds_n": 0}
        for c in MatchCategory
    }
    for a in analyses:
        b = buckets[MatchCategory(a.category).value]
        b["count"] += 1
        b["conf_sum"] += a.confidence_score
        if a.best_bet is not None:
            b["odds_sum"] += a.best_bet.market_odds
            b["odds_n"] += 1

    stats = {}
    for name, b in buckets.items():
        n = b["count"]
        stats[name] = {
            "count": n,
            "avg_confidence": round(b["conf_sum"] / n, 1) if n else 0.0,
            "avg_odds": round(b["odds_sum"] / b["odds_n"], 2) if b["odds_n"] else 0.0,
        }
    return stats
