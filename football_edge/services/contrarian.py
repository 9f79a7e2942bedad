"""
Contrarian and odds-anomaly detector.

Two independent checks, both returning plain result objects (or nothing)
rather than raising when no signal is found:

    1. Anti-public signal
        Builds a "public" consensus from the bookmaker's normalised 1X2
        implied probabilities (blended with an external consensus
        prediction when one is supplied, nudged by strong head-to-head and
        form cues), then compares it with the model's own 1X2 consensus.
        Different sides → contrarian signal.  Same side → only reported when
        the confidence gap is large.

    2. Odds movement anomalies
        Compares each market's opening price (from an injected
        :class:`OddsHistoryBuffer`) with the current price.  Large moves are
        anomalies; a favourite drifting out is suspicious (team news).
        Markets without an opening price fall back to a model-vs-market
        implied-probability gap check.  One signal per market survives.

All thresholds come from :class:`EngineConfig` and are hand-tuned defaults.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from football_edge.config import EngineConfig, get_config
from football_edge.services.odds_history import OddsHistoryBuffer

logger = logging.getLogger(__name__)

# Side order used to break ties: home, then away, then draw
_SIDE_PRIORITY = ("home", "away", "draw")

# Public consensus adjustments
_EXTERNAL_WEIGHT_WITH_ODDS = 0.4
_ODDS_WEIGHT_WITH_EXTERNAL = 0.6
_EXTERNAL_WEIGHT_ALONE = 0.7
_H2H_DOMINANCE = 70.0
_H2H_BONUS = 5.0
_FORM_GAP = 20.0
_FORM_BONUS = 3.0

# Markets checked for price anomalies
ANOMALY_MARKETS: Tuple[str, ...] = ("home", "draw", "away", "over25", "under25", "btts_yes")

MARKET_LABELS: Dict[str, str] = {
    "home": "Home win",
    "draw": "Draw",
    "away": "Away win",
    "over25": "Over 2.5",
    "under25": "Under 2.5",
    "btts_yes": "BTTS Yes",
}

# ±1% dead band before a move counts as up/down
_DIRECTION_DEAD_BAND = 1.0


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class ContrarianSignal:
    """Model consensus diverging from public consensus for one fixture."""

    fixture_id: int
    public_side: str
    public_confidence: int
    model_side: str
    model_confidence: int
    is_contrarian: bool
    contrary_edge: int
    reason: str

    def to_dict(self) -> Dict:
        return {
            "fixture_id": self.fixture_id,
            "public_side": self.public_side,
            "public_confidence": self.public_confidence,
            "model_side": self.model_side,
            "model_confidence": self.model_confidence,
            "is_contrarian": self.is_contrarian,
            "contrary_edge": self.contrary_edge,
            "reason": self.reason,
        }


@dataclass
class OddsAnomaly:
    """Abnormal price movement, or a large model-vs-market gap."""

    fixture_id: int
    market: str
    opening_price: Optional[float]
    current_price: float
    change_percent: float
    direction: str                   # "up" | "down" | "stable"
    implied_prob_shift: float        # percentage points
    is_anomaly: bool
    is_suspicious: bool
    reason: str
    source: str                      # "movement" | "model_gap"

    def to_dict(self) -> Dict:
        return {
            "fixture_id": self.fixture_id,
            "market": self.market,
            "opening_price": self.opening_price,
            "current_price": self.current_price,
            "change_percent": round(self.change_percent, 2),
            "direction": self.direction,
            "implied_prob_shift": round(self.implied_prob_shift, 2),
            "is_anomaly": self.is_anomaly,
            "is_suspicious": self.is_suspicious,
            "reason": self.reason,
            "source": self.source,
        }


# ---------------------------------------------------------------------------
# Consensus helpers
# ---------------------------------------------------------------------------

def _pick_side(probs: Mapping[str, float]) -> Tuple[str, float]:
    top = max(probs[s] for s in _SIDE_PRIORITY)
    for side in _SIDE_PRIORITY:
        if probs[side] == top:
            return side, top
    return "home", top


def _implied_1x2(prices: Mapping[str, Optional[float]]) -> Optional[Dict[str, float]]:
    if not all((prices.get(s) or 0.0) > 1.0 for s in _SIDE_PRIORITY):
        return None
    raw = {s: 1.0 / prices[s] for s in _SIDE_PRIORITY}
    total = sum(raw.values())
    return {s: v / total * 100.0 for s, v in raw.items()}


def public_consensus(
    prices: Mapping[str, Optional[float]],
    external: Optional[Mapping[str, float]] = None,
    h2h_home_advantage: Optional[float] = None,
    form_difference: Optional[float] = None,
) -> Tuple[str, int]:
    """
    Public side and confidence (0–100) for a fixture.

    ``external`` is a third-party 1X2 prediction in percent.  It carries
    40% weight against the market's 60% when prices exist, 70% alone.
    """
    public = {s: 0.0 for s in _SIDE_PRIORITY}
    implied = _implied_1x2(prices)
    if implied is not None:
        public.update(implied)

    if external is not None and all(external.get(s) for s in _SIDE_PRIORITY):
        if implied is not None:
            w_ext, w_odds = _EXTERNAL_WEIGHT_WITH_ODDS, _ODDS_WEIGHT_WITH_EXTERNAL
        else:
            w_ext, w_odds = _EXTERNAL_WEIGHT_ALONE, 0.0
        public = {s: public[s] * w_odds + external[s] * w_ext for s in _SIDE_PRIORITY}

    if h2h_home_advantage is not None and h2h_home_advantage > _H2H_DOMINANCE:
        public["home"] += _H2H_BONUS
    if form_difference is not None:
        if form_difference > _FORM_GAP:
            public["home"] += _FORM_BONUS
        elif form_difference < -_FORM_GAP:
            public["away"] += _FORM_BONUS

    total = sum(public.values())
    if total <= 0:
        return "home", 33
    public = {s: v / total * 100.0 for s, v in public.items()}
    side, top = _pick_side(public)
    return side, int(round(top))


def model_consensus(home: float, draw: float, away: float) -> Tuple[str, int]:
    """Model side and confidence from 1X2 probabilities given in percent."""
    side, top = _pick_side({"home": home, "draw": draw, "away": away})
    return side, int(round(top))


# ---------------------------------------------------------------------------
# Anti-public signal
# ---------------------------------------------------------------------------

def detect_contrarian(
    fixture_id: int,
    model_probs: Mapping[str, float],
    prices: Mapping[str, Optional[float]],
    *,
    home_team: str = "Home",
    away_team: str = "Away",
    external: Optional[Mapping[str, float]] = None,
    h2h_home_advantage: Optional[float] = None,
    form_difference: Optional[float] = None,
    config: Optional[EngineConfig] = None,
) -> Optional[ContrarianSignal]:
    """
    Compare model and public consensus for one fixture.

    ``model_probs`` holds ``home``/``draw``/``away`` as fractions.
    Returns None when the model agrees with the public within the
    configured gap.
    """
    cfg = config or get_config()
    public_side, public_conf = public_consensus(
        prices, external, h2h_home_advantage, form_difference
    )
    model_side, model_conf = model_consensus(
        model_probs["home"] * 100.0, model_probs["draw"] * 100.0, model_probs["away"] * 100.0
    )

    is_contrarian = model_side != public_side
    if is_contrarian:
        edge = model_conf - (100 - public_conf)
    else:
        edge = abs(model_conf - public_conf)
        if edge < cfg.contrarian_min_gap or edge < cfg.contrarian_min_edge:
            return None

    labels = {"home": home_team, "away": away_team, "draw": "Draw"}
    if is_contrarian:
        reason = (
            f'Public backs "{labels[public_side]}" ({public_conf}%), '
            f'model favours "{labels[model_side]}" ({model_conf}%)'
        )
    else:
        reason = (
            f"Same side but wide gap: public {public_conf}%, model {model_conf}%"
        )

    signal = ContrarianSignal(
        fixture_id=fixture_id,
        public_side=public_side,
        public_confidence=public_conf,
        model_side=model_side,
        model_confidence=model_conf,
        is_contrarian=is_contrarian,
        contrary_edge=int(round(edge)),
        reason=reason,
    )
    logger.debug("Contrarian signal for fixture %s: %s", fixture_id, reason)
    return signal


def scan_contrarian(
    fixtures: Iterable[Mapping],
    config: Optional[EngineConfig] = None,
) -> List[ContrarianSignal]:
    """
    Run :func:`detect_contrarian` over many fixtures; strongest edge first.

    Each item is a mapping of :func:`detect_contrarian` keyword arguments
    (``fixture_id``, ``model_probs``, ``prices`` plus optional extras).
    """
    signals = []
    for item in fixtures:
        signal = detect_contrarian(config=config, **item)
        if signal is not None:
            signals.append(signal)
    signals.sort(key=lambda s: s.contrary_edge, reverse=True)
    return signals


# ---------------------------------------------------------------------------
# Odds movement anomalies
# ---------------------------------------------------------------------------

def _implied_pct(price: float) -> float:
    return 100.0 if price <= 1.0 else 100.0 / price


def _movement_anomaly(
    fixture_id: int, market: str, opening: float, current: float, cfg: EngineConfig
) -> Optional[OddsAnomaly]:
    change = (current - opening) / opening * 100.0
    if change > _DIRECTION_DEAD_BAND:
        direction = "up"
    elif change < -_DIRECTION_DEAD_BAND:
        direction = "down"
    else:
        direction = "stable"

    is_anomaly = abs(change) >= cfg.odds_anomaly_pct
    is_suspicious = (
        opening < cfg.favorite_max_price
        and direction == "up"
        and abs(change) >= cfg.favorite_drift_pct
    )
    if not (is_anomaly or is_suspicious):
        return None

    label = MARKET_LABELS.get(market, market)
    if is_suspicious:
        reason = (
            f"{label}: favourite drifted {opening:.2f} → {current:.2f}; "
            "possible injury or team news"
        )
    elif direction == "down":
        reason = f"{label}: price shortened {opening:.2f} → {current:.2f}; heavy money"
    else:
        reason = f"{label}: price drifted {opening:.2f} → {current:.2f}; market losing faith"

    return OddsAnomaly(
        fixture_id=fixture_id,
        market=market,
        opening_price=opening,
        current_price=current,
        change_percent=change,
        direction=direction,
        implied_prob_shift=abs(_implied_pct(opening) - _implied_pct(current)),
        is_anomaly=is_anomaly,
        is_suspicious=is_suspicious,
        reason=reason,
        source="movement",
    )


def _model_gap_anomaly(
    fixture_id: int, market: str, current: float, model_pct: float, cfg: EngineConfig
) -> Optional[OddsAnomaly]:
    implied = _implied_pct(current)
    gap = model_pct - implied
    if abs(gap) < cfg.model_gap_flag:
        return None

    label = MARKET_LABELS.get(market, market)
    if gap > 0:
        reason = f"{label}: model {model_pct:.0f}% vs market {implied:.0f}% (+{gap:.0f} pts edge)"
    else:
        reason = f"{label}: market {implied:.0f}% vs model only {model_pct:.0f}%; caution"

    return OddsAnomaly(
        fixture_id=fixture_id,
        market=market,
        opening_price=None,
        current_price=current,
        change_percent=0.0,
        # Model above market means the price is "too long": value lies down
        direction="down" if gap > 0 else "up",
        implied_prob_shift=abs(gap),
        is_anomaly=abs(gap) >= cfg.model_gap_anomaly,
        is_suspicious=gap > cfg.model_gap_anomaly,
        reason=reason,
        source="model_gap",
    )


def detect_odds_anomalies(
    fixture_id: int,
    current_prices: Mapping[str, Optional[float]],
    buffer: Optional[OddsHistoryBuffer] = None,
    model_probabilities: Optional[Mapping[str, float]] = None,
    config: Optional[EngineConfig] = None,
) -> List[OddsAnomaly]:
    """
    Flag abnormal prices for one fixture.

    Args:
        fixture_id: Fixture key into ``buffer``.
        current_prices: Market key → current decimal price.
        buffer: Odds history; its first snapshot per market is the opening
            price.  Without one every market takes the model-gap path.
        model_probabilities: Market key → model probability (fraction),
            used only for markets without an opening price.
        config: Engine configuration.

    Returns:
        At most one :class:`OddsAnomaly` per market, the one with the
        largest implied-probability shift.
    """
    cfg = config or get_config()
    found: Dict[str, OddsAnomaly] = {}

    for market in ANOMALY_MARKETS:
        current = current_prices.get(market)
        if current is None or current <= 1.0:
            continue

        opening_snap = buffer.opening(fixture_id, market) if buffer is not None else None
        candidates: List[OddsAnomaly] = []
        if opening_snap is not None and opening_snap.price > 1.0:
            hit = _movement_anomaly(fixture_id, market, opening_snap.price, current, cfg)
            if hit is not None:
                candidates.append(hit)
        elif model_probabilities and model_probabilities.get(market):
            hit = _model_gap_anomaly(
                fixture_id, market, current, model_probabilities[market] * 100.0, cfg
            )
            if hit is not None:
                candidates.append(hit)

        for cand in candidates:
            existing = found.get(market)
            if existing is None or cand.implied_prob_shift > existing.implied_prob_shift:
                found[market] = cand

    anomalies = list(found.values())
    for a in anomalies:
        if a.is_suspicious:
            logger.warning("Fixture %s: %s", fixture_id, a.reason)
    return anomalies
