"""
Calibration feedback loop.

Scores how well past probability outputs matched reality and produces
per-market bias-correction multipliers for the value layer's next run.

Diagnostics (all computed over one bounded window of settled records):

    brier_score
        Mean squared error between predicted probability and the 0/1
        outcome.  ≤ 0.10 excellent, ≤ 0.20 good, ≤ 0.30 acceptable.

    calibration_curve
        Ten equal-width probability bins; per bin the realised hit rate.

    overconfidence_index
        Mean of (bin midpoint − actual rate) over bins with ≥ 5 samples.
        Positive → predictions run hot.

    reliability_score / resolution_score
        Brier decomposition: reliability = 1 − Σ n_k (mid_k − o_k)² / N
        (higher is better calibrated), resolution = Σ n_k (o_k − ō)² / N
        (higher means the model separates outcomes from the base rate).

    suggested_adjustments
        Per market, ``multiplier = avg_actual / avg_predicted``.  Multiplying
        future raw probabilities by it nudges them toward realised
        frequency.  Only produced for markets with enough samples, and
        bounded so a single noisy window cannot swing a market far.

Below the minimum sample size (``EngineConfig.min_calibration_samples``,
default 10) the report is a placeholder with ``status="insufficient_data"`` and no
adjustments: callers must not act on it.

The window is the most recent ``EngineConfig.calibration_window`` records
(default 500).  Unset arguments are read from :func:`get_config` at call time.
"""

import logging
import math
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from football_edge.config import get_config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tuning constants
# ---------------------------------------------------------------------------

# Sample size below which the report is flagged as untrustworthy
_TRUSTWORTHY_SAMPLES = 50

_N_BINS = 10
_MIN_BIN_COUNT = 5

# Safety bounds on a market multiplier
_MULT_MIN, _MULT_MAX = 0.5, 1.5

_BRIER_TIERS = (
    (0.10, "excellent"),
    (0.20, "good"),
    (0.30, "acceptable"),
)

MARKETS = ("home", "draw", "away", "over25", "under25", "btts_yes", "btts_no")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class CalibrationRecord:
    """One settled prediction."""

    fixture_id: int
    market: str
    predicted_probability: float
    realized_outcome: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not (0.0 <= self.predicted_probability <= 1.0):
            raise ValueError(
                f"predicted_probability must be in [0, 1], got {self.predicted_probability!r}"
            )
        if self.realized_outcome not in (0, 1):
            raise ValueError(
                f"realized_outcome must be 0 or 1, got {self.realized_outcome!r}"
            )

    @property
    def key(self) -> Tuple[int, str]:
        return (self.fixture_id, self.market)


@dataclass
class CalibrationBin:
    lower: float
    upper: float
    count: int
    avg_predicted: float
    actual_rate: float

    @property
    def midpoint(self) -> float:
        return (self.lower + self.upper) / 2.0

    def to_dict(self) -> Dict:
        return {
            "range": f"{self.lower:.0%}-{self.upper:.0%}",
            "midpoint": round(self.midpoint, 3),
            "count": self.count,
            "avg_predicted": round(self.avg_predicted, 4),
            "actual_rate": round(self.actual_rate, 4),
        }


@dataclass
class MarketAdjustment:
    market: str
    samples: int
    avg_predicted: float
    avg_actual: float
    bias: float
    multiplier: float

    def to_dict(self) -> Dict:
        return {
            "market": self.market,
            "samples": self.samples,
            "avg_predicted": round(self.avg_predicted, 4),
            "avg_actual": round(self.avg_actual, 4),
            "bias": round(self.bias, 4),
            "multiplier": round(self.multiplier, 4),
        }


@dataclass
class CalibrationReport:
    status: str
    sample_size: int
    brier_score: float
    calibration: str
    overconfidence_index: float = 0.0
    reliability_score: float = 0.0
    resolution_score: float = 0.0
    calibration_curve: List[CalibrationBin] = field(default_factory=list)
    suggested_adjustments: Dict[str, MarketAdjustment] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def is_actionable(self) -> bool:
        return self.status == "ok"

    def multipliers(self) -> Dict[str, float]:
        """market → multiplier, empty unless the report is actionable."""
        if not self.is_actionable:
            return {}
        return {m: adj.multiplier for m, adj in self.suggested_adjustments.items()}

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "sample_size": self.sample_size,
            "brier_score": round(self.brier_score, 4),
            "calibration": self.calibration,
            "overconfidence_index": round(self.overconfidence_index, 4),
            "reliability_score": round(self.reliability_score, 4),
            "resolution_score": round(self.resolution_score, 4),
            "calibration_curve": [b.to_dict() for b in self.calibration_curve],
            "suggested_adjustments": {
                m: adj.to_dict() for m, adj in self.suggested_adjustments.items()
            },
            "recommendations": list(self.recommendations),
            "timestamp": self.timestamp,
        }


# ---------------------------------------------------------------------------
# Diagnostic functions
# ---------------------------------------------------------------------------

def _brier_score(records: List[CalibrationRecord]) -> Optional[float]:
    if not records:
        return None
    return sum(
        (r.predicted_probability - r.realized_outcome) ** 2 for r in records
    ) / len(records)


def _calibration_tier(brier: float) -> str:
    for threshold, label in _BRIER_TIERS:
        if brier <= threshold:
            return label
    return "poor"


def _bin_index(p: float) -> int:
    return min(_N_BINS - 1, int(math.floor(p * _N_BINS)))


def _calibration_curve(records: List[CalibrationRecord]) -> List[CalibrationBin]:
    buckets: List[List[CalibrationRecord]] = [[] for _ in range(_N_BINS)]
    for r in records:
        buckets[_bin_index(r.predicted_probability)].append(r)

    curve = []
    for i, bucket in enumerate(buckets):
        n = len(bucket)
        curve.append(CalibrationBin(
            lower=i / _N_BINS,
            upper=(i + 1) / _N_BINS,
            count=n,
            avg_predicted=sum(r.predicted_probability for r in bucket) / n if n else 0.0,
            actual_rate=sum(r.realized_outcome for r in bucket) / n if n else 0.0,
        ))
    return curve


def _overconfidence(curve: List[CalibrationBin]) -> float:
    """
    Mean (midpoint − actual rate) over bins with enough samples.

    Returns 0.0 when no bin qualifies.
    """
    gaps = [b.midpoint - b.actual_rate for b in curve if b.count >= _MIN_BIN_COUNT]
    return sum(gaps) / len(gaps) if gaps else 0.0


def _reliability(curve: List[CalibrationBin], n: int) -> float:
    penalty = sum(b.count * (b.midpoint - b.actual_rate) ** 2 for b in curve) / n
    return max(0.0, 1.0 - penalty)


def _resolution(curve: List[CalibrationBin], n: int, base_rate: float) -> float:
    return sum(b.count * (b.actual_rate - base_rate) ** 2 for b in curve) / n


def _market_adjustments(
    records: List[CalibrationRecord], min_market_samples: int
) -> Dict[str, MarketAdjustment]:
    by_market: Dict[str, List[CalibrationRecord]] = {}
    for r in records:
        by_market.setdefault(r.market, []).append(r)

    adjustments = {}
    for market, recs in sorted(by_market.items()):
        n = len(recs)
        if n < min_market_samples:
            logger.debug("Market %s has %d samples, no adjustment", market, n)
            continue
        avg_pred = sum(r.predicted_probability for r in recs) / n
        avg_actual = sum(r.realized_outcome for r in recs) / n

        if avg_pred > 0:
            multiplier = avg_actual / avg_pred
        else:
            multiplier = 1.0
        multiplier = max(_MULT_MIN, min(_MULT_MAX, multiplier))

        adjustments[market] = MarketAdjustment(
            market=market,
            samples=n,
            avg_predicted=avg_pred,
            avg_actual=avg_actual,
            bias=avg_pred - avg_actual,
            multiplier=multiplier,
        )
    return adjustments


def _recommendations(
    brier: float, overconfidence: float, reliability: float, resolution: float, n: int
) -> List[str]:
    recs = []
    if overconfidence > 0.1:
        recs.append("Predictions are overconfident: shrink probabilities toward 50%.")
    elif overconfidence < -0.1:
        recs.append("Predictions are underconfident: the model can be bolder.")
    if brier > 0.25:
        recs.append("Brier score is high: review model inputs and weights.")
    if reliability < 0.7:
        recs.append("Low reliability: predicted probabilities do not match hit rates.")
    if resolution < 0.1:
        recs.append("Low resolution: predictions barely separate outcomes from the base rate.")
    if n < _TRUSTWORTHY_SAMPLES:
        recs.append(f"Only {n} records: collect at least {_TRUSTWORTHY_SAMPLES} before trusting this report.")
    if not recs:
        recs.append("Calibration looks healthy.")
    return recs


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def build_calibration_report(
    records: Iterable[CalibrationRecord],
    *,
    min_samples: Optional[int] = None,
    min_market_samples: Optional[int] = None,
    window: Optional[int] = None,
) -> CalibrationReport:
    """
    Score a batch of settled predictions.

    Only the ``window`` most recent records (by ``created_at``) are read.
    Returns a report with ``status`` one of:
        "insufficient_data" – below ``min_samples``; neutral placeholder values
        "ok"                – full diagnostics and adjustments
    """
    cfg = get_config()
    min_samples = cfg.min_calibration_samples if min_samples is None else min_samples
    min_market_samples = cfg.min_market_samples if min_market_samples is None else min_market_samples
    window = cfg.calibration_window if window is None else window

    ordered = sorted(records, key=lambda r: r.created_at)
    recent = ordered[-window:] if window > 0 else ordered
    n = len(recent)

    if n < min_samples:
        logger.info(
            "Calibration: only %d records (need %d), returning placeholder",
            n, min_samples,
        )
        return CalibrationReport(
            status="insufficient_data",
            sample_size=n,
            brier_score=0.5,
            calibration="poor",
            recommendations=[
                f"Not enough data: at least {_TRUSTWORTHY_SAMPLES} settled predictions are needed."
            ],
        )

    brier = _brier_score(recent)
    curve = _calibration_curve(recent)
    base_rate = sum(r.realized_outcome for r in recent) / n
    overconfidence = _overconfidence(curve)
    reliability = _reliability(curve, n)
    resolution = _resolution(curve, n, base_rate)
    adjustments = _market_adjustments(recent, min_market_samples)

    report = CalibrationReport(
        status="ok",
        sample_size=n,
        brier_score=brier,
        calibration=_calibration_tier(brier),
        overconfidence_index=overconfidence,
        reliability_score=reliability,
        resolution_score=resolution,
        calibration_curve=curve,
        suggested_adjustments=adjustments,
        recommendations=_recommendations(brier, overconfidence, reliability, resolution, n),
    )
    logger.info(
        "Calibration: n=%d brier=%.4f (%s) overconf=%+.3f reliability=%.3f, %d market adjustments",
        n, brier, report.calibration, overconfidence, reliability, len(adjustments),
    )
    return report


# ---------------------------------------------------------------------------
# In-process record store
# ---------------------------------------------------------------------------

class CalibrationStore:
    """
    Bounded, thread-safe store of settled predictions.

    Settling the same ``(fixture_id, market)`` twice is idempotent: the
    later write replaces the earlier one.  Only the ``max_records`` most
    recently written records are kept.
    """

    def __init__(self, max_records: Optional[int] = None):
        self.max_records = get_config().calibration_window if max_records is None else max_records
        self._records: "OrderedDict[Tuple[int, str], CalibrationRecord]" = OrderedDict()
        self._lock = threading.Lock()

    def upsert(self, record: CalibrationRecord) -> None:
        with self._lock:
            self._records.pop(record.key, None)
            self._records[record.key] = record
            while len(self._records) > self.max_records:
                self._records.popitem(last=False)

    def settle(
        self, fixture_id: int, market: str, predicted_probability: float, outcome: int
    ) -> CalibrationRecord:
        record = CalibrationRecord(
            fixture_id=fixture_id,
            market=market,
            predicted_probability=predicted_probability,
            realized_outcome=outcome,
        )
        self.upsert(record)
        return record

    def recent(self, n: Optional[int] = None) -> List[CalibrationRecord]:
        with self._lock:
            records = list(self._records.values())
        return records if n is None else records[-n:]

    def report(self, **kwargs) -> CalibrationReport:
        return build_calibration_report(self.recent(), **kwargs)

    def __len__(self) -> int:
        return len(self._records)
