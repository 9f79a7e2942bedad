"""Engine configuration: every tunable threshold in one place.

This module is the **registry** for every constant the engine treats as a
configuration default rather than a law of nature: Monte Carlo trial count,
Kelly fraction and caps, calibration sample sizes, contrarian and odds
anomaly thresholds, coupon search bounds, and batch-scan limits.  Nowhere
else in the codebase should these figures be hard-coded.

It also carries the per-league baseline profiles ("league DNA") used to
blend team scoring rates toward the league average.

Architecture
------------
:class:`EngineConfig` is a frozen dataclass carrying all tunables with
documented defaults.  :meth:`EngineConfig.from_env` overlays environment
variables (``.env`` files are honoured via python-dotenv).  To override a
single value for a test or an experiment::

    from dataclasses import replace
    from football_edge.config import get_config

    cfg = replace(get_config(), kelly_fraction=0.5)

The contrarian and odds-anomaly thresholds are hand-tuned starting points.
Treat them as defaults to validate against settled results, not as proven
optima.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# League baselines
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LeagueProfile:
    """Season-level scoring baseline for a league.

    Attributes:
        avg_goals: Mean total goals per match.
        home_win_rate: Share of matches won by the home side.
        draw_rate: Share of drawn matches.
        btts_rate: Share of matches where both teams scored.
        over25_rate: Share of matches with three or more goals.
        known: False for the fallback profile used for unlisted leagues.
    """

    avg_goals: float
    home_win_rate: float
    draw_rate: float
    btts_rate: float
    over25_rate: float
    known: bool = True

    @property
    def away_win_rate(self) -> float:
        return max(0.0, 1.0 - self.home_win_rate - self.draw_rate)


#: Baselines keyed by data-provider league id.
LEAGUE_PROFILES: Final[dict[int, LeagueProfile]] = {
    39: LeagueProfile(2.85, 0.44, 0.25, 0.55, 0.56),    # Premier League
    40: LeagueProfile(2.72, 0.46, 0.24, 0.54, 0.53),    # Championship
    140: LeagueProfile(2.55, 0.47, 0.26, 0.50, 0.48),   # La Liga
    141: LeagueProfile(2.42, 0.44, 0.28, 0.47, 0.44),   # La Liga 2
    78: LeagueProfile(3.15, 0.45, 0.22, 0.62, 0.64),    # Bundesliga
    79: LeagueProfile(2.95, 0.44, 0.24, 0.58, 0.58),    # 2. Bundesliga
    135: LeagueProfile(2.68, 0.45, 0.27, 0.51, 0.52),   # Serie A
    136: LeagueProfile(2.55, 0.43, 0.28, 0.49, 0.48),   # Serie B
    61: LeagueProfile(2.75, 0.46, 0.24, 0.53, 0.54),    # Ligue 1
    62: LeagueProfile(2.58, 0.44, 0.26, 0.50, 0.50),    # Ligue 2
    88: LeagueProfile(3.05, 0.47, 0.22, 0.60, 0.62),    # Eredivisie
    94: LeagueProfile(2.62, 0.48, 0.24, 0.51, 0.50),    # Primeira Liga
    144: LeagueProfile(2.88, 0.46, 0.23, 0.56, 0.57),   # Pro League
    203: LeagueProfile(2.70, 0.45, 0.25, 0.53, 0.52),   # Super Lig
    2: LeagueProfile(2.92, 0.52, 0.20, 0.56, 0.58),     # Champions League
    3: LeagueProfile(2.78, 0.48, 0.23, 0.54, 0.55),     # Europa League
    848: LeagueProfile(2.65, 0.46, 0.25, 0.52, 0.52),   # Conference League
}

DEFAULT_LEAGUE_PROFILE: Final[LeagueProfile] = LeagueProfile(
    2.55, 0.45, 0.26, 0.50, 0.50, known=False
)


def league_profile(league_id: Optional[int]) -> LeagueProfile:
    """Return the baseline for ``league_id``, or the default profile."""
    if league_id is None:
        return DEFAULT_LEAGUE_PROFILE
    return LEAGUE_PROFILES.get(league_id, DEFAULT_LEAGUE_PROFILE)


# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """Immutable bundle of engine tunables.

    Attributes:
        mc_trials: Monte Carlo trials per fixture.
        max_goals: Poisson grid truncation (grown automatically until the
            tail mass is below 0.001).
        kelly_fraction: Multiplier on full Kelly (0.25 = quarter Kelly).
        max_bet_pct: Cap on the fractional stake, percent of bankroll.
        max_single_bet: Absolute cap on a single stake in currency units.
        bankroll: Bankroll used when the caller does not supply one.
        min_value_pct: Value percentage at which a price counts as value.
        min_calibration_samples: Below this many records the calibration
            report is a placeholder flagged ``insufficient_data``.
        min_market_samples: Records a market needs before it gets a
            bias-correction multiplier.
        calibration_window: Most recent records read per calibration run.
        contrarian_min_gap: Confidence gap (points) for a same-side signal.
        contrarian_min_edge: Minimum edge (points) for a same-side signal.
        model_gap_flag: Model-vs-implied gap (points) that is reported.
        model_gap_anomaly: Model-vs-implied gap (points) treated as an
            anomaly and, in the model's favour, as suspicious.
        odds_anomaly_pct: Price move (percent) flagged as anomalous.
        favorite_drift_pct: Lengthening (percent) of a favourite flagged
            as suspicious.
        favorite_max_price: Opening price below which a pick is a favourite.
        coupon_tolerance: Relative band around the coupon target odds.
        coupon_pool_cap: Candidates kept for the exhaustive coupon search.
        scan_workers: Thread-pool size for batch scans.
        scan_timeout_sec: Default wall-clock budget for a batch scan.
        sim_cache_ttl_sec: Lifetime of cached seeded simulation results.
        odds_history_limit: Snapshots retained per fixture and market.
    """

    mc_trials: int = 10_000
    max_goals: int = 10
    kelly_fraction: float = 0.25
    max_bet_pct: float = 5.0
    max_single_bet: float = 100.0
    bankroll: float = 1000.0
    min_value_pct: float = 5.0
    min_calibration_samples: int = 10
    min_market_samples: int = 10
    calibration_window: int = 500
    contrarian_min_gap: float = 15.0
    contrarian_min_edge: float = 10.0
    model_gap_flag: float = 15.0
    model_gap_anomaly: float = 20.0
    odds_anomaly_pct: float = 10.0
    favorite_drift_pct: float = 8.0
    favorite_max_price: float = 2.0
    coupon_tolerance: float = 0.15
    coupon_pool_cap: int = 15
    scan_workers: int = 4
    scan_timeout_sec: float = 20.0
    sim_cache_ttl_sec: float = 600.0
    odds_history_limit: int = 200

    def __post_init__(self) -> None:
        if self.mc_trials <= 0:
            raise ValueError(f"mc_trials must be > 0, got {self.mc_trials!r}.")
        if not (0.0 < self.kelly_fraction <= 1.0):
            raise ValueError(
                f"kelly_fraction must be in (0, 1], got {self.kelly_fraction!r}."
            )
        if self.scan_workers < 1:
            raise ValueError(f"scan_workers must be ≥ 1, got {self.scan_workers!r}.")

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config from environment variables over the defaults.

        Reads ``.env`` from the working directory first (python-dotenv).
        """
        load_dotenv()
        cfg = cls(
            mc_trials=int(os.getenv("MC_TRIALS", "10000")),
            max_goals=int(os.getenv("MAX_GOALS", "10")),
            kelly_fraction=float(os.getenv("KELLY_FRACTION", "0.25")),
            max_bet_pct=float(os.getenv("MAX_BET_PCT", "5.0")),
            max_single_bet=float(os.getenv("MAX_SINGLE_BET", "100")),
            bankroll=float(os.getenv("STARTING_BANKROLL", "1000")),
            min_value_pct=float(os.getenv("MIN_VALUE_PCT", "5.0")),
            min_calibration_samples=int(os.getenv("MIN_CALIBRATION_SAMPLES", "10")),
            min_market_samples=int(os.getenv("MIN_MARKET_SAMPLES", "10")),
            calibration_window=int(os.getenv("CALIBRATION_WINDOW", "500")),
            contrarian_min_gap=float(os.getenv("CONTRARIAN_MIN_GAP", "15")),
            contrarian_min_edge=float(os.getenv("CONTRARIAN_MIN_EDGE", "10")),
            model_gap_flag=float(os.getenv("MODEL_GAP_FLAG", "15")),
            model_gap_anomaly=float(os.getenv("MODEL_GAP_SUSPICIOUS", "20")),
            odds_anomaly_pct=float(os.getenv("ODDS_ANOMALY_PCT", "10")),
            favorite_drift_pct=float(os.getenv("FAVORITE_DRIFT_PCT", "8")),
            favorite_max_price=float(os.getenv("FAVORITE_MAX_PRICE", "2.0")),
            coupon_tolerance=float(os.getenv("COUPON_TOLERANCE", "0.15")),
            coupon_pool_cap=int(os.getenv("COUPON_POOL_CAP", "15")),
            scan_workers=int(os.getenv("SCAN_WORKERS", "4")),
            scan_timeout_sec=float(os.getenv("SCAN_TIMEOUT_SEC", "20")),
            sim_cache_ttl_sec=float(os.getenv("SIM_CACHE_TTL_SEC", "600")),
            odds_history_limit=int(os.getenv("ODDS_HISTORY_LIMIT", "200")),
        )
        logger.debug("Engine config loaded from environment: %r", cfg)
        return cfg


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get or build the process-wide engine configuration."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (next :func:`get_config` rebuilds it)."""
    global _config
    _config = None
