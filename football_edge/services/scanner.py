"""
Batch scan orchestration.

Workflow per fixture (:func:`analyze_fixture`):
    1. Goal rates: each side's goals per match, shrunk 70/30 toward half the
       league's average goals per match.
    2. Poisson score distribution from those rates.
    3. Team style profiles and the ordered style matchup.
    4. Monte Carlo simulation from season totals (isolated RNG per run).
    5. Blend: 0.4 × Poisson + 0.6 × simulation for 1X2, over 2.5 and BTTS,
       then style boosts, then calibration multipliers from the last
       settled batch.
    6. Value assessment of every priced market, contrarian check against
       the public consensus, odds-movement anomalies.
    7. Confidence score, risk warning, category and rationale.

Fixtures without season stats fall back to the league baseline rates and
skip steps 2–4.

:class:`Scanner` runs the per-fixture analysis over a slate on a bounded
thread pool.  One bad fixture is logged and reported in
``ScanResult.errors`` without affecting the rest; on timeout the analyses
that finished are returned and the unfinished fixture ids are listed in
``ScanResult.pending``.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from football_edge.config import EngineConfig, LEAGUE_PROFILES, get_config, league_profile
from football_edge.core.poisson_model import ScoreDistribution, blend_with_league, outcome_distribution
from football_edge.schemas import FixtureInput
from football_edge.services.calibration import CalibrationStore
from football_edge.services.categorize import MatchCategory, categorize_pick
from football_edge.services.contrarian import (
    ContrarianSignal,
    OddsAnomaly,
    detect_contrarian,
    detect_odds_anomalies,
)
from football_edge.services.coupon_builder import (
    CouponConstraintSet,
    CouponLeg,
    GeneratedCoupon,
    build_coupon,
)
from football_edge.services.matchup_engine import (
    MarketProbabilities,
    StyleMatchup,
    get_matchup_engine,
)
from football_edge.services.monte_carlo import (
    MonteCarloSimulator,
    SimTeamInput,
    SimulationCache,
    SimulationResult,
    run_simulation,
)
from football_edge.services.odds_history import OddsHistoryBuffer
from football_edge.services.team_style import TeamStrengthProfile, build_team_profile
from football_edge.services.value_engine import ValueAssessment, apply_calibration, assess_markets

logger = logging.getLogger(__name__)

# Share of each team's own scoring rate kept against the league average
LEAGUE_BLEND_WEIGHT = 0.7

# Poisson vs simulation weights in the blended probabilities
POISSON_WEIGHT = 0.4
SIMULATION_WEIGHT = 0.6

# Confidence score components
_BASE_CONFIDENCE = 50.0
_STATS_BONUS = 10.0
_CLARITY_BONUSES = ((0.50, 15.0), (0.40, 10.0))    # (max 1X2 prob, bonus)
_VALUE_BONUS_RATE = 0.5
_VALUE_BONUS_CAP = 15.0
_H2H_MIN_MATCHES = 5
_H2H_BONUS = 5.0
_KNOWN_LEAGUE_BONUS = 5.0
_SIM_STD_TIGHT = (1.3, 10.0)
_SIM_STD_MODERATE = (1.6, 5.0)
_SIM_STD_WIDE = (2.0, -10.0)
_SIM_LEVEL_ADJUST = {"high": 5.0, "avoid": -15.0}

# Chaos level assumed when there is no simulation
_DEFAULT_CHAOS = 0.5
_CHAOTIC_MATCHUP = 0.8

HIGH_SCORING_THRESHOLD = 0.55
BTTS_THRESHOLD = 0.55

SORT_KEYS = ("value", "confidence", "goals", "btts", "kickoff")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class MatchAnalysis:
    """Everything the engine concluded about one fixture."""

    fixture_id: int
    home_team: str
    away_team: str
    league: str
    league_id: int
    kickoff: datetime
    probabilities: Dict[str, float]
    value_bets: List[ValueAssessment]
    best_bet: Optional[ValueAssessment]
    confidence_score: float
    value_score: float
    chaos_level: float
    category: MatchCategory
    rationale: str
    distribution: Optional[ScoreDistribution] = None
    simulation: Optional[SimulationResult] = None
    home_profile: Optional[TeamStrengthProfile] = None
    away_profile: Optional[TeamStrengthProfile] = None
    matchup: Optional[StyleMatchup] = None
    contrarian: Optional[ContrarianSignal] = None
    anomalies: List[OddsAnomaly] = field(default_factory=list)
    risk_warning: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def goal_probability(self) -> float:
        return self.probabilities.get("over25", 0.0)

    @property
    def btts_probability(self) -> float:
        return self.probabilities.get("btts_yes", 0.0)

    @property
    def is_high_scoring(self) -> bool:
        return self.goal_probability > HIGH_SCORING_THRESHOLD

    @property
    def is_btts(self) -> bool:
        return self.btts_probability > BTTS_THRESHOLD

    def coupon_legs(self) -> List[CouponLeg]:
        """One candidate leg per value bet, carrying this fixture's confidence."""
        return [
            CouponLeg(
                fixture_id=self.fixture_id,
                home_team=self.home_team,
                away_team=self.away_team,
                market=vb.market,
                pick=vb.pick,
                odds=vb.market_odds,
                confidence=self.confidence_score,
                value=vb.value_percent,
                model_probability=vb.model_probability / 100.0,
            )
            for vb in self.value_bets
            if vb.is_value
        ]

    def to_dict(self) -> Dict:
        return {
            "fixture_id": self.fixture_id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "league": self.league,
            "league_id": self.league_id,
            "kickoff": self.kickoff.isoformat(),
            "probabilities": {k: round(v, 4) for k, v in self.probabilities.items()},
            "value_bets": [vb.to_dict() for vb in self.value_bets],
            "best_bet": self.best_bet.to_dict() if self.best_bet else None,
            "confidence_score": round(self.confidence_score, 1),
            "value_score": round(self.value_score, 2),
            "chaos_level": round(self.chaos_level, 3),
            "category": self.category.value,
            "rationale": self.rationale,
            "distribution": self.distribution.to_dict() if self.distribution else None,
            "simulation": self.simulation.to_dict() if self.simulation else None,
            "home_profile": self.home_profile.to_dict() if self.home_profile else None,
            "away_profile": self.away_profile.to_dict() if self.away_profile else None,
            "matchup": self.matchup.to_dict() if self.matchup else None,
            "contrarian": self.contrarian.to_dict() if self.contrarian else None,
            "anomalies": [a.to_dict() for a in self.anomalies],
            "risk_warning": self.risk_warning,
            "warnings": list(self.warnings),
        }


@dataclass
class ScanResult:
    analyses: List[MatchAnalysis] = field(default_factory=list)
    errors: Dict[int, str] = field(default_factory=dict)
    pending: List[int] = field(default_factory=list)
    timed_out: bool = False
    scanned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_seconds: float = 0.0

    def _bucket(self, category: MatchCategory) -> List[MatchAnalysis]:
        return [a for a in self.analyses if a.category == category]

    @property
    def safe(self) -> List[MatchAnalysis]:
        return self._bucket(MatchCategory.SAFE)

    @property
    def value(self) -> List[MatchAnalysis]:
        return self._bucket(MatchCategory.VALUE)

    @property
    def surprise(self) -> List[MatchAnalysis]:
        return self._bucket(MatchCategory.SURPRISE)

    @property
    def high_scoring(self) -> List[MatchAnalysis]:
        return [a for a in self.analyses if a.is_high_scoring]

    @property
    def btts(self) -> List[MatchAnalysis]:
        return [a for a in self.analyses if a.is_btts]

    def to_dict(self) -> Dict:
        return {
            "total": len(self.analyses),
            "safe": [a.fixture_id for a in self.safe],
            "value": [a.fixture_id for a in self.value],
            "surprise": [a.fixture_id for a in self.surprise],
            "high_scoring": [a.fixture_id for a in self.high_scoring],
            "btts": [a.fixture_id for a in self.btts],
            "errors": {str(k): v for k, v in self.errors.items()},
            "pending": list(self.pending),
            "timed_out": self.timed_out,
            "scanned_at": self.scanned_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 2),
            "analyses": [a.to_dict() for a in self.analyses],
        }


# ---------------------------------------------------------------------------
# Per-fixture analysis
# ---------------------------------------------------------------------------

def _blend(poisson: float, simulated: float) -> float:
    return POISSON_WEIGHT * poisson + SIMULATION_WEIGHT * simulated


def _confidence_score(
    fixture: FixtureInput,
    distribution: Optional[ScoreDistribution],
    value_bets: List[ValueAssessment],
    simulation: Optional[SimulationResult],
) -> float:
    score = _BASE_CONFIDENCE

    if fixture.has_stats:
        score += _STATS_BONUS

    if distribution is not None:
        top = max(distribution.home_win, distribution.draw, distribution.away_win)
        for threshold, bonus in _CLARITY_BONUSES:
            if top > threshold:
                score += bonus
                break

    valuable = [vb for vb in value_bets if vb.is_value]
    if valuable:
        avg_value = sum(vb.value_percent for vb in valuable) / len(valuable)
        score += min(avg_value * _VALUE_BONUS_RATE, _VALUE_BONUS_CAP)

    if fixture.h2h is not None and fixture.h2h.total_matches >= _H2H_MIN_MATCHES:
        score += _H2H_BONUS

    if fixture.league.id in LEAGUE_PROFILES:
        score += _KNOWN_LEAGUE_BONUS

    if simulation is not None:
        std = simulation.std_deviation
        if std <= _SIM_STD_TIGHT[0]:
            score += _SIM_STD_TIGHT[1]
        elif std <= _SIM_STD_MODERATE[0]:
            score += _SIM_STD_MODERATE[1]
        elif std >= _SIM_STD_WIDE[0]:
            score += _SIM_STD_WIDE[1]
        score += _SIM_LEVEL_ADJUST.get(simulation.confidence_level, 0.0)

    return min(100.0, max(0.0, score))


def _rationale(
    distribution: Optional[ScoreDistribution],
    matchup: Optional[StyleMatchup],
    best_bet: Optional[ValueAssessment],
    contrarian: Optional[ContrarianSignal],
) -> str:
    parts = []
    if matchup is not None:
        parts.append(matchup.reasoning)
    if distribution is not None:
        parts.append(f"Most likely score {distribution.most_likely_score}")
    if best_bet is not None:
        parts.append(
            f"Best value: {best_bet.pick} @ {best_bet.market_odds:.2f} "
            f"({best_bet.value_percent:+.1f}% value, {best_bet.recommendation})"
        )
    else:
        parts.append("No value at current prices")
    if contrarian is not None and contrarian.is_contrarian:
        parts.append(contrarian.reason)
    return ". ".join(parts) + "."


def analyze_fixture(
    fixture: FixtureInput,
    *,
    config: Optional[EngineConfig] = None,
    calibration: Optional[Mapping[str, float]] = None,
    odds_buffer: Optional[OddsHistoryBuffer] = None,
    simulator: Optional[MonteCarloSimulator] = None,
    sim_cache: Optional[SimulationCache] = None,
    seed: Optional[int] = None,
) -> MatchAnalysis:
    """
    Run the full prediction pipeline for one fixture.

    Args:
        fixture: Validated fixture payload.
        config: Engine configuration (defaults to :func:`get_config`).
        calibration: Per-market probability multipliers from the last
            actionable calibration report.  Empty or None applies none.
        odds_buffer: Odds history for movement anomalies.
        simulator: Simulator to use; a fresh one by default.
        sim_cache: Optional cache for seeded simulation runs.
        seed: Seed for the Monte Carlo run.

    Returns:
        :class:`MatchAnalysis`.
    """
    cfg = config or get_config()
    league = league_profile(fixture.league.id)
    warnings: List[str] = []

    distribution = simulation = None
    home_profile = away_profile = None
    matchup = None

    if fixture.has_stats:
        hs, as_ = fixture.home_stats, fixture.away_stats
        lam_home = blend_with_league(
            hs.goals_scored / max(1, hs.matches_played), league.avg_goals, LEAGUE_BLEND_WEIGHT
        )
        lam_away = blend_with_league(
            as_.goals_scored / max(1, as_.matches_played), league.avg_goals, LEAGUE_BLEND_WEIGHT
        )
        distribution = outcome_distribution(lam_home, lam_away, max_goals=cfg.max_goals)

        home_profile = build_team_profile(
            fixture.home_team.id, fixture.home_team.name,
            hs.goals_scored, hs.goals_conceded, hs.matches_played,
            possession=hs.possession, shots_per_match=hs.shots_per_match,
        )
        away_profile = build_team_profile(
            fixture.away_team.id, fixture.away_team.name,
            as_.goals_scored, as_.goals_conceded, as_.matches_played,
            possession=as_.possession, shots_per_match=as_.shots_per_match,
        )
        engine = get_matchup_engine()
        matchup = engine.lookup(home_profile.style, away_profile.style)

        simulation = run_simulation(
            SimTeamInput.from_season(
                hs.goals_scored, hs.goals_conceded, hs.matches_played, is_home=True,
                recent_goals=hs.recent_goals, form_factor=hs.form_factor,
            ),
            SimTeamInput.from_season(
                as_.goals_scored, as_.goals_conceded, as_.matches_played, is_home=False,
                recent_goals=as_.recent_goals, form_factor=as_.form_factor,
            ),
            trials=cfg.mc_trials,
            seed=seed,
            cache=sim_cache,
            simulator=simulator,
        )

        blended = MarketProbabilities(
            home=_blend(distribution.home_win, simulation.home_win_prob),
            draw=_blend(distribution.draw, simulation.draw_prob),
            away=_blend(distribution.away_win, simulation.away_win_prob),
            over25=_blend(distribution.over[2.5], simulation.over25_prob),
            btts=_blend(distribution.btts_yes, simulation.btts_prob),
        )
        blended = engine.apply(blended, matchup)
    else:
        warnings.append("No season stats; league baseline probabilities used")
        blended = MarketProbabilities(
            home=league.home_win_rate,
            draw=league.draw_rate,
            away=league.away_win_rate,
            over25=league.over25_rate,
            btts=league.btts_rate,
        )

    probabilities = apply_calibration(blended.as_market_dict(), calibration or {})

    prices = fixture.odds.prices() if fixture.odds is not None else {}
    value_bets = assess_markets(probabilities, prices, config=cfg) if prices else []
    valuable = [vb for vb in value_bets if vb.is_value]
    best_bet = max(valuable, key=lambda vb: vb.rating) if valuable else None
    value_score = sum(vb.value_percent for vb in valuable) / len(valuable) if valuable else 0.0

    contrarian = None
    if fixture.odds is not None and fixture.odds.has_1x2():
        contrarian = detect_contrarian(
            fixture.fixture_id,
            probabilities,
            prices,
            home_team=fixture.home_team.name,
            away_team=fixture.away_team.name,
            external=fixture.consensus.model_dump() if fixture.consensus else None,
            h2h_home_advantage=fixture.h2h_home_advantage,
            form_difference=fixture.form_difference,
            config=cfg,
        )

    anomalies = (
        detect_odds_anomalies(fixture.fixture_id, prices, odds_buffer, probabilities, cfg)
        if prices else []
    )
    warnings.extend(a.reason for a in anomalies if a.is_suspicious)

    confidence = _confidence_score(fixture, distribution, value_bets, simulation)
    chaos = simulation.chaos_index if simulation is not None else _DEFAULT_CHAOS

    risk_warning = None
    if simulation is not None and simulation.confidence_level == "avoid":
        risk_warning = (
            f"Very high uncertainty (σ={simulation.std_deviation:.2f}); stay away from this match"
        )
    elif matchup is not None and matchup.chaos_level >= _CHAOTIC_MATCHUP:
        risk_warning = (
            f"Chaotic matchup: {matchup.home_style.value} vs {matchup.away_style.value}"
        )

    if best_bet is not None:
        category = categorize_pick(confidence, best_bet.market_odds, best_bet.value_percent)
    else:
        category = categorize_pick(confidence, None, 0.0)

    analysis = MatchAnalysis(
        fixture_id=fixture.fixture_id,
        home_team=fixture.home_team.name,
        away_team=fixture.away_team.name,
        league=fixture.league.name,
        league_id=fixture.league.id,
        kickoff=fixture.kickoff,
        probabilities=probabilities,
        value_bets=value_bets,
        best_bet=best_bet,
        confidence_score=confidence,
        value_score=value_score,
        chaos_level=chaos,
        category=category,
        rationale=_rationale(distribution, matchup, best_bet, contrarian),
        distribution=distribution,
        simulation=simulation,
        home_profile=home_profile,
        away_profile=away_profile,
        matchup=matchup,
        contrarian=contrarian,
        anomalies=anomalies,
        risk_warning=risk_warning,
        warnings=warnings,
    )
    logger.debug(
        "%s vs %s: conf %.0f, value %.1f, %s",
        analysis.home_team, analysis.away_team, confidence, value_score, category.value,
    )
    return analysis


# ---------------------------------------------------------------------------
# Scan cache
# ---------------------------------------------------------------------------

class ScanCache:
    """
    Short-lived cache of whole scan results, scoped to the UTC day.

    Entries expire after ``ttl_seconds`` or when the day rolls over.
    """

    def __init__(self, ttl_seconds: float = 600.0):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, ScanResult]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _day_key(key: str, now: Optional[datetime] = None) -> str:
        return f"{(now or datetime.now(timezone.utc)).date().isoformat()}:{key}"

    def get(self, key: str, now: Optional[datetime] = None) -> Optional[ScanResult]:
        full_key = self._day_key(key, now)
        with self._lock:
            entry = self._entries.get(full_key)
            if entry is None:
                return None
            stored_at, result = entry
            if time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[full_key]
                return None
            return result

    def set(self, key: str, result: ScanResult, now: Optional[datetime] = None) -> None:
        full_key = self._day_key(key, now)
        prefix = full_key.split(":", 1)[0]
        with self._lock:
            # Previous days' scans are never read again
            for stale in [k for k in self._entries if not k.startswith(prefix)]:
                del self._entries[stale]
            self._entries[full_key] = (time.monotonic(), result)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Batch scanner
# ---------------------------------------------------------------------------

FixtureLike = Union[FixtureInput, Mapping]


class Scanner:
    """
    Runs :func:`analyze_fixture` over a slate on a bounded thread pool.

    Usage::

        scanner = Scanner(calibration_store=store, odds_buffer=buffer)
        result = scanner.scan(fixtures, timeout=10, seed=42)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        calibration_store: Optional[CalibrationStore] = None,
        odds_buffer: Optional[OddsHistoryBuffer] = None,
        scan_cache: Optional[ScanCache] = None,
    ):
        self.config = config or get_config()
        self.calibration_store = calibration_store
        self.odds_buffer = odds_buffer
        self.scan_cache = scan_cache
        self.sim_cache = SimulationCache(ttl_seconds=self.config.sim_cache_ttl_sec)
        self.simulator = MonteCarloSimulator()

    def calibration_multipliers(self) -> Dict[str, float]:
        """Multipliers from the stored records, empty unless the report is actionable."""
        if self.calibration_store is None:
            return {}
        report = self.calibration_store.report(
            min_samples=self.config.min_calibration_samples,
            min_market_samples=self.config.min_market_samples,
            window=self.config.calibration_window,
        )
        logger.info(
            "Calibration: %s (n=%d, brier=%.3f, %s)",
            report.status, report.sample_size, report.brier_score, report.calibration,
        )
        return report.multipliers()

    def _fixture_seed(self, seed: Optional[int], fixture_id: int) -> Optional[int]:
        if seed is None:
            return None
        return (seed + fixture_id) % (2 ** 32)

    def _analyze(self, fixture: FixtureInput, multipliers: Dict[str, float], seed: Optional[int]) -> MatchAnalysis:
        return analyze_fixture(
            fixture,
            config=self.config,
            calibration=multipliers,
            odds_buffer=self.odds_buffer,
            simulator=self.simulator,
            sim_cache=self.sim_cache,
            seed=self._fixture_seed(seed, fixture.fixture_id),
        )

    def scan(
        self,
        fixtures: Iterable[FixtureLike],
        *,
        timeout: Optional[float] = None,
        seed: Optional[int] = None,
        cache_key: Optional[str] = None,
    ) -> ScanResult:
        """
        Analyse a slate of fixtures.

        Args:
            fixtures: :class:`FixtureInput` objects or raw mappings (validated
                here; invalid ones are reported as errors).
            timeout: Wall-clock budget in seconds (default
                ``config.scan_timeout_sec``).
            seed: Base seed; each fixture's run is seeded from it and its id.
            cache_key: When set and a :class:`ScanCache` is attached, a
                complete result for the same key and day is reused.

        Returns:
            :class:`ScanResult` with analyses in input order.
        """
        if cache_key is not None and self.scan_cache is not None:
            cached = self.scan_cache.get(cache_key)
            if cached is not None:
                logger.debug("Scan cache hit for %s", cache_key)
                return cached

        budget = self.config.scan_timeout_sec if timeout is None else timeout
        start = time.monotonic()
        result = ScanResult()

        valid: List[FixtureInput] = []
        for i, item in enumerate(fixtures):
            if isinstance(item, FixtureInput):
                valid.append(item)
                continue
            try:
                valid.append(FixtureInput.model_validate(item))
            except ValueError as exc:
                fid = item.get("fixture_id", -(i + 1)) if isinstance(item, Mapping) else -(i + 1)
                logger.error("Invalid fixture payload %s: %s", fid, exc)
                result.errors[fid] = f"Invalid payload: {str(exc)[:200]}"

        logger.info("Starting scan of %d fixtures (timeout %.1fs)", len(valid), budget)
        multipliers = self.calibration_multipliers()

        executor = ThreadPoolExecutor(max_workers=self.config.scan_workers)
        try:
            futures = {
                executor.submit(self._analyze, fixture, multipliers, seed): (i, fixture)
                for i, fixture in enumerate(valid)
            }
            done, not_done = wait(futures, timeout=budget)

            finished: List[Tuple[int, MatchAnalysis]] = []
            for future in done:
                i, fixture = futures[future]
                exc = future.exception()
                if exc is not None:
                    logger.error(
                        "Error analysing %s vs %s (%s): %s",
                        fixture.home_team.name, fixture.away_team.name,
                        fixture.fixture_id, exc, exc_info=exc,
                    )
                    result.errors[fixture.fixture_id] = str(exc)[:200]
                    continue
                finished.append((i, future.result()))

            for future in not_done:
                future.cancel()
                result.pending.append(futures[future][1].fixture_id)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        finished.sort(key=lambda pair: pair[0])
        result.analyses = [a for _, a in finished]
        result.pending.sort()
        result.timed_out = bool(result.pending)
        result.duration_seconds = time.monotonic() - start

        if result.timed_out:
            logger.warning(
                "Scan timed out after %.1fs: %d done, %d pending",
                budget, len(result.analyses), len(result.pending),
            )
        logger.info(
            "Scan complete in %.1fs: %d analysed (%d safe, %d value, %d surprise), %d errors",
            result.duration_seconds, len(result.analyses),
            len(result.safe), len(result.value), len(result.surprise), len(result.errors),
        )

        if cache_key is not None and self.scan_cache is not None and not result.timed_out:
            self.scan_cache.set(cache_key, result)
        return result


_scanner: Optional[Scanner] = None


def get_scanner() -> Scanner:
    global _scanner
    if _scanner is None:
        _scanner = Scanner()
    return _scanner


# ---------------------------------------------------------------------------
# Coupon orchestration / sorting
# ---------------------------------------------------------------------------

def scan_and_build_coupon(
    fixtures: Iterable[FixtureLike],
    constraints: CouponConstraintSet,
    *,
    scanner: Optional[Scanner] = None,
    timeout: Optional[float] = None,
    seed: Optional[int] = None,
) -> Tuple[ScanResult, GeneratedCoupon]:
    """Scan a slate, then build a coupon from the fixtures that finished in time."""
    scanner = scanner or get_scanner()
    result = scanner.scan(fixtures, timeout=timeout, seed=seed)
    legs = [leg for analysis in result.analyses for leg in analysis.coupon_legs()]
    coupon = build_coupon(legs, constraints, config=scanner.config)
    return result, coupon


def sort_analyses(analyses: Iterable[MatchAnalysis], by: str = "value") -> List[MatchAnalysis]:
    """Sorted copy: ``value``, ``confidence``, ``goals`` and ``btts`` descending, ``kickoff`` ascending."""
    analyses = list(analyses)
    if by == "value":
        return sorted(analyses, key=lambda a: a.value_score, reverse=True)
    if by == "confidence":
        return sorted(analyses, key=lambda a: a.confidence_score, reverse=True)
    if by == "goals":
        return sorted(analyses, key=lambda a: a.goal_probability, reverse=True)
    if by == "btts":
        return sorted(analyses, key=lambda a: a.btts_probability, reverse=True)
    if by == "kickoff":
        return sorted(analyses, key=lambda a: a.kickoff)
    raise ValueError(f"Unknown sort key {by!r}; expected one of {SORT_KEYS}")
