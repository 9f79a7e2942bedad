"""
Pydantic schemas for data handed to the engine.

The data provider returns loosely-typed JSON.  Every payload is parsed into
one of these models at the boundary, so the core only ever sees validated,
strongly-typed values.  Invalid payloads raise ``pydantic.ValidationError``
before any computation starts.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from football_edge.services.calibration import CalibrationRecord
    from football_edge.services.coupon_builder import CouponConstraintSet
    from football_edge.services.odds_history import OddsSnapshot


# ---------------------------------------------------------------------------
# Fixture payloads
# ---------------------------------------------------------------------------

class TeamRef(BaseModel):
    id: int
    name: str = Field(..., min_length=1, max_length=120)


class LeagueRef(BaseModel):
    id: int
    name: str = Field("", max_length=120)


class TeamSeasonStats(BaseModel):
    """Season aggregates for one team."""

    goals_scored: float = Field(..., ge=0)
    goals_conceded: float = Field(..., ge=0)
    matches_played: int = Field(..., ge=0)
    possession: Optional[float] = Field(None, ge=0, le=100, description="Average possession %")
    shots_per_match: Optional[float] = Field(None, ge=0)
    recent_goals: Optional[List[int]] = Field(
        None, description="Goals scored in the most recent matches, newest last"
    )
    form_factor: float = Field(1.0, gt=0, le=2.0)

    @field_validator("recent_goals")
    @classmethod
    def validate_recent_goals(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None and any(g < 0 for g in v):
            raise ValueError("recent_goals cannot contain negative values")
        return v


class MarketOdds(BaseModel):
    """Current decimal prices; any market may be missing."""

    home: Optional[float] = None
    draw: Optional[float] = None
    away: Optional[float] = None
    over25: Optional[float] = None
    under25: Optional[float] = None
    btts_yes: Optional[float] = None
    btts_no: Optional[float] = None
    bookmaker: str = "consensus"

    @field_validator("home", "draw", "away", "over25", "under25", "btts_yes", "btts_no")
    @classmethod
    def validate_decimal_odds(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 1.0:
            raise ValueError(f"{v} is not a valid decimal price (must be >= 1.0)")
        return v

    def prices(self) -> dict[str, float]:
        """Market key → price for the markets that are quoted."""
        return {
            k: v for k, v in self.model_dump(exclude={"bookmaker"}).items()
            if v is not None
        }

    def has_1x2(self) -> bool:
        return all(p is not None and p > 1.0 for p in (self.home, self.draw, self.away))


class ExternalConsensus(BaseModel):
    """Third-party prediction, percentages per 1X2 outcome."""

    home: float = Field(..., ge=0, le=100)
    draw: float = Field(..., ge=0, le=100)
    away: float = Field(..., ge=0, le=100)


class HeadToHead(BaseModel):
    home_wins: int = Field(0, ge=0)
    draws: int = Field(0, ge=0)
    away_wins: int = Field(0, ge=0)
    total_matches: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_total(self) -> "HeadToHead":
        if self.home_wins + self.draws + self.away_wins > self.total_matches:
            raise ValueError("head-to-head results exceed total_matches")
        return self


class FixtureInput(BaseModel):
    """Everything the scanner needs for one fixture."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "fixture_id": 1035037,
                "home_team": {"id": 42, "name": "Arsenal"},
                "away_team": {"id": 49, "name": "Chelsea"},
                "league": {"id": 39, "name": "Premier League"},
                "kickoff": "2026-10-24T15:00:00Z",
                "home_stats": {"goals_scored": 38, "goals_conceded": 14, "matches_played": 19},
                "away_stats": {"goals_scored": 29, "goals_conceded": 24, "matches_played": 19},
                "odds": {"home": 1.85, "draw": 3.6, "away": 4.3, "over25": 1.9},
            }
        }
    )

    fixture_id: int
    home_team: TeamRef
    away_team: TeamRef
    league: LeagueRef
    kickoff: datetime
    home_stats: Optional[TeamSeasonStats] = None
    away_stats: Optional[TeamSeasonStats] = None
    odds: Optional[MarketOdds] = None
    consensus: Optional[ExternalConsensus] = None
    h2h: Optional[HeadToHead] = None
    h2h_home_advantage: Optional[float] = Field(
        None, ge=0, le=100, description="Home side's share of H2H points, %"
    )
    form_difference: Optional[float] = Field(
        None, ge=-100, le=100, description="Home form rating minus away form rating"
    )

    @property
    def has_stats(self) -> bool:
        return self.home_stats is not None and self.away_stats is not None


# ---------------------------------------------------------------------------
# Odds history
# ---------------------------------------------------------------------------

class OddsSnapshotPayload(BaseModel):
    fixture_id: int
    market: str = Field(..., min_length=1, max_length=40)
    pick: str = Field("", max_length=40)
    price: float = Field(..., ge=1.0)
    bookmaker: str = Field("consensus", max_length=60)
    observed_at: datetime

    def to_snapshot(self) -> "OddsSnapshot":
        from football_edge.services.odds_history import OddsSnapshot

        return OddsSnapshot(**self.model_dump())


class OddsHistoryPayload(BaseModel):
    snapshots: List[OddsSnapshotPayload] = Field(default_factory=list)
    day: Optional[str] = None


# ---------------------------------------------------------------------------
# Calibration
# ---------------------------------------------------------------------------

class CalibrationRecordPayload(BaseModel):
    fixture_id: int
    market: Literal["home", "draw", "away", "over25", "under25", "btts_yes", "btts_no"]
    predicted_probability: float = Field(..., ge=0.0, le=1.0)
    realized_outcome: Literal[0, 1]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> "CalibrationRecord":
        from football_edge.services.calibration import CalibrationRecord

        return CalibrationRecord(**self.model_dump())


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------

class CouponRequest(BaseModel):
    """Caller-supplied coupon constraints."""

    target_odds: float = Field(..., gt=1.0, le=1000.0)
    risk_level: Literal["low", "medium", "high"] = "medium"
    max_legs: int = Field(3, ge=1, le=10)
    min_confidence: float = Field(60.0, ge=0, le=100)
    min_value: float = Field(0.0, ge=0)
    bankroll: Optional[float] = Field(None, ge=0)
    tolerance: Optional[float] = Field(None, gt=0, le=1.0)

    def to_constraints(self) -> "CouponConstraintSet":
        from football_edge.services.coupon_builder import CouponConstraintSet

        return CouponConstraintSet(**self.model_dump(exclude_none=True))
