"""
Team style classifier.

Scores a team's per-match attacking, defensive and possession metrics
against a fixed point rubric and assigns one of four qualitative styles:

    OFFENSIVE   high possession, many shots, scores freely
    COUNTER     cedes the ball, efficient on the break
    DEFENSIVE   concedes little, low event count
    CHAOTIC     scores and concedes a lot, open games

Each style accumulates points from threshold bands (e.g. goals/match ≥ 1.8
→ +2 OFFENSIVE).  The highest total wins; ties go to the first style in the
declaration order above.  Confidence is a normalised function of the
margin between the top two scores and is never below 0.3.

Usage::

    profile = build_team_profile(33, "Arsenal", goals_scored=38,
                                 goals_conceded=14, matches_played=19,
                                 possession=58, shots_per_match=15.1)
    profile.style, profile.style_confidence
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class TeamStyle(str, Enum):
    """Qualitative playing style.  Declaration order is the tie-break order."""

    OFFENSIVE = "offensive"
    COUNTER = "counter"
    DEFENSIVE = "defensive"
    CHAOTIC = "chaotic"


STYLE_DESCRIPTIONS: Dict[TeamStyle, Tuple[str, str]] = {
    TeamStyle.OFFENSIVE: ("Offensive", "high pressing, keeps the ball, shoots often"),
    TeamStyle.COUNTER: ("Counter", "low possession, fast breaks"),
    TeamStyle.DEFENSIVE: ("Defensive", "compact block, concedes little, set-piece threat"),
    TeamStyle.CHAOTIC: ("Chaotic", "inconsistent, scores a lot and concedes a lot"),
}


def describe_style(style: TeamStyle) -> str:
    """Human-readable label, e.g. ``"Counter (low possession, fast breaks)"``."""
    name, description = STYLE_DESCRIPTIONS[style]
    return f"{name} ({description})"


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

@dataclass
class TeamStrengthProfile:
    """Per-match team metrics plus the derived style.

    Built per analysis call from season aggregates; not persisted.
    """

    team_id: int
    team_name: str
    goals_for_per_match: float
    goals_against_per_match: float
    possession_avg: float = 50.0
    shots_per_match: float = 10.0
    pressure_index: float = 10.0 / 15.0
    style: TeamStyle = TeamStyle.OFFENSIVE
    style_confidence: float = 0.3
    style_scores: Dict[TeamStyle, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "goals_for_per_match": round(self.goals_for_per_match, 3),
            "goals_against_per_match": round(self.goals_against_per_match, 3),
            "possession_avg": round(self.possession_avg, 1),
            "shots_per_match": round(self.shots_per_match, 2),
            "pressure_index": round(self.pressure_index, 3),
            "style": self.style.value,
            "style_confidence": round(self.style_confidence, 3),
            "style_scores": {s.value: pts for s, pts in self.style_scores.items()},
        }


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class StyleClassifier:
    """
    Point-rubric style classifier.

    Thresholds are class attributes so that a subclass (or a test) can
    retune a band without touching the scoring logic.
    """

    # Confidence normaliser: a 10-point winning score with a 1.5x margin
    # factor maps to full confidence.
    CONFIDENCE_SCALE = 10.0 * 1.5
    MIN_CONFIDENCE = 0.3

    # Defaults for metrics the data provider does not supply
    DEFAULT_POSSESSION = 50.0
    DEFAULT_SHOTS = 10.0
    PRESSURE_SHOTS_DIVISOR = 15.0

    def score(
        self,
        goals_for: float,
        goals_against: float,
        possession: float = DEFAULT_POSSESSION,
        shots: float = DEFAULT_SHOTS,
        pressure: Optional[float] = None,
    ) -> Dict[TeamStyle, int]:
        """Return the rubric points per style for one team's metrics."""
        if pressure is None:
            pressure = shots / self.PRESSURE_SHOTS_DIVISOR
        total = goals_for + goals_against

        offensive = 0
        if goals_for >= 1.8:
            offensive += 2
        elif goals_for >= 1.4:
            offensive += 1
        if possession >= 55:
            offensive += 2
        elif possession >= 50:
            offensive += 1
        if shots >= 14:
            offensive += 2
        elif shots >= 11:
            offensive += 1
        if pressure >= 0.7:
            offensive += 1

        counter = 0
        if possession <= 45:
            counter += 2
        elif possession <= 48:
            counter += 1
        if goals_for >= 1.2 and goals_against <= 1.2:
            counter += 2
        if shots <= 10 and goals_for >= 1.0:
            counter += 2
        if pressure <= 0.4:
            counter += 1

        defensive = 0
        if goals_against <= 0.8:
            defensive += 3
        elif goals_against <= 1.0:
            defensive += 2
        elif goals_against <= 1.2:
            defensive += 1
        if goals_for <= 1.0:
            defensive += 1
        if shots <= 9:
            defensive += 1

        chaotic = 0
        if goals_for >= 1.5 and goals_against >= 1.5:
            chaotic += 3
        if total >= 3.5:
            chaotic += 2
        elif total >= 3.0:
            chaotic += 1
        if abs(goals_for - goals_against) <= 0.3 and total >= 2.5:
            chaotic += 2

        return {
            TeamStyle.OFFENSIVE: offensive,
            TeamStyle.COUNTER: counter,
            TeamStyle.DEFENSIVE: defensive,
            TeamStyle.CHAOTIC: chaotic,
        }

    def classify(self, scores: Dict[TeamStyle, int]) -> Tuple[TeamStyle, float]:
        """
        Pick the winning style and its confidence.

        ``confidence = min(1, (top - second + top) / 15)``, floored at 0.3.
        """
        # sorted() is stable and TeamStyle iterates in priority order
        ranked = sorted(TeamStyle, key=lambda s: scores.get(s, 0), reverse=True)
        top = scores.get(ranked[0], 0)
        second = scores.get(ranked[1], 0)
        confidence = min(1.0, (top - second + top) / self.CONFIDENCE_SCALE)
        return ranked[0], max(self.MIN_CONFIDENCE, confidence)

    def build_profile(
        self,
        team_id: int,
        team_name: str,
        goals_scored: float,
        goals_conceded: float,
        matches_played: int,
        possession: Optional[float] = None,
        shots_per_match: Optional[float] = None,
    ) -> TeamStrengthProfile:
        """Build a classified profile from season totals.

        ``matches_played`` of zero is treated as one so a team with no games
        yet still gets a (low-information) profile.
        """
        matches = max(1, matches_played or 0)
        goals_for = max(0.0, goals_scored) / matches
        goals_against = max(0.0, goals_conceded) / matches
        poss = self.DEFAULT_POSSESSION if possession is None else possession
        shots = self.DEFAULT_SHOTS if shots_per_match is None else shots_per_match
        pressure = min(1.0, shots / self.PRESSURE_SHOTS_DIVISOR)

        scores = self.score(goals_for, goals_against, poss, shots, pressure)
        style, confidence = self.classify(scores)
        logger.debug(
            "%s classified %s (conf %.2f, scores %s)",
            team_name, style.value, confidence,
            {s.value: v for s, v in scores.items()},
        )
        return TeamStrengthProfile(
            team_id=team_id,
            team_name=team_name,
            goals_for_per_match=goals_for,
            goals_against_per_match=goals_against,
            possession_avg=poss,
            shots_per_match=shots,
            pressure_index=pressure,
            style=style,
            style_confidence=confidence,
            style_scores=scores,
        )


# ---------------------------------------------------------------------------
# Singleton / module-level helpers
# ---------------------------------------------------------------------------

_classifier: Optional[StyleClassifier] = None


def get_style_classifier() -> StyleClassifier:
    global _classifier
    if _classifier is None:
        _classifier = StyleClassifier()
    return _classifier


def build_team_profile(
    team_id: int,
    team_name: str,
    goals_scored: float,
    goals_conceded: float,
    matches_played: int,
    possession: Optional[float] = None,
    shots_per_match: Optional[float] = None,
) -> TeamStrengthProfile:
    """Shortcut for :meth:`StyleClassifier.build_profile` on the shared classifier."""
    return get_style_classifier().build_profile(
        team_id, team_name, goals_scored, goals_conceded, matches_played,
        possession=possession, shots_per_match=shots_per_match,
    )


def score_styles(
    goals_for: float,
    goals_against: float,
    possession: float = StyleClassifier.DEFAULT_POSSESSION,
    shots: float = StyleClassifier.DEFAULT_SHOTS,
    pressure: Optional[float] = None,
) -> Dict[TeamStyle, int]:
    return get_style_classifier().score(goals_for, goals_against, possession, shots, pressure)


def classify_style(scores: Dict[TeamStyle, int]) -> Tuple[TeamStyle, float]:
    return get_style_classifier().classify(scores)
