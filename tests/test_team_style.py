"""
Tests for services/team_style.py

Run with: pytest tests/test_team_style.py -v
"""

import pytest

from football_edge.services.team_style import (
    StyleClassifier,
    TeamStyle,
    build_team_profile,
    classify_style,
    describe_style,
    score_styles,
)


@pytest.fixture
def classifier():
    return StyleClassifier()


class TestScore:

    def test_offensive_team(self, classifier):
        scores = classifier.score(goals_for=2.0, goals_against=0.9, possession=60, shots=16)
        assert scores[TeamStyle.OFFENSIVE] == 7
        assert scores[TeamStyle.COUNTER] == 2
        assert scores[TeamStyle.DEFENSIVE] == 2
        assert scores[TeamStyle.CHAOTIC] == 0

    def test_counter_team(self, classifier):
        scores = classifier.score(goals_for=1.4, goals_against=1.0, possession=42, shots=9)
        assert scores[TeamStyle.COUNTER] == 6
        assert scores[TeamStyle.DEFENSIVE] == 3

    def test_chaotic_team(self, classifier):
        scores = classifier.score(goals_for=1.9, goals_against=1.8, possession=50, shots=12)
        assert scores[TeamStyle.CHAOTIC] == 7
        assert scores[TeamStyle.OFFENSIVE] == 5

    def test_pressure_defaults_to_shots_over_fifteen(self, classifier):
        explicit = classifier.score(1.0, 1.0, 50, 12, pressure=12 / 15)
        assert classifier.score(1.0, 1.0, 50, 12) == explicit


class TestClassify:

    def test_confidence_formula(self, classifier):
        scores = classifier.score(goals_for=2.0, goals_against=0.9, possession=60, shots=16)
        style, confidence = classifier.classify(scores)
        assert style == TeamStyle.OFFENSIVE
        # (7 - 2 + 7) / 15
        assert confidence == pytest.approx(0.8)

    def test_ties_follow_priority_order(self, classifier):
        style, _ = classifier.classify({
            TeamStyle.OFFENSIVE: 1,
            TeamStyle.COUNTER: 3,
            TeamStyle.DEFENSIVE: 3,
            TeamStyle.CHAOTIC: 3,
        })
        assert style == TeamStyle.COUNTER

    def test_all_zero_is_offensive_at_floor(self, classifier):
        style, confidence = classifier.classify({s: 0 for s in TeamStyle})
        assert style == TeamStyle.OFFENSIVE
        assert confidence == pytest.approx(0.3)

    def test_confidence_never_below_floor(self, classifier):
        _, confidence = classifier.classify({s: 2 for s in TeamStyle})
        assert confidence == pytest.approx(0.3)

    def test_confidence_capped_at_one(self, classifier):
        _, confidence = classifier.classify({
            TeamStyle.OFFENSIVE: 0,
            TeamStyle.COUNTER: 0,
            TeamStyle.DEFENSIVE: 12,
            TeamStyle.CHAOTIC: 0,
        })
        assert confidence == 1.0


class TestBuildProfile:

    def test_defensive_profile(self):
        profile = build_team_profile(1, "Getafe", goals_scored=9, goals_conceded=6,
                                     matches_played=10, possession=48, shots_per_match=8)
        assert profile.style == TeamStyle.DEFENSIVE
        assert profile.goals_for_per_match == pytest.approx(0.9)
        assert profile.style_confidence == pytest.approx(0.6)

    def test_offensive_profile(self):
        profile = build_team_profile(33, "Arsenal", goals_scored=38, goals_conceded=14,
                                     matches_played=19, possession=58, shots_per_match=15.1)
        assert profile.style == TeamStyle.OFFENSIVE
        assert profile.pressure_index == pytest.approx(1.0)

    def test_zero_matches_does_not_raise(self):
        profile = build_team_profile(7, "Newly Promoted", 0, 0, 0)
        assert profile.goals_for_per_match == 0.0
        assert profile.possession_avg == 50.0
        assert profile.style == TeamStyle.DEFENSIVE

    def test_to_dict_uses_style_values(self):
        d = build_team_profile(33, "Arsenal", 38, 14, 19).to_dict()
        assert d["style"] in {s.value for s in TeamStyle}
        assert set(d["style_scores"]) == {s.value for s in TeamStyle}


def test_describe_style():
    assert describe_style(TeamStyle.COUNTER) == "Counter (low possession, fast breaks)"


def test_module_level_helpers():
    scores = score_styles(goals_for=2.0, goals_against=0.9, possession=60, shots=16)
    assert classify_style(scores)[0] == TeamStyle.OFFENSIVE
