"""Unit tests for difficulty → AI skill level mapping."""

from __future__ import annotations

import pytest

from codequest.ai.skill import (
    CustomDifficulty,
    Difficulty,
    SkillLevel,
    map_skill_level,
    parse_difficulty,
)


class TestKnownTiers:
    def test_tiers(self):
        assert map_skill_level(Difficulty.EASY) is SkillLevel.BEGINNER
        assert map_skill_level(Difficulty.MEDIUM) is SkillLevel.INTERMEDIATE
        assert map_skill_level(Difficulty.HARD) is SkillLevel.EXPERT

    def test_plain_strings_parse_to_tiers(self):
        assert parse_difficulty("Easy") is Difficulty.EASY
        assert parse_difficulty("  HARD ") is Difficulty.HARD
        assert map_skill_level("medium") is SkillLevel.INTERMEDIATE


class TestCustomLabels:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Beginner", SkillLevel.BEGINNER),
            ("novice friendly", SkillLevel.BEGINNER),
            ("Entry level", SkillLevel.BEGINNER),
            ("Intermediate", SkillLevel.INTERMEDIATE),
            ("moderate", SkillLevel.INTERMEDIATE),
            ("Expert", SkillLevel.EXPERT),
            ("Advanced", SkillLevel.EXPERT),
            ("very difficult", SkillLevel.EXPERT),
        ],
    )
    def test_keyword_match(self, label, expected):
        assert map_skill_level(CustomDifficulty(label)) is expected
        assert map_skill_level(label) is expected

    def test_first_rule_wins(self):
        """Labels matching several tiers resolve to the earliest rule."""
        assert map_skill_level("easy to hard") is SkillLevel.BEGINNER
        assert map_skill_level("medium-hard") is SkillLevel.INTERMEDIATE

    def test_unknown_label_defaults_to_intermediate(self):
        assert parse_difficulty("legendary") == CustomDifficulty("legendary")
        assert map_skill_level("legendary") is SkillLevel.INTERMEDIATE

    @pytest.mark.parametrize("empty", [None, "", "   "])
    def test_missing_difficulty_defaults_to_intermediate(self, empty):
        assert parse_difficulty(empty) is None
        assert map_skill_level(empty) is SkillLevel.INTERMEDIATE
