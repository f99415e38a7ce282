"""Map challenge difficulty onto the AI opponent's skill level."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class CustomDifficulty:
    """A free-form label such as "Beginner" or "very advanced"."""

    label: str


DifficultyInput = Difficulty | CustomDifficulty | None

_KNOWN_LEVELS: dict[Difficulty, SkillLevel] = {
    Difficulty.EASY: SkillLevel.BEGINNER,
    Difficulty.MEDIUM: SkillLevel.INTERMEDIATE,
    Difficulty.HARD: SkillLevel.EXPERT,
}

# First matching rule wins; keywords match as case-insensitive substrings.
_SKILL_RULES: tuple[tuple[SkillLevel, tuple[str, ...]], ...] = (
    (SkillLevel.BEGINNER, ("beginner", "easy", "novice", "entry")),
    (SkillLevel.INTERMEDIATE, ("medium", "intermediate", "moderate")),
    (SkillLevel.EXPERT, ("expert", "advanced", "hard", "difficult")),
)

DEFAULT_SKILL_LEVEL = SkillLevel.INTERMEDIATE


def parse_difficulty(raw: str | None) -> DifficultyInput:
    """Turn a raw label into the tagged input: known tier, custom label, or None."""
    if raw is None or not raw.strip():
        return None
    label = raw.strip().lower()
    try:
        return Difficulty(label)
    except ValueError:
        return CustomDifficulty(raw.strip())


def map_skill_level(difficulty: DifficultyInput | str) -> SkillLevel:
    """Resolve a difficulty to a skill level. Total: unknown input gives intermediate.

    Custom labels go through the rule table in order, so "easy to hard"
    resolves to beginner.
    """
    if isinstance(difficulty, str) and not isinstance(difficulty, Difficulty):
        difficulty = parse_difficulty(difficulty)
    if difficulty is None:
        return DEFAULT_SKILL_LEVEL
    if isinstance(difficulty, Difficulty):
        return _KNOWN_LEVELS[difficulty]

    label = difficulty.label.lower()
    for level, keywords in _SKILL_RULES:
        if any(keyword in label for keyword in keywords):
            return level
    return DEFAULT_SKILL_LEVEL
