"""Unit tests for daily challenge difficulty selection."""

from __future__ import annotations

import pytest

from codequest.challenges.daily_service import choose_daily_difficulty
from codequest.db.models import UserGlobalStats


def _stats(won: int, attempted: int) -> UserGlobalStats:
    return UserGlobalStats(user_id=1, challenges_won=won, total_challenges_attempted=attempted)


class TestChooseDailyDifficulty:
    def test_no_stats_is_easy(self):
        assert choose_daily_difficulty(None) == "easy"

    def test_fewer_than_five_attempts_is_easy(self):
        """Even a perfect record stays easy until five attempts."""
        assert choose_daily_difficulty(_stats(4, 4)) == "easy"

    @pytest.mark.parametrize(
        ("won", "attempted", "expected"),
        [
            (2, 10, "easy"),
            (3, 10, "medium"),
            (4, 10, "medium"),
            (5, 10, "hard"),
            (7, 10, "hard"),
            (8, 10, "expert"),
            (10, 10, "expert"),
        ],
    )
    def test_win_rate_bands(self, won, attempted, expected):
        assert choose_daily_difficulty(_stats(won, attempted)) == expected
