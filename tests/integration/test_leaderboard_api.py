"""GET /api/v1/challenges/leaderboard."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers, make_challenge, make_user

LEADERBOARD = "/api/v1/challenges/leaderboard"


async def _play(client: AsyncClient, user, challenge_id: str, code: str = "print(1+2)") -> None:
    response = await client.post(
        f"/api/v1/challenges/{challenge_id}/attempt",
        json={"languageId": 28, "userCode": code},
        headers=auth_headers(user),
    )
    assert response.status_code == 200


@pytest.mark.asyncio
class TestLeaderboardEndpoint:
    async def test_global_entries_and_caller_rank(self, client: AsyncClient, db_session, executor) -> None:
        winner = await make_user(db_session, "winner@example.com")
        loser = await make_user(db_session, "loser@example.com")
        challenge = await make_challenge(db_session, challenge_type="time_trial")
        executor.verdicts = {"fast": (True, 1.0, 1), "slow": (True, 500.0, 1)}

        await _play(client, winner, challenge.id, "fast")
        await _play(client, winner, challenge.id, "fast")
        await _play(client, loser, challenge.id, "slow")

        response = await client.get(LEADERBOARD, headers=auth_headers(loser))

        assert response.status_code == 200
        data = response.json()
        assert data["type"] is None
        assert data["timeFrame"] == "all"
        assert [(e["userId"], e["rank"], e["wins"]) for e in data["entries"]] == [
            (winner.id, 1, 2),
            (loser.id, 2, 0),
        ]
        assert data["userRank"]["rank"] == 2
        assert data["userRank"]["stats"]["totalChallengesAttempted"] == 1
        assert data["userRank"]["stats"]["timeTrialRating"] == 990

    async def test_per_type_weekly(self, client: AsyncClient, db_session) -> None:
        user = await make_user(db_session)
        golf = await make_challenge(db_session, title="Golf", challenge_type="code_golf")
        trial = await make_challenge(db_session, title="Trial", challenge_type="time_trial")

        # Shorter than the AI's print(42), so the user wins on length
        await _play(client, user, golf.id, "p()")
        await _play(client, user, trial.id)

        response = await client.get(
            LEADERBOARD, params={"type": "code_golf", "timeFrame": "week"}, headers=auth_headers(user)
        )

        data = response.json()
        assert response.status_code == 200
        assert data["type"] == "code_golf"
        assert data["timeFrame"] == "week"
        assert data["entries"] == [
            {
                "rank": 1,
                "userId": user.id,
                "name": "coder",
                "wins": 1,
                "attempts": 1,
                "ties": None,
                "winRate": 100,
            }
        ]
        assert data["userRank"] == {"rank": 1, "stats": {"wins": 1, "attempts": 1, "winRate": 100}}

    async def test_caller_without_attempts_is_unranked(self, client: AsyncClient, db_session) -> None:
        user = await make_user(db_session)
        response = await client.get(LEADERBOARD, headers=auth_headers(user))
        assert response.json()["entries"] == []
        assert response.json()["userRank"] == {"rank": None, "stats": None}

    async def test_invalid_type(self, client: AsyncClient, db_session) -> None:
        user = await make_user(db_session)
        response = await client.get(LEADERBOARD, params={"type": "bogus"}, headers=auth_headers(user))
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid challenge type"}

    async def test_invalid_time_frame(self, client: AsyncClient, db_session) -> None:
        user = await make_user(db_session)
        response = await client.get(LEADERBOARD, params={"timeFrame": "year"}, headers=auth_headers(user))
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid time frame"}

    async def test_requires_session(self, client: AsyncClient) -> None:
        response = await client.get(LEADERBOARD)
        assert response.status_code == 401
