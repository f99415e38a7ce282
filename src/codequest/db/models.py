"""ORM models for users, challenges, attempts, stats and journeys.

Composite unique constraints on the stats and progress tables are what make
the upserts in the service layer safe under concurrent requests.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codequest.db.base import Base, BigIntPK


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table. Accounts are owned by the session provider."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    preferred_language: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


challenge_type_links = Table(
    "challenge_type_links",
    Base.metadata,
    Column("challenge_id", String(36), ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True),
    Column("challenge_type_id", Integer, ForeignKey("challenge_types.id", ondelete="CASCADE"), primary_key=True),
)


class ChallengeType(Base):
    """Category tag: code_golf, time_trial, memory_optimization, debugging."""

    __tablename__ = "challenge_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Challenge(Base):
    """Puzzle definition. Not mutated after creation apart from the active flag."""

    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str | None] = mapped_column(String(32), nullable=True)
    starter_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    solution_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    sample_input: Mapped[str | None] = mapped_column(Text, nullable=True)
    expected_output: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_limit_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    memory_limit_kb: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    challenge_types: Mapped[list[ChallengeType]] = relationship(
        "ChallengeType", secondary=challenge_type_links, lazy="selectin", order_by="ChallengeType.id"
    )
    test_cases: Mapped[list[ChallengeTestCase]] = relationship(
        "ChallengeTestCase", back_populates="challenge", order_by="ChallengeTestCase.id"
    )

    @property
    def primary_type(self) -> str | None:
        """The first category tag decides the judging metric."""
        return self.challenge_types[0].type if self.challenge_types else None


class ChallengeTestCase(Base):
    """Grading case. Hidden cases are used server-side only."""

    __tablename__ = "challenge_test_cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    challenge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    input: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    expected_output: Mapped[str] = mapped_column(Text, nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    challenge: Mapped[Challenge] = relationship("Challenge", back_populates="test_cases")


class ChallengeAttempt(Base):
    """One graded submission, human vs AI. Append-only."""

    __tablename__ = "challenge_attempts"
    __table_args__ = (
        Index("idx_attempts_user_challenge_created", "user_id", "challenge_id", "created_at"),
        Index("idx_attempts_challenge_created", "challenge_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    challenge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    language_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_code: Mapped[str] = mapped_column(Text, nullable=False)
    ai_code: Mapped[str] = mapped_column(Text, nullable=False)
    ai_generation_failed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    user_execution_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    user_memory: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_execution_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_memory: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    ai_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    winner: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class UserChallengeStats(Base):
    """Per (user, challenge) aggregate. UNIQUE(user_id, challenge_id)."""

    __tablename__ = "user_challenge_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", name="uq_user_challenge_stats"),
        CheckConstraint("wins <= attempts", name="ck_user_challenge_stats_wins"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    challenge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ties: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class UserGlobalStats(Base):
    """Per-user aggregate across all challenges. Global rank is computed from here."""

    __tablename__ = "user_global_stats"
    __table_args__ = (
        CheckConstraint("challenges_won <= total_challenges_attempted", name="ck_user_global_stats_won"),
        Index("idx_global_stats_won", "challenges_won"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    challenges_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_challenges_attempted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    challenges_tied: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    code_golf_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    time_trial_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    memory_opt_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    debugging_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class DailyChallenge(Base):
    """Challenge assigned to a user for one UTC day. UNIQUE(user_id, challenge_date)."""

    __tablename__ = "daily_challenges"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_date", name="uq_daily_challenge_user_date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    challenge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    challenge_date: Mapped[date] = mapped_column(Date, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    challenge_type: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    challenge: Mapped[Challenge] = relationship("Challenge", lazy="joined")


# ---------------------------------------------------------------------------
# Journeys
# ---------------------------------------------------------------------------


class Journey(Base):
    """A named curriculum of ordered levels."""

    __tablename__ = "journeys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    difficulty_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    levels: Mapped[list[Level]] = relationship(
        "Level", back_populates="journey", order_by="Level.order"
    )


class Level(Base):
    """One exercise within a journey. UNIQUE(journey_id, order)."""

    __tablename__ = "levels"
    __table_args__ = (
        UniqueConstraint("journey_id", "order", name="uq_level_journey_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    journey_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(32), nullable=True)
    default_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    expected_output: Mapped[str | None] = mapped_column(Text, nullable=True)
    hints: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)

    journey: Mapped[Journey] = relationship("Journey", back_populates="levels")


class LevelProgress(Base):
    """Per (user, level) completion. UNIQUE(user_id, level_id)."""

    __tablename__ = "level_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "level_id", name="uq_level_progress_user_level"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    level_id: Mapped[int] = mapped_column(Integer, ForeignKey("levels.id", ondelete="CASCADE"), nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_submitted_code: Mapped[str | None] = mapped_column(Text, nullable=True)


class JourneyProgress(Base):
    """Per (user, journey) frontier. UNIQUE(user_id, journey_id)."""

    __tablename__ = "journey_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "journey_id", name="uq_journey_progress_user_journey"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    journey_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False
    )
    current_level_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
