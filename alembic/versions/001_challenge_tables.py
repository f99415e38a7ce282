"""Users, challenges, attempts and aggregate stats.

Creates users, challenge_types, challenges, challenge_type_links,
challenge_test_cases, challenge_attempts, user_challenge_stats,
user_global_stats and daily_challenges, and seeds the four challenge types.

Revision ID: 001_challenge_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_challenge_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    # --- Users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("name", sa.String(64)),
        sa.Column("preferred_language", sa.String(32)),
        sa.Column("is_banned", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at(),
    )

    # --- Challenges ---
    op.create_table(
        "challenge_types",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(32), nullable=False, unique=True),
        sa.Column("description", sa.Text),
    )
    op.create_table(
        "challenges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("difficulty", sa.String(32)),
        sa.Column("starter_code", sa.Text),
        sa.Column("solution_code", sa.Text),
        sa.Column("sample_input", sa.Text),
        sa.Column("expected_output", sa.Text),
        sa.Column("time_limit_ms", sa.Integer),
        sa.Column("memory_limit_kb", sa.Integer),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_table(
        "challenge_type_links",
        sa.Column("challenge_id", sa.String(36), sa.ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("challenge_type_id", sa.Integer, sa.ForeignKey("challenge_types.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "challenge_test_cases",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("challenge_id", sa.String(36), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("input", sa.Text, nullable=False, server_default=""),
        sa.Column("expected_output", sa.Text, nullable=False),
        sa.Column("is_hidden", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_challenge_test_cases_challenge_id", "challenge_test_cases", ["challenge_id"])

    # --- Attempts ---
    op.create_table(
        "challenge_attempts",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", sa.String(36), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("language_id", sa.Integer, nullable=False),
        sa.Column("user_code", sa.Text, nullable=False),
        sa.Column("ai_code", sa.Text, nullable=False),
        sa.Column("ai_generation_failed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("user_execution_time", sa.Float),
        sa.Column("user_memory", sa.Integer),
        sa.Column("ai_execution_time", sa.Float),
        sa.Column("ai_memory", sa.Integer),
        sa.Column("user_correct", sa.Boolean, nullable=False),
        sa.Column("ai_correct", sa.Boolean, nullable=False),
        sa.Column("winner", sa.String(8), nullable=False),
        _created_at(),
    )
    op.create_index(
        "idx_attempts_user_challenge_created", "challenge_attempts", ["user_id", "challenge_id", "created_at"]
    )
    op.create_index("idx_attempts_challenge_created", "challenge_attempts", ["challenge_id", "created_at"])

    # --- Aggregates ---
    op.create_table(
        "user_challenge_stats",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", sa.String(36), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer, nullable=False, server_default="0"),
        sa.Column("ties", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "challenge_id", name="uq_user_challenge_stats"),
        sa.CheckConstraint("wins <= attempts", name="ck_user_challenge_stats_wins"),
    )
    op.create_table(
        "user_global_stats",
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("challenges_won", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_challenges_attempted", sa.Integer, nullable=False, server_default="0"),
        sa.Column("challenges_tied", sa.Integer, nullable=False, server_default="0"),
        sa.Column("code_golf_rating", sa.Integer, nullable=False, server_default="1000"),
        sa.Column("time_trial_rating", sa.Integer, nullable=False, server_default="1000"),
        sa.Column("memory_opt_rating", sa.Integer, nullable=False, server_default="1000"),
        sa.Column("debugging_rating", sa.Integer, nullable=False, server_default="1000"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("challenges_won <= total_challenges_attempted", name="ck_user_global_stats_won"),
    )
    op.create_index("idx_global_stats_won", "user_global_stats", ["challenges_won"])

    # --- Daily ---
    op.create_table(
        "daily_challenges",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_id", sa.String(36), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False),
        sa.Column("challenge_date", sa.Date, nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("challenge_type", sa.String(32), nullable=False),
        _created_at(),
        sa.UniqueConstraint("user_id", "challenge_date", name="uq_daily_challenge_user_date"),
    )

    _seed_challenge_types()


def downgrade() -> None:
    op.drop_table("daily_challenges")
    op.drop_index("idx_global_stats_won", table_name="user_global_stats")
    op.drop_table("user_global_stats")
    op.drop_table("user_challenge_stats")
    op.drop_index("idx_attempts_challenge_created", table_name="challenge_attempts")
    op.drop_index("idx_attempts_user_challenge_created", table_name="challenge_attempts")
    op.drop_table("challenge_attempts")
    op.drop_index("ix_challenge_test_cases_challenge_id", table_name="challenge_test_cases")
    op.drop_table("challenge_test_cases")
    op.drop_table("challenge_type_links")
    op.drop_table("challenges")
    op.drop_table("challenge_types")
    op.drop_table("users")


def _seed_challenge_types() -> None:
    types_table = sa.table(
        "challenge_types",
        sa.column("type", sa.String),
        sa.column("description", sa.Text),
    )
    op.bulk_insert(types_table, [
        {"type": "code_golf", "description": "Solve the problem with the fewest characters."},
        {"type": "time_trial", "description": "Solve the problem with the fastest running program."},
        {"type": "memory_optimization", "description": "Solve the problem using the least memory."},
        {"type": "debugging", "description": "Find and fix the bugs in the starter code."},
    ])
