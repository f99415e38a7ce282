"""Journeys: curricula of ordered levels and per-user progress.

Creates journeys, levels, level_progress and journey_progress, and seeds the
Python journey with its first three levels.

Revision ID: 002_journey_tables
Revises: 001_challenge_tables
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "002_journey_tables"
down_revision: str | None = "001_challenge_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "journeys",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(64), nullable=False, unique=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("icon", sa.String(64)),
        sa.Column("difficulty_level", sa.String(32)),
        sa.Column("order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "levels",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("journey_id", sa.Integer, sa.ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order", sa.Integer, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("difficulty", sa.String(32)),
        sa.Column("default_code", sa.Text),
        sa.Column("expected_output", sa.Text),
        sa.Column("hints", sa.JSON, nullable=False),
        sa.UniqueConstraint("journey_id", "order", name="uq_level_journey_order"),
    )
    op.create_table(
        "level_progress",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("level_id", sa.Integer, sa.ForeignKey("levels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_submitted_code", sa.Text),
        sa.UniqueConstraint("user_id", "level_id", name="uq_level_progress_user_level"),
    )
    op.create_table(
        "journey_progress",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("journey_id", sa.Integer, sa.ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False),
        sa.Column("current_level_order", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "journey_id", name="uq_journey_progress_user_journey"),
    )

    _seed_python_journey()


def downgrade() -> None:
    op.drop_table("journey_progress")
    op.drop_table("level_progress")
    op.drop_table("levels")
    op.drop_table("journeys")


def _seed_python_journey() -> None:
    journeys_table = sa.table(
        "journeys",
        sa.column("slug", sa.String),
        sa.column("title", sa.String),
        sa.column("description", sa.Text),
        sa.column("icon", sa.String),
        sa.column("difficulty_level", sa.String),
        sa.column("order", sa.Integer),
    )
    op.bulk_insert(journeys_table, [
        {
            "slug": "python",
            "title": "Python Journey",
            "description": "Learn Python from basics to advanced concepts",
            "icon": "python",
            "difficulty_level": "Beginner",
            "order": 1,
        },
    ])

    journey_id = op.get_bind().execute(sa.text("SELECT id FROM journeys WHERE slug = 'python'")).scalar_one()

    levels_table = sa.table(
        "levels",
        sa.column("journey_id", sa.Integer),
        sa.column("order", sa.Integer),
        sa.column("title", sa.String),
        sa.column("description", sa.Text),
        sa.column("difficulty", sa.String),
        sa.column("default_code", sa.Text),
        sa.column("expected_output", sa.Text),
        sa.column("hints", sa.JSON),
    )
    op.bulk_insert(levels_table, [
        {
            "journey_id": journey_id,
            "order": 1,
            "title": "Hello Python",
            "description": "Your first Python program. Run the code to see what happens.",
            "difficulty": "Beginner",
            "default_code": 'print("Hello Python!")',
            "expected_output": "Hello Python!",
            "hints": ["Use the print function to display text on the screen."],
        },
        {
            "journey_id": journey_id,
            "order": 2,
            "title": "Variables",
            "description": "Create a variable named 'name', assign your name to it and print a greeting.",
            "difficulty": "Beginner",
            "default_code": 'name = ""\n\nprint("Hello, ")',
            "expected_output": "Hello, Your Name!",
            "hints": [
                "Use the assignment operator (=) to set a value to a variable.",
                "You can concatenate strings using the + operator.",
            ],
        },
        {
            "journey_id": journey_id,
            "order": 3,
            "title": "Operators",
            "description": "Print the sum, difference, product and quotient of two numbers.",
            "difficulty": "Beginner",
            "default_code": "a = 10\nb = 5\n",
            "expected_output": "Sum: 15\nDifference: 5\nProduct: 50\nQuotient: 2.0",
            "hints": ["Use +, -, * and / for the four operations."],
        },
    ])
