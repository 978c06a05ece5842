"""baseline schema for catalog progress tracking

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18

Catalog items, the per-user progress overlay, per-user stats and review
session rows.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Catalog items - shared, managed outside this service
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("link", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "category",
            sa.Enum(
                "dsa",
                "lld",
                "hld",
                "miscellaneous",
                name="item_category",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("subcategory", sa.String(100), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_items_category_subcategory", "items", ["category", "subcategory"]
    )

    # Sparse per-user overlay; a missing row means pending
    op.create_table(
        "user_progress",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "in-progress",
                "done",
                name="progress_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("starred", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "item_id", name="uq_user_progress_user_item"),
        sa.CheckConstraint(
            "(status = 'done' AND completed_at IS NOT NULL) OR "
            "(status <> 'done' AND completed_at IS NULL)",
            name="ck_user_progress_completed_at_matches_status",
        ),
    )
    op.create_index(
        "ix_user_progress_user_status", "user_progress", ["user_id", "status"]
    )
    # At most one in-progress item per user
    op.create_index(
        "uq_user_progress_one_in_progress",
        "user_progress",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'in-progress'"),
        sqlite_where=sa.text("status = 'in-progress'"),
    )

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column(
            "completed_all_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("user_id"),
        sa.CheckConstraint(
            "current_streak >= 0 AND current_streak <= longest_streak",
            name="ck_user_stats_streak_bounds",
        ),
    )

    op.create_table(
        "review_session_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "completed",
                "abandoned",
                name="review_item_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "session_id", "item_id", name="uq_review_session_items_session_item"
        ),
    )
    op.create_index(
        "ix_review_session_items_session_id", "review_session_items", ["session_id"]
    )
    op.create_index(
        "ix_review_session_items_user_status",
        "review_session_items",
        ["user_id", "status"],
    )


def downgrade() -> None:
    op.drop_table("review_session_items")
    op.drop_table("user_stats")
    op.drop_index("uq_user_progress_one_in_progress", table_name="user_progress")
    op.drop_table("user_progress")
    op.drop_table("items")
