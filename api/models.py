"""SQLAlchemy models for the interview-prep catalog and per-user progress."""

from datetime import UTC, date, datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from core.database import Base


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def today() -> date:
    """Return current UTC date."""
    return datetime.now(UTC).date()


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns.

    Use this for any model that needs audit timestamps.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Category(str, PyEnum):
    """Top-level grouping of catalog items."""

    DSA = "dsa"
    LLD = "lld"
    HLD = "hld"
    MISCELLANEOUS = "miscellaneous"


class ProgressStatus(str, PyEnum):
    """Per-user status of a catalog item.

    A user with no overlay row for an item is treated as PENDING.
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class ReviewItemStatus(str, PyEnum):
    """Outcome of one item inside a review session. Only moves forward."""

    PENDING = "pending"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class CatalogItem(Base):
    """Shared, read-only study item. Managed outside this service."""

    __tablename__ = "items"
    __table_args__ = (Index("ix_items_category_subcategory", "category", "subcategory"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[Category] = mapped_column(
        Enum(
            Category,
            name="item_category",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    subcategory: Mapped[str] = mapped_column(String(100), nullable=False)
    attachments: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class UserProgress(TimestampMixin, Base):
    """Sparse per-user overlay on a catalog item.

    Rows are created on first write. Absence means pending.
    """

    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_user_progress_user_item"),
        Index(
            "uq_user_progress_one_in_progress",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'in-progress'"),
            sqlite_where=text("status = 'in-progress'"),
        ),
        Index("ix_user_progress_user_status", "user_id", "status"),
        CheckConstraint(
            "(status = 'done' AND completed_at IS NOT NULL) OR "
            "(status <> 'done' AND completed_at IS NULL)",
            name="ck_user_progress_completed_at_matches_status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[ProgressStatus] = mapped_column(
        Enum(
            ProgressStatus,
            name="progress_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ProgressStatus.PENDING,
    )
    starred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class UserStats(TimestampMixin, Base):
    """Per-user streak and cycle counters.

    Also serves as the per-user lock row: writers select it FOR UPDATE
    before changing progress or review sessions.
    """

    __tablename__ = "user_stats"
    __table_args__ = (
        CheckConstraint(
            "current_streak >= 0 AND current_streak <= longest_streak",
            name="ck_user_stats_streak_bounds",
        ),
    )

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    completed_all_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class ReviewSessionItem(TimestampMixin, Base):
    """One sampled item of a review session.

    Rows sharing a session_id form the session. Membership is fixed at
    creation; only status changes afterwards.
    """

    __tablename__ = "review_session_items"
    __table_args__ = (
        UniqueConstraint(
            "session_id", "item_id", name="uq_review_session_items_session_item"
        ),
        Index("ix_review_session_items_user_status", "user_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[ReviewItemStatus] = mapped_column(
        Enum(
            ReviewItemStatus,
            name="review_item_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ReviewItemStatus.PENDING,
    )
