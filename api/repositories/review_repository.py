"""Repository for review-session rows."""

from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import ReviewItemStatus, ReviewSessionItem, utcnow
from repositories.utils import log_slow_query


class ReviewSessionRepository:
    """Rows sharing a session_id make up one review session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_batch(
        self, session_id: str, user_id: str, item_ids: Sequence[int]
    ) -> list[ReviewSessionItem]:
        """Insert every sampled item as pending. Caller owns the transaction."""
        now = utcnow()
        rows = [
            ReviewSessionItem(
                session_id=session_id,
                user_id=user_id,
                item_id=item_id,
                status=ReviewItemStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            for item_id in item_ids
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def has_open_session(self, user_id: str) -> bool:
        result = await self.db.execute(
            select(ReviewSessionItem.id)
            .where(
                ReviewSessionItem.user_id == user_id,
                ReviewSessionItem.status == ReviewItemStatus.PENDING,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    @log_slow_query("get_latest_open_session_id")
    async def get_latest_open_session_id(self, user_id: str) -> str | None:
        """Most recently created session that still has a pending row."""
        result = await self.db.execute(
            select(ReviewSessionItem.session_id)
            .where(
                ReviewSessionItem.user_id == user_id,
                ReviewSessionItem.status == ReviewItemStatus.PENDING,
            )
            .group_by(ReviewSessionItem.session_id)
            .order_by(
                func.max(ReviewSessionItem.created_at).desc(),
                func.max(ReviewSessionItem.id).desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_session_rows(
        self, user_id: str, session_id: str
    ) -> Sequence[ReviewSessionItem]:
        result = await self.db.execute(
            select(ReviewSessionItem)
            .where(
                ReviewSessionItem.user_id == user_id,
                ReviewSessionItem.session_id == session_id,
            )
            .order_by(ReviewSessionItem.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def get_row(
        self, user_id: str, session_id: str, item_id: int
    ) -> ReviewSessionItem | None:
        result = await self.db.execute(
            select(ReviewSessionItem)
            .where(
                ReviewSessionItem.user_id == user_id,
                ReviewSessionItem.session_id == session_id,
                ReviewSessionItem.item_id == item_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self, row: ReviewSessionItem, status: ReviewItemStatus
    ) -> ReviewSessionItem:
        row.status = status
        await self.db.flush()
        return row

    async def delete_session(self, user_id: str, session_id: str) -> int:
        result = await self.db.execute(
            delete(ReviewSessionItem).where(
                ReviewSessionItem.user_id == user_id,
                ReviewSessionItem.session_id == session_id,
            )
        )
        return result.rowcount
