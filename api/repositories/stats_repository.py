"""Repository for per-user streak and cycle counters."""

from datetime import date

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import UserStats, utcnow
from repositories.utils import insert_if_absent, log_slow_query


class UserStatsRepository:
    """Repository for the one-row-per-user stats table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, user_id: str) -> UserStats | None:
        result = await self.db.execute(
            select(UserStats)
            .where(UserStats.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, *, for_update: bool = False) -> UserStats:
        """Get the stats row, creating it with zeroed counters if missing.

        Uses INSERT ... ON CONFLICT DO NOTHING so concurrent first requests
        for the same user do not collide. With ``for_update`` the row is
        locked until the transaction ends; writers use this as the per-user
        mutex. SQLite has no row locks and ignores the clause.
        """
        now = utcnow()
        await insert_if_absent(
            self.db,
            UserStats,
            values={
                "user_id": user_id,
                "completed_all_count": 0,
                "current_streak": 0,
                "longest_streak": 0,
                "last_activity_date": None,
                "created_at": now,
                "updated_at": now,
            },
            index_elements=["user_id"],
        )

        stmt = (
            select(UserStats)
            .where(UserStats.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def save_streak(
        self,
        stats: UserStats,
        *,
        current_streak: int,
        longest_streak: int,
        last_activity_date: date | None,
    ) -> UserStats:
        stats.current_streak = current_streak
        stats.longest_streak = longest_streak
        stats.last_activity_date = last_activity_date
        await self.db.flush()
        return stats

    async def increment_completed_all(self, stats: UserStats) -> int:
        stats.completed_all_count += 1
        await self.db.flush()
        return stats.completed_all_count

    async def reset_completed_all(self, stats: UserStats) -> None:
        stats.completed_all_count = 0
        await self.db.flush()

    @log_slow_query("sweep_lapsed_streaks")
    async def sweep_lapsed_streaks(self, last_active_before: date) -> int:
        """Zero current_streak for users whose last activity is before the cutoff."""
        result = await self.db.execute(
            update(UserStats)
            .where(
                UserStats.current_streak > 0,
                UserStats.last_activity_date < last_active_before,
            )
            .values(current_streak=0, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
