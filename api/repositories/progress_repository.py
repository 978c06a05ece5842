"""Repository for the per-user progress overlay.

Every read joins the catalog to ``user_progress`` with a LEFT JOIN; a missing
overlay row means the item is pending for that user.
"""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import ColumnElement, Select, and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import CatalogItem, Category, ProgressStatus, UserProgress, utcnow
from repositories.utils import log_slow_query, upsert_on_conflict

ItemWithOverlay = tuple[CatalogItem, UserProgress | None]


def _overlay_join(user_id: str) -> ColumnElement[bool]:
    return and_(UserProgress.item_id == CatalogItem.id, UserProgress.user_id == user_id)


def _has_effective_status(status: ProgressStatus) -> ColumnElement[bool]:
    if status == ProgressStatus.PENDING:
        return or_(
            UserProgress.id.is_(None), UserProgress.status == ProgressStatus.PENDING
        )
    return UserProgress.status == status


class ProgressRepository:
    """Repository for the sparse progress overlay."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _items_with_overlay(self, user_id: str) -> Select:
        return (
            select(CatalogItem, UserProgress)
            .outerjoin(UserProgress, _overlay_join(user_id))
            .execution_options(populate_existing=True)
        )

    async def get(self, user_id: str, item_id: int) -> UserProgress | None:
        result = await self.db.execute(
            select(UserProgress)
            .where(UserProgress.user_id == user_id, UserProgress.item_id == item_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_effective_status(
        self, user_id: str, item_id: int
    ) -> ProgressStatus:
        progress = await self.get(user_id, item_id)
        return progress.status if progress else ProgressStatus.PENDING

    async def get_in_progress(self, user_id: str) -> UserProgress | None:
        result = await self.db.execute(
            select(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.status == ProgressStatus.IN_PROGRESS,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_with_item(self, user_id: str, item_id: int) -> ItemWithOverlay | None:
        result = await self.db.execute(
            self._items_with_overlay(user_id).where(CatalogItem.id == item_id)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def get_many_with_items(
        self, user_id: str, item_ids: Sequence[int]
    ) -> dict[int, ItemWithOverlay]:
        if not item_ids:
            return {}
        result = await self.db.execute(
            self._items_with_overlay(user_id).where(CatalogItem.id.in_(item_ids))
        )
        return {item.id: (item, progress) for item, progress in result.all()}

    @log_slow_query("list_items_with_progress")
    async def list_with_items(
        self,
        user_id: str,
        *,
        category: Category | None = None,
        subcategory: str | None = None,
        status: ProgressStatus | None = None,
        starred: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ItemWithOverlay], int]:
        """Paginated catalog view with the user's overlay. Returns (rows, total)."""
        conditions: list[ColumnElement[bool]] = []
        if category is not None:
            conditions.append(CatalogItem.category == category)
        if subcategory is not None:
            conditions.append(CatalogItem.subcategory == subcategory)
        if status is not None:
            conditions.append(_has_effective_status(status))
        if starred is True:
            conditions.append(UserProgress.starred.is_(True))
        elif starred is False:
            conditions.append(
                or_(UserProgress.id.is_(None), UserProgress.starred.is_(False))
            )

        total_result = await self.db.execute(
            select(func.count(CatalogItem.id))
            .outerjoin(UserProgress, _overlay_join(user_id))
            .where(*conditions)
        )
        total = total_result.scalar_one()

        result = await self.db.execute(
            self._items_with_overlay(user_id)
            .where(*conditions)
            .order_by(CatalogItem.id)
            .limit(limit)
            .offset(offset)
        )
        return [(item, progress) for item, progress in result.all()], total

    @log_slow_query("get_pending_item_ids")
    async def get_pending_item_ids(
        self, user_id: str, *, exclude_item_id: int | None = None
    ) -> list[int]:
        """Ids of every item whose effective status is pending, in id order."""
        stmt = (
            select(CatalogItem.id)
            .outerjoin(UserProgress, _overlay_join(user_id))
            .where(_has_effective_status(ProgressStatus.PENDING))
            .order_by(CatalogItem.id)
        )
        if exclude_item_id is not None:
            stmt = stmt.where(CatalogItem.id != exclude_item_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_done_item_ids(
        self,
        user_id: str,
        category: Category,
        subcategory: str | None = None,
    ) -> list[int]:
        stmt = (
            select(CatalogItem.id)
            .join(UserProgress, _overlay_join(user_id))
            .where(
                CatalogItem.category == category,
                UserProgress.status == ProgressStatus.DONE,
            )
            .order_by(CatalogItem.id)
        )
        if subcategory is not None:
            stmt = stmt.where(CatalogItem.subcategory == subcategory)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def has_in_progress_in(
        self, user_id: str, category: Category, subcategory: str
    ) -> bool:
        result = await self.db.execute(
            select(UserProgress.id)
            .join(CatalogItem, CatalogItem.id == UserProgress.item_id)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.status == ProgressStatus.IN_PROGRESS,
                CatalogItem.category == category,
                CatalogItem.subcategory == subcategory,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def count_not_done(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(CatalogItem.id))
            .outerjoin(UserProgress, _overlay_join(user_id))
            .where(
                or_(
                    UserProgress.id.is_(None),
                    UserProgress.status != ProgressStatus.DONE,
                )
            )
        )
        return result.scalar_one()

    @log_slow_query("count_by_category")
    async def count_by_category(
        self, user_id: str
    ) -> list[tuple[Category, str, ProgressStatus, int]]:
        """(category, subcategory, effective status, count) for the whole catalog."""
        result = await self.db.execute(
            select(
                CatalogItem.category,
                CatalogItem.subcategory,
                UserProgress.status,
                func.count(CatalogItem.id),
            )
            .outerjoin(UserProgress, _overlay_join(user_id))
            .group_by(CatalogItem.category, CatalogItem.subcategory, UserProgress.status)
        )
        counts: dict[tuple[Category, str, ProgressStatus], int] = {}
        for category, subcategory, status, count in result.all():
            key = (category, subcategory, status or ProgressStatus.PENDING)
            counts[key] = counts.get(key, 0) + count
        return [(c, s, st, n) for (c, s, st), n in counts.items()]

    async def set_status(
        self,
        user_id: str,
        item_id: int,
        status: ProgressStatus,
        *,
        now: datetime | None = None,
    ) -> None:
        """Upsert the overlay row's status.

        completed_at is set only for DONE and cleared otherwise. started_at is
        stamped for IN_PROGRESS, kept for DONE, cleared for PENDING.
        """
        now = now or utcnow()
        values = {
            "user_id": user_id,
            "item_id": item_id,
            "status": status,
            "starred": False,
            "notes": "",
            "started_at": now if status == ProgressStatus.IN_PROGRESS else None,
            "completed_at": now if status == ProgressStatus.DONE else None,
            "created_at": now,
            "updated_at": now,
        }
        update_fields = ["status", "completed_at", "updated_at"]
        if status != ProgressStatus.DONE:
            update_fields.append("started_at")
        await upsert_on_conflict(
            self.db,
            UserProgress,
            values=values,
            index_elements=["user_id", "item_id"],
            update_fields=update_fields,
        )

    async def reset_in_progress(
        self, user_id: str, *, except_item_id: int | None = None
    ) -> int:
        """Return every in-progress item (other than except_item_id) to pending."""
        stmt = (
            update(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.status == ProgressStatus.IN_PROGRESS,
            )
            .values(status=ProgressStatus.PENDING, started_at=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if except_item_id is not None:
            stmt = stmt.where(UserProgress.item_id != except_item_id)
        result = await self.db.execute(stmt)
        return result.rowcount

    async def reset_all(self, user_id: str) -> int:
        result = await self.db.execute(
            update(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.status != ProgressStatus.PENDING,
            )
            .values(
                status=ProgressStatus.PENDING,
                started_at=None,
                completed_at=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def set_starred(self, user_id: str, item_id: int, starred: bool) -> None:
        now = utcnow()
        await upsert_on_conflict(
            self.db,
            UserProgress,
            values={
                "user_id": user_id,
                "item_id": item_id,
                "status": ProgressStatus.PENDING,
                "starred": starred,
                "notes": "",
                "created_at": now,
                "updated_at": now,
            },
            index_elements=["user_id", "item_id"],
            update_fields=["starred", "updated_at"],
        )

    async def set_notes(self, user_id: str, item_id: int, notes: str) -> None:
        now = utcnow()
        await upsert_on_conflict(
            self.db,
            UserProgress,
            values={
                "user_id": user_id,
                "item_id": item_id,
                "status": ProgressStatus.PENDING,
                "starred": False,
                "notes": notes,
                "created_at": now,
                "updated_at": now,
            },
            index_elements=["user_id", "item_id"],
            update_fields=["notes", "updated_at"],
        )
