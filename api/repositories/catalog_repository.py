"""Repository for the read-only item catalog."""

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import CatalogItem, Category


class CatalogRepository:
    """Read access to catalog items. Writes belong to the catalog admin tooling."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, item_id: int) -> CatalogItem | None:
        result = await self.db.execute(
            select(CatalogItem).where(CatalogItem.id == item_id)
        )
        return result.scalar_one_or_none()

    async def exists(self, item_id: int) -> bool:
        result = await self.db.execute(
            select(CatalogItem.id).where(CatalogItem.id == item_id)
        )
        return result.scalar_one_or_none() is not None

    async def count(self, category: Category | None = None) -> int:
        stmt = select(func.count(CatalogItem.id))
        if category is not None:
            stmt = stmt.where(CatalogItem.category == category)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def get_subcategories(self, category: Category) -> Sequence[str]:
        """Distinct subcategories that currently hold items in a category."""
        result = await self.db.execute(
            select(CatalogItem.subcategory)
            .where(CatalogItem.category == category)
            .distinct()
            .order_by(CatalogItem.subcategory)
        )
        return result.scalars().all()
