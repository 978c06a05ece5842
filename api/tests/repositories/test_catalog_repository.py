"""Integration tests for CatalogRepository."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from models import Category
from repositories.catalog_repository import CatalogRepository
from tests.factories import CatalogItemFactory, LLDItemFactory, create_async

pytestmark = pytest.mark.integration


class TestCatalogRepository:
    async def test_get_by_id(self, db_session: AsyncSession):
        item = await create_async(CatalogItemFactory, db_session, title="Two Sum")
        repo = CatalogRepository(db_session)

        assert (await repo.get_by_id(item.id)).title == "Two Sum"
        assert await repo.get_by_id(item.id + 100) is None
        assert await repo.exists(item.id) is True

    async def test_count_by_category(self, db_session: AsyncSession):
        await create_async(CatalogItemFactory, db_session)
        await create_async(LLDItemFactory, db_session)
        repo = CatalogRepository(db_session)

        assert await repo.count() == 2
        assert await repo.count(Category.LLD) == 1
        assert await repo.count(Category.HLD) == 0

    async def test_subcategories_distinct_and_sorted(self, db_session: AsyncSession):
        await create_async(CatalogItemFactory, db_session, subcategory="trees")
        await create_async(CatalogItemFactory, db_session, subcategory="arrays")
        await create_async(CatalogItemFactory, db_session, subcategory="trees")

        subs = await CatalogRepository(db_session).get_subcategories(Category.DSA)

        assert list(subs) == ["arrays", "trees"]
