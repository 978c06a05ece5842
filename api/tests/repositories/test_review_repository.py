"""Integration tests for ReviewSessionRepository."""

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import ReviewItemStatus
from repositories.review_repository import ReviewSessionRepository
from tests.factories import (
    CatalogItemFactory,
    ReviewSessionItemFactory,
    create_async,
    create_batch_async,
)

pytestmark = pytest.mark.integration

USER_ID = "user_review_repo"


@pytest.fixture()
async def items(db_session: AsyncSession):
    return await create_batch_async(CatalogItemFactory, db_session, 4)


class TestCreateBatch:
    async def test_rows_share_session(self, db_session: AsyncSession, items):
        repo = ReviewSessionRepository(db_session)

        rows = await repo.create_batch("s-1", USER_ID, [i.id for i in items[:3]])

        assert {row.session_id for row in rows} == {"s-1"}
        assert all(row.status == ReviewItemStatus.PENDING for row in rows)
        fetched = await repo.get_session_rows(USER_ID, "s-1")
        assert [row.item_id for row in fetched] == [i.id for i in items[:3]]

    async def test_item_once_per_session(self, db_session: AsyncSession, items):
        repo = ReviewSessionRepository(db_session)

        with pytest.raises(IntegrityError):
            await repo.create_batch("s-1", USER_ID, [items[0].id, items[0].id])


class TestOpenSessions:
    async def test_no_rows_means_no_open_session(self, db_session: AsyncSession):
        repo = ReviewSessionRepository(db_session)

        assert await repo.has_open_session(USER_ID) is False
        assert await repo.get_latest_open_session_id(USER_ID) is None

    async def test_latest_open_session_wins(self, db_session: AsyncSession, items):
        await create_async(
            ReviewSessionItemFactory,
            db_session,
            session_id="older",
            user_id=USER_ID,
            item_id=items[0].id,
            created_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        await create_async(
            ReviewSessionItemFactory,
            db_session,
            session_id="newer",
            user_id=USER_ID,
            item_id=items[1].id,
            created_at=datetime(2026, 1, 2, tzinfo=UTC),
        )

        latest = await ReviewSessionRepository(db_session).get_latest_open_session_id(
            USER_ID
        )

        assert latest == "newer"

    async def test_finished_session_not_open(self, db_session: AsyncSession, items):
        repo = ReviewSessionRepository(db_session)
        rows = await repo.create_batch("s-1", USER_ID, [items[0].id])

        await repo.update_status(rows[0], ReviewItemStatus.ABANDONED)

        assert await repo.has_open_session(USER_ID) is False


class TestRowAccess:
    async def test_get_row_scoped_to_user(self, db_session: AsyncSession, items):
        repo = ReviewSessionRepository(db_session)
        await repo.create_batch("s-1", USER_ID, [items[0].id])

        assert await repo.get_row(USER_ID, "s-1", items[0].id) is not None
        assert await repo.get_row("someone_else", "s-1", items[0].id) is None

    async def test_delete_session(self, db_session: AsyncSession, items):
        repo = ReviewSessionRepository(db_session)
        await repo.create_batch("s-1", USER_ID, [i.id for i in items[:2]])
        await repo.create_batch("s-2", USER_ID, [items[2].id])

        assert await repo.delete_session(USER_ID, "s-1") == 2
        assert await repo.get_session_rows(USER_ID, "s-1") == []
        assert len(await repo.get_session_rows(USER_ID, "s-2")) == 1
