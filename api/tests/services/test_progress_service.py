"""Integration tests for progress_service (the per-user state machine).

Runs against the in-memory SQLite database; services flush but never commit.
"""

import random

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from models import CatalogItem, Category, ProgressStatus
from repositories import ProgressRepository, UserStatsRepository
from services import progress_service
from services.exceptions import NoPendingItemsError, NotEligibleError, NotFoundError
from services.progress_service import ItemPage
from services.stats_service import get_stats
from tests.factories import (
    CatalogItemFactory,
    DoneProgressFactory,
    InProgressFactory,
    UserProgressFactory,
    create_async,
    create_batch_async,
)

pytestmark = pytest.mark.integration

USER = "user_progress_test"
OTHER = "user_progress_other"


async def _status(
    db: AsyncSession, item_id: int, user_id: str = USER
) -> ProgressStatus:
    return await ProgressRepository(db).get_effective_status(user_id, item_id)


async def _in_progress_ids(db: AsyncSession, items: list[CatalogItem]) -> list[int]:
    return [
        item.id
        for item in items
        if await _status(db, item.id) == ProgressStatus.IN_PROGRESS
    ]


@pytest.fixture
async def items(db_session: AsyncSession) -> list[CatalogItem]:
    return await create_batch_async(CatalogItemFactory, db_session, 3)


@pytest.mark.unit
class TestItemPage:
    def test_first_page(self):
        page = ItemPage(items=[], total=45, limit=20, offset=0)

        assert (page.page, page.total_pages, page.has_next, page.has_prev) == (
            1,
            3,
            True,
            False,
        )

    def test_last_page(self):
        page = ItemPage(items=[], total=45, limit=20, offset=40)

        assert page.page == 3
        assert page.has_next is False
        assert page.has_prev is True

    def test_empty_catalog(self):
        page = ItemPage(items=[], total=0, limit=20, offset=0)

        assert page.total_pages == 0
        assert page.has_next is False


class TestStartItem:
    """Tests for start_item()."""

    async def test_starts_pending_item(self, db_session, items):
        view = await progress_service.start_item(db_session, USER, items[0].id)

        assert view.status == ProgressStatus.IN_PROGRESS
        assert view.started_at is not None
        assert view.completed_at is None

    async def test_supersedes_other_in_progress_item(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)
        await progress_service.start_item(db_session, USER, items[1].id)

        assert await _in_progress_ids(db_session, items) == [items[1].id]
        assert await _status(db_session, items[0].id) == ProgressStatus.PENDING

    async def test_rejects_done_item(self, db_session, items):
        await create_async(
            DoneProgressFactory, db_session, user_id=USER, item_id=items[0].id
        )

        with pytest.raises(NotEligibleError):
            await progress_service.start_item(db_session, USER, items[0].id)

    async def test_rejects_item_already_in_progress(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)

        with pytest.raises(NotEligibleError):
            await progress_service.start_item(db_session, USER, items[0].id)

    async def test_unknown_item(self, db_session, items):
        with pytest.raises(NotFoundError, match="Item 9999 not found"):
            await progress_service.start_item(db_session, USER, 9999)

    async def test_users_are_independent(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)
        await progress_service.start_item(db_session, OTHER, items[1].id)

        assert await _in_progress_ids(db_session, items) == [items[0].id]
        assert await _status(db_session, items[1].id, OTHER) == (
            ProgressStatus.IN_PROGRESS
        )


class TestCompleteItem:
    """Tests for complete_item()."""

    async def test_completes_in_progress_item(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)

        result = await progress_service.complete_item(db_session, USER, items[0].id)

        assert result.item.status == ProgressStatus.DONE
        assert result.item.completed_at is not None
        assert result.streak.current_streak == 1
        assert result.cycle_completed is False

    async def test_requires_in_progress(self, db_session, items):
        with pytest.raises(NotEligibleError):
            await progress_service.complete_item(db_session, USER, items[0].id)

    async def test_second_completion_rejected_without_double_count(
        self, db_session, items
    ):
        for item in items[1:]:
            await create_async(
                DoneProgressFactory, db_session, user_id=USER, item_id=item.id
            )
        await progress_service.start_item(db_session, USER, items[0].id)
        first = await progress_service.complete_item(db_session, USER, items[0].id)

        with pytest.raises(NotEligibleError):
            await progress_service.complete_item(db_session, USER, items[0].id)

        stats = await UserStatsRepository(db_session).get(USER)
        assert first.cycle_completed is True
        assert stats.completed_all_count == 1
        assert stats.current_streak == 1


class TestGetNextItem:
    """Tests for get_next_item()."""

    async def test_starts_a_pending_item(self, db_session, items):
        result = await progress_service.get_next_item(
            db_session, USER, rng=random.Random(3)
        )

        assert result.resumed is False
        assert result.item.status == ProgressStatus.IN_PROGRESS
        assert await _in_progress_ids(db_session, items) == [result.item.id]

    async def test_repeated_calls_resume_same_item(self, db_session, items):
        first = await progress_service.get_next_item(db_session, USER)
        second = await progress_service.get_next_item(db_session, USER)

        assert second.resumed is True
        assert second.item.id == first.item.id

    async def test_only_draws_pending_items(self, db_session, items):
        await create_async(
            DoneProgressFactory, db_session, user_id=USER, item_id=items[0].id
        )
        await create_async(
            DoneProgressFactory, db_session, user_id=USER, item_id=items[2].id
        )

        result = await progress_service.get_next_item(db_session, USER)

        assert result.item.id == items[1].id

    async def test_caught_up(self, db_session, items):
        for item in items:
            await create_async(
                DoneProgressFactory, db_session, user_id=USER, item_id=item.id
            )

        with pytest.raises(NoPendingItemsError):
            await progress_service.get_next_item(db_session, USER)

    async def test_empty_catalog(self, db_session):
        with pytest.raises(NoPendingItemsError):
            await progress_service.get_next_item(db_session, USER)


class TestSkipCurrent:
    """Tests for skip_current()."""

    async def test_switches_to_another_item(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)

        view = await progress_service.skip_current(db_session, USER)

        assert view.id != items[0].id
        assert await _status(db_session, items[0].id) == ProgressStatus.PENDING
        assert await _in_progress_ids(db_session, items) == [view.id]

    async def test_no_other_pending_leaves_state_unchanged(self, db_session, items):
        await create_async(
            DoneProgressFactory, db_session, user_id=USER, item_id=items[1].id
        )
        await create_async(
            DoneProgressFactory, db_session, user_id=USER, item_id=items[2].id
        )
        await progress_service.start_item(db_session, USER, items[0].id)

        with pytest.raises(NoPendingItemsError):
            await progress_service.skip_current(db_session, USER)

        assert await _status(db_session, items[0].id) == ProgressStatus.IN_PROGRESS

    async def test_without_current_item_starts_one(self, db_session, items):
        view = await progress_service.skip_current(db_session, USER)

        assert view.status == ProgressStatus.IN_PROGRESS


class TestToggleAndSetStatus:
    async def test_toggle_pending_to_done_counts_completion(self, db_session, items):
        view = await progress_service.toggle_item_status(db_session, USER, items[0].id)

        stats = await get_stats(db_session, USER)
        assert view.status == ProgressStatus.DONE
        assert stats.streak.current_streak == 1
        assert stats.counts.completed == 1

    async def test_toggle_done_to_pending_clears_completed_at(self, db_session, items):
        await create_async(
            DoneProgressFactory, db_session, user_id=USER, item_id=items[0].id
        )

        view = await progress_service.toggle_item_status(db_session, USER, items[0].id)

        assert view.status == ProgressStatus.PENDING
        assert view.completed_at is None

    async def test_toggle_in_progress_goes_straight_to_done(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)

        view = await progress_service.toggle_item_status(db_session, USER, items[0].id)

        assert view.status == ProgressStatus.DONE
        assert await _in_progress_ids(db_session, items) == []

    async def test_set_in_progress_rejected(self, db_session, items):
        with pytest.raises(NotEligibleError, match="start"):
            await progress_service.set_item_status(
                db_session, USER, items[0].id, ProgressStatus.IN_PROGRESS
            )

    async def test_set_done_twice_is_noop(self, db_session, items):
        await progress_service.set_item_status(
            db_session, USER, items[0].id, ProgressStatus.DONE
        )
        before = await UserStatsRepository(db_session).get(USER)
        snapshot = (before.current_streak, before.completed_all_count)

        view = await progress_service.set_item_status(
            db_session, USER, items[0].id, ProgressStatus.DONE
        )

        after = await UserStatsRepository(db_session).get(USER)
        assert view.status == ProgressStatus.DONE
        assert (after.current_streak, after.completed_all_count) == snapshot

    async def test_set_pending(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)

        view = await progress_service.set_item_status(
            db_session, USER, items[0].id, ProgressStatus.PENDING
        )

        assert view.status == ProgressStatus.PENDING
        assert view.started_at is None

    async def test_unknown_item(self, db_session, items):
        with pytest.raises(NotFoundError):
            await progress_service.toggle_item_status(db_session, USER, 4242)


class TestStarAndNotes:
    async def test_toggle_star_creates_overlay_row(self, db_session, items):
        view = await progress_service.toggle_star(db_session, USER, items[0].id)

        assert view.starred is True
        assert view.status == ProgressStatus.PENDING

    async def test_toggle_star_twice(self, db_session, items):
        await progress_service.toggle_star(db_session, USER, items[0].id)
        view = await progress_service.toggle_star(db_session, USER, items[0].id)

        assert view.starred is False

    async def test_star_keeps_status(self, db_session, items):
        await progress_service.start_item(db_session, USER, items[0].id)

        view = await progress_service.toggle_star(db_session, USER, items[0].id)

        assert view.status == ProgressStatus.IN_PROGRESS

    async def test_update_notes(self, db_session, items):
        view = await progress_service.update_notes(
            db_session, USER, items[0].id, "use a hash map"
        )

        assert view.notes == "use a hash map"

    async def test_notes_too_long(self, db_session, items):
        with pytest.raises(ValueError):
            await progress_service.update_notes(
                db_session, USER, items[0].id, "x" * 10_001
            )

    async def test_notes_unknown_item(self, db_session, items):
        with pytest.raises(NotFoundError):
            await progress_service.update_notes(db_session, USER, 777, "n")


class TestListItems:
    """Tests for list_items()."""

    async def test_missing_overlay_reads_pending(self, db_session, items):
        page = await progress_service.list_items(db_session, USER)

        assert page.total == 3
        assert all(view.status == ProgressStatus.PENDING for view in page.items)

    async def test_filters_by_effective_status(self, db_session, items):
        await create_async(
            DoneProgressFactory, db_session, user_id=USER, item_id=items[0].id
        )
        await create_async(
            UserProgressFactory, db_session, user_id=USER, item_id=items[1].id
        )

        pending = await progress_service.list_items(
            db_session, USER, status=ProgressStatus.PENDING
        )
        done = await progress_service.list_items(
            db_session, USER, status=ProgressStatus.DONE
        )

        assert [v.id for v in pending.items] == [items[1].id, items[2].id]
        assert [v.id for v in done.items] == [items[0].id]

    async def test_other_users_overlay_ignored(self, db_session, items):
        await create_async(
            DoneProgressFactory, db_session, user_id=OTHER, item_id=items[0].id
        )

        page = await progress_service.list_items(
            db_session, USER, status=ProgressStatus.DONE
        )

        assert page.total == 0

    async def test_filters_by_category_and_starred(self, db_session, items):
        hld = await create_async(
            CatalogItemFactory,
            db_session,
            category=Category.HLD,
            subcategory="caching",
        )
        await progress_service.toggle_star(db_session, USER, hld.id)

        by_category = await progress_service.list_items(
            db_session, USER, category=Category.HLD
        )
        starred = await progress_service.list_items(db_session, USER, starred=True)
        unstarred = await progress_service.list_items(db_session, USER, starred=False)

        assert [v.id for v in by_category.items] == [hld.id]
        assert [v.id for v in starred.items] == [hld.id]
        assert unstarred.total == 3

    async def test_pagination(self, db_session, items):
        page = await progress_service.list_items(db_session, USER, limit=2, offset=2)

        assert page.total == 3
        assert [v.id for v in page.items] == [items[2].id]
        assert page.has_prev is True
        assert page.has_next is False

    async def test_limit_capped(self, db_session, items):
        page = await progress_service.list_items(db_session, USER, limit=500)

        assert page.limit == 100

    async def test_invalid_limit(self, db_session):
        with pytest.raises(ValueError):
            await progress_service.list_items(db_session, USER, limit=0)


class TestResetAll:
    async def test_resets_everything_but_cycle_count(self, db_session, items):
        for item in items:
            await create_async(
                DoneProgressFactory, db_session, user_id=USER, item_id=item.id
            )
        await progress_service.toggle_item_status(db_session, USER, items[0].id)
        await progress_service.toggle_item_status(db_session, USER, items[0].id)
        count_before = (
            await UserStatsRepository(db_session).get(USER)
        ).completed_all_count

        reset = await progress_service.reset_all(db_session, USER)

        stats = await get_stats(db_session, USER)
        assert reset == 3
        assert stats.counts.pending == 3
        assert stats.completed_all_count == count_before == 1

    async def test_keeps_star_and_notes(self, db_session, items):
        await create_async(
            InProgressFactory,
            db_session,
            user_id=USER,
            item_id=items[0].id,
            starred=True,
            notes="keep me",
        )

        await progress_service.reset_all(db_session, USER)

        view = await progress_service.get_item(db_session, USER, items[0].id)
        assert view.status == ProgressStatus.PENDING
        assert view.starred is True
        assert view.notes == "keep me"


class TestScenarios:
    async def test_start_complete_reset(self, db_session):
        """A, B pending and C done; complete one; reset leaves the cycle count."""
        a, b, c = await create_batch_async(CatalogItemFactory, db_session, 3)
        await create_async(DoneProgressFactory, db_session, user_id=USER, item_id=c.id)

        started = await progress_service.get_next_item(db_session, USER)
        assert started.item.id in {a.id, b.id}

        result = await progress_service.complete_item(db_session, USER, started.item.id)
        assert result.item.status == ProgressStatus.DONE
        assert (await get_stats(db_session, USER)).counts.completed == 2

        await progress_service.reset_all(db_session, USER)

        stats = await get_stats(db_session, USER)
        assert stats.counts.pending == 3
        assert stats.completed_all_count == 0

    async def test_cycle_closes_exactly_once_per_pass(self, db_session, items):
        for _ in range(2):
            for item in items:
                await progress_service.start_item(db_session, USER, item.id)
                await progress_service.complete_item(db_session, USER, item.id)
            await progress_service.reset_all(db_session, USER)

        stats = await get_stats(db_session, USER)
        assert stats.completed_all_count == 2
