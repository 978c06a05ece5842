"""Progress state machine for a user's relationship to catalog items.

States per (user, item):
    pending -> in-progress -> done
    in-progress -> pending   (skip)
    done -> pending          (toggle, direct set, reset all)

At most one item per user is in progress. Every writer takes the per-user
lock (see stats_service.lock_user) before reading the current state, so the
clear-then-set in start and skip cannot interleave with another request for
the same user. Nothing here commits; the request transaction does.
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Self

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger, set_wide_event_fields
from models import CatalogItem, Category, ProgressStatus, UserProgress
from repositories import ProgressRepository
from services import stats_service
from services.exceptions import NoPendingItemsError, NotEligibleError, NotFoundError
from services.streaks_service import StreakState

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100
MAX_NOTES_LENGTH = 10_000

_system_rng = random.SystemRandom()


@dataclass(frozen=True)
class ItemView:
    """A catalog item with the user's effective progress."""

    id: int
    title: str
    link: str
    category: Category
    subcategory: str
    attachments: dict[str, Any]
    created_at: datetime
    status: ProgressStatus
    starred: bool
    notes: str
    started_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_row(cls, item: CatalogItem, progress: UserProgress | None) -> Self:
        return cls(
            id=item.id,
            title=item.title,
            link=item.link,
            category=item.category,
            subcategory=item.subcategory,
            attachments=dict(item.attachments or {}),
            created_at=item.created_at,
            status=progress.status if progress else ProgressStatus.PENDING,
            starred=progress.starred if progress else False,
            notes=progress.notes if progress else "",
            started_at=progress.started_at if progress else None,
            completed_at=progress.completed_at if progress else None,
        )


@dataclass(frozen=True)
class ItemPage:
    items: list[ItemView]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        return self.offset // self.limit + 1

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        return self.offset + self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.offset > 0


@dataclass(frozen=True)
class NextItemResult:
    item: ItemView
    resumed: bool


@dataclass(frozen=True)
class CompletionResult:
    item: ItemView
    streak: StreakState
    cycle_completed: bool
    completed_all_count: int


def choose_uniform(candidates: Sequence[int], rng: random.Random | None = None) -> int:
    """Pick one candidate uniformly at random.

    Candidates must be non-empty. Pass a seeded ``random.Random`` for
    reproducible draws.
    """
    return (rng or _system_rng).choice(candidates)


async def _require_item(
    db: AsyncSession, user_id: str, item_id: int
) -> tuple[CatalogItem, UserProgress | None]:
    row = await ProgressRepository(db).get_with_item(user_id, item_id)
    if row is None:
        raise NotFoundError("Item", item_id)
    return row


def _status_of(progress: UserProgress | None) -> ProgressStatus:
    return progress.status if progress else ProgressStatus.PENDING


async def get_item(db: AsyncSession, user_id: str, item_id: int) -> ItemView:
    """Raises NotFoundError for items outside the catalog."""
    item, progress = await _require_item(db, user_id, item_id)
    return ItemView.from_row(item, progress)


async def list_items(
    db: AsyncSession,
    user_id: str,
    *,
    category: Category | None = None,
    subcategory: str | None = None,
    status: ProgressStatus | None = None,
    starred: bool | None = None,
    limit: int = 20,
    offset: int = 0,
) -> ItemPage:
    """Paginated catalog view with the user's progress. Limit is capped at 100."""
    if limit < 1:
        raise ValueError("limit must be positive")
    if offset < 0:
        raise ValueError("offset cannot be negative")
    limit = min(limit, MAX_PAGE_SIZE)

    rows, total = await ProgressRepository(db).list_with_items(
        user_id,
        category=category,
        subcategory=subcategory,
        status=status,
        starred=starred,
        limit=limit,
        offset=offset,
    )
    return ItemPage(
        items=[ItemView.from_row(item, progress) for item, progress in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


async def _start(db: AsyncSession, user_id: str, item_id: int) -> ItemView:
    repo = ProgressRepository(db)
    cleared = await repo.reset_in_progress(user_id, except_item_id=item_id)
    await repo.set_status(user_id, item_id, ProgressStatus.IN_PROGRESS)

    set_wide_event_fields(item_id=item_id, progress_status="in-progress")
    logger.info(
        "progress.item.started",
        user_id=user_id,
        item_id=item_id,
        superseded=cleared,
    )
    return await get_item(db, user_id, item_id)


async def start_item(db: AsyncSession, user_id: str, item_id: int) -> ItemView:
    """Move a pending item to in-progress.

    Any other in-progress item for the user goes back to pending first.

    Raises:
        NotFoundError: item is not in the catalog
        NotEligibleError: item is not pending
    """
    await stats_service.lock_user(db, user_id)
    _, progress = await _require_item(db, user_id, item_id)

    current = _status_of(progress)
    if current != ProgressStatus.PENDING:
        raise NotEligibleError(
            f"Item {item_id} is {current.value}; only pending items can be started",
            item_id=item_id,
        )
    return await _start(db, user_id, item_id)


async def get_next_item(
    db: AsyncSession,
    user_id: str,
    *,
    rng: random.Random | None = None,
) -> NextItemResult:
    """Return the item the user should work on now.

    An item already in progress is returned as is (``resumed=True``).
    Otherwise a uniformly random pending item is started.

    Raises:
        NoPendingItemsError: nothing is pending
    """
    await stats_service.lock_user(db, user_id)
    repo = ProgressRepository(db)

    current = await repo.get_in_progress(user_id)
    if current is not None:
        return NextItemResult(
            item=await get_item(db, user_id, current.item_id), resumed=True
        )

    candidates = await repo.get_pending_item_ids(user_id)
    if not candidates:
        raise NoPendingItemsError()

    item_id = choose_uniform(candidates, rng)
    return NextItemResult(item=await _start(db, user_id, item_id), resumed=False)


async def skip_current(
    db: AsyncSession,
    user_id: str,
    *,
    rng: random.Random | None = None,
) -> ItemView:
    """Give up the in-progress item and start a different random pending one.

    Raises:
        NoPendingItemsError: no other pending item exists; nothing changes
    """
    await stats_service.lock_user(db, user_id)
    repo = ProgressRepository(db)

    current = await repo.get_in_progress(user_id)
    skipped_id = current.item_id if current else None

    candidates = await repo.get_pending_item_ids(user_id, exclude_item_id=skipped_id)
    if not candidates:
        raise NoPendingItemsError("No other pending item to switch to.")

    if skipped_id is not None:
        await repo.set_status(user_id, skipped_id, ProgressStatus.PENDING)
        logger.info("progress.item.skipped", user_id=user_id, item_id=skipped_id)

    return await _start(db, user_id, choose_uniform(candidates, rng))


async def _mark_done(
    db: AsyncSession, user_id: str, item_id: int
) -> CompletionResult:
    """Set done and run streak and cycle bookkeeping. Caller holds the lock."""
    await ProgressRepository(db).set_status(user_id, item_id, ProgressStatus.DONE)

    streak = await stats_service.record_activity(db, user_id)
    cycle_completed, completed_all_count = await stats_service.close_cycle_if_complete(
        db, user_id
    )

    set_wide_event_fields(item_id=item_id, progress_status="done")
    logger.info(
        "progress.item.completed",
        user_id=user_id,
        item_id=item_id,
        current_streak=streak.current_streak,
        cycle_completed=cycle_completed,
    )
    return CompletionResult(
        item=await get_item(db, user_id, item_id),
        streak=streak,
        cycle_completed=cycle_completed,
        completed_all_count=completed_all_count,
    )


async def complete_item(db: AsyncSession, user_id: str, item_id: int) -> CompletionResult:
    """Finish the in-progress item.

    Raises:
        NotFoundError: item is not in the catalog
        NotEligibleError: item is not in progress (including already done)
    """
    await stats_service.lock_user(db, user_id)
    _, progress = await _require_item(db, user_id, item_id)

    current = _status_of(progress)
    if current != ProgressStatus.IN_PROGRESS:
        raise NotEligibleError(
            f"Item {item_id} is {current.value}; only the in-progress item "
            "can be completed",
            item_id=item_id,
        )
    return await _mark_done(db, user_id, item_id)


async def toggle_item_status(db: AsyncSession, user_id: str, item_id: int) -> ItemView:
    """Flip done <-> pending directly, for manual corrections.

    Anything that is not done becomes done (and counts as a completion).
    """
    await stats_service.lock_user(db, user_id)
    _, progress = await _require_item(db, user_id, item_id)

    if _status_of(progress) == ProgressStatus.DONE:
        await ProgressRepository(db).set_status(
            user_id, item_id, ProgressStatus.PENDING
        )
        logger.info("progress.item.reopened", user_id=user_id, item_id=item_id)
        return await get_item(db, user_id, item_id)

    result = await _mark_done(db, user_id, item_id)
    return result.item


async def set_item_status(
    db: AsyncSession, user_id: str, item_id: int, status: ProgressStatus
) -> ItemView:
    """Set pending or done directly. in-progress must go through start_item.

    Setting done on an item that is already done changes nothing.
    """
    if status == ProgressStatus.IN_PROGRESS:
        raise NotEligibleError(
            "Use start to put an item in progress", item_id=item_id
        )

    await stats_service.lock_user(db, user_id)
    item, progress = await _require_item(db, user_id, item_id)
    current = _status_of(progress)

    if status == ProgressStatus.DONE:
        if current == ProgressStatus.DONE:
            return ItemView.from_row(item, progress)
        result = await _mark_done(db, user_id, item_id)
        return result.item

    await ProgressRepository(db).set_status(user_id, item_id, ProgressStatus.PENDING)
    logger.info(
        "progress.item.reset", user_id=user_id, item_id=item_id, previous=current.value
    )
    return await get_item(db, user_id, item_id)


async def toggle_star(db: AsyncSession, user_id: str, item_id: int) -> ItemView:
    _, progress = await _require_item(db, user_id, item_id)
    starred = not (progress.starred if progress else False)
    await ProgressRepository(db).set_starred(user_id, item_id, starred)
    return await get_item(db, user_id, item_id)


async def update_notes(
    db: AsyncSession, user_id: str, item_id: int, notes: str
) -> ItemView:
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValueError(f"notes cannot exceed {MAX_NOTES_LENGTH} characters")
    await _require_item(db, user_id, item_id)
    await ProgressRepository(db).set_notes(user_id, item_id, notes)
    return await get_item(db, user_id, item_id)


async def reset_all(db: AsyncSession, user_id: str) -> int:
    """Return every non-pending item to pending. Cycle count is untouched.

    Returns:
        Number of overlay rows that changed.
    """
    await stats_service.lock_user(db, user_id)
    reset_count = await ProgressRepository(db).reset_all(user_id)

    set_wide_event_fields(progress_reset_count=reset_count)
    logger.info("progress.reset_all", user_id=user_id, reset_count=reset_count)
    return reset_count
