"""Streak, cycle and aggregate statistics.

The stats row doubles as the per-user lock: every operation that changes a
user's progress or review sessions calls ``lock_user`` first.

Streaks are stored as of the last completion and decayed on read (see
streaks_service.effective_streak), so a user who stopped yesterday reads 0
without anything having been written.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger, set_wide_event_fields
from models import Category, ProgressStatus, UserStats, today as utc_today
from repositories import ProgressRepository, UserStatsRepository
from services.streaks_service import StreakState, apply_completion, effective_streak

logger = get_logger(__name__)

# Lazy decay already hides a streak from gap 1 on; the sweep only zeroes rows
# that no completion today could extend.
SWEEP_GAP_DAYS = 2


@dataclass(frozen=True)
class ProgressCounts:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0

    @property
    def progress_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.completed / self.total * 100, 2)

    def add(self, status: ProgressStatus, count: int) -> Self:
        return type(self)(
            total=self.total + count,
            completed=self.completed + (count if status == ProgressStatus.DONE else 0),
            in_progress=self.in_progress
            + (count if status == ProgressStatus.IN_PROGRESS else 0),
            pending=self.pending + (count if status == ProgressStatus.PENDING else 0),
        )


@dataclass(frozen=True)
class Stats:
    counts: ProgressCounts
    completed_all_count: int
    streak: StreakState


@dataclass(frozen=True)
class SubcategoryStats:
    subcategory: str
    counts: ProgressCounts


@dataclass(frozen=True)
class CategoryStats:
    category: Category
    counts: ProgressCounts
    subcategories: list[SubcategoryStats] = field(default_factory=list)


@dataclass(frozen=True)
class DetailedStats:
    overall: Stats
    categories: list[CategoryStats]


def _streak_of(stats: UserStats) -> StreakState:
    return StreakState(
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        last_activity_date=stats.last_activity_date,
    )


async def lock_user(db: AsyncSession, user_id: str) -> UserStats:
    """Lock the user's stats row for the rest of the transaction."""
    return await UserStatsRepository(db).get_or_create(user_id, for_update=True)


async def record_activity(
    db: AsyncSession, user_id: str, *, today: date | None = None
) -> StreakState:
    """Apply the completion streak rule for an activity happening today."""
    repo = UserStatsRepository(db)
    stats = await repo.get_or_create(user_id, for_update=True)

    previous = _streak_of(stats)
    updated = apply_completion(previous, today or utc_today())
    if updated != previous:
        await repo.save_streak(
            stats,
            current_streak=updated.current_streak,
            longest_streak=updated.longest_streak,
            last_activity_date=updated.last_activity_date,
        )
        if updated.current_streak != previous.current_streak:
            logger.info(
                "streak.updated",
                user_id=user_id,
                current_streak=updated.current_streak,
                longest_streak=updated.longest_streak,
            )
    return updated


async def close_cycle_if_complete(db: AsyncSession, user_id: str) -> tuple[bool, int]:
    """Count a finished cycle once nothing in the catalog is left undone.

    Returns:
        (whether a cycle was closed now, the resulting completed_all_count)
    """
    stats_repo = UserStatsRepository(db)
    stats = await stats_repo.get_or_create(user_id, for_update=True)

    remaining = await ProgressRepository(db).count_not_done(user_id)
    if remaining > 0:
        return False, stats.completed_all_count

    count = await stats_repo.increment_completed_all(stats)
    set_wide_event_fields(cycle_completed=True, completed_all_count=count)
    logger.info("cycle.completed", user_id=user_id, completed_all_count=count)
    return True, count


async def get_streak(
    db: AsyncSession, user_id: str, *, today: date | None = None
) -> StreakState:
    stats = await UserStatsRepository(db).get_or_create(user_id)
    return effective_streak(_streak_of(stats), today or utc_today())


async def _category_counts(
    db: AsyncSession, user_id: str
) -> dict[Category, dict[str, ProgressCounts]]:
    by_category: dict[Category, dict[str, ProgressCounts]] = {
        category: {} for category in Category
    }
    for category, subcategory, status, count in await ProgressRepository(
        db
    ).count_by_category(user_id):
        subs = by_category[category]
        subs[subcategory] = subs.get(subcategory, ProgressCounts()).add(status, count)
    return by_category


def _sum(counts: list[ProgressCounts]) -> ProgressCounts:
    total = ProgressCounts()
    for c in counts:
        total = ProgressCounts(
            total=total.total + c.total,
            completed=total.completed + c.completed,
            in_progress=total.in_progress + c.in_progress,
            pending=total.pending + c.pending,
        )
    return total


def _build_category(category: Category, subs: dict[str, ProgressCounts]) -> CategoryStats:
    return CategoryStats(
        category=category,
        counts=_sum(list(subs.values())),
        subcategories=[
            SubcategoryStats(subcategory=name, counts=counts)
            for name, counts in sorted(subs.items())
        ],
    )


async def get_stats(
    db: AsyncSession, user_id: str, *, today: date | None = None
) -> Stats:
    """Overall counts plus cycle count and the decayed streak."""
    stats = await UserStatsRepository(db).get_or_create(user_id)
    by_category = await _category_counts(db, user_id)
    counts = _sum([c for subs in by_category.values() for c in subs.values()])
    return Stats(
        counts=counts,
        completed_all_count=stats.completed_all_count,
        streak=effective_streak(_streak_of(stats), today or utc_today()),
    )


async def get_detailed_stats(
    db: AsyncSession, user_id: str, *, today: date | None = None
) -> DetailedStats:
    """Overall stats plus every category (even empty) broken down by subcategory."""
    stats = await UserStatsRepository(db).get_or_create(user_id)
    by_category = await _category_counts(db, user_id)
    categories = [_build_category(cat, by_category[cat]) for cat in Category]
    return DetailedStats(
        overall=Stats(
            counts=_sum([c.counts for c in categories]),
            completed_all_count=stats.completed_all_count,
            streak=effective_streak(_streak_of(stats), today or utc_today()),
        ),
        categories=categories,
    )


async def get_category_stats(
    db: AsyncSession, user_id: str, category: Category
) -> CategoryStats:
    by_category = await _category_counts(db, user_id)
    return _build_category(category, by_category[category])


async def get_subcategory_stats(
    db: AsyncSession, user_id: str, category: Category, subcategory: str
) -> SubcategoryStats:
    """Counts for one subcategory; all zero when it holds no items."""
    by_category = await _category_counts(db, user_id)
    counts = by_category[category].get(subcategory, ProgressCounts())
    return SubcategoryStats(subcategory=subcategory, counts=counts)


async def reset_completed_all_count(db: AsyncSession, user_id: str) -> None:
    repo = UserStatsRepository(db)
    stats = await repo.get_or_create(user_id, for_update=True)
    previous = stats.completed_all_count
    await repo.reset_completed_all(stats)
    logger.info("cycle.count_reset", user_id=user_id, previous=previous)


async def sweep_lapsed_streaks(db: AsyncSession, *, today: date | None = None) -> int:
    """Persist decay for streaks that can no longer be extended.

    Returns:
        Number of users whose current_streak was zeroed.
    """
    cutoff = (today or utc_today()) - timedelta(days=SWEEP_GAP_DAYS - 1)
    swept = await UserStatsRepository(db).sweep_lapsed_streaks(cutoff)
    logger.info("streak.sweep.complete", swept=swept, cutoff=cutoff.isoformat())
    return swept
