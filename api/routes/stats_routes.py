"""Progress statistics endpoints."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Request

from core.auth import UserId
from core.database import DbSession, DbSessionReadOnly
from core.ratelimit import READ_LIMIT, limiter
from models import Category
from schemas import (
    CategoryStatsResponse,
    DetailedStatsResponse,
    MessageResponse,
    StatsResponse,
    StreakResponse,
    SubcategoryStatsResponse,
)
from services.catalog_service import is_valid_subcategory
from services.stats_service import (
    CategoryStats,
    ProgressCounts,
    Stats,
    SubcategoryStats,
    get_category_stats,
    get_detailed_stats,
    get_stats,
    get_streak,
    get_subcategory_stats,
    reset_completed_all_count,
)

router = APIRouter(prefix="/api/stats", tags=["stats"])

ValidatedSubcategory = Annotated[str, Path(min_length=1, max_length=100)]


def _counts(counts: ProgressCounts) -> dict[str, int | float]:
    return {
        "total_items": counts.total,
        "completed_items": counts.completed,
        "in_progress_items": counts.in_progress,
        "pending_items": counts.pending,
        "progress_percentage": counts.progress_percentage,
    }


def _stats_response(stats: Stats) -> StatsResponse:
    return StatsResponse(
        **_counts(stats.counts),
        completed_all_count=stats.completed_all_count,
        current_streak=stats.streak.current_streak,
        longest_streak=stats.streak.longest_streak,
        last_activity_date=stats.streak.last_activity_date,
    )


def _subcategory_response(stats: SubcategoryStats) -> SubcategoryStatsResponse:
    return SubcategoryStatsResponse(
        subcategory=stats.subcategory, **_counts(stats.counts)
    )


def _category_response(stats: CategoryStats) -> CategoryStatsResponse:
    return CategoryStatsResponse(
        category=stats.category,
        subcategories=[_subcategory_response(s) for s in stats.subcategories],
        **_counts(stats.counts),
    )


@router.get("", response_model=StatsResponse)
@limiter.limit(READ_LIMIT)
async def get_stats_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> StatsResponse:
    """Overall counts, completed cycles and the current streak."""
    return _stats_response(await get_stats(db, user_id))


@router.get("/detailed", response_model=DetailedStatsResponse)
@limiter.limit(READ_LIMIT)
async def get_detailed_stats_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> DetailedStatsResponse:
    detailed = await get_detailed_stats(db, user_id)
    return DetailedStatsResponse(
        overall=_stats_response(detailed.overall),
        categories=[_category_response(c) for c in detailed.categories],
    )


@router.get("/streak", response_model=StreakResponse)
@limiter.limit(READ_LIMIT)
async def get_streak_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> StreakResponse:
    """Streak as seen today. A day without activity already reads as 0."""
    return StreakResponse.model_validate(await get_streak(db, user_id))


@router.get("/categories/{category}", response_model=CategoryStatsResponse)
@limiter.limit(READ_LIMIT)
async def get_category_stats_endpoint(
    request: Request,
    category: Category,
    user_id: UserId,
    db: DbSessionReadOnly,
) -> CategoryStatsResponse:
    return _category_response(await get_category_stats(db, user_id, category))


@router.get(
    "/categories/{category}/subcategories/{subcategory}",
    response_model=SubcategoryStatsResponse,
    responses={404: {"description": "Unknown subcategory"}},
)
@limiter.limit(READ_LIMIT)
async def get_subcategory_stats_endpoint(
    request: Request,
    category: Category,
    subcategory: ValidatedSubcategory,
    user_id: UserId,
    db: DbSessionReadOnly,
) -> SubcategoryStatsResponse:
    if not is_valid_subcategory(category, subcategory):
        raise HTTPException(
            status_code=404,
            detail=f"Subcategory {subcategory!r} is not part of {category.value}",
        )
    return _subcategory_response(
        await get_subcategory_stats(db, user_id, category, subcategory)
    )


@router.post("/completed-all/reset", response_model=MessageResponse)
@limiter.limit("5/minute")
async def reset_completed_all_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> MessageResponse:
    await reset_completed_all_count(db, user_id)
    return MessageResponse(message="Completed cycle count reset")
