"""Pydantic schemas for API request/response validation."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from models import Category, ProgressStatus, ReviewItemStatus

# =============================================================================
# Items and progress
# =============================================================================


class ItemResponse(BaseModel):
    """A catalog item with the caller's progress overlaid."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    link: str
    category: Category
    subcategory: str
    attachments: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    status: ProgressStatus
    starred: bool = False
    notes: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None


class PaginationMeta(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    limit: int
    offset: int
    page: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ItemListResponse(BaseModel):
    items: list[ItemResponse]
    pagination: PaginationMeta


class NextItemResponse(BaseModel):
    """Next item to work on. ``item`` is null once everything is done."""

    item: ItemResponse | None
    resumed: bool = False
    message: str


class CompletionResponse(BaseModel):
    item: ItemResponse
    current_streak: int
    longest_streak: int
    cycle_completed: bool
    completed_all_count: int


class StatusUpdateRequest(BaseModel):
    """Direct status set. in-progress is only reachable through start."""

    status: ProgressStatus


class NotesUpdateRequest(BaseModel):
    notes: str = Field(max_length=10_000)


class ResetResponse(BaseModel):
    reset_count: int
    message: str


class SubcategoriesResponse(BaseModel):
    category: Category
    allowed: list[str]
    in_use: list[str]


# =============================================================================
# Stats
# =============================================================================


class StreakResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None


class CountsResponse(BaseModel):
    total_items: int
    completed_items: int
    in_progress_items: int
    pending_items: int
    progress_percentage: float


class StatsResponse(CountsResponse):
    completed_all_count: int
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None


class SubcategoryStatsResponse(CountsResponse):
    subcategory: str


class CategoryStatsResponse(CountsResponse):
    category: Category
    subcategories: list[SubcategoryStatsResponse] = Field(default_factory=list)


class DetailedStatsResponse(BaseModel):
    overall: StatsResponse
    categories: list[CategoryStatsResponse]


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Review sessions
# =============================================================================


class EligibilityResponse(BaseModel):
    can_create: bool
    reason: str


class ReviewItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item: ItemResponse
    status: ReviewItemStatus
    updated_at: datetime


class ReviewSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str
    created_at: datetime
    is_closed: bool
    items: list[ReviewItemResponse]


class ActiveReviewResponse(BaseModel):
    session: ReviewSessionResponse | None


# =============================================================================
# Health
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str


class PoolStatusResponse(BaseModel):
    pool_size: int
    checked_out: int
    overflow: int
    checked_in: int


class ReadinessResponse(BaseModel):
    status: str
    database: bool
    pool: PoolStatusResponse | None = None
