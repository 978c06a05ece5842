"""Item progress endpoints: next/skip/start/complete and direct edits."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query, Request

from core import get_logger
from core.auth import UserId
from core.config import get_settings
from core.database import DbSession, DbSessionReadOnly
from core.ratelimit import READ_LIMIT, WRITE_LIMIT, limiter
from models import Category, ProgressStatus
from schemas import (
    CompletionResponse,
    ItemListResponse,
    ItemResponse,
    NextItemResponse,
    NotesUpdateRequest,
    PaginationMeta,
    ResetResponse,
    StatusUpdateRequest,
)
from services.exceptions import NoPendingItemsError, NotEligibleError, NotFoundError
from services.progress_service import (
    MAX_PAGE_SIZE,
    complete_item,
    get_item,
    get_next_item,
    list_items,
    reset_all,
    set_item_status,
    skip_current,
    start_item,
    toggle_item_status,
    toggle_star,
    update_notes,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/items", tags=["items"])

ItemId = Annotated[int, Path(ge=1)]

CAUGHT_UP_MESSAGE = "You're all caught up! No pending items left."


@router.get("", response_model=ItemListResponse)
@limiter.limit(READ_LIMIT)
async def list_items_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSessionReadOnly,
    category: Category | None = None,
    subcategory: Annotated[str | None, Query(max_length=100)] = None,
    status: ProgressStatus | None = None,
    starred: bool | None = None,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ItemListResponse:
    """List catalog items with the caller's progress, filtered and paginated."""
    page = await list_items(
        db,
        user_id,
        category=category,
        subcategory=subcategory,
        status=status,
        starred=starred,
        limit=limit or get_settings().default_page_size,
        offset=offset,
    )
    return ItemListResponse(
        items=[ItemResponse.model_validate(item) for item in page.items],
        pagination=PaginationMeta.model_validate(page),
    )


@router.get("/next", response_model=NextItemResponse)
@limiter.limit(WRITE_LIMIT)
async def next_item_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> NextItemResponse:
    """Return the in-progress item, or start a random pending one.

    Responds 200 with ``item: null`` when nothing is pending.
    """
    try:
        result = await get_next_item(db, user_id)
    except NoPendingItemsError:
        return NextItemResponse(item=None, message=CAUGHT_UP_MESSAGE)

    return NextItemResponse(
        item=ItemResponse.model_validate(result.item),
        resumed=result.resumed,
        message="Keep going!" if result.resumed else "Here's your next item.",
    )


@router.post("/skip", response_model=NextItemResponse)
@limiter.limit(WRITE_LIMIT)
async def skip_item_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> NextItemResponse:
    """Put the current item back and start a different random pending one."""
    try:
        item = await skip_current(db, user_id)
    except NoPendingItemsError as e:
        return NextItemResponse(item=None, message=str(e))

    return NextItemResponse(
        item=ItemResponse.model_validate(item), message="Skipped. Try this one."
    )


@router.post("/reset", response_model=ResetResponse)
@limiter.limit("5/minute")
async def reset_progress_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> ResetResponse:
    """Reset every item back to pending. The completed-cycle count is kept."""
    count = await reset_all(db, user_id)
    return ResetResponse(reset_count=count, message="All progress reset to pending")


@router.get(
    "/{item_id}",
    response_model=ItemResponse,
    responses={404: {"description": "Item not found"}},
)
@limiter.limit(READ_LIMIT)
async def get_item_endpoint(
    request: Request,
    item_id: ItemId,
    user_id: UserId,
    db: DbSessionReadOnly,
) -> ItemResponse:
    try:
        item = await get_item(db, user_id, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ItemResponse.model_validate(item)


@router.post(
    "/{item_id}/start",
    response_model=ItemResponse,
    responses={
        404: {"description": "Item not found"},
        409: {"description": "Item is not pending"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def start_item_endpoint(
    request: Request,
    item_id: ItemId,
    user_id: UserId,
    db: DbSession,
) -> ItemResponse:
    """Start a pending item. Any other in-progress item goes back to pending."""
    try:
        item = await start_item(db, user_id, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NotEligibleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ItemResponse.model_validate(item)


@router.post(
    "/{item_id}/complete",
    response_model=CompletionResponse,
    responses={
        404: {"description": "Item not found"},
        409: {"description": "Item is not in progress"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def complete_item_endpoint(
    request: Request,
    item_id: ItemId,
    user_id: UserId,
    db: DbSession,
) -> CompletionResponse:
    try:
        result = await complete_item(db, user_id, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NotEligibleError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return CompletionResponse(
        item=ItemResponse.model_validate(result.item),
        current_streak=result.streak.current_streak,
        longest_streak=result.streak.longest_streak,
        cycle_completed=result.cycle_completed,
        completed_all_count=result.completed_all_count,
    )


@router.put(
    "/{item_id}/status",
    response_model=ItemResponse,
    responses={
        404: {"description": "Item not found"},
        409: {"description": "in-progress can only be reached through start"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def set_item_status_endpoint(
    request: Request,
    item_id: ItemId,
    body: StatusUpdateRequest,
    user_id: UserId,
    db: DbSession,
) -> ItemResponse:
    try:
        item = await set_item_status(db, user_id, item_id, body.status)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NotEligibleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ItemResponse.model_validate(item)


@router.post(
    "/{item_id}/toggle-status",
    response_model=ItemResponse,
    responses={404: {"description": "Item not found"}},
)
@limiter.limit(WRITE_LIMIT)
async def toggle_item_status_endpoint(
    request: Request,
    item_id: ItemId,
    user_id: UserId,
    db: DbSession,
) -> ItemResponse:
    """Flip between done and pending without going through in-progress."""
    try:
        item = await toggle_item_status(db, user_id, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ItemResponse.model_validate(item)


@router.post(
    "/{item_id}/star",
    response_model=ItemResponse,
    responses={404: {"description": "Item not found"}},
)
@limiter.limit(WRITE_LIMIT)
async def toggle_star_endpoint(
    request: Request,
    item_id: ItemId,
    user_id: UserId,
    db: DbSession,
) -> ItemResponse:
    try:
        item = await toggle_star(db, user_id, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ItemResponse.model_validate(item)


@router.put(
    "/{item_id}/notes",
    response_model=ItemResponse,
    responses={404: {"description": "Item not found"}},
)
@limiter.limit(WRITE_LIMIT)
async def update_notes_endpoint(
    request: Request,
    item_id: ItemId,
    body: NotesUpdateRequest,
    user_id: UserId,
    db: DbSession,
) -> ItemResponse:
    try:
        item = await update_notes(db, user_id, item_id, body.notes)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ItemResponse.model_validate(item)
