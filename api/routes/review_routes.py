"""Review session endpoints."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Request, Response

from core.auth import UserId
from core.database import DbSession, DbSessionReadOnly
from core.ratelimit import READ_LIMIT, REVIEW_CREATE_LIMIT, WRITE_LIMIT, limiter
from schemas import (
    ActiveReviewResponse,
    EligibilityResponse,
    ItemResponse,
    ReviewItemResponse,
    ReviewSessionResponse,
)
from services.exceptions import InsufficientPoolError, NotEligibleError, NotFoundError
from services.review_service import (
    ReviewItemView,
    ReviewSessionView,
    abandon_session_item,
    can_create_session,
    complete_session_item,
    create_session,
    delete_session,
    get_active_session,
    get_session,
)

router = APIRouter(prefix="/api/reviews", tags=["reviews"])

SessionId = Annotated[str, Path(min_length=1, max_length=36)]
ItemId = Annotated[int, Path(ge=1)]


def _item_response(entry: ReviewItemView) -> ReviewItemResponse:
    return ReviewItemResponse(
        item=ItemResponse.model_validate(entry.item),
        status=entry.status,
        updated_at=entry.updated_at,
    )


def _session_response(session: ReviewSessionView) -> ReviewSessionResponse:
    return ReviewSessionResponse(
        session_id=session.session_id,
        created_at=session.created_at,
        is_closed=session.is_closed,
        items=[_item_response(entry) for entry in session.items],
    )


@router.get("/eligibility", response_model=EligibilityResponse)
@limiter.limit(READ_LIMIT)
async def eligibility_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSessionReadOnly,
) -> EligibilityResponse:
    """Whether a new review session can be created right now, and why."""
    result = await can_create_session(db, user_id)
    return EligibilityResponse(can_create=result.allowed, reason=result.reason)


@router.post(
    "",
    response_model=ReviewSessionResponse,
    status_code=201,
    responses={
        409: {"description": "Not eligible for a new session"},
        422: {"description": "Not enough completed items to fill a slot"},
    },
)
@limiter.limit(REVIEW_CREATE_LIMIT)
async def create_session_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSession,
) -> ReviewSessionResponse:
    """Sample a new review session from completed items."""
    try:
        session = await create_session(db, user_id)
    except NotEligibleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InsufficientPoolError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": str(e),
                "category": e.category,
                "subcategory": e.subcategory,
                "required": e.required,
                "available": e.available,
            },
        )
    return _session_response(session)


@router.get("/active", response_model=ActiveReviewResponse)
@limiter.limit(READ_LIMIT)
async def active_session_endpoint(
    request: Request,
    user_id: UserId,
    db: DbSessionReadOnly,
) -> ActiveReviewResponse:
    session = await get_active_session(db, user_id)
    return ActiveReviewResponse(
        session=_session_response(session) if session else None
    )


@router.get(
    "/{session_id}",
    response_model=ReviewSessionResponse,
    responses={404: {"description": "Session not found"}},
)
@limiter.limit(READ_LIMIT)
async def get_session_endpoint(
    request: Request,
    session_id: SessionId,
    user_id: UserId,
    db: DbSessionReadOnly,
) -> ReviewSessionResponse:
    try:
        session = await get_session(db, user_id, session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _session_response(session)


@router.post(
    "/{session_id}/items/{item_id}/complete",
    response_model=ReviewItemResponse,
    responses={
        404: {"description": "Session item not found"},
        409: {"description": "Session item already finished"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def complete_session_item_endpoint(
    request: Request,
    session_id: SessionId,
    item_id: ItemId,
    user_id: UserId,
    db: DbSession,
) -> ReviewItemResponse:
    try:
        entry = await complete_session_item(db, user_id, session_id, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NotEligibleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _item_response(entry)


@router.post(
    "/{session_id}/items/{item_id}/abandon",
    response_model=ReviewItemResponse,
    responses={
        404: {"description": "Session item not found"},
        409: {"description": "Session item already finished"},
    },
)
@limiter.limit(WRITE_LIMIT)
async def abandon_session_item_endpoint(
    request: Request,
    session_id: SessionId,
    item_id: ItemId,
    user_id: UserId,
    db: DbSession,
) -> ReviewItemResponse:
    try:
        entry = await abandon_session_item(db, user_id, session_id, item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NotEligibleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _item_response(entry)


@router.delete(
    "/{session_id}",
    status_code=204,
    responses={404: {"description": "Session not found"}},
)
@limiter.limit(WRITE_LIMIT)
async def delete_session_endpoint(
    request: Request,
    session_id: SessionId,
    user_id: UserId,
    db: DbSession,
) -> Response:
    try:
        await delete_session(db, user_id, session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
