"""Catalog reference endpoints."""

from fastapi import APIRouter, Request

from core.auth import UserId
from core.database import DbSessionReadOnly
from core.ratelimit import READ_LIMIT, limiter
from models import Category
from schemas import SubcategoriesResponse
from services.catalog_service import get_subcategories, get_subcategories_in_use

router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.get(
    "/categories/{category}/subcategories", response_model=SubcategoriesResponse
)
@limiter.limit(READ_LIMIT)
async def list_subcategories_endpoint(
    request: Request,
    category: Category,
    user_id: UserId,
    db: DbSessionReadOnly,
) -> SubcategoriesResponse:
    """Allowed subcategories for a category, and the ones holding items."""
    return SubcategoriesResponse(
        category=category,
        allowed=list(get_subcategories(category)),
        in_use=await get_subcategories_in_use(db, category),
    )
