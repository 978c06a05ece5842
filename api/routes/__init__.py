"""API route modules."""

from .catalog_routes import router as catalog_router
from .health_routes import router as health_router
from .items_routes import router as items_router
from .review_routes import router as review_router
from .stats_routes import router as stats_router

__all__ = [
    "catalog_router",
    "health_router",
    "items_router",
    "review_router",
    "stats_router",
]
