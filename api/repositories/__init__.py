"""Repository layer for database operations.

Repositories encapsulate all database queries, keeping services free of SQL.
This separation provides:
- Single source of truth for database operations
- Easier testing (repositories can be mocked)
- Reusable queries across multiple services
"""

from repositories.catalog_repository import CatalogRepository
from repositories.progress_repository import ProgressRepository
from repositories.review_repository import ReviewSessionRepository
from repositories.stats_repository import UserStatsRepository
from repositories.utils import log_slow_query

__all__ = [
    "CatalogRepository",
    "ProgressRepository",
    "ReviewSessionRepository",
    "UserStatsRepository",
    "log_slow_query",
]
