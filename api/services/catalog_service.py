"""Catalog reference data: categories and their allowed subcategories."""

from sqlalchemy.ext.asyncio import AsyncSession

from models import Category
from repositories import CatalogRepository

# Items in this miscellaneous subcategory act as revision markers: having one
# in progress signals the user is ready for a review session.
REVISION_MARKER_SUBCATEGORY = "test_n_revise"

CATEGORY_SUBCATEGORIES: dict[Category, tuple[str, ...]] = {
    Category.DSA: (
        "arrays",
        "strings",
        "two-pointers",
        "sliding window - fixed size",
        "sliding window - dynamic size",
        "prefix-sum",
        "kadane's algorithm",
        "matrix (2d array)",
        "linked-lists",
        "linkedList in-place reversal",
        "fast and slow pointers",
        "stacks",
        "monotonic stack",
        "queues",
        "monotonic queue",
        "hashing",
        "bit-manipulation",
        "bucket sort",
        "recursion",
        "divide-conquer",
        "merge sort",
        "quickSort / quickSelect",
        "binary search",
        "backtracking",
        "tree traversal - level order",
        "tree traversal - pre order",
        "tree traversal - in order",
        "tree traversal - post-order",
        "bst / ordered set",
        "tries",
        "heaps",
        "two heaps",
        "top k elements",
        "intervals",
        "k-way merge",
        "data structure design",
        "graphs",
        "depth first search (dfs)",
        "breadth first search (bfs)",
        "topological sort",
        "union find",
        "minimum spanning tree",
        "shortest path",
        "eulerian circuit",
        "greedy",
        "1-d dp",
        "knapsack dp",
        "unbounded knapsack dp",
        "longest increasing subsequence dp",
        "2d (grid) dp",
        "string dp",
        "tree / graph dp",
        "bitmask dp",
        "digit dp",
        "probability dp",
        "state machine dp",
        "string matching",
        "binary indexed tree / segment tree",
        "maths / geometry",
        "line sweep",
        "suffix array",
        "other",
    ),
    Category.LLD: (
        "object-oriented-programming",
        "design-principles",
        "uml",
        "design-patterns-creational",
        "design-patterns-structural",
        "design-patterns-behavioral",
        "lld-interview-tips",
        "lld-interview-questions",
    ),
    Category.HLD: (
        "introduction",
        "core concepts",
        "databases and storage",
        "database scaling techniques",
        "caching",
        "networking",
        "api",
        "asynchronous communications",
        "tradeoffs",
        "distributed system concepts",
        "microservices",
        "big data processing",
        "architectural patterns",
        "observability",
        "security",
        "interview tips",
        "interview questions",
    ),
    Category.MISCELLANEOUS: (
        "gre",
        "finance",
        "development",
        "sql",
        "books",
        REVISION_MARKER_SUBCATEGORY,
        "other",
    ),
}


def get_subcategories(category: Category) -> tuple[str, ...]:
    return CATEGORY_SUBCATEGORIES[category]


def is_valid_subcategory(category: Category, subcategory: str) -> bool:
    return subcategory in CATEGORY_SUBCATEGORIES[category]


async def get_subcategories_in_use(db: AsyncSession, category: Category) -> list[str]:
    """Subcategories that currently hold at least one catalog item."""
    return list(await CatalogRepository(db).get_subcategories(category))
