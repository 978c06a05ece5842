"""Review sessions: fixed-shape samples of completed items to revisit.

A session is created by sampling, without replacement, from the user's done
items according to the configured slots (by default 2 dsa, 1 lld and 1 hld
interview question). All rows are inserted under one session id inside the
request transaction, so a partially created session is never visible.

Whether a user may start a session is decided by an eligibility policy built
from settings (REVIEW_ELIGIBILITY). Callers can pass their own policy.
"""

import random
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from core import get_logger, set_wide_event_nested
from core.config import ReviewSlot, get_settings
from models import Category, ReviewItemStatus, ReviewSessionItem
from repositories import ProgressRepository, ReviewSessionRepository
from services import stats_service
from services.catalog_service import REVISION_MARKER_SUBCATEGORY
from services.exceptions import InsufficientPoolError, NotEligibleError, NotFoundError
from services.progress_service import ItemView

logger = get_logger(__name__)

_system_rng = random.SystemRandom()


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: str


@dataclass(frozen=True)
class SlotSpec:
    category: Category
    count: int
    subcategory: str | None = None


@dataclass(frozen=True)
class ReviewItemView:
    item: ItemView
    status: ReviewItemStatus
    updated_at: datetime


@dataclass(frozen=True)
class ReviewSessionView:
    session_id: str
    created_at: datetime
    items: list[ReviewItemView]

    @property
    def is_closed(self) -> bool:
        return all(entry.status != ReviewItemStatus.PENDING for entry in self.items)


# =============================================================================
# Eligibility policies
# =============================================================================


class EligibilityPolicy(Protocol):
    name: str

    async def evaluate(self, db: AsyncSession, user_id: str) -> Eligibility: ...


class NoOpenSessionPolicy:
    """Only one session with outstanding items at a time."""

    name = "no_open_session"

    async def evaluate(self, db: AsyncSession, user_id: str) -> Eligibility:
        if await ReviewSessionRepository(db).has_open_session(user_id):
            return Eligibility(
                False,
                "You already have a review session in progress. Complete or "
                "abandon its items first.",
            )
        return Eligibility(True, "No review session in progress")


class RevisionMarkerPolicy:
    """Allowed only while a miscellaneous/test_n_revise item is in progress."""

    name = "revision_marker"

    async def evaluate(self, db: AsyncSession, user_id: str) -> Eligibility:
        if await ProgressRepository(db).has_in_progress_in(
            user_id, Category.MISCELLANEOUS, REVISION_MARKER_SUBCATEGORY
        ):
            return Eligibility(True, "A revision item is in progress")
        return Eligibility(
            False,
            f"Start a {Category.MISCELLANEOUS.value}/{REVISION_MARKER_SUBCATEGORY} "
            "item to unlock a review session",
        )


class AlwaysAllowPolicy:
    name = "always"

    async def evaluate(self, db: AsyncSession, user_id: str) -> Eligibility:
        return Eligibility(True, "Review sessions are always allowed")


class AllOfPolicy:
    """Passes when every member passes; reports the first failure."""

    name = "all_of"

    def __init__(self, policies: Sequence[EligibilityPolicy]) -> None:
        self.policies = list(policies)

    async def evaluate(self, db: AsyncSession, user_id: str) -> Eligibility:
        for policy in self.policies:
            result = await policy.evaluate(db, user_id)
            if not result.allowed:
                return result
        return Eligibility(True, "Eligible for a review session")


POLICY_REGISTRY: dict[str, type[EligibilityPolicy]] = {
    NoOpenSessionPolicy.name: NoOpenSessionPolicy,
    RevisionMarkerPolicy.name: RevisionMarkerPolicy,
    AlwaysAllowPolicy.name: AlwaysAllowPolicy,
}


def build_policy(names: Sequence[str]) -> EligibilityPolicy:
    """Combine registered policies by name. An empty list allows everything."""
    unknown = [name for name in names if name not in POLICY_REGISTRY]
    if unknown:
        raise ValueError(f"Unknown review eligibility policies: {unknown}")
    if not names:
        return AlwaysAllowPolicy()
    return AllOfPolicy([POLICY_REGISTRY[name]() for name in names])


def get_default_policy() -> EligibilityPolicy:
    return build_policy(get_settings().review_eligibility)


# =============================================================================
# Sampling
# =============================================================================


def resolve_slots(slots: Sequence[ReviewSlot]) -> list[SlotSpec]:
    """Validate configured slots against the known categories."""
    specs: list[SlotSpec] = []
    for slot in slots:
        try:
            category = Category(slot.category)
        except ValueError:
            raise ValueError(
                f"Unknown category {slot.category!r} in review slots"
            ) from None
        specs.append(SlotSpec(category, slot.count, slot.subcategory))
    return specs


def draw_session_items(
    slots: Sequence[SlotSpec],
    pools: Sequence[Sequence[int]],
    rng: random.Random | None = None,
) -> list[int]:
    """Sample each slot uniformly from its pool, never repeating an item.

    ``pools[i]`` holds the candidate item ids for ``slots[i]``. Slots with the
    smallest pools are filled first so overlapping pools (e.g. "any hld" and
    "hld interview questions") do not starve the narrower slot. The result is
    in slot order.

    Raises:
        InsufficientPoolError: a slot cannot be filled
    """
    rng = rng or _system_rng
    taken: set[int] = set()
    picked: dict[int, list[int]] = {}

    order = sorted(range(len(slots)), key=lambda i: len(pools[i]))
    for index in order:
        slot = slots[index]
        available = [item_id for item_id in pools[index] if item_id not in taken]
        if len(available) < slot.count:
            raise InsufficientPoolError(
                slot.category.value,
                required=slot.count,
                available=len(available),
                subcategory=slot.subcategory,
            )
        chosen = rng.sample(available, slot.count)
        taken.update(chosen)
        picked[index] = chosen

    return [item_id for index in range(len(slots)) for item_id in picked[index]]


async def _load_pools(
    db: AsyncSession, user_id: str, slots: Sequence[SlotSpec]
) -> list[list[int]]:
    repo = ProgressRepository(db)
    return [
        await repo.get_done_item_ids(user_id, slot.category, slot.subcategory)
        for slot in slots
    ]


# =============================================================================
# Session lifecycle
# =============================================================================


async def _build_view(
    db: AsyncSession, user_id: str, rows: Sequence[ReviewSessionItem]
) -> ReviewSessionView:
    items = await ProgressRepository(db).get_many_with_items(
        user_id, [row.item_id for row in rows]
    )
    return ReviewSessionView(
        session_id=rows[0].session_id,
        created_at=min(row.created_at for row in rows),
        items=[
            ReviewItemView(
                item=ItemView.from_row(*items[row.item_id]),
                status=row.status,
                updated_at=row.updated_at,
            )
            for row in rows
        ],
    )


async def can_create_session(
    db: AsyncSession,
    user_id: str,
    *,
    policy: EligibilityPolicy | None = None,
    slots: Sequence[ReviewSlot] | None = None,
) -> Eligibility:
    """Whether create_session would succeed right now, with a reason."""
    policy = policy or get_default_policy()
    result = await policy.evaluate(db, user_id)
    if not result.allowed:
        return result

    specs = resolve_slots(slots or get_settings().review_slots)
    pools = await _load_pools(db, user_id, specs)
    try:
        draw_session_items(specs, pools, random.Random(0))
    except InsufficientPoolError as e:
        return Eligibility(False, str(e))
    return result


async def create_session(
    db: AsyncSession,
    user_id: str,
    *,
    policy: EligibilityPolicy | None = None,
    slots: Sequence[ReviewSlot] | None = None,
    rng: random.Random | None = None,
) -> ReviewSessionView:
    """Sample a new review session from the user's completed items.

    Raises:
        NotEligibleError: the eligibility policy rejects the user
        InsufficientPoolError: a slot cannot be filled from done items
    """
    await stats_service.lock_user(db, user_id)

    policy = policy or get_default_policy()
    eligibility = await policy.evaluate(db, user_id)
    if not eligibility.allowed:
        raise NotEligibleError(eligibility.reason)

    specs = resolve_slots(slots or get_settings().review_slots)
    pools = await _load_pools(db, user_id, specs)
    item_ids = draw_session_items(specs, pools, rng)

    session_id = str(uuid.uuid4())
    rows = await ReviewSessionRepository(db).create_batch(session_id, user_id, item_ids)

    set_wide_event_nested("review", session_id=session_id, item_count=len(rows))
    logger.info(
        "review.session.created",
        user_id=user_id,
        session_id=session_id,
        item_ids=item_ids,
    )
    return await _build_view(db, user_id, rows)


async def get_active_session(db: AsyncSession, user_id: str) -> ReviewSessionView | None:
    """The newest session that still has a pending item, if any."""
    repo = ReviewSessionRepository(db)
    session_id = await repo.get_latest_open_session_id(user_id)
    if session_id is None:
        return None
    return await _build_view(db, user_id, await repo.get_session_rows(user_id, session_id))


async def get_session(db: AsyncSession, user_id: str, session_id: str) -> ReviewSessionView:
    rows = await ReviewSessionRepository(db).get_session_rows(user_id, session_id)
    if not rows:
        raise NotFoundError("Review session", session_id)
    return await _build_view(db, user_id, rows)


async def _finish_item(
    db: AsyncSession,
    user_id: str,
    session_id: str,
    item_id: int,
    status: ReviewItemStatus,
) -> ReviewItemView:
    await stats_service.lock_user(db, user_id)
    repo = ReviewSessionRepository(db)

    row = await repo.get_row(user_id, session_id, item_id)
    if row is None:
        raise NotFoundError("Review item", f"{session_id}/{item_id}")
    if row.status != ReviewItemStatus.PENDING:
        raise NotEligibleError(
            f"Review item {item_id} is already {row.status.value}", item_id=item_id
        )

    await repo.update_status(row, status)
    if status == ReviewItemStatus.COMPLETED:
        await stats_service.record_activity(db, user_id)

    set_wide_event_nested("review", session_id=session_id, item_id=item_id)
    logger.info(
        "review.item.finished",
        user_id=user_id,
        session_id=session_id,
        item_id=item_id,
        status=status.value,
    )

    item, progress = await ProgressRepository(db).get_with_item(user_id, item_id)
    return ReviewItemView(
        item=ItemView.from_row(item, progress),
        status=row.status,
        updated_at=row.updated_at,
    )


async def complete_session_item(
    db: AsyncSession, user_id: str, session_id: str, item_id: int
) -> ReviewItemView:
    """Mark a reviewed item completed. Counts as activity for the streak.

    The item's own progress status is not touched.
    """
    return await _finish_item(
        db, user_id, session_id, item_id, ReviewItemStatus.COMPLETED
    )


async def abandon_session_item(
    db: AsyncSession, user_id: str, session_id: str, item_id: int
) -> ReviewItemView:
    return await _finish_item(
        db, user_id, session_id, item_id, ReviewItemStatus.ABANDONED
    )


async def delete_session(db: AsyncSession, user_id: str, session_id: str) -> int:
    deleted = await ReviewSessionRepository(db).delete_session(user_id, session_id)
    if deleted == 0:
        raise NotFoundError("Review session", session_id)
    logger.info(
        "review.session.deleted", user_id=user_id, session_id=session_id, rows=deleted
    )
    return deleted
