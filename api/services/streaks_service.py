"""Pure streak rules.

Both functions take the previous state and today's UTC date and return a new
state; nothing here touches the database.

Completion rule (a completion happens today):
    no previous activity  -> current = 1
    last activity today   -> unchanged
    last activity 1 day   -> current + 1
    last activity 2+ days -> current = 1
    last_activity_date becomes today in every case

Read rule (no completion today):
    last activity 1+ days ago -> current presented as 0
"""

from dataclasses import dataclass, replace
from datetime import date


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None


def days_since(last_activity_date: date | None, today: date) -> int | None:
    """Calendar days between the last activity and today.

    None when there has never been any activity. A last activity after today
    (clock moved backwards) counts as today.
    """
    if last_activity_date is None:
        return None
    return max((today - last_activity_date).days, 0)


def apply_completion(state: StreakState, today: date) -> StreakState:
    gap = days_since(state.last_activity_date, today)

    if gap is None:
        current = 1
    elif gap == 0:
        return replace(state, last_activity_date=max(state.last_activity_date, today))
    elif gap == 1:
        current = state.current_streak + 1
    else:
        current = 1

    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_activity_date=today,
    )


def effective_streak(state: StreakState, today: date) -> StreakState:
    """State as it should be presented on read, with lapsed streaks at 0."""
    gap = days_since(state.last_activity_date, today)
    if gap is not None and gap >= 1 and state.current_streak > 0:
        return replace(state, current_streak=0)
    return state
