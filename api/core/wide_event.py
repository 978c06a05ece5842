"""Request-scoped wide event: one canonical log line per request.

RequestContextMiddleware opens the event when a request arrives and logs it
once when the response finishes. Routes, services and repositories add
whatever they learn along the way:

    set_wide_event_fields(item_id=42, progress_status="done")
    set_wide_event_nested("review", session_id=session_id, item_count=4)

Outside a request (CLI commands, the sweep job) there is no open event and
the setters do nothing.
"""

from contextvars import ContextVar
from typing import Any

_wide_event: ContextVar[dict[str, Any] | None] = ContextVar("wide_event", default=None)


def init_wide_event() -> dict[str, Any]:
    """Open a fresh event for the current async context and return it."""
    event: dict[str, Any] = {}
    _wide_event.set(event)
    return event


def get_wide_event() -> dict[str, Any]:
    """The open event, or an empty detached dict when none is open."""
    event = _wide_event.get()
    return event if event is not None else {}


def set_wide_event_field(key: str, value: Any) -> None:
    event = _wide_event.get()
    if event is not None:
        event[key] = value


def set_wide_event_fields(**kwargs: Any) -> None:
    event = _wide_event.get()
    if event is not None:
        event.update(kwargs)


def set_wide_event_nested(category: str, **kwargs: Any) -> None:
    """Merge fields into a sub-dict, e.g. ``{"review": {"session_id": ...}}``."""
    event = _wide_event.get()
    if event is not None:
        event.setdefault(category, {}).update(kwargs)


def clear_wide_event() -> None:
    """Close the event; later setters in this context are no-ops."""
    _wide_event.set(None)
