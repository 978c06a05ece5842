"""Business-rule failures raised by the service layer.

All of these are expected, caller-recoverable outcomes. Routes translate
them into HTTP responses; storage errors are never wrapped in them.
"""


class ProgressError(Exception):
    """Base class for progress, stats and review-session rule failures."""

    pass


class NotEligibleError(ProgressError):
    """The requested transition is not allowed from the current state."""

    def __init__(self, message: str, *, item_id: int | None = None):
        self.item_id = item_id
        super().__init__(message)


class NotFoundError(ProgressError):
    """A referenced catalog item or review session does not exist."""

    def __init__(self, resource: str, identifier: int | str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class NoPendingItemsError(ProgressError):
    """There is no pending item left to hand out."""

    def __init__(self, message: str = "No pending items left. You're all caught up!"):
        super().__init__(message)


class InsufficientPoolError(ProgressError):
    """Not enough completed items to fill a review-session slot."""

    def __init__(
        self,
        category: str,
        required: int,
        available: int,
        subcategory: str | None = None,
    ):
        self.category = category
        self.subcategory = subcategory
        self.required = required
        self.available = available
        scope = f"{category}/{subcategory}" if subcategory else category
        super().__init__(
            f"Not enough completed {scope} items for a review session "
            f"(need {required}, have {available})"
        )
