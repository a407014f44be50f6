"""Domain exceptions raised by the reading and gamification services.

The HTTP layer maps each class to a status code in
``shelfquest.middleware.error_handler``.
"""

from __future__ import annotations


class ShelfQuestError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ShelfQuestError):
    """A referenced user, book, chapter, progress record or note does not exist."""

    status_code = 404


class InvalidStateError(ShelfQuestError):
    """The operation is not allowed in the record's current state."""

    status_code = 409


class ValidationError(ShelfQuestError):
    """Malformed input, rejected before any mutation."""

    status_code = 422


class PermissionDeniedError(ShelfQuestError):
    """The caller may not act on this resource."""

    status_code = 403
