"""
Error taxonomy for the comment service.

Caller-input errors (validation, not found) are surfaced verbatim by the
HTTP layer.  Infrastructure errors are split by collaborator: a store
failure is fatal to the request, a cache failure never is.
"""


class CommentError(Exception):
    """Base class for all comment service errors."""


class CommentValidationError(CommentError):
    """Raised when input is missing or mistyped; carries the offending field names."""

    def __init__(self, fields: list[str], message: str | None = None) -> None:
        self.fields = list(fields)
        self.message = message or f"Invalid value for: {', '.join(self.fields)}"
        super().__init__(self.message)


class CommentNotFoundError(CommentError):
    """Raised when no comment exists for the requested id."""

    def __init__(self, comment_id: int) -> None:
        self.comment_id = comment_id
        super().__init__(f"Comment {comment_id} not found")


class StoreUnavailableError(CommentError):
    """The relational store could not be reached."""


class CacheUnavailableError(CommentError):
    """The cache backend could not be reached or refused the operation."""
