"""
Domain error hierarchy.

Every error raised by the repositories derives from BlogError and carries a
machine-readable code plus the HTTP status the API layer renders it with.
"""
from typing import Any, Optional


class BlogError(Exception):
    """Base exception for all repository / domain errors."""

    status_code: int = 500
    default_code: str = "BLOG_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        original: Optional[BaseException] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.original = original
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


# ──────────────────────────── Validation ──────────────────────────────────

class ValidationError(BlogError):
    """A required field is missing or violates a length constraint."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class InvalidUsernameError(ValidationError):
    default_code = "INVALID_USERNAME"


class InvalidBioError(ValidationError):
    default_code = "INVALID_BIO"


class InvalidAboutError(ValidationError):
    default_code = "INVALID_ABOUT"


class SelfFollowError(ValidationError):
    default_code = "SELF_FOLLOW"


class InvalidIdError(BlogError):
    """Supplied identifier is not well-formed."""

    status_code = 400
    default_code = "INVALID_ID"


# ──────────────────────────── State / lookup ──────────────────────────────

class DuplicateError(BlogError):
    status_code = 409
    default_code = "DUPLICATE_USER"


class NotFoundError(BlogError):
    status_code = 404
    default_code = "NOT_FOUND"


class UnauthorizedError(BlogError):
    """Acting user is not the author of the resource being mutated."""

    status_code = 403
    default_code = "UNAUTHORIZED"


class AlreadyFollowingError(BlogError):
    status_code = 409
    default_code = "ALREADY_FOLLOWING"


class NotFollowingError(BlogError):
    status_code = 409
    default_code = "NOT_FOLLOWING"


# ──────────────────────────── Storage ─────────────────────────────────────

class StorageConnectionError(BlogError):
    """Persistence layer unreachable at call time."""

    status_code = 503
    default_code = "DB_CONNECTION_ERROR"


class RepositoryError(BlogError):
    """Any other storage failure, wrapped with an operation-specific code."""

    status_code = 500
    default_code = "REPOSITORY_ERROR"


__all__ = [
    "AlreadyFollowingError",
    "BlogError",
    "DuplicateError",
    "InvalidAboutError",
    "InvalidBioError",
    "InvalidIdError",
    "InvalidUsernameError",
    "NotFollowingError",
    "NotFoundError",
    "RepositoryError",
    "SelfFollowError",
    "StorageConnectionError",
    "UnauthorizedError",
    "ValidationError",
]
