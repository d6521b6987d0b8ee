"""
Field validation for users and posts.

Every mutating repository operation runs its payload through one of the two
validators here, so the length rules live in exactly one place.
"""
import uuid
from typing import Any, Iterable, Mapping

from socialblog.exceptions import (
    InvalidAboutError,
    InvalidBioError,
    InvalidIdError,
    InvalidUsernameError,
    ValidationError,
)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
BIO_MAX_LENGTH = 160
ABOUT_MAX_LENGTH = 500

# Identity-provider ids carry this prefix; internal ids are UUIDs
EXTERNAL_ID_PREFIX = "user_"

USER_UPDATABLE_FIELDS = frozenset({"username", "bio", "about", "photo"})
USER_CREATE_FIELDS = USER_UPDATABLE_FIELDS | {
    "external_id",
    "email",
    "first_name",
    "last_name",
}
POST_UPDATABLE_FIELDS = frozenset({"title", "content", "image"})


def is_valid_id(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def is_external_id(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EXTERNAL_ID_PREFIX)


def ensure_valid_id(value: Any, what: str = "ID") -> str:
    if not is_valid_id(value):
        raise InvalidIdError(f"Invalid {what}", details={"id": str(value)})
    return value


def _require(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise ValidationError(
            "Missing required fields", details={"fields": sorted(missing)}
        )


def _reject_unknown(data: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(
            "Unknown or read-only fields", details={"fields": sorted(unknown)}
        )


def validate_user_fields(
    data: Mapping[str, Any], *, creating: bool = False
) -> dict[str, Any]:
    """Check a user payload and return the subset that should be written.

    On creation the identity fields and photo are mandatory; otherwise the
    payload is a patch limited to USER_UPDATABLE_FIELDS and ``None`` values
    are dropped.
    """
    if creating:
        _reject_unknown(data, USER_CREATE_FIELDS)
        _require(data, ("external_id", "username", "email", "photo"))
    else:
        _reject_unknown(data, USER_UPDATABLE_FIELDS)
    cleaned = {k: v for k, v in data.items() if v is not None}

    username = cleaned.get("username")
    if username is not None and not (
        USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH
    ):
        raise InvalidUsernameError(
            f"Username must be between {USERNAME_MIN_LENGTH} and "
            f"{USERNAME_MAX_LENGTH} characters"
        )

    bio = cleaned.get("bio")
    if bio is not None and len(bio) > BIO_MAX_LENGTH:
        raise InvalidBioError(f"Bio must not exceed {BIO_MAX_LENGTH} characters")

    about = cleaned.get("about")
    if about is not None and len(about) > ABOUT_MAX_LENGTH:
        raise InvalidAboutError(
            f"About must not exceed {ABOUT_MAX_LENGTH} characters"
        )

    if "photo" in cleaned and not cleaned["photo"]:
        raise ValidationError("Photo must not be empty")

    return cleaned


def validate_post_fields(
    data: Mapping[str, Any], *, creating: bool = False
) -> dict[str, Any]:
    """Same contract as validate_user_fields, for posts."""
    _reject_unknown(data, POST_UPDATABLE_FIELDS)
    if creating:
        _require(data, ("title", "content"))
    cleaned = {k: v for k, v in data.items() if v is not None}

    for field in ("title", "content"):
        if field in cleaned and not str(cleaned[field]).strip():
            raise ValidationError(f"{field.capitalize()} must not be empty")
    return cleaned
