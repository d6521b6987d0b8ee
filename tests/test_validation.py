"""
Unit tests for user / post field validation.
"""

from __future__ import annotations

import uuid

import pytest

from socialblog.exceptions import (
    InvalidAboutError,
    InvalidBioError,
    InvalidIdError,
    InvalidUsernameError,
    ValidationError,
)
from socialblog.validation import (
    ABOUT_MAX_LENGTH,
    BIO_MAX_LENGTH,
    ensure_valid_id,
    is_valid_id,
    validate_post_fields,
    validate_user_fields,
)
from tests.factories import UserDataFactory


class TestIds:
    def test_uuid_is_valid(self) -> None:
        assert is_valid_id(str(uuid.uuid4()))

    @pytest.mark.parametrize("value", ["", "abc", "123", None, 42])
    def test_non_uuid_is_invalid(self, value: object) -> None:
        assert not is_valid_id(value)

    def test_ensure_valid_id_raises(self) -> None:
        with pytest.raises(InvalidIdError) as exc_info:
            ensure_valid_id("nope", "post ID")
        assert exc_info.value.code == "INVALID_ID"
        assert exc_info.value.status_code == 400


class TestUserFields:
    def test_username_length_bounds(self) -> None:
        """Usernames must be 3-30 characters."""
        assert validate_user_fields({"username": "abc"}) == {"username": "abc"}
        assert validate_user_fields({"username": "a" * 30})["username"] == "a" * 30
        with pytest.raises(InvalidUsernameError):
            validate_user_fields({"username": "ab"})
        with pytest.raises(InvalidUsernameError):
            validate_user_fields({"username": "a" * 31})

    def test_bio_and_about_limits(self) -> None:
        validate_user_fields({"bio": "x" * BIO_MAX_LENGTH})
        validate_user_fields({"about": "x" * ABOUT_MAX_LENGTH})
        with pytest.raises(InvalidBioError):
            validate_user_fields({"bio": "x" * (BIO_MAX_LENGTH + 1)})
        with pytest.raises(InvalidAboutError):
            validate_user_fields({"about": "x" * (ABOUT_MAX_LENGTH + 1)})

    def test_specific_errors_are_validation_errors(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_user_fields({"bio": "x" * 200})
        assert exc_info.value.code == "INVALID_BIO"

    def test_patch_rejects_read_only_fields(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_user_fields({"email": "new@example.com"})
        assert exc_info.value.details == {"fields": ["email"]}

    def test_patch_drops_none_values(self) -> None:
        assert validate_user_fields({"bio": None, "about": "hi"}) == {"about": "hi"}

    def test_empty_photo_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_user_fields({"photo": ""})

    def test_create_requires_identity_fields(self) -> None:
        payload = UserDataFactory()
        del payload["email"]
        with pytest.raises(ValidationError) as exc_info:
            validate_user_fields(payload, creating=True)
        assert exc_info.value.details == {"fields": ["email"]}

    def test_create_accepts_full_payload(self) -> None:
        payload = UserDataFactory(username="alice")
        cleaned = validate_user_fields(payload, creating=True)
        assert cleaned["username"] == "alice"
        assert cleaned["external_id"] == payload["external_id"]


class TestPostFields:
    def test_create_requires_title_and_content(self) -> None:
        with pytest.raises(ValidationError):
            validate_post_fields({"title": "Hi"}, creating=True)

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_post_fields({"title": "   "})

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_post_fields({"author_id": "x"})

    def test_patch_keeps_only_given_fields(self) -> None:
        assert validate_post_fields({"image": "a.png", "title": None}) == {"image": "a.png"}
