"""
Pydantic request / response schemas.
Kept separate from ORM models to avoid coupling transport to storage.

A reference to another user is a tagged variant discriminated on ``kind``:

  UserIdRef    kind="id"       bare identifier, not expanded
  UserSummary  kind="summary"  partial projection (username, photo)
  UserOut      kind="user"     full serialized profile

Consumers match on ``kind`` rather than sniffing the payload's shape.
Dumping with ``model_dump(mode="json")`` renders every date as ISO-8601.
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────── References ──────────────────────────────────

class UserIdRef(BaseModel):
    kind: Literal["id"] = "id"
    id: str


class UserSummary(BaseModel):
    kind: Literal["summary"] = "summary"
    id: str
    username: str
    photo: str


class UserOut(BaseModel):
    kind: Literal["user"] = "user"
    id: str
    external_id: str
    email: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    photo: str
    bio: str = ""
    about: str = ""
    followers: list["UserRef"] = Field(default_factory=list)
    following: list["UserRef"] = Field(default_factory=list)
    saved_posts: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


UserRef = Annotated[
    Union[UserIdRef, UserSummary, UserOut], Field(discriminator="kind")
]

UserOut.model_rebuild()


class UserListItem(UserOut):
    is_following: bool = False


class Pagination(BaseModel):
    total: int
    pages: int
    page: int
    limit: int


class UserPage(BaseModel):
    users: list[UserListItem]
    pagination: Pagination


# ──────────────────────────── Users (requests) ────────────────────────────

class UserCreate(BaseModel):
    external_id: str
    email: str
    username: str
    photo: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: str = ""
    about: str = ""


class UserUpdate(BaseModel):
    """Profile edits; any field left out is untouched."""

    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = None
    bio: Optional[str] = None
    about: Optional[str] = None
    photo: Optional[str] = None


class FollowStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_following: bool = Field(serialization_alias="isFollowing")


# ──────────────────────────── Posts ───────────────────────────────────────

class CommentOut(BaseModel):
    id: str
    user: UserRef
    content: str
    created_at: datetime


class PostOut(BaseModel):
    id: str
    author: UserRef
    title: str
    content: str
    image: Optional[str] = None
    likes: list[UserRef] = Field(default_factory=list)
    comments: list[CommentOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PostCreate(BaseModel):
    title: str
    content: str
    image: Optional[str] = None


class PostUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    content: Optional[str] = None
    image: Optional[str] = None


class CommentCreate(BaseModel):
    content: str
