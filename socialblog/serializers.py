"""
ORM row → response schema conversion.

Repositories gather the edge-table lookups (followers, likes, ...) and hand
them in here; nothing in this module touches the database.
"""
from typing import Optional, Sequence, Union

from socialblog.models import Comment, Post, User
from socialblog.schemas import (
    CommentOut,
    PostOut,
    UserIdRef,
    UserOut,
    UserSummary,
)

UserRefValue = Union[UserIdRef, UserSummary, UserOut]


def serialize_user(
    user: User,
    *,
    followers: Sequence[Union[str, UserOut]] = (),
    following: Sequence[Union[str, UserOut]] = (),
    saved_posts: Sequence[str] = (),
) -> UserOut:
    """Build a UserOut; graph entries given as ids become UserIdRef."""
    return UserOut(
        id=user.id,
        external_id=user.external_id,
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        photo=user.photo,
        bio=user.bio or "",
        about=user.about or "",
        followers=[_as_ref(f) for f in followers],
        following=[_as_ref(f) for f in following],
        saved_posts=list(saved_posts),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def summarize_user(user: User) -> UserSummary:
    return UserSummary(id=user.id, username=user.username, photo=user.photo)


def _as_ref(value: Union[str, UserRefValue]) -> UserRefValue:
    if isinstance(value, str):
        return UserIdRef(id=value)
    return value


def serialize_comment(comment: Comment, *, expand_user: bool = True) -> CommentOut:
    user: UserRefValue
    if expand_user and comment.user is not None:
        user = summarize_user(comment.user)
    else:
        user = UserIdRef(id=comment.user_id)
    return CommentOut(
        id=comment.id,
        user=user,
        content=comment.content,
        created_at=comment.created_at,
    )


def serialize_post(
    post: Post,
    *,
    likes: Sequence[Union[str, UserRefValue]] = (),
    author: Optional[UserOut] = None,
    comments: Optional[Sequence[Comment]] = None,
    expand_comment_users: bool = True,
) -> PostOut:
    """Build a PostOut.

    ``author`` is the already-serialized author profile when the caller asked
    for expansion; otherwise the post carries a bare UserIdRef. ``likes``
    entries given as ids become UserIdRef, like graph fields on users.
    """
    if comments is None:
        comments = post.comments
    return PostOut(
        id=post.id,
        author=author if author is not None else UserIdRef(id=post.author_id),
        title=post.title,
        content=post.content,
        image=post.image,
        likes=[_as_ref(u) for u in likes],
        comments=[
            serialize_comment(c, expand_user=expand_comment_users) for c in comments
        ],
        created_at=post.created_at,
        updated_at=post.updated_at,
    )
