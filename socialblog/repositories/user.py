"""
User repository: profiles, the follow graph and saved posts.

Followers / following are never stored on the user row. They are read from
the ``follows`` edge table in both directions, so a follow is a single row
insert and the two sides cannot drift apart.
"""
import logging
import math
from collections import defaultdict
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError

from socialblog.exceptions import (
    AlreadyFollowingError,
    DuplicateError,
    NotFollowingError,
    NotFoundError,
    SelfFollowError,
    ValidationError,
)
from socialblog.invalidation import HOME, PROFILE, post_path, profile_path
from socialblog.models import Comment, Follow, Post, SavedPost, User, utcnow
from socialblog.repositories.base import BaseRepository, insert_ignore, storage_errors
from socialblog.schemas import Pagination, UserListItem, UserOut, UserPage
from socialblog.serializers import serialize_user
from socialblog.telemetry import FOLLOW_EVENTS_TOTAL
from socialblog.validation import (
    ensure_valid_id,
    is_external_id,
    is_valid_id,
    validate_user_fields,
)

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository):
    """Data access for User entities and their relationships."""

    # ─────────────────────────── lookups ──────────────────────────────────

    async def find_by_external_id(self, external_id: str) -> Optional[User]:
        if not external_id:
            raise ValidationError("External ID is required", code="INVALID_EXTERNAL_ID")
        result = await self._session.execute(
            select(User).where(User.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def require_by_external_id(self, external_id: str) -> User:
        user = await self.find_by_external_id(external_id)
        if user is None:
            raise NotFoundError("User not found", details={"external_id": external_id})
        return user

    async def _require_pair(self, actor_external_id: str, target_external_id: str) -> tuple[User, User]:
        actor = await self.find_by_external_id(actor_external_id)
        target = await self.find_by_external_id(target_external_id)
        if actor is None or target is None:
            raise NotFoundError("User not found")
        return actor, target

    async def _edge_exists(self, follower_id: str, followee_id: str) -> bool:
        edge = await self._session.get(Follow, (follower_id, followee_id))
        return edge is not None

    async def _post_paths(self, user_ids: Sequence[str], *, commented: bool = False) -> list[str]:
        """Single-post views embedding these users as author (or commenter)."""
        ids = list(user_ids)
        rows = await self._session.execute(select(Post.id).where(Post.author_id.in_(ids)))
        post_ids = list(rows.scalars().all())
        if commented:
            rows = await self._session.execute(
                select(Comment.post_id).where(Comment.user_id.in_(ids)).distinct()
            )
            post_ids.extend(rows.scalars().all())
        return [post_path(p) for p in dict.fromkeys(post_ids)]

    # ─────────────────────────── serialization ────────────────────────────

    async def _graph_ids(
        self, user_ids: Sequence[str]
    ) -> tuple[dict[str, list[str]], dict[str, list[str]], dict[str, list[str]]]:
        """Followers, following and saved post ids for each of ``user_ids``."""
        followers: dict[str, list[str]] = defaultdict(list)
        following: dict[str, list[str]] = defaultdict(list)
        saved: dict[str, list[str]] = defaultdict(list)
        if not user_ids:
            return followers, following, saved

        ids = list(user_ids)
        edges = await self._session.execute(
            select(Follow.follower_id, Follow.followee_id)
            .where(or_(Follow.follower_id.in_(ids), Follow.followee_id.in_(ids)))
            .order_by(Follow.created_at)
        )
        for follower_id, followee_id in edges.all():
            followers[followee_id].append(follower_id)
            following[follower_id].append(followee_id)

        rows = await self._session.execute(
            select(SavedPost.user_id, SavedPost.post_id)
            .where(SavedPost.user_id.in_(ids))
            .order_by(SavedPost.created_at)
        )
        for user_id, post_id in rows.all():
            saved[user_id].append(post_id)
        return followers, following, saved

    async def serialize_many(self, users: Sequence[User]) -> list[UserOut]:
        """Serialize users with their graph fields as bare id references."""
        followers, following, saved = await self._graph_ids([u.id for u in users])
        return [
            serialize_user(
                u,
                followers=followers[u.id],
                following=following[u.id],
                saved_posts=saved[u.id],
            )
            for u in users
        ]

    async def _users_by_ids(self, ids: Iterable[str]) -> dict[str, User]:
        ids = list(dict.fromkeys(ids))
        if not ids:
            return {}
        rows = await self._session.execute(select(User).where(User.id.in_(ids)))
        return {u.id: u for u in rows.scalars().all()}

    async def _serialize(
        self,
        user: User,
        *,
        expand_followers: bool = False,
        expand_following: bool = False,
    ) -> UserOut:
        followers, following, saved = await self._graph_ids([user.id])
        follower_ids = followers[user.id]
        following_ids = following[user.id]

        wanted: list[str] = []
        if expand_followers:
            wanted.extend(follower_ids)
        if expand_following:
            wanted.extend(following_ids)
        expanded: dict[str, UserOut] = {}
        if wanted:
            related = await self._users_by_ids(wanted)
            for out in await self.serialize_many(list(related.values())):
                expanded[out.id] = out

        def _refs(ids: list[str], expand: bool) -> list[Any]:
            if not expand:
                return ids
            return [expanded.get(i, i) for i in ids]

        return serialize_user(
            user,
            followers=_refs(follower_ids, expand_followers),
            following=_refs(following_ids, expand_following),
            saved_posts=saved[user.id],
        )

    # ─────────────────────────── operations ───────────────────────────────

    @storage_errors("Failed to create user", "CREATE_USER_ERROR")
    async def create_user(self, data: Mapping[str, Any]) -> UserOut:
        fields = validate_user_fields(data, creating=True)

        existing = await self._session.execute(
            select(User.id).where(
                or_(
                    User.external_id == fields["external_id"],
                    User.username == fields["username"],
                )
            )
        )
        if existing.first() is not None:
            raise DuplicateError("User with this external ID or username already exists")

        user = User(**fields)
        self._session.add(user)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateError(
                "User with this external ID or username already exists", original=exc
            ) from exc

        logger.info("Created user %s (id=%s)", user.username, user.id)
        return serialize_user(user)

    @storage_errors("Failed to fetch user", "FETCH_USER_ERROR")
    async def get_user_by_id(
        self,
        user_id: str,
        *,
        expand_followers: bool = False,
        expand_following: bool = False,
    ) -> Optional[UserOut]:
        """Look a user up by internal id, or by external id when prefixed."""
        if is_external_id(user_id):
            user = await self.find_by_external_id(user_id)
        else:
            ensure_valid_id(user_id, "user ID")
            user = await self._session.get(User, user_id)
        if user is None:
            return None
        return await self._serialize(
            user, expand_followers=expand_followers, expand_following=expand_following
        )

    @storage_errors("Failed to fetch user", "FETCH_USER_ERROR")
    async def get_user_by_external_id(
        self,
        external_id: str,
        *,
        expand_followers: bool = False,
        expand_following: bool = False,
    ) -> Optional[UserOut]:
        user = await self.find_by_external_id(external_id)
        if user is None:
            return None
        return await self._serialize(
            user, expand_followers=expand_followers, expand_following=expand_following
        )

    @storage_errors("Failed to update user", "UPDATE_USER_ERROR")
    async def update_user(self, external_id: str, patch: Mapping[str, Any]) -> UserOut:
        if not external_id:
            raise ValidationError("External ID is required", code="INVALID_EXTERNAL_ID")
        fields = validate_user_fields(patch)
        user = await self.require_by_external_id(external_id)

        new_username = fields.get("username")
        if new_username is not None and new_username != user.username:
            taken = await self._session.execute(
                select(User.id).where(User.username == new_username, User.id != user.id)
            )
            if taken.first() is not None:
                raise DuplicateError(f"Username '{new_username}' already taken")

        for key, value in fields.items():
            setattr(user, key, value)
        user.updated_at = utcnow()
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateError("Username already taken", original=exc) from exc

        logger.info("Updated user %s fields=%s", user.id, sorted(fields))
        await self._invalidate(
            HOME,
            PROFILE,
            profile_path(user.id),
            *await self._post_paths([user.id], commented=True),
        )
        return await self._serialize(user, expand_followers=True, expand_following=True)

    @storage_errors("Failed to follow user", "FOLLOW_ERROR")
    async def follow_user(self, actor_external_id: str, target_external_id: str) -> None:
        actor, target = await self._require_pair(actor_external_id, target_external_id)
        if actor.id == target.id:
            raise SelfFollowError("Cannot follow yourself")
        if await self._edge_exists(actor.id, target.id):
            raise AlreadyFollowingError("Already following this user")

        self._session.add(Follow(follower_id=actor.id, followee_id=target.id))
        now = utcnow()
        actor.updated_at = now
        target.updated_at = now
        try:
            await self._session.flush()
        except IntegrityError as exc:
            # Lost a race with an identical follow
            raise AlreadyFollowingError("Already following this user", original=exc) from exc

        FOLLOW_EVENTS_TOTAL.labels(action="follow").inc()
        logger.info("%s followed %s", actor.id, target.id)
        await self._invalidate(
            HOME,
            PROFILE,
            profile_path(actor.id),
            profile_path(target.id),
            *await self._post_paths([actor.id, target.id]),
        )

    @storage_errors("Failed to unfollow user", "UNFOLLOW_ERROR")
    async def unfollow_user(self, actor_external_id: str, target_external_id: str) -> None:
        actor, target = await self._require_pair(actor_external_id, target_external_id)
        if not await self._edge_exists(actor.id, target.id):
            raise NotFollowingError("Not following this user")

        await self._session.execute(
            delete(Follow).where(
                Follow.follower_id == actor.id,
                Follow.followee_id == target.id,
            )
        )
        now = utcnow()
        actor.updated_at = now
        target.updated_at = now
        await self._session.flush()

        FOLLOW_EVENTS_TOTAL.labels(action="unfollow").inc()
        logger.info("%s unfollowed %s", actor.id, target.id)
        await self._invalidate(
            HOME,
            PROFILE,
            profile_path(actor.id),
            profile_path(target.id),
            *await self._post_paths([actor.id, target.id]),
        )

    @storage_errors("Failed to check follow status", "FOLLOW_STATUS_ERROR")
    async def is_following(self, actor_external_id: str, target_external_id: str) -> bool:
        actor, target = await self._require_pair(actor_external_id, target_external_id)
        return await self._edge_exists(actor.id, target.id)

    @storage_errors("Failed to fetch users", "FETCH_USERS_ERROR")
    async def get_all_users(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        exclude_id: Optional[str] = None,
        viewer_external_id: Optional[str] = None,
    ) -> UserPage:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")

        conditions = []
        if search:
            conditions.append(
                or_(
                    User.username.icontains(search, autoescape=True),
                    User.bio.icontains(search, autoescape=True),
                )
            )
        if exclude_id:
            if is_valid_id(exclude_id):
                conditions.append(User.id != exclude_id)
            else:
                logger.warning("Invalid exclude_id provided: %s. It will be ignored.", exclude_id)

        total = (
            await self._session.execute(
                select(func.count()).select_from(User).where(*conditions)
            )
        ).scalar_one()

        rows = await self._session.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at, User.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        users = list(rows.scalars().all())

        followed: set[str] = set()
        if viewer_external_id and users:
            viewer = await self.find_by_external_id(viewer_external_id)
            if viewer is not None:
                edges = await self._session.execute(
                    select(Follow.followee_id).where(
                        Follow.follower_id == viewer.id,
                        Follow.followee_id.in_([u.id for u in users]),
                    )
                )
                followed = set(edges.scalars().all())

        items = [
            UserListItem(**out.model_dump(), is_following=out.id in followed)
            for out in await self.serialize_many(users)
        ]
        return UserPage(
            users=items,
            pagination=Pagination(
                total=total,
                pages=math.ceil(total / limit),
                page=page,
                limit=limit,
            ),
        )

    async def _require_post_exists(self, post_id: str) -> None:
        ensure_valid_id(post_id, "post ID")
        if await self._session.get(Post, post_id) is None:
            raise NotFoundError("Post not found", details={"post_id": post_id})

    @storage_errors("Failed to save post", "SAVE_POST_ERROR")
    async def save_post(self, external_id: str, post_id: str) -> list[str]:
        """Bookmark a post; saving it twice is a no-op. Returns saved post ids."""
        user = await self.require_by_external_id(external_id)
        await self._require_post_exists(post_id)

        if await insert_ignore(self._session, SavedPost, user_id=user.id, post_id=post_id):
            await self._invalidate(PROFILE, profile_path(user.id))
        _, _, saved = await self._graph_ids([user.id])
        return saved[user.id]

    @storage_errors("Failed to unsave post", "UNSAVE_POST_ERROR")
    async def unsave_post(self, external_id: str, post_id: str) -> list[str]:
        user = await self.require_by_external_id(external_id)
        await self._require_post_exists(post_id)

        result = await self._session.execute(
            delete(SavedPost).where(
                SavedPost.user_id == user.id, SavedPost.post_id == post_id
            )
        )
        if result.rowcount:
            await self._invalidate(PROFILE, profile_path(user.id))
        _, _, saved = await self._graph_ids([user.id])
        return saved[user.id]


__all__ = ["UserRepository"]
