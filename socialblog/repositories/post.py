"""
Post repository: posts, their comments and likes.

Read paths return expanded posts: the author as a full profile and each
comment's user as a summary. Likers are full profiles on the home feed,
summaries on author and search listings, and bare ids on single-post reads.
``create_post`` is the one place a post leaves with its author as a bare id
reference, since nothing was joined yet.
"""
import logging
from collections import defaultdict
from typing import Any, Literal, Mapping, Optional, Sequence

from sqlalchemy import Select, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from socialblog.exceptions import NotFoundError, UnauthorizedError, ValidationError
from socialblog.invalidation import HOME, ViewInvalidator, post_path, profile_path
from socialblog.models import Comment, Like, Post, SavedPost, User, utcnow
from socialblog.repositories.base import BaseRepository, insert_ignore, storage_errors
from socialblog.repositories.user import UserRepository
from socialblog.schemas import CommentOut, PostOut
from socialblog.serializers import serialize_comment, serialize_post, summarize_user
from socialblog.telemetry import (
    COMMENTS_CREATED_TOTAL,
    LIKE_EVENTS_TOTAL,
    POSTS_CREATED_TOTAL,
    POSTS_DELETED_TOTAL,
)
from socialblog.validation import ensure_valid_id, validate_post_fields

logger = logging.getLogger(__name__)

LikeExpansion = Literal["id", "summary", "user"]


class PostRepository(BaseRepository):
    """Data access for Post entities, their likes and comments."""

    def __init__(self, session: AsyncSession, invalidator: ViewInvalidator) -> None:
        super().__init__(session, invalidator)
        self._users = UserRepository(session, invalidator)

    # ─────────────────────────── helpers ──────────────────────────────────

    async def _require_post(self, post_id: str) -> Post:
        ensure_valid_id(post_id, "post ID")
        post = await self._session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post not found", details={"post_id": post_id})
        return post

    async def _require_own_post(self, post_id: str, actor_external_id: str) -> tuple[Post, User]:
        post = await self._require_post(post_id)
        actor = await self._users.require_by_external_id(actor_external_id)
        if post.author_id != actor.id:
            raise UnauthorizedError("Unauthorized to modify this post")
        return post, actor

    async def _like_ids(self, post_ids: Sequence[str]) -> dict[str, list[str]]:
        likes: dict[str, list[str]] = defaultdict(list)
        if not post_ids:
            return likes
        rows = await self._session.execute(
            select(Like.post_id, Like.user_id)
            .where(Like.post_id.in_(list(post_ids)))
            .order_by(Like.created_at)
        )
        for post_id, user_id in rows.all():
            likes[post_id].append(user_id)
        return likes

    async def _like_refs(
        self, likes: Mapping[str, list[str]], likes_as: LikeExpansion
    ) -> dict[str, Any]:
        """Map each liking user id to the reference the post should carry."""
        if likes_as == "id":
            return {}
        liker_ids = list(dict.fromkeys(u for ids in likes.values() for u in ids))
        if not liker_ids:
            return {}
        rows = await self._session.execute(select(User).where(User.id.in_(liker_ids)))
        likers = list(rows.scalars().all())
        if likes_as == "summary":
            return {u.id: summarize_user(u) for u in likers}
        return {out.id: out for out in await self._users.serialize_many(likers)}

    async def _expand(
        self, posts: Sequence[Post], *, likes_as: LikeExpansion = "id"
    ) -> list[PostOut]:
        """Serialize posts with the author and comment users expanded.

        ``likes_as`` picks how likers appear: bare ids, username/photo
        summaries, or full profiles.
        """
        if not posts:
            return []
        likes = await self._like_ids([p.id for p in posts])
        refs = await self._like_refs(likes, likes_as)

        author_ids = list(dict.fromkeys(p.author_id for p in posts))
        rows = await self._session.execute(select(User).where(User.id.in_(author_ids)))
        authors = {a.id: a for a in await self._users.serialize_many(list(rows.scalars().all()))}

        return [
            serialize_post(
                p,
                likes=[refs.get(u, u) for u in likes[p.id]],
                author=authors.get(p.author_id),
            )
            for p in posts
        ]

    async def _fetch(self, stmt: Select, *, likes_as: LikeExpansion) -> list[PostOut]:
        result = await self._session.execute(stmt)
        return await self._expand(list(result.scalars().all()), likes_as=likes_as)

    @staticmethod
    def _newest_first(stmt: Select) -> Select:
        return stmt.order_by(Post.created_at.desc(), Post.id)

    # ─────────────────────────── operations ───────────────────────────────

    @storage_errors("Failed to create post", "CREATE_POST_ERROR")
    async def create_post(self, actor_external_id: str, data: Mapping[str, Any]) -> PostOut:
        actor = await self._users.require_by_external_id(actor_external_id)
        fields = validate_post_fields(data, creating=True)

        post = Post(author_id=actor.id, author=actor, comments=[], **fields)
        self._session.add(post)
        await self._session.flush()

        POSTS_CREATED_TOTAL.inc()
        logger.info("Post created: %s by user %s", post.id, actor.id)
        await self._invalidate(HOME, profile_path(actor.id))
        return serialize_post(post)

    @storage_errors("Failed to fetch post", "FETCH_POST_ERROR")
    async def get_post_by_id(self, post_id: str) -> Optional[PostOut]:
        ensure_valid_id(post_id, "post ID")
        post = await self._session.get(Post, post_id)
        if post is None:
            return None
        return (await self._expand([post]))[0]

    @storage_errors("Failed to fetch posts", "FETCH_POSTS_ERROR")
    async def get_posts(self, page: int = 1, limit: int = 10) -> list[PostOut]:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers")
        stmt = self._newest_first(select(Post)).offset((page - 1) * limit).limit(limit)
        return await self._fetch(stmt, likes_as="user")

    @storage_errors("Failed to fetch user posts", "FETCH_USER_POSTS_ERROR")
    async def get_posts_by_user(self, author_id: str) -> list[PostOut]:
        ensure_valid_id(author_id, "user ID")
        return await self._fetch(
            self._newest_first(select(Post).where(Post.author_id == author_id)),
            likes_as="summary",
        )

    @storage_errors("Failed to search posts", "SEARCH_POSTS_ERROR")
    async def search_posts(self, query: str) -> list[PostOut]:
        stmt = select(Post)
        if query:
            stmt = stmt.where(
                or_(
                    Post.title.icontains(query, autoescape=True),
                    Post.content.icontains(query, autoescape=True),
                )
            )
        return await self._fetch(self._newest_first(stmt), likes_as="summary")

    @storage_errors("Failed to update post", "UPDATE_POST_ERROR")
    async def update_post(
        self, post_id: str, actor_external_id: str, patch: Mapping[str, Any]
    ) -> PostOut:
        post, _ = await self._require_own_post(post_id, actor_external_id)
        fields = validate_post_fields(patch)

        for key, value in fields.items():
            setattr(post, key, value)
        post.updated_at = utcnow()
        await self._session.flush()

        logger.info("Post updated: %s fields=%s", post.id, sorted(fields))
        await self._invalidate(HOME, post_path(post.id))
        return (await self._expand([post]))[0]

    @storage_errors("Failed to delete post", "DELETE_POST_ERROR")
    async def delete_post(self, post_id: str, actor_external_id: str) -> None:
        post, actor = await self._require_own_post(post_id, actor_external_id)

        # Children first
        for model in (Comment, Like, SavedPost):
            await self._session.execute(delete(model).where(model.post_id == post.id))
        await self._session.execute(delete(Post).where(Post.id == post.id))
        await self._session.flush()

        POSTS_DELETED_TOTAL.inc()
        logger.info("Post deleted: %s by user %s", post_id, actor.id)
        await self._invalidate(HOME, post_path(post_id), profile_path(actor.id))

    @storage_errors("Failed to like post", "LIKE_POST_ERROR")
    async def like_post(self, actor_external_id: str, post_id: str) -> list[str]:
        """Add the actor to the post's likes; repeat likes are no-ops.

        The edge is written with an insert that ignores duplicates, so two
        concurrent likes by the same user both succeed with one row stored.
        """
        actor = await self._users.require_by_external_id(actor_external_id)
        post = await self._require_post(post_id)

        LIKE_EVENTS_TOTAL.labels(action="like").inc()
        if await insert_ignore(self._session, Like, user_id=actor.id, post_id=post.id):
            await self._touch(post.id)
            await self._invalidate(HOME, post_path(post.id))
        return (await self._like_ids([post.id]))[post.id]

    @storage_errors("Failed to unlike post", "UNLIKE_POST_ERROR")
    async def unlike_post(self, actor_external_id: str, post_id: str) -> list[str]:
        actor = await self._users.require_by_external_id(actor_external_id)
        post = await self._require_post(post_id)

        LIKE_EVENTS_TOTAL.labels(action="unlike").inc()
        result = await self._session.execute(
            delete(Like).where(Like.user_id == actor.id, Like.post_id == post.id)
        )
        if result.rowcount:
            await self._touch(post.id)
            await self._invalidate(HOME, post_path(post.id))
        return (await self._like_ids([post.id]))[post.id]

    @storage_errors("Failed to add comment", "ADD_COMMENT_ERROR")
    async def add_comment(
        self, actor_external_id: str, post_id: str, content: str
    ) -> CommentOut:
        actor = await self._users.require_by_external_id(actor_external_id)
        post = await self._require_post(post_id)
        if content is None:
            raise ValidationError("Missing required fields", details={"fields": ["content"]})

        comment = Comment(user_id=actor.id, user=actor, content=content)
        post.comments.append(comment)
        post.updated_at = utcnow()
        await self._session.flush()

        COMMENTS_CREATED_TOTAL.inc()
        logger.info("Comment %s added to post %s by %s", comment.id, post.id, actor.id)
        await self._invalidate(HOME, post_path(post.id))
        return serialize_comment(comment)

    async def _touch(self, post_id: str) -> None:
        await self._session.execute(
            update(Post).where(Post.id == post_id).values(updated_at=utcnow())
        )
        await self._session.flush()


__all__ = ["PostRepository"]
