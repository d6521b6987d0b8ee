"""
Post endpoints:
  POST   /posts                    create a post as the acting user
  GET    /posts                    home feed, newest first (cached)
  GET    /posts/search?q=          substring search on title / content
  GET    /posts/by-user/{user_id}  every post by one author
  GET    /posts/{id}               a single post (cached)
  PATCH  /posts/{id}               author-only edit
  DELETE /posts/{id}               author-only delete
  POST   /posts/{id}/like          like (idempotent)
  DELETE /posts/{id}/like          unlike (idempotent)
  POST   /posts/{id}/comments      add a comment
"""
import logging

from fastapi import APIRouter, HTTPException, Query, status

from socialblog.clients.redis_client import cache_view, get_cached_view
from socialblog.config import settings
from socialblog.dependencies import CurrentUser, PostRepo
from socialblog.invalidation import HOME, post_path
from socialblog.schemas import CommentCreate, CommentOut, PostCreate, PostOut, PostUpdate
from socialblog.telemetry import VIEW_CACHE_REQUESTS_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()


async def _cached(path: str, variant: str = ""):
    payload = await get_cached_view(path, variant)
    VIEW_CACHE_REQUESTS_TOTAL.labels(result="miss" if payload is None else "hit").inc()
    return payload


@router.post("/", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(body: PostCreate, external_id: CurrentUser, posts: PostRepo):
    return await posts.create_post(external_id, body.model_dump(exclude_none=True))


@router.get("/", response_model=list[PostOut])
async def list_posts(
    posts: PostRepo,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    variant = f"page={page}&limit={limit}"
    cached = await _cached(HOME, variant)
    if cached is not None:
        return cached

    result = await posts.get_posts(page, limit)
    await cache_view(HOME, [p.model_dump(mode="json") for p in result], variant)
    return result


@router.get("/search", response_model=list[PostOut])
async def search_posts(posts: PostRepo, q: str = ""):
    return await posts.search_posts(q)


@router.get("/by-user/{user_id}", response_model=list[PostOut])
async def posts_by_user(user_id: str, posts: PostRepo):
    return await posts.get_posts_by_user(user_id)


@router.get("/{post_id}", response_model=PostOut)
async def get_post(post_id: str, posts: PostRepo):
    path = post_path(post_id)
    cached = await _cached(path)
    if cached is not None:
        return cached

    post = await posts.get_post_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    await cache_view(path, post.model_dump(mode="json"))
    return post


@router.patch("/{post_id}", response_model=PostOut)
async def update_post(
    post_id: str, body: PostUpdate, external_id: CurrentUser, posts: PostRepo
):
    return await posts.update_post(post_id, external_id, body.model_dump(exclude_unset=True))


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(post_id: str, external_id: CurrentUser, posts: PostRepo):
    await posts.delete_post(post_id, external_id)


@router.post("/{post_id}/like", response_model=list[str])
async def like_post(post_id: str, external_id: CurrentUser, posts: PostRepo):
    """Returns the post's like list after the change."""
    return await posts.like_post(external_id, post_id)


@router.delete("/{post_id}/like", response_model=list[str])
async def unlike_post(post_id: str, external_id: CurrentUser, posts: PostRepo):
    return await posts.unlike_post(external_id, post_id)


@router.post(
    "/{post_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    post_id: str, body: CommentCreate, external_id: CurrentUser, posts: PostRepo
):
    return await posts.add_comment(external_id, post_id, body.content)
