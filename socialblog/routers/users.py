"""
User management endpoints:
  POST   /users                          create a user at sign-up
  GET    /users                          paginated directory / search
  GET    /users/me                       the acting user's profile
  PATCH  /users/me                       edit username, bio, about, photo
  POST   /users/me/saved-posts/{post_id} bookmark a post
  DELETE /users/me/saved-posts/{post_id} remove a bookmark
  GET    /users/external/{external_id}   profile by identity-provider id
  GET    /users/{user_id}                profile by internal id
  POST   /users/{external_id}/follow     follow another user
  DELETE /users/{external_id}/follow     unfollow
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from socialblog.clients.redis_client import cache_view, get_cached_view
from socialblog.config import settings
from socialblog.dependencies import CurrentUser, UserRepo, Viewer
from socialblog.invalidation import profile_path
from socialblog.schemas import UserCreate, UserOut, UserPage, UserUpdate
from socialblog.telemetry import VIEW_CACHE_REQUESTS_TOTAL
from socialblog.validation import is_valid_id

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, users: UserRepo):
    """Register the profile for a freshly signed-up identity."""
    return await users.create_user(body.model_dump())


@router.get("/", response_model=UserPage)
async def list_users(
    users: UserRepo,
    viewer: Viewer,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    search: str = "",
    exclude_id: Optional[str] = None,
):
    return await users.get_all_users(
        page=page,
        limit=limit,
        search=search,
        exclude_id=exclude_id,
        viewer_external_id=viewer,
    )


@router.get("/me", response_model=UserOut)
async def get_me(external_id: CurrentUser, users: UserRepo):
    user = await users.get_user_by_external_id(
        external_id, expand_followers=True, expand_following=True
    )
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/me", response_model=UserOut)
async def update_me(body: UserUpdate, external_id: CurrentUser, users: UserRepo):
    return await users.update_user(external_id, body.model_dump(exclude_unset=True))


@router.post("/me/saved-posts/{post_id}", response_model=list[str])
async def save_post(post_id: str, external_id: CurrentUser, users: UserRepo):
    return await users.save_post(external_id, post_id)


@router.delete("/me/saved-posts/{post_id}", response_model=list[str])
async def unsave_post(post_id: str, external_id: CurrentUser, users: UserRepo):
    return await users.unsave_post(external_id, post_id)


@router.get("/external/{external_id}", response_model=UserOut)
async def get_user_by_external_id(
    external_id: str,
    users: UserRepo,
    expand_followers: bool = False,
    expand_following: bool = False,
):
    user = await users.get_user_by_external_id(
        external_id,
        expand_followers=expand_followers,
        expand_following=expand_following,
    )
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: str,
    users: UserRepo,
    expand_followers: bool = False,
    expand_following: bool = False,
):
    """Profile view; cached until a profile mutation invalidates it.

    ``user_id`` may also be an identity-provider id (``user_...``); those
    lookups skip the cache read but still fill the internal-id entry.
    """
    variant = f"followers={int(expand_followers)}&following={int(expand_following)}"
    if is_valid_id(user_id):
        cached = await get_cached_view(profile_path(user_id), variant)
        if cached is not None:
            VIEW_CACHE_REQUESTS_TOTAL.labels(result="hit").inc()
            return cached
    VIEW_CACHE_REQUESTS_TOTAL.labels(result="miss").inc()

    user = await users.get_user_by_id(
        user_id,
        expand_followers=expand_followers,
        expand_following=expand_following,
    )
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    await cache_view(profile_path(user.id), user.model_dump(mode="json"), variant)
    return user


@router.post("/{external_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(external_id: str, actor: CurrentUser, users: UserRepo):
    await users.follow_user(actor, external_id)


@router.delete("/{external_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(external_id: str, actor: CurrentUser, users: UserRepo):
    await users.unfollow_user(actor, external_id)
