"""
FastAPI dependency providers: sessions, repositories and the acting user.

Authentication happens upstream. The identity gateway forwards the caller's
external (identity-provider) id in a request header; endpoints that act on
behalf of a user require it.
"""
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from socialblog.config import settings
from socialblog.database import get_db
from socialblog.invalidation import RedisViewInvalidator, ViewInvalidator
from socialblog.repositories import PostRepository, UserRepository


def get_invalidator() -> ViewInvalidator:
    return RedisViewInvalidator()


def get_user_repository(
    db: AsyncSession = Depends(get_db),
    invalidator: ViewInvalidator = Depends(get_invalidator),
) -> UserRepository:
    return UserRepository(db, invalidator)


def get_post_repository(
    db: AsyncSession = Depends(get_db),
    invalidator: ViewInvalidator = Depends(get_invalidator),
) -> PostRepository:
    return PostRepository(db, invalidator)


async def optional_external_id(
    x_user_id: Annotated[
        Optional[str], Header(alias=settings.external_id_header)
    ] = None,
) -> Optional[str]:
    return x_user_id or None


async def current_external_id(
    external_id: Optional[str] = Depends(optional_external_id),
) -> str:
    if not external_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return external_id


UserRepo = Annotated[UserRepository, Depends(get_user_repository)]
PostRepo = Annotated[PostRepository, Depends(get_post_repository)]
CurrentUser = Annotated[str, Depends(current_external_id)]
Viewer = Annotated[Optional[str], Depends(optional_external_id)]
