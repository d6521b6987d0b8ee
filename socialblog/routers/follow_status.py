"""
GET /api/follow-status?userId=<external id>&profileId=<external id>

Tells a profile page whether the viewer already follows the profile owner.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException

from socialblog.dependencies import UserRepo
from socialblog.schemas import FollowStatus

router = APIRouter()


@router.get("/follow-status", response_model=FollowStatus, response_model_by_alias=True)
async def follow_status(
    users: UserRepo,
    userId: Optional[str] = None,  # noqa: N803
    profileId: Optional[str] = None,  # noqa: N803
):
    if not userId or not profileId:
        raise HTTPException(status_code=400, detail="Missing parameters")
    return FollowStatus(is_following=await users.is_following(userId, profileId))
