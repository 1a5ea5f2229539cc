"""Like endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.envelope import api_response
from services.likes import get_liked_videos_service, toggle_like_service

router = APIRouter()


async def _toggle(kind: str, target_id: str, auth: AuthContext, db: AsyncSession):
    result = await toggle_like_service(target_kind=kind, target_id=target_id, user_id=auth.user_id, db=db)
    return api_response(result, f"{kind.capitalize()} {result['status'].lower()}")


@router.post("/toggle/v/{video_id}")
async def toggle_video_like(
    video_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle("video", video_id, auth, db)


@router.post("/toggle/c/{comment_id}")
async def toggle_comment_like(
    comment_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle("comment", comment_id, auth, db)


@router.post("/toggle/t/{tweet_id}")
async def toggle_tweet_like(
    tweet_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle("tweet", tweet_id, auth, db)


@router.get("/videos")
async def get_liked_videos(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    videos = await get_liked_videos_service(user_id=auth.user_id, db=db)
    return api_response(videos, "Liked videos fetched successfully")
