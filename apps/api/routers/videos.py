"""Video endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.envelope import api_response
from services.object_store import ObjectStore, discard_staged, get_object_store, stage_upload
from services.videos import (
    delete_video_service,
    get_video_service,
    list_videos_service,
    publish_video_service,
    toggle_publish_status_service,
    update_video_service,
)

router = APIRouter()


@router.get("/")
async def list_videos(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    query: Optional[str] = Query(default=None, max_length=200),
    sort_by: Optional[str] = Query(default=None),
    sort_type: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    videos = await list_videos_service(
        page=page,
        limit=limit,
        query=query,
        sort_by=sort_by,
        sort_type=sort_type,
        user_id=user_id,
        db=db,
    )
    return api_response(videos, "Videos fetched successfully")


@router.post("/")
async def publish_video(
    title: str = Form(default=""),
    description: str = Form(default=""),
    video_file: Optional[UploadFile] = File(default=None),
    thumbnail: Optional[UploadFile] = File(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    video_path = thumbnail_path = None
    try:
        video_path = await stage_upload(video_file)
        thumbnail_path = await stage_upload(thumbnail)
        video = await publish_video_service(
            owner_id=auth.user_id,
            title=title,
            description=description,
            video_path=video_path,
            thumbnail_path=thumbnail_path,
            db=db,
            storage=storage,
        )
    finally:
        discard_staged(video_path, thumbnail_path)
    return api_response(video, "Video published successfully")


@router.get("/{video_id}")
async def get_video(
    video_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    video = await get_video_service(video_id=video_id, viewer_id=auth.user_id, db=db)
    return api_response(video, "Video fetched successfully")


@router.patch("/{video_id}")
async def update_video(
    video_id: str,
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    thumbnail: Optional[UploadFile] = File(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    thumbnail_path = await stage_upload(thumbnail)
    try:
        video = await update_video_service(
            video_id=video_id,
            caller_id=auth.user_id,
            title=title,
            description=description,
            thumbnail_path=thumbnail_path,
            db=db,
            storage=storage,
        )
    finally:
        discard_staged(thumbnail_path)
    return api_response(video, "Video updated successfully")


@router.delete("/{video_id}")
async def delete_video(
    video_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    await delete_video_service(video_id=video_id, caller_id=auth.user_id, db=db, storage=storage)
    return api_response({}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}")
async def toggle_publish_status(
    video_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    result = await toggle_publish_status_service(video_id=video_id, caller_id=auth.user_id, db=db)
    return api_response(result, f"Video {result['status'].lower()}")
