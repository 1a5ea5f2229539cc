"""Comment endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.envelope import api_response
from services.comments import (
    add_comment_service,
    delete_comment_service,
    list_video_comments_service,
    update_comment_service,
)

router = APIRouter()


class CommentRequest(BaseModel):
    content: Optional[str] = None


@router.get("/{video_id}")
async def list_video_comments(
    video_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comments = await list_video_comments_service(video_id=video_id, page=page, limit=limit, db=db)
    return api_response(comments, "Comments fetched successfully")


@router.post("/{video_id}")
async def add_comment(
    video_id: str,
    request: CommentRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await add_comment_service(video_id=video_id, owner_id=auth.user_id, content=request.content, db=db)
    return api_response(comment, "Comment added successfully", status_code=201)


@router.patch("/c/{comment_id}")
async def update_comment(
    comment_id: str,
    request: CommentRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await update_comment_service(
        comment_id=comment_id,
        caller_id=auth.user_id,
        content=request.content,
        db=db,
    )
    return api_response(comment, "Comment updated successfully")


@router.delete("/c/{comment_id}")
async def delete_comment(
    comment_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await delete_comment_service(comment_id=comment_id, caller_id=auth.user_id, db=db)
    return api_response({}, "Comment deleted successfully")
