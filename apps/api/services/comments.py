"""Comments on videos."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.comment import Comment
from models.video import Video
from services.common import clean_text, read_pipeline, record_exists
from services.errors import bad_request, forbidden, not_found
from services.query import Eq, FieldRef, Pipeline, owner_lookup, to_document

logger = logging.getLogger(__name__)


async def _get_comment(db: AsyncSession, comment_id: str) -> Comment:
    result = await db.execute(select(Comment).where(Comment.id == comment_id))
    comment = result.scalar_one_or_none()
    if not comment:
        raise not_found("Comment not found")
    return comment


async def list_video_comments_service(
    *,
    video_id: str,
    page: int,
    limit: int,
    db: AsyncSession,
) -> Dict[str, Any]:
    if not await record_exists(db, Video, video_id):
        raise not_found("Video not found")

    pipeline = (
        Pipeline("comments")
        .match(Eq("video_id", video_id))
        .then(*owner_lookup(fields=("username", "avatar")))
        .reshape(
            include=("content", "owner_id", "created_at", "updated_at"),
            computed={"username": FieldRef("owner.username"), "avatar": FieldRef("owner.avatar")},
        )
        .sort("created_at", "desc")
        .paginate(page, limit)
    )
    return await read_pipeline(db, pipeline)


async def add_comment_service(
    *,
    video_id: str,
    owner_id: str,
    content: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    content = clean_text(content)
    if not content:
        raise bad_request("Content is required")
    if not await record_exists(db, Video, video_id):
        raise not_found("Video not found")

    comment = Comment(content=content, video_id=video_id, owner_id=owner_id)
    db.add(comment)
    await db.commit()
    logger.info("comment_added comment=%s video=%s owner=%s", comment.id, video_id, owner_id)
    return to_document(comment)


async def update_comment_service(
    *,
    comment_id: str,
    caller_id: str,
    content: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    content = clean_text(content)
    if not content:
        raise bad_request("Content is required")
    comment = await _get_comment(db, comment_id)
    if comment.owner_id != caller_id:
        raise forbidden("Only the comment owner can edit this comment")

    comment.content = content
    await db.commit()
    return to_document(comment)


async def delete_comment_service(*, comment_id: str, caller_id: str, db: AsyncSession) -> None:
    """Comment owner or the owner of the commented video may delete."""
    comment = await _get_comment(db, comment_id)
    if comment.owner_id != caller_id:
        result = await db.execute(select(Video.owner_id).where(Video.id == comment.video_id))
        if result.scalar_one_or_none() != caller_id:
            raise forbidden("Only the comment or video owner can delete this comment")

    await db.delete(comment)
    await db.commit()
    logger.info("comment_deleted comment=%s by=%s", comment_id, caller_id)
