"""Video publishing, listing and owner-only mutations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import not_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.user import User
from models.video import Video
from services.common import clean_text, read_one, read_pipeline, record_exists
from services.errors import bad_request, forbidden, not_found, upstream_failure
from services.object_store import ObjectStore
from services.query import Contains, Eq, Pipeline, Size, TextSearch, owner_lookup, to_document

logger = logging.getLogger(__name__)

SEARCHABLE_FIELDS = ("title", "description")


async def _get_owned_video(db: AsyncSession, video_id: str, caller_id: str) -> Video:
    result = await db.execute(select(Video).where(Video.id == video_id))
    video = result.scalar_one_or_none()
    if not video:
        raise not_found("Video not found")
    if video.owner_id != caller_id:
        raise forbidden("You are not allowed to modify this video")
    return video


async def _discard_asset(storage: ObjectStore, url: Optional[str], video_id: str) -> None:
    if url and not await storage.delete(url):
        logger.warning("video_asset_not_deleted video=%s url=%s", video_id, url)


async def list_videos_service(
    *,
    page: int,
    limit: int,
    query: Optional[str],
    sort_by: Optional[str],
    sort_type: Optional[str],
    user_id: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    predicates = [TextSearch(SEARCHABLE_FIELDS, query)]
    if clean_text(user_id):
        predicates.append(Eq("owner_id", clean_text(user_id)))
    direction = "asc" if clean_text(sort_type).lower() == "asc" else "desc"

    pipeline = (
        Pipeline("videos")
        .match(*predicates)
        .sort(clean_text(sort_by) or "created_at", direction)
        .then(*owner_lookup())
        .paginate(page, limit)
    )
    return await read_pipeline(db, pipeline)


async def publish_video_service(
    *,
    owner_id: str,
    title: Optional[str],
    description: Optional[str],
    video_path: Optional[Path],
    thumbnail_path: Optional[Path],
    db: AsyncSession,
    storage: ObjectStore,
) -> Dict[str, Any]:
    title = clean_text(title)
    description = clean_text(description)
    if not title or not description:
        raise bad_request("Video title and description both are required")
    if video_path is None:
        raise bad_request("Video file is missing")
    if thumbnail_path is None:
        raise bad_request("Thumbnail file is missing")

    thumbnail = await storage.upload(thumbnail_path)
    if thumbnail is None:
        raise upstream_failure("Error while uploading thumbnail")
    video_file = await storage.upload(video_path)
    if video_file is None:
        await storage.delete(thumbnail.url)
        raise upstream_failure("Error while uploading video file")

    video = Video(
        owner_id=owner_id,
        title=title,
        description=description,
        video_file=video_file.url,
        thumbnail=thumbnail.url,
        duration=int(video_file.duration or 0),
        views=0,
        is_published=False,
    )
    db.add(video)
    await db.commit()
    logger.info("video_published video=%s owner=%s duration=%s", video.id, owner_id, video.duration)
    return to_document(video)


async def _record_view(db: AsyncSession, video_id: str, viewer_id: Optional[str]) -> None:
    await db.execute(
        update(Video)
        .where(Video.id == video_id)
        .values(views=Video.views + 1)
        .execution_options(synchronize_session=False)
    )
    if viewer_id:
        viewer = await db.get(User, viewer_id)
        if viewer is not None:
            # Most recent view goes last; each video appears once.
            history = [entry for entry in (viewer.watch_history or []) if entry != video_id]
            history.append(video_id)
            viewer.watch_history = history
    await db.commit()


async def get_video_service(*, video_id: str, viewer_id: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    if not await record_exists(db, Video, video_id):
        raise not_found("Video not found")
    await _record_view(db, video_id, viewer_id)

    pipeline = (
        Pipeline("videos")
        .match(Eq("id", video_id))
        .then(*owner_lookup())
        .lookup("likes", "id", "video_id", "likes")
        .reshape(
            exclude=("likes",),
            computed={
                "likes_count": Size("likes"),
                "is_liked": Contains("likes.liked_by_id", viewer_id),
            },
        )
    )
    video = await read_one(db, pipeline)
    if not video:
        raise not_found("Video not found")
    return video


async def update_video_service(
    *,
    video_id: str,
    caller_id: str,
    title: Optional[str],
    description: Optional[str],
    thumbnail_path: Optional[Path],
    db: AsyncSession,
    storage: ObjectStore,
) -> Dict[str, Any]:
    title = clean_text(title)
    description = clean_text(description)
    if not title and not description and thumbnail_path is None:
        raise bad_request("Provide a title, description or thumbnail to update")

    video = await _get_owned_video(db, video_id, caller_id)
    thumbnail = None
    if thumbnail_path is not None:
        thumbnail = await storage.upload(thumbnail_path)
        if thumbnail is None:
            raise upstream_failure("Error while uploading thumbnail")

    previous_thumbnail = video.thumbnail
    if title:
        video.title = title
    if description:
        video.description = description
    if thumbnail is not None:
        video.thumbnail = thumbnail.url
    await db.commit()

    if thumbnail is not None:
        await _discard_asset(storage, previous_thumbnail, video_id)
    return to_document(video)


async def delete_video_service(
    *,
    video_id: str,
    caller_id: str,
    db: AsyncSession,
    storage: ObjectStore,
) -> None:
    video = await _get_owned_video(db, video_id, caller_id)
    assets = (video.video_file, video.thumbnail)
    await db.delete(video)
    await db.commit()
    logger.info("video_deleted video=%s owner=%s", video_id, caller_id)
    for url in assets:
        await _discard_asset(storage, url, video_id)


async def toggle_publish_status_service(*, video_id: str, caller_id: str, db: AsyncSession) -> Dict[str, Any]:
    video = await _get_owned_video(db, video_id, caller_id)
    await db.execute(
        update(Video)
        .where(Video.id == video_id, Video.owner_id == caller_id)
        .values(is_published=not_(Video.is_published))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(video)
    return {
        "video": to_document(video),
        "status": "Published" if video.is_published else "Unpublished",
    }
