"""Like toggles and the liked-videos list."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.comment import Comment
from models.like import Like
from models.tweet import Tweet
from models.video import Video
from services.common import read_pipeline, record_exists
from services.errors import bad_request, not_found
from services.query import Eq, NotNull, Pipeline, owner_lookup

logger = logging.getLogger(__name__)

# target kind -> (model, like column, label)
LIKE_TARGETS = {
    "video": (Video, "video_id", "Video"),
    "comment": (Comment, "comment_id", "Comment"),
    "tweet": (Tweet, "tweet_id", "Tweet"),
}


async def toggle_like_service(*, target_kind: str, target_id: str, user_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Remove the caller's like if present, otherwise add it.

    Delete-then-insert keeps the toggle to two statements; a concurrent
    insert that wins the unique constraint leaves the like in place.
    """
    if target_kind not in LIKE_TARGETS:
        raise bad_request(f"Unknown like target '{target_kind}'")
    model, column_name, label = LIKE_TARGETS[target_kind]
    if not await record_exists(db, model, target_id):
        raise not_found(f"{label} not found")

    column = getattr(Like, column_name)
    removed = await db.execute(
        delete(Like)
        .where(Like.liked_by_id == user_id, column == target_id)
        .execution_options(synchronize_session=False)
    )
    if removed.rowcount:
        await db.commit()
        logger.info("like_removed kind=%s target=%s user=%s", target_kind, target_id, user_id)
        return {"is_liked": False, "status": "Unliked"}

    db.add(Like(liked_by_id=user_id, **{column_name: target_id}))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("like_already_present kind=%s target=%s user=%s", target_kind, target_id, user_id)
    else:
        logger.info("like_added kind=%s target=%s user=%s", target_kind, target_id, user_id)
    return {"is_liked": True, "status": "Liked"}


async def get_liked_videos_service(*, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    """Videos the user liked, most recent like first; likes of deleted videos drop out."""
    pipeline = (
        Pipeline("likes")
        .match(Eq("liked_by_id", user_id), NotNull("video_id"))
        .sort("created_at", "desc")
        .lookup("videos", "video_id", "id", "video", stages=owner_lookup())
        .flatten("video")
        .reshape(root="video")
    )
    return await read_pipeline(db, pipeline)
