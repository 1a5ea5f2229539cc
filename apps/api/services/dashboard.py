"""Channel dashboard aggregates."""

from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.like import Like
from models.subscription import Subscription
from models.video import Video
from services.common import read_pipeline
from services.query import Eq, Pipeline, Size, owner_lookup


async def get_channel_stats_service(*, user_id: str, db: AsyncSession) -> Dict[str, int]:
    """Channel totals computed by the database in a single statement."""
    channel_videos = select(Video.id).where(Video.owner_id == user_id)
    totals = select(
        select(func.count(Video.id)).where(Video.owner_id == user_id).scalar_subquery().label("total_videos"),
        select(func.coalesce(func.sum(Video.views), 0))
        .where(Video.owner_id == user_id)
        .scalar_subquery()
        .label("total_video_views"),
        select(func.count(Like.id)).where(Like.video_id.in_(channel_videos)).scalar_subquery().label("total_likes"),
        select(func.count(Subscription.id))
        .where(Subscription.channel_id == user_id)
        .scalar_subquery()
        .label("total_subscribers"),
    )
    row = (await db.execute(totals)).one()
    return {key: int(value or 0) for key, value in row._mapping.items()}


async def get_channel_videos_service(*, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    pipeline = (
        Pipeline("videos")
        .match(Eq("owner_id", user_id))
        .then(*owner_lookup())
        .lookup("likes", "id", "video_id", "likes")
        .reshape(exclude=("likes",), computed={"likes_count": Size("likes")})
        .sort("created_at", "desc")
    )
    return await read_pipeline(db, pipeline)
