"""Short text posts."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.tweet import Tweet
from models.user import User
from services.common import clean_text, read_pipeline, record_exists
from services.errors import bad_request, forbidden, not_found
from services.query import Eq, FieldRef, Pipeline, Size, owner_lookup, to_document

logger = logging.getLogger(__name__)


async def _get_owned_tweet(db: AsyncSession, tweet_id: str, caller_id: str) -> Tweet:
    result = await db.execute(select(Tweet).where(Tweet.id == tweet_id))
    tweet = result.scalar_one_or_none()
    if not tweet:
        raise not_found("Tweet not found")
    if tweet.owner_id != caller_id:
        raise forbidden("Only the owner can modify this tweet")
    return tweet


async def create_tweet_service(*, owner_id: str, content: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    content = clean_text(content)
    if not content:
        raise bad_request("Content is required")
    tweet = Tweet(content=content, owner_id=owner_id)
    db.add(tweet)
    await db.commit()
    logger.info("tweet_created tweet=%s owner=%s", tweet.id, owner_id)
    return to_document(tweet)


async def get_user_tweets_service(*, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    if not await record_exists(db, User, user_id):
        raise not_found("User does not exist")

    pipeline = (
        Pipeline("tweets")
        .match(Eq("owner_id", user_id))
        .then(*owner_lookup())
        .lookup("likes", "id", "tweet_id", "likes")
        .reshape(
            include=("content", "owner_id", "created_at", "updated_at"),
            computed={
                "username": FieldRef("owner.username"),
                "full_name": FieldRef("owner.full_name"),
                "avatar": FieldRef("owner.avatar"),
                "likes_count": Size("likes"),
            },
        )
        .sort("created_at", "desc")
    )
    return await read_pipeline(db, pipeline)


async def update_tweet_service(
    *,
    tweet_id: str,
    caller_id: str,
    content: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    content = clean_text(content)
    if not content:
        raise bad_request("Content is required")
    tweet = await _get_owned_tweet(db, tweet_id, caller_id)
    tweet.content = content
    await db.commit()
    return to_document(tweet)


async def delete_tweet_service(*, tweet_id: str, caller_id: str, db: AsyncSession) -> None:
    tweet = await _get_owned_tweet(db, tweet_id, caller_id)
    await db.delete(tweet)
    await db.commit()
    logger.info("tweet_deleted tweet=%s owner=%s", tweet_id, caller_id)
