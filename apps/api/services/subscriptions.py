"""Channel subscriptions."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.subscription import Subscription
from models.user import User
from services.common import clean_text, read_pipeline, record_exists
from services.errors import bad_request, not_found
from services.query import Eq, FieldRef, Pipeline, owner_lookup

logger = logging.getLogger(__name__)


async def toggle_subscription_service(*, channel_id: str, subscriber_id: str, db: AsyncSession) -> Dict[str, Any]:
    channel_id = clean_text(channel_id)
    if channel_id == subscriber_id:
        raise bad_request("User cannot subscribe to their own channel")
    if not await record_exists(db, User, channel_id):
        raise not_found("Channel not found")

    removed = await db.execute(
        delete(Subscription)
        .where(Subscription.subscriber_id == subscriber_id, Subscription.channel_id == channel_id)
        .execution_options(synchronize_session=False)
    )
    if removed.rowcount:
        await db.commit()
        logger.info("subscription_removed channel=%s subscriber=%s", channel_id, subscriber_id)
        return {"is_subscribed": False, "status": "Unsubscribed"}

    db.add(Subscription(subscriber_id=subscriber_id, channel_id=channel_id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("subscription_already_present channel=%s subscriber=%s", channel_id, subscriber_id)
    else:
        logger.info("subscription_added channel=%s subscriber=%s", channel_id, subscriber_id)
    return {"is_subscribed": True, "status": "Subscribed"}


def _user_card(into: str) -> Dict[str, FieldRef]:
    return {
        "username": FieldRef(f"{into}.username"),
        "full_name": FieldRef(f"{into}.full_name"),
        "avatar": FieldRef(f"{into}.avatar"),
    }


async def get_channel_subscribers_service(*, channel_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    if not await record_exists(db, User, channel_id):
        raise not_found("Channel not found")
    pipeline = (
        Pipeline("subscriptions")
        .match(Eq("channel_id", channel_id))
        .then(*owner_lookup(local_field="subscriber_id", into="subscriber"))
        .reshape(include=("subscriber_id", "created_at"), computed=_user_card("subscriber"))
    )
    return await read_pipeline(db, pipeline)


async def get_subscribed_channels_service(*, subscriber_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    if not await record_exists(db, User, subscriber_id):
        raise not_found("Subscriber not found")
    pipeline = (
        Pipeline("subscriptions")
        .match(Eq("subscriber_id", subscriber_id))
        .then(*owner_lookup(local_field="channel_id", into="channel"))
        .reshape(include=("channel_id", "created_at"), computed=_user_card("channel"))
    )
    return await read_pipeline(db, pipeline)
