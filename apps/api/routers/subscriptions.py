"""Subscription endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.envelope import api_response
from services.subscriptions import (
    get_channel_subscribers_service,
    get_subscribed_channels_service,
    toggle_subscription_service,
)

router = APIRouter()


@router.post("/c/{channel_id}")
async def toggle_subscription(
    channel_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    result = await toggle_subscription_service(channel_id=channel_id, subscriber_id=auth.user_id, db=db)
    return api_response(result, result["status"])


@router.get("/c/{channel_id}")
async def get_channel_subscribers(
    channel_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    subscribers = await get_channel_subscribers_service(channel_id=channel_id, db=db)
    return api_response(subscribers, "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
async def get_subscribed_channels(
    subscriber_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    channels = await get_subscribed_channels_service(subscriber_id=subscriber_id, db=db)
    return api_response(channels, "Subscribed channels fetched successfully")
