"""User accounts, credential sessions and channel reads."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.user import PRIVATE_USER_FIELDS, User
from services.common import clean_text, read_one
from services.crypto import digest_refresh_token, hash_password, refresh_token_matches, verify_password
from services.errors import bad_request, conflict, not_found, unauthorized, upstream_failure
from services.object_store import ObjectStore
from services.query import Contains, Eq, Pipeline, Size, owner_lookup
from services.session_token import create_access_token, create_refresh_token, decode_refresh_token

logger = logging.getLogger(__name__)

USER_IMAGE_FIELDS = {"avatar": "Avatar", "cover_image": "Cover image"}


def public_user_pipeline(user_id: str) -> Pipeline:
    return Pipeline("users").match(Eq("id", user_id)).reshape(exclude=PRIVATE_USER_FIELDS)


async def get_public_user(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    user = await read_one(db, public_user_pipeline(user_id))
    if not user:
        raise not_found("User does not exist")
    return user


async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise not_found("User does not exist")
    return user


async def _issue_tokens(db: AsyncSession, user: User) -> Dict[str, str]:
    access = create_access_token(user.id, user.email, user.username, user.full_name)
    refresh = create_refresh_token(user.id)
    user.refresh_token_hash = digest_refresh_token(refresh["token"])
    await db.commit()
    return {"access_token": access["token"], "refresh_token": refresh["token"]}


async def register_user_service(
    *,
    full_name: Optional[str],
    email: Optional[str],
    username: Optional[str],
    password: Optional[str],
    avatar_path: Optional[Path],
    cover_image_path: Optional[Path],
    db: AsyncSession,
    storage: ObjectStore,
) -> Dict[str, Any]:
    if any(not clean_text(value) for value in (full_name, email, username, password)):
        raise bad_request("All fields are required")
    normalized_username = clean_text(username).lower()
    normalized_email = clean_text(email).lower()

    existing = await db.execute(
        select(User.id)
        .where(or_(User.username == normalized_username, User.email == normalized_email))
        .limit(1)
    )
    if existing.scalar_one_or_none():
        raise conflict("User with email or username already exists")

    if avatar_path is None:
        raise bad_request("Avatar file is required")
    avatar = await storage.upload(avatar_path)
    if avatar is None:
        raise upstream_failure("Error while uploading avatar")
    cover_image = await storage.upload(cover_image_path) if cover_image_path else None
    if cover_image_path and cover_image is None:
        logger.warning("cover_image_upload_failed username=%s", normalized_username)

    user = User(
        id=str(uuid.uuid4()),
        username=normalized_username,
        email=normalized_email,
        full_name=clean_text(full_name),
        avatar=avatar.url,
        cover_image=cover_image.url if cover_image else None,
        password_hash=hash_password(str(password)),
        watch_history=[],
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise conflict("User with email or username already exists") from exc

    logger.info("user_registered user=%s username=%s", user.id, normalized_username)
    return await get_public_user(db, user.id)


async def login_user_service(
    *,
    username: Optional[str],
    email: Optional[str],
    password: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    normalized_username = clean_text(username).lower()
    normalized_email = clean_text(email).lower()
    if not normalized_username and not normalized_email:
        raise bad_request("Username or Email is required")

    conditions = []
    if normalized_username:
        conditions.append(User.username == normalized_username)
    if normalized_email:
        conditions.append(User.email == normalized_email)
    result = await db.execute(select(User).where(or_(*conditions)).limit(1))
    user = result.scalar_one_or_none()
    if not user:
        raise not_found("User does not exist")
    if not verify_password(password or "", user.password_hash):
        raise unauthorized("Invalid user credentials")

    tokens = await _issue_tokens(db, user)
    logger.info("user_logged_in user=%s", user.id)
    return {"user": await get_public_user(db, user.id), **tokens}


async def logout_user_service(*, user_id: str, db: AsyncSession) -> None:
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(refresh_token_hash=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("user_logged_out user=%s", user_id)


async def refresh_access_token_service(*, refresh_token: Optional[str], db: AsyncSession) -> Dict[str, str]:
    if not refresh_token:
        raise unauthorized("unauthorized request")
    try:
        payload = decode_refresh_token(refresh_token)
    except ValueError as exc:
        raise unauthorized(str(exc)) from exc

    result = await db.execute(select(User).where(User.id == str(payload["sub"])))
    user = result.scalar_one_or_none()
    if not user:
        raise unauthorized("Invalid refresh token")
    if not refresh_token_matches(refresh_token, user.refresh_token_hash or ""):
        raise unauthorized("Refresh token is expired or used")

    return await _issue_tokens(db, user)


async def change_password_service(
    *,
    user_id: str,
    old_password: Optional[str],
    new_password: Optional[str],
    db: AsyncSession,
) -> None:
    if not clean_text(new_password):
        raise bad_request("New password is required")
    user = await _get_user(db, user_id)
    if not verify_password(old_password or "", user.password_hash):
        raise bad_request("Invalid old password")
    user.password_hash = hash_password(str(new_password))
    await db.commit()


async def update_account_service(
    *,
    user_id: str,
    full_name: Optional[str],
    email: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    if not clean_text(full_name) or not clean_text(email):
        raise bad_request("All fields are required")
    normalized_email = clean_text(email).lower()

    taken = await db.execute(
        select(User.id).where(User.email == normalized_email, User.id != user_id).limit(1)
    )
    if taken.scalar_one_or_none():
        raise conflict("Email is already in use")

    user = await _get_user(db, user_id)
    user.full_name = clean_text(full_name)
    user.email = normalized_email
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise conflict("Email is already in use") from exc
    return await get_public_user(db, user_id)


async def update_user_image_service(
    *,
    user_id: str,
    field_name: str,
    image_path: Optional[Path],
    db: AsyncSession,
    storage: ObjectStore,
) -> Dict[str, Any]:
    """Replace avatar or cover image; the previous asset goes only after the new one is saved."""
    label = USER_IMAGE_FIELDS[field_name]
    if image_path is None:
        raise bad_request(f"{label} file is missing")
    asset = await storage.upload(image_path)
    if asset is None:
        raise upstream_failure(f"Error while uploading {label.lower()}")

    user = await _get_user(db, user_id)
    previous = getattr(user, field_name)
    setattr(user, field_name, asset.url)
    await db.commit()

    if previous and not await storage.delete(previous):
        logger.warning("stale_asset_not_deleted user=%s field=%s url=%s", user_id, field_name, previous)
    return await get_public_user(db, user_id)


async def get_channel_profile_service(
    *,
    username: Optional[str],
    viewer_id: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    normalized = clean_text(username).lower()
    if not normalized:
        raise bad_request("username is missing")

    pipeline = (
        Pipeline("users")
        .match(Eq("username", normalized))
        .lookup("subscriptions", "id", "channel_id", "subscribers")
        .lookup("subscriptions", "id", "subscriber_id", "subscribed_to")
        .reshape(
            include=("full_name", "username", "avatar", "cover_image", "email"),
            computed={
                "subscribers_count": Size("subscribers"),
                "channels_subscribed_to_count": Size("subscribed_to"),
                "is_subscribed": Contains("subscribers.subscriber_id", viewer_id),
            },
        )
    )
    channel = await read_one(db, pipeline)
    if not channel:
        raise not_found("channel does not exists")
    return channel


async def get_watch_history_service(*, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    pipeline = (
        Pipeline("users")
        .match(Eq("id", user_id))
        .lookup("videos", "watch_history", "id", "watch_history", stages=owner_lookup())
        .reshape(include=("watch_history",))
    )
    user = await read_one(db, pipeline)
    if not user:
        raise not_found("User does not exist")
    return user["watch_history"]
