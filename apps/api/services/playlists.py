"""Playlists and their ordered video entries."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.playlist import Playlist, PlaylistVideo
from models.user import User
from models.video import Video
from services.common import clean_text, read_one, read_pipeline, record_exists, records_exist
from services.errors import bad_request, conflict, forbidden, not_found
from services.query import Eq, FieldRef, Pipeline, Predicate, Size, owner_lookup

logger = logging.getLogger(__name__)


def _playlist_pipeline(predicate: Predicate) -> Pipeline:
    return (
        Pipeline("playlists")
        .match(predicate)
        .lookup("playlist_videos", "id", "playlist_id", "entries")
        .then(*owner_lookup())
        .reshape(
            exclude=("entries",),
            computed={"videos": FieldRef("entries.video_id"), "total_videos": Size("entries")},
        )
    )


async def _get_owned_playlist(db: AsyncSession, playlist_id: str, caller_id: str) -> Playlist:
    result = await db.execute(select(Playlist).where(Playlist.id == playlist_id))
    playlist = result.scalar_one_or_none()
    if not playlist:
        raise not_found("Playlist not found")
    if playlist.owner_id != caller_id:
        raise forbidden("Only the owner can modify this playlist")
    return playlist


async def _name_taken(db: AsyncSession, owner_id: str, name: str, exclude_id: Optional[str] = None) -> bool:
    stmt = select(Playlist.id).where(Playlist.owner_id == owner_id, Playlist.name == name)
    if exclude_id:
        stmt = stmt.where(Playlist.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def get_playlist_service(*, playlist_id: str, db: AsyncSession) -> Dict[str, Any]:
    playlist = await read_one(db, _playlist_pipeline(Eq("id", playlist_id)))
    if not playlist:
        raise not_found("Playlist not found")
    return playlist


async def get_user_playlists_service(*, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    if not await record_exists(db, User, user_id):
        raise not_found("User does not exist")
    return await read_pipeline(db, _playlist_pipeline(Eq("owner_id", user_id)))


async def create_playlist_service(
    *,
    owner_id: str,
    name: Optional[str],
    description: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    name = clean_text(name)
    if not name:
        raise bad_request("Playlist name is required")
    if await _name_taken(db, owner_id, name):
        raise conflict("A playlist with this name already exists")

    playlist = Playlist(owner_id=owner_id, name=name, description=clean_text(description))
    db.add(playlist)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise conflict("A playlist with this name already exists") from exc
    logger.info("playlist_created playlist=%s owner=%s", playlist.id, owner_id)
    return await get_playlist_service(playlist_id=playlist.id, db=db)


async def update_playlist_service(
    *,
    playlist_id: str,
    caller_id: str,
    name: Optional[str],
    description: Optional[str],
    db: AsyncSession,
) -> Dict[str, Any]:
    name = clean_text(name)
    description = clean_text(description)
    if not name and not description:
        raise bad_request("Provide a name or description to update")
    playlist = await _get_owned_playlist(db, playlist_id, caller_id)
    if name and name != playlist.name and await _name_taken(db, caller_id, name, exclude_id=playlist_id):
        raise conflict("A playlist with this name already exists")

    if name:
        playlist.name = name
    if description:
        playlist.description = description
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise conflict("A playlist with this name already exists") from exc
    return await get_playlist_service(playlist_id=playlist_id, db=db)


async def delete_playlist_service(*, playlist_id: str, caller_id: str, db: AsyncSession) -> None:
    playlist = await _get_owned_playlist(db, playlist_id, caller_id)
    await db.execute(
        delete(PlaylistVideo)
        .where(PlaylistVideo.playlist_id == playlist_id)
        .execution_options(synchronize_session=False)
    )
    await db.delete(playlist)
    await db.commit()
    logger.info("playlist_deleted playlist=%s owner=%s", playlist_id, caller_id)


async def _check_entry_targets(db: AsyncSession, playlist_id: str, video_id: str, caller_id: str) -> None:
    playlist_found, video_found = await records_exist(db, (Playlist, playlist_id), (Video, video_id))
    if not playlist_found:
        raise not_found("Playlist not found")
    if not video_found:
        raise not_found("Video not found")
    await _get_owned_playlist(db, playlist_id, caller_id)


async def add_video_to_playlist_service(
    *,
    playlist_id: str,
    video_id: str,
    caller_id: str,
    db: AsyncSession,
) -> Dict[str, Any]:
    await _check_entry_targets(db, playlist_id, video_id, caller_id)
    present = await db.execute(
        select(PlaylistVideo.id)
        .where(PlaylistVideo.playlist_id == playlist_id, PlaylistVideo.video_id == video_id)
        .limit(1)
    )
    if present.scalar_one_or_none() is None:
        db.add(PlaylistVideo(playlist_id=playlist_id, video_id=video_id))
        try:
            await db.commit()
        except IntegrityError:
            # Added concurrently; membership is already what the caller asked for.
            await db.rollback()
    return await get_playlist_service(playlist_id=playlist_id, db=db)


async def remove_video_from_playlist_service(
    *,
    playlist_id: str,
    video_id: str,
    caller_id: str,
    db: AsyncSession,
) -> Dict[str, Any]:
    await _check_entry_targets(db, playlist_id, video_id, caller_id)
    await db.execute(
        delete(PlaylistVideo)
        .where(PlaylistVideo.playlist_id == playlist_id, PlaylistVideo.video_id == video_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return await get_playlist_service(playlist_id=playlist_id, db=db)
