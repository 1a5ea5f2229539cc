"""Request helpers shared by the API tests."""

from pathlib import Path
from unittest.mock import patch

from services.object_store import discard_staged

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


def password_for(username: str) -> str:
    return f"pw-{username.lower()}"


async def register(client, username: str, email: str, with_cover: bool = False):
    files = {"avatar": ("avatar.png", PNG_BYTES, "image/png")}
    if with_cover:
        files["cover_image"] = ("cover.png", PNG_BYTES, "image/png")
    return await client.post(
        "/api/v1/users/register",
        data={
            "full_name": f"{username} Example",
            "email": email,
            "username": username,
            "password": password_for(username),
        },
        files=files,
    )


async def publish_video(client, headers, title: str = "First video", description: str = "A description", duration: int = 42):
    with patch("services.object_store.get_video_duration_seconds", return_value=duration):
        return await client.post(
            "/api/v1/videos/",
            data={"title": title, "description": description},
            files={
                "video_file": ("clip.mp4", MP4_BYTES, "video/mp4"),
                "thumbnail": ("thumb.png", PNG_BYTES, "image/png"),
            },
            headers=headers,
        )


def failing_upload(object_store, monkeypatch, suffixes=None):
    """Make ``object_store.upload`` fail for staged files whose suffix is listed (all when None)."""
    real_upload = object_store.upload

    async def upload(local_path):
        if local_path and (suffixes is None or str(local_path).lower().endswith(tuple(suffixes))):
            discard_staged(Path(local_path))
            return None
        return await real_upload(local_path)

    monkeypatch.setattr(object_store, "upload", upload)
