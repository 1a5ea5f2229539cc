import pytest
from sqlalchemy import func, select

from api_support import PNG_BYTES, failing_upload, publish_video
from models.video import Video


@pytest.mark.asyncio
async def test_published_video_defaults_to_unpublished_and_is_fetchable(api_client, create_user):
    owner_id, headers = await create_user("alice")

    created = await publish_video(api_client, headers)
    assert created.status_code == 200
    video = created.json()["data"]
    assert video["is_published"] is False
    assert video["views"] == 0
    assert video["duration"] == 42
    assert video["owner_id"] == owner_id

    fetched = await api_client.get(f"/api/v1/videos/{video['id']}", headers=headers)
    assert fetched.status_code == 200
    detail = fetched.json()["data"]
    assert detail["id"] == video["id"]
    assert detail["views"] == 1
    assert detail["owner"]["username"] == "alice"
    assert detail["likes_count"] == 0
    assert detail["is_liked"] is False


@pytest.mark.asyncio
async def test_viewing_moves_video_to_end_of_watch_history(api_client, create_user):
    _, owner_headers = await create_user("alice")
    _, viewer_headers = await create_user("bob")
    first = (await publish_video(api_client, owner_headers, title="One")).json()["data"]["id"]
    second = (await publish_video(api_client, owner_headers, title="Two")).json()["data"]["id"]

    for video_id in (first, second, first):
        await api_client.get(f"/api/v1/videos/{video_id}", headers=viewer_headers)

    history = await api_client.get("/api/v1/users/history", headers=viewer_headers)
    entries = history.json()["data"]
    assert [entry["id"] for entry in entries] == [second, first]
    assert entries[0]["owner"]["username"] == "alice"

    detail = await api_client.get(f"/api/v1/videos/{first}", headers=viewer_headers)
    assert detail.json()["data"]["views"] == 3


@pytest.mark.asyncio
async def test_publish_requires_fields_and_files(api_client, create_user):
    _, headers = await create_user("alice")

    no_title = await api_client.post(
        "/api/v1/videos/",
        data={"title": "", "description": "d"},
        files={"thumbnail": ("t.png", PNG_BYTES, "image/png")},
        headers=headers,
    )
    assert no_title.status_code == 400

    no_video = await api_client.post(
        "/api/v1/videos/",
        data={"title": "t", "description": "d"},
        files={"thumbnail": ("t.png", PNG_BYTES, "image/png")},
        headers=headers,
    )
    assert no_video.status_code == 400
    assert no_video.json()["message"] == "Video file is missing"


@pytest.mark.asyncio
async def test_list_videos_search_filter_and_pagination(api_client, create_user):
    alice_id, alice_headers = await create_user("alice")
    _, bob_headers = await create_user("bob")
    await publish_video(api_client, alice_headers, title="Pasta night", description="cooking")
    await publish_video(api_client, alice_headers, title="Garden", description="growing basil for PASTA")
    await publish_video(api_client, bob_headers, title="Bikes", description="repair")

    search = await api_client.get("/api/v1/videos/", params={"query": "pasta"}, headers=bob_headers)
    assert search.status_code == 200
    page = search.json()["data"]
    assert page["total_count"] == 2
    assert [item["title"] for item in page["items"]] == ["Garden", "Pasta night"]
    assert page["items"][0]["owner"]["username"] == "alice"

    by_owner = await api_client.get(
        "/api/v1/videos/",
        params={"user_id": alice_id, "sort_by": "title", "sort_type": "asc", "limit": 1, "page": 2},
        headers=bob_headers,
    )
    owner_page = by_owner.json()["data"]
    assert owner_page["total_count"] == 2
    assert owner_page["total_pages"] == 2
    assert owner_page["items"][0]["title"] == "Pasta night"
    assert owner_page["has_prev_page"] is True
    assert owner_page["has_next_page"] is False


@pytest.mark.asyncio
async def test_list_videos_rejects_unknown_sort_field(api_client, create_user):
    _, headers = await create_user("alice")
    response = await api_client.get("/api/v1/videos/", params={"sort_by": "owner"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_video_mutations_are_owner_only(api_client, create_user, object_store):
    _, owner_headers = await create_user("alice")
    _, other_headers = await create_user("mallory")
    video = (await publish_video(api_client, owner_headers)).json()["data"]
    video_url = f"/api/v1/videos/{video['id']}"

    forbidden_update = await api_client.patch(video_url, data={"title": "Hijacked"}, headers=other_headers)
    assert forbidden_update.status_code == 403
    forbidden_toggle = await api_client.patch(f"/api/v1/videos/toggle/publish/{video['id']}", headers=other_headers)
    assert forbidden_toggle.status_code == 403
    forbidden_delete = await api_client.delete(video_url, headers=other_headers)
    assert forbidden_delete.status_code == 403

    empty_update = await api_client.patch(video_url, data={}, headers=owner_headers)
    assert empty_update.status_code == 400

    updated = await api_client.patch(
        video_url,
        data={"title": "Renamed"},
        files={"thumbnail": ("new.png", PNG_BYTES, "image/png")},
        headers=owner_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "Renamed"
    stored = {path.name for path in object_store.root.iterdir()}
    assert video["thumbnail"].rsplit("/", 1)[-1] not in stored

    toggled = await api_client.patch(f"/api/v1/videos/toggle/publish/{video['id']}", headers=owner_headers)
    assert toggled.json()["data"]["status"] == "Published"
    assert toggled.json()["data"]["video"]["is_published"] is True
    toggled_back = await api_client.patch(f"/api/v1/videos/toggle/publish/{video['id']}", headers=owner_headers)
    assert toggled_back.json()["data"]["status"] == "Unpublished"

    deleted = await api_client.delete(video_url, headers=owner_headers)
    assert deleted.status_code == 200
    assert list(object_store.root.iterdir()) == []
    missing = await api_client.get(video_url, headers=owner_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_publish_rolls_back_thumbnail_when_video_upload_fails(api_client, create_user, object_store, session_maker, monkeypatch):
    _, headers = await create_user("alice")
    failing_upload(object_store, monkeypatch, suffixes=(".mp4",))

    response = await publish_video(api_client, headers)
    assert response.status_code == 500
    assert response.json()["message"] == "Error while uploading video file"

    async with session_maker() as session:
        count = (await session.execute(select(func.count()).select_from(Video))).scalar_one()
    assert count == 0
    assert list(object_store.root.iterdir()) == []


@pytest.mark.asyncio
async def test_failed_thumbnail_replacement_keeps_old_thumbnail(api_client, create_user, object_store, session_maker, monkeypatch):
    _, headers = await create_user("alice")
    video = (await publish_video(api_client, headers)).json()["data"]
    failing_upload(object_store, monkeypatch)

    response = await api_client.patch(
        f"/api/v1/videos/{video['id']}",
        data={"title": "Renamed"},
        files={"thumbnail": ("new.png", PNG_BYTES, "image/png")},
        headers=headers,
    )
    assert response.status_code == 500
    assert response.json()["message"] == "Error while uploading thumbnail"

    async with session_maker() as session:
        stored = await session.get(Video, video["id"])
    assert stored.thumbnail == video["thumbnail"]
    assert stored.title == video["title"]
    assert video["thumbnail"].rsplit("/", 1)[-1] in {path.name for path in object_store.root.iterdir()}
