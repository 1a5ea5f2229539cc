import pytest
from sqlalchemy import func, select

from api_support import publish_video
from models.playlist import Playlist


@pytest.mark.asyncio
async def test_duplicate_playlist_name_is_a_conflict(api_client, create_user, session_maker):
    _, headers = await create_user("alice")

    created = await api_client.post("/api/v1/playlist/", json={"name": "Favourites"}, headers=headers)
    assert created.status_code == 201
    duplicate = await api_client.post("/api/v1/playlist/", json={"name": "Favourites"}, headers=headers)
    assert duplicate.status_code == 409

    async with session_maker() as session:
        count = (await session.execute(select(func.count()).select_from(Playlist))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_same_playlist_name_for_different_owners_is_allowed(api_client, create_user):
    _, alice_headers = await create_user("alice")
    _, bob_headers = await create_user("bob")
    first = await api_client.post("/api/v1/playlist/", json={"name": "Mix"}, headers=alice_headers)
    second = await api_client.post("/api/v1/playlist/", json={"name": "Mix"}, headers=bob_headers)
    assert first.status_code == 201
    assert second.status_code == 201


@pytest.mark.asyncio
async def test_playlist_membership_is_deduplicated_and_owner_only(api_client, create_user):
    alice_id, alice_headers = await create_user("alice")
    _, bob_headers = await create_user("bob")
    video_id = (await publish_video(api_client, alice_headers)).json()["data"]["id"]
    playlist = (
        await api_client.post("/api/v1/playlist/", json={"name": "Watch later", "description": "soon"}, headers=alice_headers)
    ).json()["data"]
    assert playlist["total_videos"] == 0
    assert playlist["owner"]["username"] == "alice"

    for _ in range(2):
        added = await api_client.patch(f"/api/v1/playlist/add/{video_id}/{playlist['id']}", headers=alice_headers)
        assert added.status_code == 200
    assert added.json()["data"]["videos"] == [video_id]
    assert added.json()["data"]["total_videos"] == 1

    stranger = await api_client.patch(f"/api/v1/playlist/add/{video_id}/{playlist['id']}", headers=bob_headers)
    assert stranger.status_code == 403

    missing_video = await api_client.patch(f"/api/v1/playlist/add/nope/{playlist['id']}", headers=alice_headers)
    assert missing_video.status_code == 404
    missing_playlist = await api_client.patch(f"/api/v1/playlist/add/{video_id}/nope", headers=alice_headers)
    assert missing_playlist.status_code == 404

    listed = await api_client.get(f"/api/v1/playlist/user/{alice_id}", headers=bob_headers)
    assert [entry["name"] for entry in listed.json()["data"]] == ["Watch later"]

    removed = await api_client.patch(f"/api/v1/playlist/remove/{video_id}/{playlist['id']}", headers=alice_headers)
    assert removed.json()["data"]["videos"] == []


@pytest.mark.asyncio
async def test_playlist_update_and_delete(api_client, create_user):
    _, alice_headers = await create_user("alice")
    _, bob_headers = await create_user("bob")
    playlist_id = (
        await api_client.post("/api/v1/playlist/", json={"name": "Old"}, headers=alice_headers)
    ).json()["data"]["id"]
    await api_client.post("/api/v1/playlist/", json={"name": "Taken"}, headers=alice_headers)

    empty = await api_client.patch(f"/api/v1/playlist/{playlist_id}", json={}, headers=alice_headers)
    assert empty.status_code == 400
    denied = await api_client.patch(f"/api/v1/playlist/{playlist_id}", json={"name": "Mine"}, headers=bob_headers)
    assert denied.status_code == 403
    clash = await api_client.patch(f"/api/v1/playlist/{playlist_id}", json={"name": "Taken"}, headers=alice_headers)
    assert clash.status_code == 409

    renamed = await api_client.patch(f"/api/v1/playlist/{playlist_id}", json={"name": "New"}, headers=alice_headers)
    assert renamed.json()["data"]["name"] == "New"

    deleted = await api_client.delete(f"/api/v1/playlist/{playlist_id}", headers=alice_headers)
    assert deleted.status_code == 200
    gone = await api_client.get(f"/api/v1/playlist/{playlist_id}", headers=alice_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_dashboard_stats_and_videos(api_client, create_user):
    alice_id, alice_headers = await create_user("alice")
    _, bob_headers = await create_user("bob")
    first = (await publish_video(api_client, alice_headers, title="One")).json()["data"]["id"]
    await publish_video(api_client, alice_headers, title="Two")
    await api_client.get(f"/api/v1/videos/{first}", headers=bob_headers)
    await api_client.post(f"/api/v1/likes/toggle/v/{first}", headers=bob_headers)
    await api_client.post(f"/api/v1/subscriptions/c/{alice_id}", headers=bob_headers)

    stats = await api_client.get("/api/v1/dashboard/stats", headers=alice_headers)
    assert stats.json()["data"] == {
        "total_videos": 2,
        "total_video_views": 1,
        "total_likes": 1,
        "total_subscribers": 1,
    }

    videos = await api_client.get("/api/v1/dashboard/videos", headers=alice_headers)
    listed = videos.json()["data"]
    assert [video["title"] for video in listed] == ["Two", "One"]
    assert listed[1]["likes_count"] == 1
    assert listed[0]["owner"]["username"] == "alice"


@pytest.mark.asyncio
async def test_dashboard_stats_count_only_the_callers_channel(api_client, create_user):
    alice_id, alice_headers = await create_user("alice")
    bob_id, bob_headers = await create_user("bob")
    video_id = (await publish_video(api_client, alice_headers)).json()["data"]["id"]
    await api_client.post(f"/api/v1/likes/toggle/v/{video_id}", headers=alice_headers)
    await api_client.post(f"/api/v1/likes/toggle/v/{video_id}", headers=bob_headers)
    await api_client.post(f"/api/v1/subscriptions/c/{bob_id}", headers=alice_headers)

    empty_channel = await api_client.get("/api/v1/dashboard/stats", headers=bob_headers)
    assert empty_channel.json()["data"] == {
        "total_videos": 0,
        "total_video_views": 0,
        "total_likes": 0,
        "total_subscribers": 1,
    }
    alice_stats = (await api_client.get("/api/v1/dashboard/stats", headers=alice_headers)).json()["data"]
    assert alice_stats["total_likes"] == 2
    assert alice_stats["total_subscribers"] == 0
