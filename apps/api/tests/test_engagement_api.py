import pytest
from sqlalchemy import func, select

from api_support import publish_video
from models.comment import Comment
from models.subscription import Subscription


async def _video_for(api_client, headers):
    return (await publish_video(api_client, headers)).json()["data"]["id"]


@pytest.mark.asyncio
async def test_comment_pages_are_newest_first(api_client, create_user):
    _, headers = await create_user("alice")
    video_id = await _video_for(api_client, headers)
    for index in range(25):
        created = await api_client.post(
            f"/api/v1/comments/{video_id}",
            json={"content": f"comment {index}"},
            headers=headers,
        )
        assert created.status_code == 201

    response = await api_client.get(f"/api/v1/comments/{video_id}", params={"page": 2, "limit": 10}, headers=headers)
    assert response.status_code == 200
    page = response.json()["data"]
    assert len(page["items"]) == 10
    assert page["total_pages"] == 3
    assert page["total_count"] == 25
    assert page["items"][0]["content"] == "comment 14"
    assert page["items"][-1]["content"] == "comment 5"
    assert page["items"][0]["username"] == "alice"
    assert "owner" not in page["items"][0]


@pytest.mark.asyncio
async def test_comment_on_missing_video_is_not_found(api_client, create_user):
    _, headers = await create_user("alice")
    listed = await api_client.get("/api/v1/comments/missing-video", headers=headers)
    assert listed.status_code == 404
    added = await api_client.post("/api/v1/comments/missing-video", json={"content": "hi"}, headers=headers)
    assert added.status_code == 404


@pytest.mark.asyncio
async def test_comment_delete_by_third_party_is_forbidden(api_client, create_user, session_maker):
    _, owner_headers = await create_user("alice")
    _, author_headers = await create_user("bob")
    _, stranger_headers = await create_user("mallory")
    video_id = await _video_for(api_client, owner_headers)
    comment = (
        await api_client.post(f"/api/v1/comments/{video_id}", json={"content": "nice"}, headers=author_headers)
    ).json()["data"]

    denied = await api_client.delete(f"/api/v1/comments/c/{comment['id']}", headers=stranger_headers)
    assert denied.status_code == 403
    async with session_maker() as session:
        count = (await session.execute(select(func.count()).select_from(Comment))).scalar_one()
    assert count == 1

    edit_denied = await api_client.patch(
        f"/api/v1/comments/c/{comment['id']}",
        json={"content": "owned"},
        headers=owner_headers,
    )
    assert edit_denied.status_code == 403

    edited = await api_client.patch(
        f"/api/v1/comments/c/{comment['id']}",
        json={"content": "very nice"},
        headers=author_headers,
    )
    assert edited.json()["data"]["content"] == "very nice"

    # the video owner may moderate comments on their video
    removed = await api_client.delete(f"/api/v1/comments/c/{comment['id']}", headers=owner_headers)
    assert removed.status_code == 200
    async with session_maker() as session:
        count = (await session.execute(select(func.count()).select_from(Comment))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_like_toggle_alternates(api_client, create_user):
    _, owner_headers = await create_user("alice")
    _, fan_headers = await create_user("bob")
    video_id = await _video_for(api_client, owner_headers)

    first = await api_client.post(f"/api/v1/likes/toggle/v/{video_id}", headers=fan_headers)
    assert first.json()["data"]["status"] == "Liked"

    liked = await api_client.get("/api/v1/likes/videos", headers=fan_headers)
    videos = liked.json()["data"]
    assert [video["id"] for video in videos] == [video_id]
    assert videos[0]["owner"]["username"] == "alice"

    detail = await api_client.get(f"/api/v1/videos/{video_id}", headers=fan_headers)
    assert detail.json()["data"]["likes_count"] == 1
    assert detail.json()["data"]["is_liked"] is True

    second = await api_client.post(f"/api/v1/likes/toggle/v/{video_id}", headers=fan_headers)
    assert second.json()["data"]["status"] == "Unliked"
    assert (await api_client.get("/api/v1/likes/videos", headers=fan_headers)).json()["data"] == []


@pytest.mark.asyncio
async def test_likes_on_comments_tweets_and_unknown_targets(api_client, create_user):
    _, headers = await create_user("alice")
    video_id = await _video_for(api_client, headers)
    comment_id = (
        await api_client.post(f"/api/v1/comments/{video_id}", json={"content": "hi"}, headers=headers)
    ).json()["data"]["id"]
    tweet_id = (await api_client.post("/api/v1/tweets/", json={"content": "hello"}, headers=headers)).json()["data"]["id"]

    comment_like = await api_client.post(f"/api/v1/likes/toggle/c/{comment_id}", headers=headers)
    assert comment_like.json()["data"]["is_liked"] is True
    tweet_like = await api_client.post(f"/api/v1/likes/toggle/t/{tweet_id}", headers=headers)
    assert tweet_like.json()["data"]["status"] == "Liked"

    missing = await api_client.post("/api/v1/likes/toggle/t/not-a-tweet", headers=headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_self_subscription_is_rejected_before_any_write(api_client, create_user, session_maker):
    user_id, headers = await create_user("alice")
    response = await api_client.post(f"/api/v1/subscriptions/c/{user_id}", headers=headers)
    assert response.status_code == 400
    async with session_maker() as session:
        count = (await session.execute(select(func.count()).select_from(Subscription))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_subscription_toggle_and_listings(api_client, create_user):
    alice_id, alice_headers = await create_user("alice")
    bob_id, bob_headers = await create_user("bob")

    subscribed = await api_client.post(f"/api/v1/subscriptions/c/{alice_id}", headers=bob_headers)
    assert subscribed.json()["data"]["is_subscribed"] is True

    subscribers = await api_client.get(f"/api/v1/subscriptions/c/{alice_id}", headers=alice_headers)
    assert [entry["username"] for entry in subscribers.json()["data"]] == ["bob"]
    assert subscribers.json()["data"][0]["subscriber_id"] == bob_id

    channels = await api_client.get(f"/api/v1/subscriptions/u/{bob_id}", headers=bob_headers)
    assert [entry["channel_id"] for entry in channels.json()["data"]] == [alice_id]

    unsubscribed = await api_client.post(f"/api/v1/subscriptions/c/{alice_id}", headers=bob_headers)
    assert unsubscribed.json()["data"]["is_subscribed"] is False

    missing = await api_client.post("/api/v1/subscriptions/c/no-such-user", headers=bob_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_tweets_are_listed_newest_first_and_owner_only(api_client, create_user):
    alice_id, alice_headers = await create_user("alice")
    _, bob_headers = await create_user("bob")
    first = (await api_client.post("/api/v1/tweets/", json={"content": "first"}, headers=alice_headers)).json()["data"]
    await api_client.post("/api/v1/tweets/", json={"content": "second"}, headers=alice_headers)

    blank = await api_client.post("/api/v1/tweets/", json={"content": "   "}, headers=alice_headers)
    assert blank.status_code == 400

    listed = await api_client.get(f"/api/v1/tweets/user/{alice_id}", headers=bob_headers)
    tweets = listed.json()["data"]
    assert [tweet["content"] for tweet in tweets] == ["second", "first"]
    assert tweets[0]["username"] == "alice"
    assert tweets[0]["likes_count"] == 0

    denied = await api_client.patch(f"/api/v1/tweets/{first['id']}", json={"content": "x"}, headers=bob_headers)
    assert denied.status_code == 403

    deleted = await api_client.delete(f"/api/v1/tweets/{first['id']}", headers=alice_headers)
    assert deleted.status_code == 200
    remaining = await api_client.get(f"/api/v1/tweets/user/{alice_id}", headers=bob_headers)
    assert [tweet["content"] for tweet in remaining.json()["data"]] == ["second"]
