import pytest

from main import app
from routers import rate_limit


@pytest.mark.asyncio
async def test_healthcheck_reports_components(api_client):
    response = await api_client.get("/api/v1/healthcheck/")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["api"] == "up"
    assert "database" in body["data"]


@pytest.mark.asyncio
async def test_oversized_json_body_is_rejected(api_client):
    payload = '{"username": "' + "x" * 20000 + '", "password": "p"}'
    response = await api_client.post(
        "/api/v1/users/login",
        content=payload,
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_oversized_chunked_json_body_is_rejected(api_client):
    payload = ('{"username": "' + "x" * 20000 + '", "password": "p"}').encode()

    async def chunks():
        for start in range(0, len(payload), 4096):
            yield payload[start:start + 4096]

    response = await api_client.post(
        "/api/v1/users/login",
        content=chunks(),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json()["message"] == "Request body too large"


@pytest.mark.asyncio
async def test_small_chunked_json_body_still_reaches_the_route(api_client):
    async def chunks():
        yield b'{"username": "ghost", '
        yield b'"password": "p"}'

    response = await api_client.post(
        "/api/v1/users/login",
        content=chunks(),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 404
    assert response.json()["message"] == "User does not exist"


@pytest.mark.asyncio
async def test_validation_errors_render_as_bad_request(api_client, create_user):
    _, headers = await create_user("alice")
    response = await api_client.get("/api/v1/comments/some-video", params={"page": 0}, headers=headers)
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid request"
    assert body["errors"]


@pytest.mark.asyncio
async def test_auth_endpoints_are_rate_limited(api_client, monkeypatch):
    app.state.disable_rate_limits = False

    async def redis_down(*args, **kwargs):
        raise OSError("redis unavailable")

    monkeypatch.setattr(rate_limit, "_consume_redis_quota", redis_down)
    monkeypatch.setattr(rate_limit.settings, "AUTH_RATE_LIMIT", 2)
    statuses = []
    for _ in range(3):
        response = await api_client.post("/api/v1/users/login", json={"username": "ghost", "password": "x"})
        statuses.append(response.status_code)
    assert statuses == [404, 404, 429]
