"""
HTTP tests through the ASGI app: routing, headers, caching and error mapping.
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from tests.conftest import FakeRedis
from tests.factories import UserDataFactory


def _as(external_id: str) -> dict[str, str]:
    return {"X-User-Id": external_id}


async def _signup(api: AsyncClient, username: str) -> dict:
    response = await api.post(
        "/users/", json=UserDataFactory(username=username, external_id=f"user_{username}")
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestUsersApi:
    @pytest.mark.asyncio
    async def test_signup_and_me(self, api: AsyncClient) -> None:
        created = await _signup(api, "alice")
        assert created["kind"] == "user"

        response = await api.get("/users/me", headers=_as("user_alice"))
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_me_requires_header(self, api: AsyncClient) -> None:
        response = await api.get("/users/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_duplicate_signup_maps_to_409(self, api: AsyncClient) -> None:
        await _signup(api, "alice")
        response = await api.post("/users/", json=UserDataFactory(username="alice"))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_USER"

    @pytest.mark.asyncio
    async def test_update_profile_validation(self, api: AsyncClient) -> None:
        await _signup(api, "alice")

        response = await api.patch(
            "/users/me", json={"bio": "x" * 161}, headers=_as("user_alice")
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BIO"

        response = await api.patch(
            "/users/me", json={"bio": "Writer"}, headers=_as("user_alice")
        )
        assert response.status_code == 200
        assert response.json()["bio"] == "Writer"

    @pytest.mark.asyncio
    async def test_invalid_user_id(self, api: AsyncClient) -> None:
        response = await api.get("/users/not-a-uuid")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_ID"

    @pytest.mark.asyncio
    async def test_follow_flow_and_status(self, api: AsyncClient) -> None:
        await _signup(api, "alice")
        await _signup(api, "bob")

        response = await api.post("/users/user_alice/follow", headers=_as("user_bob"))
        assert response.status_code == 204

        response = await api.post("/users/user_alice/follow", headers=_as("user_bob"))
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_FOLLOWING"

        response = await api.get(
            "/api/follow-status", params={"userId": "user_bob", "profileId": "user_alice"}
        )
        assert response.json() == {"isFollowing": True}

        response = await api.delete("/users/user_alice/follow", headers=_as("user_bob"))
        assert response.status_code == 204

        response = await api.get(
            "/api/follow-status", params={"userId": "user_bob", "profileId": "user_alice"}
        )
        assert response.json() == {"isFollowing": False}

    @pytest.mark.asyncio
    async def test_follow_status_missing_params(self, api: AsyncClient) -> None:
        response = await api.get("/api/follow-status", params={"userId": "user_bob"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_self_follow_is_400(self, api: AsyncClient) -> None:
        await _signup(api, "alice")
        response = await api.post("/users/user_alice/follow", headers=_as("user_alice"))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SELF_FOLLOW"

    @pytest.mark.asyncio
    async def test_directory_marks_followed_users(self, api: AsyncClient) -> None:
        await _signup(api, "alice")
        await _signup(api, "bob")
        await api.post("/users/user_bob/follow", headers=_as("user_alice"))

        response = await api.get("/users/", headers=_as("user_alice"))
        body = response.json()
        flags = {u["username"]: u["is_following"] for u in body["users"]}
        assert flags == {"alice": False, "bob": True}
        assert body["pagination"] == {"total": 2, "pages": 1, "page": 1, "limit": 10}

    @pytest.mark.asyncio
    async def test_profile_view_is_cached_and_invalidated(
        self, api: AsyncClient, fake_redis: FakeRedis
    ) -> None:
        alice = await _signup(api, "alice")
        path_key = f"view:/profile/{alice['id']}"

        await api.get(f"/users/{alice['id']}")
        assert path_key in fake_redis.hashes

        await api.patch("/users/me", json={"bio": "Updated"}, headers=_as("user_alice"))
        assert path_key not in fake_redis.hashes

        response = await api.get(f"/users/{alice['id']}")
        assert response.json()["bio"] == "Updated"

    @pytest.mark.asyncio
    async def test_profile_by_external_id_fills_internal_cache_key(
        self, api: AsyncClient, fake_redis: FakeRedis
    ) -> None:
        alice = await _signup(api, "alice")

        response = await api.get("/users/user_alice")
        assert response.status_code == 200
        assert response.json()["id"] == alice["id"]
        assert "view:/profile/user_alice" not in fake_redis.hashes
        assert f"view:/profile/{alice['id']}" in fake_redis.hashes

    @pytest.mark.asyncio
    async def test_profile_edit_drops_cached_post_view(
        self, api: AsyncClient, fake_redis: FakeRedis
    ) -> None:
        await _signup(api, "alice")
        post = (
            await api.post(
                "/posts/", json={"title": "T", "content": "C"}, headers=_as("user_alice")
            )
        ).json()
        await api.get(f"/posts/{post['id']}")
        assert f"view:/post/{post['id']}" in fake_redis.hashes

        await api.patch("/users/me", json={"bio": "Updated"}, headers=_as("user_alice"))
        assert f"view:/post/{post['id']}" not in fake_redis.hashes


class TestPostsApi:
    @pytest.mark.asyncio
    async def test_post_lifecycle(self, api: AsyncClient, fake_redis: FakeRedis) -> None:
        alice = await _signup(api, "alice")
        bob = await _signup(api, "bob")

        response = await api.post(
            "/posts/", json={"title": "Hi", "content": "First"}, headers=_as("user_alice")
        )
        assert response.status_code == 201
        post = response.json()
        assert post["author"] == {"kind": "id", "id": alice["id"]}

        response = await api.post(f"/posts/{post['id']}/like", headers=_as("user_bob"))
        assert response.json() == [bob["id"]]

        response = await api.post(
            f"/posts/{post['id']}/comments",
            json={"content": "Welcome!"},
            headers=_as("user_bob"),
        )
        assert response.status_code == 201
        assert response.json()["user"]["username"] == "bob"

        response = await api.get("/posts/", params={"page": 1, "limit": 10})
        feed = response.json()
        assert feed[0]["author"]["username"] == "alice"
        assert [(u["kind"], u["id"]) for u in feed[0]["likes"]] == [("user", bob["id"])]
        assert "view:/" in fake_redis.hashes

        response = await api.patch(
            f"/posts/{post['id']}", json={"title": "Stolen"}, headers=_as("user_bob")
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

        response = await api.delete(f"/posts/{post['id']}", headers=_as("user_alice"))
        assert response.status_code == 204
        assert "view:/" not in fake_redis.hashes

        response = await api.get(f"/posts/{post['id']}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_feed_cache_hit_serves_stored_payload(
        self, api: AsyncClient, fake_redis: FakeRedis
    ) -> None:
        await _signup(api, "alice")
        await api.post(
            "/posts/", json={"title": "One", "content": "x"}, headers=_as("user_alice")
        )

        first = await api.get("/posts/")
        second = await api.get("/posts/")
        assert first.json() == second.json()
        assert list(fake_redis.hashes["view:/"]) == ["page=1&limit=10"]

    @pytest.mark.asyncio
    async def test_search_and_by_user(self, api: AsyncClient) -> None:
        alice = await _signup(api, "alice")
        await api.post(
            "/posts/", json={"title": "Async Python", "content": "x"}, headers=_as("user_alice")
        )

        response = await api.get("/posts/search", params={"q": "python"})
        assert [p["title"] for p in response.json()] == ["Async Python"]

        response = await api.get(f"/posts/by-user/{alice['id']}")
        assert len(response.json()) == 1

    @pytest.mark.asyncio
    async def test_like_unknown_post(self, api: AsyncClient) -> None:
        await _signup(api, "bob")
        response = await api.post(f"/posts/{uuid.uuid4()}/like", headers=_as("user_bob"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_saved_posts(self, api: AsyncClient) -> None:
        await _signup(api, "alice")
        post = (
            await api.post(
                "/posts/", json={"title": "T", "content": "C"}, headers=_as("user_alice")
            )
        ).json()

        response = await api.post(
            f"/users/me/saved-posts/{post['id']}", headers=_as("user_alice")
        )
        assert response.json() == [post["id"]]

        response = await api.delete(
            f"/users/me/saved-posts/{post['id']}", headers=_as("user_alice")
        )
        assert response.json() == []


@pytest.mark.asyncio
async def test_health(api: AsyncClient) -> None:
    response = await api.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
