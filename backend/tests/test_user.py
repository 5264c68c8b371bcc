"""
用户路由测试
覆盖：注册、登录、列表缓存、资料修改、密码修改、头像上传
"""

import pytest

from core.cache_keys import CacheNamespace, build_cache_key
from tests.test_conftest import PNG_BYTES, create_blog, reload


REGISTER_PAYLOAD = {
    "full_name": "Ann Lee",
    "username": "Ann_Lee",
    "email": "Ann@Example.com",
    "password": "Password123",
    "bio": "  hello   there  ",
}


class TestRegisterAndLogin:
    """注册与登录"""

    @pytest.mark.asyncio
    async def test_register(self, client):
        response = await client.post("/api/v1/users", json=REGISTER_PAYLOAD)
        assert response.status_code == 201
        body = response.json()
        assert body["code"] == "CREATED"
        data = body["data"]
        assert data["username"] == "ann_lee"
        assert data["email"] == "ann@example.com"
        assert data["bio"] == "hello there"
        assert data["blog_count"] == 0
        assert "password_hash" not in data

    @pytest.mark.asyncio
    async def test_register_duplicate(self, client):
        await client.post("/api/v1/users", json=REGISTER_PAYLOAD)
        response = await client.post(
            "/api/v1/users",
            json={**REGISTER_PAYLOAD, "email": "another@example.com"}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_register_invalid_username(self, client):
        response = await client.post("/api/v1/users", json={**REGISTER_PAYLOAD, "username": "a b"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_login(self, client, author):
        response = await client.post(
            "/api/v1/users/login",
            json={"username": "Author", "password": "Password123"}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user_id"] == author.id

        me = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.json()["data"]["username"] == "author"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, author):
        response = await client.post(
            "/api/v1/users/login",
            json={"username": "author", "password": "wrong-password"}
        )
        assert response.status_code == 401


class TestUserQueries:
    """查询接口"""

    @pytest.mark.asyncio
    async def test_list_users_cached(self, client, author, reader, redis_double):
        response = await client.get("/api/v1/users", params={"limit": 1, "sort": "username"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert [u["username"] for u in data["items"]] == ["author"]
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["has_next_page"] is True

        key = build_cache_key(CacheNamespace.USERS, {"page": 1, "limit": 1, "sort": "username"})
        assert str(key) in redis_double.store

    @pytest.mark.asyncio
    async def test_list_users_search(self, client, author, reader):
        response = await client.get("/api/v1/users", params={"search": "read"})
        assert [u["username"] for u in response.json()["data"]["items"]] == ["reader"]

    @pytest.mark.asyncio
    async def test_list_users_bad_sort(self, client):
        response = await client.get("/api/v1/users", params={"sort": "password_hash"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_usernames_and_availability(self, client, author):
        response = await client.get("/api/v1/users/usernames")
        assert response.json()["data"] == ["author"]

        taken = await client.get("/api/v1/users/check-username", params={"username": "AUTHOR"})
        assert taken.json()["data"] == {"username": "author", "available": False}

        free = await client.get("/api/v1/users/check-username", params={"username": "newbie"})
        assert free.json()["data"]["available"] is True

        bad = await client.get("/api/v1/users/check-username", params={"username": "a!"})
        assert bad.status_code == 400

    @pytest.mark.asyncio
    async def test_profile_is_cached_until_update(self, client, author, author_headers, redis_double):
        first = await client.get(f"/api/v1/users/{author.id}")
        assert first.json()["data"]["full_name"] == "Author"
        assert f"user:{author.id}" in redis_double.store

        response = await client.patch(
            f"/api/v1/users/{author.id}",
            json={"full_name": "Renamed"},
            headers=author_headers
        )
        assert response.status_code == 200
        assert f"user:{author.id}" not in redis_double.store

        second = await client.get(f"/api/v1/users/{author.id}")
        assert second.json()["data"]["full_name"] == "Renamed"

    @pytest.mark.asyncio
    async def test_user_blogs_only_published(self, client, author, author_headers, category):
        await create_blog(client, author_headers, category.id, title="Public Post")
        await create_blog(client, author_headers, category.id, title="Draft Post", published=False)

        response = await client.get(f"/api/v1/users/{author.id}/blogs")
        assert [b["title"] for b in response.json()["data"]["items"]] == ["Public Post"]

    @pytest.mark.asyncio
    async def test_user_blogs_unknown_user(self, client):
        response = await client.get("/api/v1/users/999/blogs")
        assert response.status_code == 404


class TestUserUpdates:
    """修改接口"""

    @pytest.mark.asyncio
    async def test_cannot_update_other_user(self, client, author, reader_headers):
        response = await client.patch(
            f"/api/v1/users/{author.id}",
            json={"full_name": "Hacked"},
            headers=reader_headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_update_to_taken_email(self, client, author, reader, author_headers):
        response = await client.patch(
            f"/api/v1/users/{author.id}",
            json={"email": "READER@example.com"},
            headers=author_headers
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_change_password(self, client, author, author_headers):
        wrong = await client.patch(
            f"/api/v1/users/{author.id}/password",
            json={"old_password": "nope", "new_password": "NewPassword1"},
            headers=author_headers
        )
        assert wrong.status_code == 400

        ok = await client.patch(
            f"/api/v1/users/{author.id}/password",
            json={"old_password": "Password123", "new_password": "NewPassword1"},
            headers=author_headers
        )
        assert ok.status_code == 200

        login = await client.post(
            "/api/v1/users/login",
            json={"username": "author", "password": "NewPassword1"}
        )
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_profile_image_upload(self, client, db_session, author, author_headers, blob_store):
        response = await client.put(
            f"/api/v1/users/{author.id}/profile-image",
            files={"file": ("me.png", PNG_BYTES, "image/png")},
            headers=author_headers
        )
        assert response.status_code == 200
        url = response.json()["data"]["profile_image"]
        assert url.startswith("/api/v1/files/profiles/")

        user = await reload(db_session, author)
        first_key = user.profile_image_key
        assert blob_store.resolve_path("profiles", first_key).is_file()

        # 替换后旧对象被删除
        second = await client.put(
            f"/api/v1/users/{author.id}/profile-image",
            files={"file": ("me2.png", PNG_BYTES, "image/png")},
            headers=author_headers
        )
        user = await reload(db_session, author)
        assert user.profile_image_key != first_key
        assert not blob_store.resolve_path("profiles", first_key).exists()

        # 临时 URL 可直接访问新头像
        file_response = await client.get(second.json()["data"]["profile_image"])
        assert file_response.status_code == 200
        assert file_response.content == PNG_BYTES

    @pytest.mark.asyncio
    async def test_profile_image_rejects_non_image(self, client, author, author_headers):
        response = await client.put(
            f"/api/v1/users/{author.id}/profile-image",
            files={"file": ("me.png", b"not an image", "image/png")},
            headers=author_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_profile_image_missing_blob_falls_back_to_key(
        self, client, db_session, author, author_headers
    ):
        """对象丢失时返回原始键，不影响资料读取"""
        user = await reload(db_session, author)
        user.profile_image_key = "gone.png"
        await db_session.commit()

        response = await client.get(f"/api/v1/users/{author.id}")
        assert response.status_code == 200
        assert response.json()["data"]["profile_image"] == "gone.png"
