"""
令牌路由测试
"""

import pytest

from tests.test_conftest import reload


class TestApiKey:
    """API Key 生成、查看、吊销"""

    @pytest.mark.asyncio
    async def test_lifecycle(self, client, db_session, author, author_headers):
        empty = await client.get("/api/v1/token/api-key", headers=author_headers)
        assert empty.json()["data"] == {"api_key": None}

        response = await client.post("/api/v1/token/api-key", headers=author_headers)
        assert response.status_code == 201
        api_key = response.json()["data"]["api_key"]
        assert len(api_key) == 64

        user = await reload(db_session, author)
        assert user.api_key == api_key

        shown = await client.get("/api/v1/token/api-key", headers=author_headers)
        assert shown.json()["data"]["api_key"] == api_key

        # 已存在时不能重复生成
        again = await client.post("/api/v1/token/api-key", headers=author_headers)
        assert again.status_code == 409

        revoked = await client.delete("/api/v1/token/api-key", headers=author_headers)
        assert revoked.status_code == 200
        user = await reload(db_session, author)
        assert user.api_key is None

        # 吊销后旧 Key 失效
        denied = await client.get("/api/v1/blogs/published", headers={"X-API-Key": api_key})
        assert denied.status_code == 401

    @pytest.mark.asyncio
    async def test_revoke_without_key(self, client, author_headers):
        response = await client.delete("/api/v1/token/api-key", headers=author_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_login(self, client):
        response = await client.post("/api/v1/token/api-key")
        assert response.status_code == 401
