"""
文件访问路由测试
"""

import pytest

from tests.test_conftest import PNG_BYTES


class TestFileAccess:
    """临时 URL 签名校验"""

    @pytest.mark.asyncio
    async def test_signed_url(self, client, blob_store):
        await blob_store.put("banners", "pic.png", PNG_BYTES, "image/png")
        url = await blob_store.get("banners", "pic.png", 60)

        response = await client.get(url)
        assert response.status_code == 200
        assert response.content == PNG_BYTES

    @pytest.mark.asyncio
    async def test_token_for_other_key(self, client, blob_store):
        await blob_store.put("banners", "a.png", PNG_BYTES, "image/png")
        await blob_store.put("banners", "b.png", PNG_BYTES, "image/png")
        url = await blob_store.get("banners", "a.png", 60)
        token = url.split("token=", 1)[1]

        response = await client.get("/api/v1/files/banners/b.png", params={"token": token})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_deleted_object(self, client, blob_store):
        await blob_store.put("banners", "gone.png", PNG_BYTES, "image/png")
        url = await blob_store.get("banners", "gone.png", 60)
        await blob_store.delete("banners", "gone.png")

        response = await client.get(url)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/files/banners/pic.png")
        assert response.status_code == 400
