# -*- coding: utf-8 -*-
"""
博客模块测试
覆盖：slug 生成、计数器一致性、读写后缓存一致性、浏览记录、草稿可见性、横幅、删除级联
"""

import pytest

from core.cache_keys import CacheNamespace, build_cache_key
from models import User
from modules.blog.blog_models import Blog, BlogTag, View
from modules.blog.blog_schemas import BlogCreate
from modules.category.category_models import Category
from modules.like.like_models import Like
from tests.test_conftest import PNG_BYTES, create_blog, create_test_category
from sqlalchemy import func, select


async def fetch(session, model, obj_id):
    """读取其他会话提交后的最新数据"""
    return await session.get(model, obj_id, populate_existing=True)


async def count_rows(session, model, **filters):
    query = select(func.count()).select_from(model).filter_by(**filters)
    return (await session.execute(query)).scalar()


# ==================== Schema 测试 ====================

class TestBlogSchemas:
    """测试文章数据验证"""

    def test_tags_normalized(self):
        data = BlogCreate(
            title="Tagged post",
            content="Content long enough for the validator.",
            category_id=1,
            tags="Python, FastAPI!, python"
        )
        assert data.tags == ["python", "fastapi"]

    def test_meta_trimmed(self):
        data = BlogCreate(
            title="Meta post",
            content="Content long enough for the validator.",
            category_id=1,
            meta="  " + "m" * 200
        )
        assert len(data.meta) == 160


# ==================== 创建 ====================

class TestCreateBlog:
    """创建文章"""

    @pytest.mark.asyncio
    async def test_slug_from_title(self, client, author_headers, category):
        data = await create_blog(client, author_headers, category.id, title="Hello World!!")
        assert data["slug"] == "hello-world"
        assert data["published_at"] is not None

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflict(self, client, author_headers, reader_headers, category):
        await create_blog(client, author_headers, category.id, title="Hello World")
        response = await client.post(
            "/api/v1/blogs",
            json={
                "title": "hello   world",
                "content": "Another body that is long enough to pass.",
                "category_id": category.id,
            },
            headers=reader_headers
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_title_without_slug_characters(self, client, author_headers, category):
        response = await client.post(
            "/api/v1/blogs",
            json={
                "title": "你好世界啊",
                "content": "Body that is long enough to pass validation.",
                "category_id": category.id,
            },
            headers=author_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_category(self, client, author_headers):
        response = await client.post(
            "/api/v1/blogs",
            json={
                "title": "Orphan post",
                "content": "Body that is long enough to pass validation.",
                "category_id": 999,
            },
            headers=author_headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_login(self, client, category):
        response = await client.post(
            "/api/v1/blogs",
            json={"title": "No auth post", "content": "x" * 30, "category_id": category.id}
        )
        assert response.status_code == 401


# ==================== 计数器一致性 ====================

class TestBlogCounters:
    """blog_count 随创建、发布、取消发布、删除保持一致"""

    @pytest.mark.asyncio
    async def test_publish_lifecycle(self, client, db_session, author, author_headers, category):
        published = await create_blog(client, author_headers, category.id, title="Published one")
        draft = await create_blog(client, author_headers, category.id, title="Draft one", published=False)
        assert draft["published_at"] is None

        user = await fetch(db_session, User, author.id)
        cat = await fetch(db_session, Category, category.id)
        assert user.blog_count == 1
        assert cat.blog_count == 2

        # 发布草稿
        response = await client.patch(
            f"/api/v1/blogs/{draft['id']}", json={"published": True}, headers=author_headers
        )
        first_published_at = response.json()["data"]["published_at"]
        assert first_published_at is not None
        assert (await fetch(db_session, User, author.id)).blog_count == 2

        # 重复发布不改变计数
        await client.patch(f"/api/v1/blogs/{draft['id']}", json={"published": True}, headers=author_headers)
        assert (await fetch(db_session, User, author.id)).blog_count == 2

        # 取消发布保留 published_at
        response = await client.patch(
            f"/api/v1/blogs/{draft['id']}", json={"published": False}, headers=author_headers
        )
        assert response.json()["data"]["published_at"] == first_published_at
        assert (await fetch(db_session, User, author.id)).blog_count == 1

        await client.delete(f"/api/v1/blogs/{published['id']}", headers=author_headers)
        await client.delete(f"/api/v1/blogs/{draft['id']}", headers=author_headers)

        user = await fetch(db_session, User, author.id)
        cat = await fetch(db_session, Category, category.id)
        assert user.blog_count == 0
        assert cat.blog_count == 0

    @pytest.mark.asyncio
    async def test_move_category(self, client, db_session, author_headers, category):
        other = await create_test_category(db_session, "Travel")
        blog = await create_blog(client, author_headers, category.id)

        response = await client.patch(
            f"/api/v1/blogs/{blog['id']}", json={"category_id": other.id}, headers=author_headers
        )
        assert response.json()["data"]["category_id"] == other.id
        assert (await fetch(db_session, Category, category.id)).blog_count == 0
        assert (await fetch(db_session, Category, other.id)).blog_count == 1

    @pytest.mark.asyncio
    async def test_slug_immutable(self, client, author_headers, category):
        blog = await create_blog(client, author_headers, category.id, title="Original title")
        response = await client.patch(
            f"/api/v1/blogs/{blog['id']}", json={"title": "Completely new title"}, headers=author_headers
        )
        data = response.json()["data"]
        assert data["title"] == "Completely new title"
        assert data["slug"] == "original-title"


# ==================== 读取与缓存 ====================

class TestBlogReads:
    """详情、列表与缓存一致性"""

    @pytest.mark.asyncio
    async def test_read_after_edit_is_fresh(self, client, author_headers, category, redis_double):
        blog = await create_blog(client, author_headers, category.id, title="Cache me please")

        by_slug = await client.get("/api/v1/blogs/Cache-Me-Please")
        by_id = await client.get(f"/api/v1/blogs/{blog['id']}")
        listing = await client.get("/api/v1/blogs")
        assert by_slug.json()["data"]["title"] == "Cache me please"
        assert by_id.json()["data"]["id"] == blog["id"]
        assert str(build_cache_key(CacheNamespace.BLOG, scope="cache-me-please")) in redis_double.store

        await client.patch(
            f"/api/v1/blogs/{blog['id']}",
            json={"title": "Edited title", "tags": ["fresh"]},
            headers=author_headers
        )

        by_slug = await client.get("/api/v1/blogs/cache-me-please")
        by_id = await client.get(f"/api/v1/blogs/{blog['id']}")
        listing = await client.get("/api/v1/blogs")
        assert by_slug.json()["data"]["title"] == "Edited title"
        assert by_id.json()["data"]["tags"] == ["fresh"]
        assert listing.json()["data"]["items"][0]["title"] == "Edited title"

    @pytest.mark.asyncio
    async def test_views_recorded_on_cache_hit(self, client, db_session, author, author_headers, category, redis_double):
        blog = await create_blog(client, author_headers, category.id)

        await client.get(f"/api/v1/blogs/{blog['id']}")
        calls = redis_double.get_calls
        await client.get(f"/api/v1/blogs/{blog['id']}")
        assert redis_double.get_calls == calls + 1

        stored = await fetch(db_session, Blog, blog["id"])
        user = await fetch(db_session, User, author.id)
        assert stored.views_count == 2
        assert user.view_count == 2
        assert await count_rows(db_session, View, blog_id=blog["id"]) == 2

    @pytest.mark.asyncio
    async def test_reads_survive_cache_outage(self, client, db_session, author_headers, category, redis_double):
        blog = await create_blog(client, author_headers, category.id)
        redis_double.fail = True

        response = await client.get(f"/api/v1/blogs/{blog['id']}")
        assert response.status_code == 200
        assert (await fetch(db_session, Blog, blog["id"])).views_count == 1

        listing = await client.get("/api/v1/blogs")
        assert listing.json()["data"]["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_draft_visible_only_to_author(
        self, client, db_session, author_headers, reader_headers, category
    ):
        draft = await create_blog(client, author_headers, category.id, title="Secret draft", published=False)

        anonymous = await client.get(f"/api/v1/blogs/{draft['id']}")
        assert anonymous.status_code == 404

        other = await client.get("/api/v1/blogs/secret-draft", headers=reader_headers)
        assert other.status_code == 404

        own = await client.get(f"/api/v1/blogs/{draft['id']}", headers=author_headers)
        assert own.status_code == 200
        assert (await fetch(db_session, Blog, draft["id"])).views_count == 0

    @pytest.mark.asyncio
    async def test_non_canonical_id_is_not_an_alias(self, client, author_headers, category, redis_double):
        blog = await create_blog(client, author_headers, category.id, title="Original Title")

        for alias in (f"0{blog['id']}", f"00{blog['id']}", "１"):
            response = await client.get(f"/api/v1/blogs/{alias}")
            assert response.status_code == 404
        assert not [k for k in redis_double.store if k.startswith("blog:0") or k == "blog:１"]

        await client.get(f"/api/v1/blogs/{blog['id']}")
        await client.patch(
            f"/api/v1/blogs/{blog['id']}", json={"title": "Edited Title"}, headers=author_headers
        )

        fresh = await client.get(f"/api/v1/blogs/{blog['id']}")
        assert fresh.json()["data"]["title"] == "Edited Title"
        again = await client.get(f"/api/v1/blogs/0{blog['id']}")
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_numeric_slug(self, client, author_headers, category):
        blog = await create_blog(client, author_headers, category.id, title="20240101")
        assert blog["slug"] == "20240101"

        response = await client.get("/api/v1/blogs/20240101")
        assert response.status_code == 200
        assert response.json()["data"]["id"] == blog["id"]

    @pytest.mark.asyncio
    async def test_missing_blog(self, client):
        response = await client.get("/api/v1/blogs/no-such-post")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_filters(self, client, db_session, author, author_headers, category):
        other = await create_test_category(db_session, "Travel")
        await create_blog(client, author_headers, category.id, title="Python tips", tags=["python"], featured=True)
        await create_blog(client, author_headers, other.id, title="Trip to Rome", tags="travel")
        await create_blog(client, author_headers, category.id, title="Unfinished", published=False)

        async def titles(**params):
            response = await client.get("/api/v1/blogs", params=params)
            return sorted(b["title"] for b in response.json()["data"]["items"])

        assert await titles() == ["Python tips", "Trip to Rome"]
        assert await titles(tag="Python") == ["Python tips"]
        assert await titles(category=other.id) == ["Trip to Rome"]
        assert await titles(featured=True) == ["Python tips"]
        assert await titles(search="rome") == ["Trip to Rome"]
        assert await titles(author=author.id + 100) == []

        mine = await client.get("/api/v1/blogs/mine", headers=author_headers)
        assert mine.json()["data"]["pagination"]["total"] == 3

        drafts = await client.get("/api/v1/blogs/mine", params={"published": False}, headers=author_headers)
        assert [b["title"] for b in drafts.json()["data"]["items"]] == ["Unfinished"]

    @pytest.mark.asyncio
    async def test_sort(self, client, author_headers, category):
        await create_blog(client, author_headers, category.id, title="Bravo post")
        await create_blog(client, author_headers, category.id, title="Alpha post")

        response = await client.get("/api/v1/blogs", params={"sort": "title"})
        assert [b["title"] for b in response.json()["data"]["items"]] == ["Alpha post", "Bravo post"]

        bad = await client.get("/api/v1/blogs", params={"sort": "content"})
        assert bad.status_code == 400

    @pytest.mark.asyncio
    async def test_trending_today(self, client, author_headers, category):
        quiet = await create_blog(client, author_headers, category.id, title="Quiet post")
        popular = await create_blog(client, author_headers, category.id, title="Popular post")
        for _ in range(3):
            await client.get(f"/api/v1/blogs/{popular['id']}")
        await client.get(f"/api/v1/blogs/{quiet['id']}")

        response = await client.get("/api/v1/blogs/trending/today")
        data = response.json()["data"]
        assert [(b["id"], b["views_today"]) for b in data] == [(popular["id"], 3), (quiet["id"], 1)]

    @pytest.mark.asyncio
    async def test_view_log_author_only(self, client, author_headers, reader_headers, category):
        blog = await create_blog(client, author_headers, category.id)
        await client.get(f"/api/v1/blogs/{blog['id']}")

        response = await client.get(f"/api/v1/blogs/{blog['id']}/views", headers=author_headers)
        assert response.json()["data"]["total"] == 1

        denied = await client.get(f"/api/v1/blogs/{blog['id']}/views", headers=reader_headers)
        assert denied.status_code == 403


# ==================== 修改权限 ====================

class TestBlogPermissions:
    """只有作者能修改自己的文章"""

    @pytest.mark.asyncio
    async def test_other_user_cannot_edit(self, client, author_headers, reader_headers, category):
        blog = await create_blog(client, author_headers, category.id)

        patched = await client.patch(
            f"/api/v1/blogs/{blog['id']}", json={"title": "Hijacked title"}, headers=reader_headers
        )
        assert patched.status_code == 403

        deleted = await client.delete(f"/api/v1/blogs/{blog['id']}", headers=reader_headers)
        assert deleted.status_code == 403

    @pytest.mark.asyncio
    async def test_edit_missing(self, client, author_headers):
        response = await client.patch("/api/v1/blogs/999", json={"title": "Nothing here"}, headers=author_headers)
        assert response.status_code == 404


# ==================== 横幅 ====================

class TestBanner:
    """横幅上传"""

    @pytest.mark.asyncio
    async def test_upload_and_replace(self, client, db_session, author_headers, category, blob_store):
        blog = await create_blog(client, author_headers, category.id)

        response = await client.put(
            f"/api/v1/blogs/{blog['id']}/banner",
            files={"file": ("banner.png", PNG_BYTES, "image/png")},
            headers=author_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["banner"].startswith("/api/v1/files/banners/")
        first_key = (await fetch(db_session, Blog, blog["id"])).banner_key

        await client.put(
            f"/api/v1/blogs/{blog['id']}/banner",
            files={"file": ("banner.png", PNG_BYTES, "image/png")},
            headers=author_headers
        )
        second_key = (await fetch(db_session, Blog, blog["id"])).banner_key
        assert second_key != first_key
        assert not blob_store.resolve_path("banners", first_key).exists()

        # 详情与列表中的 URL 指向新横幅
        detail = await client.get(f"/api/v1/blogs/{blog['id']}")
        assert f"/banners/{second_key}?" in detail.json()["data"]["banner"]

    @pytest.mark.asyncio
    async def test_reject_invalid_file(self, client, db_session, author_headers, category, blob_store):
        blog = await create_blog(client, author_headers, category.id)
        response = await client.put(
            f"/api/v1/blogs/{blog['id']}/banner",
            files={"file": ("banner.gif", PNG_BYTES, "image/gif")},
            headers=author_headers
        )
        assert response.status_code == 400
        assert (await fetch(db_session, Blog, blog["id"])).banner_key is None


# ==================== 删除 ====================

class TestDeleteBlog:
    """删除文章及其依赖数据"""

    @pytest.mark.asyncio
    async def test_delete_cascade(
        self, client, db_session, author, author_headers, reader_headers, category, blob_store
    ):
        blog = await create_blog(client, author_headers, category.id, tags=["a", "b"])
        await client.put(
            f"/api/v1/blogs/{blog['id']}/banner",
            files={"file": ("banner.png", PNG_BYTES, "image/png")},
            headers=author_headers
        )
        banner_key = (await fetch(db_session, Blog, blog["id"])).banner_key
        await client.post(f"/api/v1/likes/{blog['id']}", headers=reader_headers)
        await client.get(f"/api/v1/blogs/{blog['id']}")

        user = await fetch(db_session, User, author.id)
        assert (user.blog_count, user.likes_count, user.view_count) == (1, 1, 1)

        response = await client.delete(f"/api/v1/blogs/{blog['id']}", headers=author_headers)
        assert response.status_code == 200

        user = await fetch(db_session, User, author.id)
        assert (user.blog_count, user.likes_count, user.view_count) == (0, 0, 0)
        assert (await fetch(db_session, Category, category.id)).blog_count == 0
        assert await count_rows(db_session, Like, blog_id=blog["id"]) == 0
        assert await count_rows(db_session, View, blog_id=blog["id"]) == 0
        assert await count_rows(db_session, BlogTag, blog_id=blog["id"]) == 0
        assert not blob_store.resolve_path("banners", banner_key).exists()

        gone = await client.get(f"/api/v1/blogs/{blog['id']}")
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_twice(self, client, author_headers, category):
        blog = await create_blog(client, author_headers, category.id)
        await client.delete(f"/api/v1/blogs/{blog['id']}", headers=author_headers)
        response = await client.delete(f"/api/v1/blogs/{blog['id']}", headers=author_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_stale_cached_detail_after_delete(self, client, db_session, author_headers, category, redis_double):
        """删除与缓存回填交错：缓存里残留已删除文章的详情"""
        blog = await create_blog(client, author_headers, category.id)
        await client.get(f"/api/v1/blogs/{blog['slug']}")
        key = str(build_cache_key(CacheNamespace.BLOG, scope=blog["slug"]))
        stale = redis_double.store[key]

        await client.delete(f"/api/v1/blogs/{blog['id']}", headers=author_headers)
        redis_double.store[key] = stale

        response = await client.get(f"/api/v1/blogs/{blog['slug']}")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
        assert key not in redis_double.store
        assert await count_rows(db_session, View, blog_id=blog["id"]) == 0
