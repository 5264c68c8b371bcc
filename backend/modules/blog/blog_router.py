"""
博客API路由
RESTful风格

读接口走读穿透缓存；写接口在事务提交后按失效策略清除缓存
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.blob_store import LocalBlobStore, discard_blob, get_blob_store
from core.cache import Cache, get_cache
from core.cache_keys import CacheNamespace, build_cache_key
from core.config import Settings, get_settings
from core.database import get_db
from core.deps import get_api_key_user
from core.errors import NotFoundException
from core.invalidation import CacheInvalidator, get_invalidator
from core.pagination import normalize_page
from core.security import TokenData, get_current_user, get_optional_user
from schemas import created, paginate, success

from .blog_schemas import BlogCreate, BlogInfo, BlogUpdate, ViewInfo
from .blog_services import BlogService, attach_banner_urls

logger = logging.getLogger(__name__)
router = APIRouter()


async def _blog_payload(blog, store: LocalBlobStore, settings: Settings) -> dict:
    payload = BlogInfo.from_blog(blog).model_dump(mode="json")
    return (await attach_banner_urls([payload], store, settings))[0]


async def _list_response(page_data: dict, store: LocalBlobStore, settings: Settings) -> dict:
    items = await attach_banner_urls(page_data["items"], store, settings)
    return paginate({"items": items, "pagination": page_data["pagination"]})


# ============ 列表接口 ============

@router.get("")
async def list_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    sort: Optional[str] = None,
    search: Optional[str] = None,
    category: Optional[int] = None,
    tag: Optional[str] = None,
    featured: Optional[bool] = None,
    author: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings)
):
    """获取已发布文章列表（公开）"""
    page, limit = normalize_page(page, limit)
    params = {
        "page": page, "limit": limit, "sort": sort, "search": search,
        "category": category, "tag": tag, "featured": featured, "author": author,
    }
    service = BlogService(db)

    async def load():
        result = await service.list_blogs(
            page=page, limit=limit, published=True, author_id=author, search=search,
            category_id=category, tag=tag, featured=featured, sort=sort
        )
        return result.to_dict()

    namespace = CacheNamespace.BLOGS
    page_data = await cache.get_or_load(build_cache_key(namespace, params), namespace.ttl(settings), load)
    return await _list_response(page_data, store, settings)


@router.get("/mine")
async def list_my_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    sort: Optional[str] = None,
    search: Optional[str] = None,
    published: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    user: TokenData = Depends(get_current_user)
):
    """获取我的文章列表（包含草稿）"""
    page, limit = normalize_page(page, limit)
    params = {
        "drafts": True, "page": page, "limit": limit,
        "sort": sort, "search": search, "published": published,
    }
    service = BlogService(db)

    async def load():
        result = await service.list_blogs(
            page=page, limit=limit, published=published, author_id=user.user_id,
            search=search, sort=sort
        )
        return result.to_dict()

    namespace = CacheNamespace.USER_BLOGS
    key = build_cache_key(namespace, params, scope=user.user_id)
    page_data = await cache.get_or_load(key, namespace.ttl(settings), load)
    return await _list_response(page_data, store, settings)


@router.get("/published")
async def list_published_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    sort: Optional[str] = None,
    search: Optional[str] = None,
    category: Optional[int] = None,
    tag: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    owner: TokenData = Depends(get_api_key_user)
):
    """API Key 持有者的已发布文章（供外部站点读取）"""
    page, limit = normalize_page(page, limit)
    # 与公开列表按作者筛选的查询等价，共用同一缓存键
    params = {
        "page": page, "limit": limit, "sort": sort, "search": search,
        "category": category, "tag": tag, "author": owner.user_id,
    }
    service = BlogService(db)

    async def load():
        result = await service.list_blogs(
            page=page, limit=limit, published=True, author_id=owner.user_id,
            search=search, category_id=category, tag=tag, sort=sort
        )
        return result.to_dict()

    namespace = CacheNamespace.BLOGS
    page_data = await cache.get_or_load(build_cache_key(namespace, params), namespace.ttl(settings), load)
    return await _list_response(page_data, store, settings)


@router.get("/trending/today")
async def trending_today(
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings)
):
    """今日热门文章（按今日浏览量取前 10）"""
    service = BlogService(db)
    namespace = CacheNamespace.BLOGS
    items = await cache.get_or_load(
        build_cache_key(namespace, {"view": "trending_today"}),
        namespace.ttl(settings),
        service.trending_today
    )
    return success(await attach_banner_urls(items, store, settings))


# ============ 详情接口 ============

@router.get("/{id_or_slug}")
async def get_blog(
    id_or_slug: str,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """
    获取文章详情（ID 或 slug）

    已发布文章每次成功读取都记录一次浏览（无论是否命中缓存）；
    草稿只有作者本人可见，且不记录浏览
    """
    ident = id_or_slug.strip().lower()
    service = BlogService(db)

    async def load():
        blog = await service.get_by_id_or_slug(ident)
        if blog is None:
            raise NotFoundException("文章", ident)
        return BlogInfo.from_blog(blog).model_dump(mode="json")

    namespace = CacheNamespace.BLOG
    key = build_cache_key(namespace, scope=ident)
    payload = await cache.get_or_load(key, namespace.ttl(settings), load)

    if not payload["published"]:
        if user is None or user.user_id != payload["author_id"]:
            raise NotFoundException("文章", ident)
    else:
        try:
            await service.record_view(payload["id"], payload["author_id"])
        except NotFoundException:
            # 删除与缓存回填交错时留下的旧详情
            logger.info(f"文章已不存在，清除缓存: {key}")
            await cache.delete(key)
            raise

    return success((await attach_banner_urls([payload], store, settings))[0])


@router.get("/{blog_id}/views")
async def list_blog_views(
    blog_id: int,
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
):
    """获取文章的浏览记录（仅作者）"""
    service = BlogService(db)
    await service.get_owned_blog(blog_id, user.user_id)
    views = await service.list_views(blog_id)
    return success({
        "blog_id": blog_id,
        "total": len(views),
        "views": [ViewInfo.model_validate(v).model_dump(mode="json") for v in views]
    })


# ============ 写接口 ============

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_blog(
    data: BlogCreate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    user: TokenData = Depends(get_current_user)
):
    """创建文章（slug 由标题生成）"""
    service = BlogService(db)
    blog = await service.create_blog(data, user.user_id)

    await invalidator.blog_changed(blog.id, blog.author_id, blog.slug)
    await invalidator.category_changed()
    return created(await _blog_payload(blog, store, settings), "文章创建成功")


@router.patch("/{blog_id}")
async def update_blog(
    blog_id: int,
    data: BlogUpdate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    user: TokenData = Depends(get_current_user)
):
    """更新文章（仅作者）"""
    service = BlogService(db)
    blog = await service.get_owned_blog(blog_id, user.user_id)
    old_category_id = blog.category_id

    blog = await service.update_blog(blog, data)

    await invalidator.blog_changed(blog.id, blog.author_id, blog.slug)
    if blog.category_id != old_category_id:
        await invalidator.category_changed()
    return success(await _blog_payload(blog, store, settings), "文章更新成功")


@router.put("/{blog_id}/banner")
async def upload_banner(
    blog_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    user: TokenData = Depends(get_current_user)
):
    """上传文章横幅（仅作者）"""
    service = BlogService(db)
    blog = await service.get_owned_blog(blog_id, user.user_id)

    content = await file.read()
    store.validate_image(file.filename, content)
    bucket = settings.blob_bucket_banners
    key = store.new_key(file.filename)
    await store.put(bucket, key, content, file.content_type)

    try:
        old_key = await service.set_banner(blog, key)
    except Exception:
        await discard_blob(store, bucket, key)
        raise

    await discard_blob(store, bucket, old_key)
    await invalidator.blog_changed(blog.id, blog.author_id, blog.slug)
    blog = await service.get_blog(blog_id)
    return success(await _blog_payload(blog, store, settings), "横幅上传成功")


@router.delete("/{blog_id}")
async def delete_blog(
    blog_id: int,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    user: TokenData = Depends(get_current_user)
):
    """删除文章（仅作者）"""
    service = BlogService(db)
    blog = await service.get_owned_blog(blog_id, user.user_id)
    author_id, slug, banner_key = blog.author_id, blog.slug, blog.banner_key

    await service.delete_blog(blog)

    await discard_blob(store, settings.blob_bucket_banners, banner_key)
    await invalidator.blog_changed(blog_id, author_id, slug)
    await invalidator.category_changed()
    return success(message="删除成功")
