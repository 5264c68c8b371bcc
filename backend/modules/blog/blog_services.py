"""
博客业务逻辑
所有写操作经 run_mutation 与计数器增量在同一事务内提交
"""

import logging
from datetime import datetime, time
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.blob_store import LocalBlobStore, resolve_blob_url
from core.config import Settings
from core.errors import ConflictException, NotFoundException, PermissionException, ValidationException
from core.pagination import PageResult, build_order_by, paginate
from core.transaction import CounterDelta, MutationResult, run_mutation
from models import User
from modules.category.category_models import Category
from modules.like.like_models import Like
from utils.text import generate_slug

from .blog_models import Blog, BlogTag, View
from .blog_schemas import BLOG_SORT_FIELDS, BlogCreate, BlogListItem, BlogUpdate

logger = logging.getLogger(__name__)

SLUG_CONFLICT_MESSAGE = "已存在同名文章"


def is_canonical_id(value: str) -> bool:
    """是否为规范的文章 ID 写法（如 "5"，不含 "05" 或全角数字）"""
    return value.isascii() and value.isdigit() and str(int(value)) == value


class BlogService:
    """博客服务"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============ 查询 ============

    async def get_blog(self, blog_id: int) -> Optional[Blog]:
        """获取文章（总是从数据库重新加载）"""
        result = await self.db.execute(
            select(Blog)
            .where(Blog.id == blog_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id_or_slug(self, id_or_slug: str) -> Optional[Blog]:
        """
        通过 ID 或 slug 获取文章

        只有规范的十进制 ID（ASCII 数字、无前导零）按 ID 查找，
        其余一律按 slug 精确匹配，保证同一篇文章只对应 blog:<id> 与 blog:<slug> 两个缓存键
        """
        if is_canonical_id(id_or_slug):
            blog = await self.get_blog(int(id_or_slug))
            if blog:
                return blog
        result = await self.db.execute(
            select(Blog).where(Blog.slug == id_or_slug.lower())
        )
        return result.scalar_one_or_none()

    async def get_owned_blog(self, blog_id: int, user_id: int) -> Blog:
        """获取当前用户自己的文章"""
        blog = await self.get_blog(blog_id)
        if not blog:
            raise NotFoundException("文章", blog_id)
        if blog.author_id != user_id:
            raise PermissionException("只能操作自己的文章")
        return blog

    async def list_blogs(
        self,
        page: int = 1,
        limit: int = 10,
        published: Optional[bool] = True,
        author_id: Optional[int] = None,
        search: Optional[str] = None,
        category_id: Optional[int] = None,
        tag: Optional[str] = None,
        featured: Optional[bool] = None,
        sort: Optional[str] = None
    ) -> PageResult:
        """
        获取文章列表

        published=None 时包含草稿；items 为可 JSON 序列化的字典
        """
        query = select(Blog)
        conditions = []

        if published is not None:
            conditions.append(Blog.published.is_(published))
        if author_id is not None:
            conditions.append(Blog.author_id == author_id)
        if category_id is not None:
            conditions.append(Blog.category_id == category_id)
        if featured is not None:
            conditions.append(Blog.featured.is_(featured))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Blog.title.ilike(pattern),
                    Blog.content.ilike(pattern),
                    Blog.meta.ilike(pattern)
                )
            )
        # 标签筛选（子查询）
        if tag:
            tag_subquery = select(BlogTag.blog_id).where(BlogTag.tag == tag.strip().lower())
            conditions.append(Blog.id.in_(tag_subquery))

        if conditions:
            query = query.where(*conditions)
        query = query.order_by(*build_order_by(Blog, sort, BLOG_SORT_FIELDS, default="-updated_at"))

        return await paginate(
            self.db, query, page, limit,
            transformer=lambda b: BlogListItem.from_blog(b).model_dump(mode="json")
        )

    async def list_views(self, blog_id: int) -> List[View]:
        """获取文章的浏览记录"""
        result = await self.db.execute(
            select(View).where(View.blog_id == blog_id).order_by(View.created_at.desc(), View.id.desc())
        )
        return list(result.scalars().all())

    async def trending_today(self, limit: int = 10) -> List[dict]:
        """今日浏览量最高的已发布文章"""
        start_of_day = datetime.combine(datetime.now().date(), time.min)
        views_today = func.count(View.id).label("views_today")
        result = await self.db.execute(
            select(Blog.id, Blog.title, Blog.slug, Blog.banner_key, Blog.author_id, views_today)
            .join(View, View.blog_id == Blog.id)
            .where(Blog.published.is_(True), View.created_at >= start_of_day)
            .group_by(Blog.id, Blog.title, Blog.slug, Blog.banner_key, Blog.author_id)
            .order_by(views_today.desc(), Blog.id.desc())
            .limit(limit)
        )
        return [
            {
                "id": row.id,
                "title": row.title,
                "slug": row.slug,
                "banner": row.banner_key,
                "author_id": row.author_id,
                "views_today": row.views_today,
            }
            for row in result.all()
        ]

    # ============ 写操作 ============

    async def _ensure_category(self, category_id: int) -> None:
        result = await self.db.execute(select(Category.id).where(Category.id == category_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundException("分类", category_id)

    async def create_blog(self, data: BlogCreate, author_id: int) -> Blog:
        """
        创建文章

        计数器：分类 blog_count +1；已发布时作者 blog_count +1
        """
        slug = generate_slug(data.title)
        if not slug:
            raise ValidationException("标题中没有可用于生成链接的字符（仅支持字母、数字、空格和横线）")

        existing = await self.db.execute(select(Blog.id).where(Blog.slug == slug))
        if existing.scalar_one_or_none() is not None:
            raise ConflictException(SLUG_CONFLICT_MESSAGE)
        await self._ensure_category(data.category_id)

        blog = Blog(
            title=data.title,
            slug=slug,
            meta=data.meta,
            content=data.content,
            category_id=data.category_id,
            author_id=author_id,
            featured=data.featured,
            published=data.published,
            published_at=datetime.now() if data.published else None,
            likes_count=0,
            views_count=0,
            tag_rows=[BlogTag(tag=tag) for tag in data.tags]
        )

        async def mutation():
            self.db.add(blog)
            return blog

        deltas = [
            CounterDelta(Category, data.category_id, "blog_count", 1),
            CounterDelta(User, author_id, "blog_count", 1 if data.published else 0),
        ]
        await run_mutation(self.db, mutation, deltas, conflict_message=SLUG_CONFLICT_MESSAGE)
        logger.info(f"文章已创建: {blog.id} ({slug}) 作者 {author_id}")
        return await self.get_blog(blog.id)

    async def update_blog(self, blog: Blog, data: BlogUpdate) -> Blog:
        """
        更新文章

        - slug 创建后不变
        - published_at 只在首次发布时写入，取消发布时保留
        - 发布状态与分类用条件更新，按实际生效的行数计算计数器增量
        """
        update_data = data.model_dump(exclude_unset=True, exclude={"tags", "published", "category_id"})
        new_tags = data.tags
        publish = data.published
        new_category_id = data.category_id

        if new_category_id is not None and new_category_id != blog.category_id:
            await self._ensure_category(new_category_id)
        else:
            new_category_id = None

        blog_id = blog.id
        author_id = blog.author_id

        async def mutation():
            for key, value in update_data.items():
                # 只有 meta 允许显式清空
                if value is None and key != "meta":
                    continue
                setattr(blog, key, value)

            if new_tags is not None:
                self._replace_tags(blog, new_tags)

            deltas: List[CounterDelta] = []
            if publish is True:
                result = await self.db.execute(
                    update(Blog)
                    .where(Blog.id == blog_id, Blog.published.is_(False))
                    .values(
                        published=True,
                        published_at=func.coalesce(Blog.published_at, datetime.now())
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount:
                    deltas.append(CounterDelta(User, author_id, "blog_count", 1))
            elif publish is False:
                result = await self.db.execute(
                    update(Blog)
                    .where(Blog.id == blog_id, Blog.published.is_(True))
                    .values(published=False)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount:
                    deltas.append(CounterDelta(User, author_id, "blog_count", -1))

            if new_category_id is not None:
                old_category_id = blog.category_id
                result = await self.db.execute(
                    update(Blog)
                    .where(Blog.id == blog_id, Blog.category_id == old_category_id)
                    .values(category_id=new_category_id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount:
                    deltas.append(CounterDelta(Category, old_category_id, "blog_count", -1))
                    deltas.append(CounterDelta(Category, new_category_id, "blog_count", 1))

            return MutationResult(value=blog_id, deltas=deltas)

        await run_mutation(self.db, mutation)
        logger.info(f"文章已更新: {blog_id}")
        return await self.get_blog(blog_id)

    def _replace_tags(self, blog: Blog, tags: List[str]) -> None:
        """按差集增删标签行，保留未变化的行"""
        wanted = list(tags)
        kept = [row for row in blog.tag_rows if row.tag in wanted]
        existing = {row.tag for row in kept}
        blog.tag_rows = kept + [BlogTag(tag=tag) for tag in wanted if tag not in existing]

    async def set_banner(self, blog: Blog, banner_key: str) -> Optional[str]:
        """更换横幅，返回旧的对象键"""
        old_key = blog.banner_key

        async def mutation():
            blog.banner_key = banner_key
            return old_key

        await run_mutation(self.db, mutation)
        return old_key

    async def delete_blog(self, blog: Blog) -> None:
        """
        删除文章

        同一事务内删除标签、点赞和浏览记录，并扣减：
        分类 blog_count、作者 blog_count（已发布时）、作者 likes_count/view_count（按删除行数）
        """
        blog_id = blog.id
        author_id = blog.author_id
        category_id = blog.category_id

        async def mutation():
            current = await self.db.execute(select(Blog.published).where(Blog.id == blog_id))
            published = current.scalar_one_or_none()
            if published is None:
                raise NotFoundException("文章", blog_id)

            likes = await self.db.execute(delete(Like).where(Like.blog_id == blog_id))
            views = await self.db.execute(delete(View).where(View.blog_id == blog_id))
            await self.db.execute(delete(BlogTag).where(BlogTag.blog_id == blog_id))
            removed = await self.db.execute(delete(Blog).where(Blog.id == blog_id))
            if not removed.rowcount:
                raise NotFoundException("文章", blog_id)

            return MutationResult(
                value=blog_id,
                deltas=[
                    CounterDelta(Category, category_id, "blog_count", -1),
                    CounterDelta(User, author_id, "blog_count", -1 if published else 0),
                    CounterDelta(User, author_id, "likes_count", -(likes.rowcount or 0)),
                    CounterDelta(User, author_id, "view_count", -(views.rowcount or 0)),
                ]
            )

        # 已删除的行不能再被会话刷新
        self.db.expunge(blog)
        await run_mutation(self.db, mutation)
        logger.info(f"文章已删除: {blog_id}")

    async def record_view(self, blog_id: int, author_id: int) -> None:
        """
        记录一次浏览：写入浏览记录，文章 views_count 与作者 view_count 各 +1

        文章已被删除（缓存中仍有旧详情）时抛出 NotFoundException
        """
        async def mutation():
            exists = await self.db.execute(select(Blog.id).where(Blog.id == blog_id))
            if exists.scalar_one_or_none() is None:
                raise NotFoundException("文章", blog_id)
            self.db.add(View(blog_id=blog_id))

        await run_mutation(
            self.db,
            mutation,
            [
                CounterDelta(Blog, blog_id, "views_count", 1),
                CounterDelta(User, author_id, "view_count", 1),
            ]
        )


async def attach_banner_urls(items: List[dict], store: LocalBlobStore, settings: Settings) -> List[dict]:
    """
    为缓存取出的文章数据解析横幅临时 URL

    缓存中只保存对象键，每次响应前重新签名；返回新字典，不修改缓存数据
    """
    resolved = []
    for item in items:
        item = dict(item)
        item["banner"] = await resolve_blob_url(
            store, settings.blob_bucket_banners, item.get("banner"), settings.blob_url_expire_seconds
        )
        resolved.append(item)
    return resolved
