"""
点赞业务逻辑
文章 likes_count 与作者 likes_count 随点赞行在同一事务内增减
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictException, NotFoundException
from core.transaction import CounterDelta, MutationResult, run_mutation
from models import User
from modules.blog.blog_models import Blog

from .like_models import Like
from .like_schemas import LikerInfo

logger = logging.getLogger(__name__)

LIKE_CONFLICT_MESSAGE = "已经点赞过该文章"


class LikeService:
    """点赞服务"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_blog(self, blog_id: int) -> Blog:
        result = await self.db.execute(
            select(Blog)
            .where(Blog.id == blog_id)
            .execution_options(populate_existing=True)
        )
        blog = result.scalar_one_or_none()
        if not blog:
            raise NotFoundException("文章", blog_id)
        return blog

    async def _get_visible_blog(self, blog_id: int, viewer_id: Optional[int]) -> Blog:
        """获取文章；草稿只对作者本人可见，其他人一律视为不存在"""
        blog = await self._get_blog(blog_id)
        if not blog.published and blog.author_id != viewer_id:
            raise NotFoundException("文章", blog_id)
        return blog

    async def like(self, user_id: int, blog_id: int) -> Blog:
        """
        点赞文章

        重复点赞返回冲突；并发下的重复由唯一约束兜底，同样返回冲突
        """
        blog = await self._get_visible_blog(blog_id, user_id)

        existing = await self.db.execute(
            select(Like.id).where(Like.user_id == user_id, Like.blog_id == blog_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictException(LIKE_CONFLICT_MESSAGE)

        async def mutation():
            self.db.add(Like(user_id=user_id, blog_id=blog_id))

        await run_mutation(
            self.db,
            mutation,
            [
                CounterDelta(Blog, blog_id, "likes_count", 1),
                CounterDelta(User, blog.author_id, "likes_count", 1),
            ],
            conflict_message=LIKE_CONFLICT_MESSAGE
        )
        logger.info(f"用户 {user_id} 点赞文章 {blog_id}")
        return await self._get_blog(blog_id)

    async def unlike(self, user_id: int, blog_id: int) -> Blog:
        """取消点赞（不存在时返回 404）"""
        blog = await self._get_blog(blog_id)
        author_id = blog.author_id

        async def mutation():
            result = await self.db.execute(
                delete(Like).where(Like.user_id == user_id, Like.blog_id == blog_id)
            )
            if not result.rowcount:
                raise NotFoundException("点赞")
            return MutationResult(
                value=blog_id,
                deltas=[
                    CounterDelta(Blog, blog_id, "likes_count", -1),
                    CounterDelta(User, author_id, "likes_count", -1),
                ]
            )

        await run_mutation(self.db, mutation)
        logger.info(f"用户 {user_id} 取消点赞文章 {blog_id}")
        return await self._get_blog(blog_id)

    async def list_likers(self, blog_id: int, viewer_id: Optional[int] = None) -> List[LikerInfo]:
        """获取文章的点赞者（按点赞时间倒序）"""
        await self._get_visible_blog(blog_id, viewer_id)
        result = await self.db.execute(
            select(User.id, User.username, Like.created_at)
            .join(Like, Like.user_id == User.id)
            .where(Like.blog_id == blog_id)
            .order_by(Like.created_at.desc(), Like.id.desc())
        )
        return [
            LikerInfo(user_id=row.id, username=row.username, liked_at=row.created_at)
            for row in result.all()
        ]
