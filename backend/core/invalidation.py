"""
缓存失效策略
写操作提交后，删除所有可能已过期的缓存条目

只在事务提交成功后调用；缓存不可用时仅记录日志，不影响写操作结果，
过期数据最多保留到对应命名空间的 TTL 结束。
"""

import logging
from typing import Any, Optional

from fastapi import Request

from .cache import Cache
from .cache_keys import CacheNamespace, build_cache_key, namespace_prefix, scope_prefix

logger = logging.getLogger(__name__)


class CacheInvalidator:
    """按写操作类型清除相关缓存"""

    def __init__(self, cache: Cache):
        self.cache = cache

    async def _delete(self, namespace: CacheNamespace, scope: Any = None) -> None:
        await self.cache.delete(build_cache_key(namespace, scope=scope))

    async def _sweep(self, namespace: CacheNamespace) -> None:
        # 无参数的列表键与带参数的列表键一并清除
        await self.cache.delete(build_cache_key(namespace))
        removed = await self.cache.delete_by_prefix(namespace_prefix(namespace))
        logger.debug(f"清除命名空间 {namespace.value}: {removed} 个键")

    async def _sweep_scope(self, namespace: CacheNamespace, scope: Any) -> None:
        await self.cache.delete(build_cache_key(namespace, scope=scope))
        removed = await self.cache.delete_by_prefix(scope_prefix(namespace, scope))
        logger.debug(f"清除 {namespace.value}:{scope}: {removed} 个键")

    async def blog_changed(
        self,
        blog_id: int,
        author_id: int,
        slug: Optional[str] = None
    ) -> None:
        """文章创建/编辑/删除/更换横幅"""
        try:
            await self._delete(CacheNamespace.BLOG, blog_id)
            if slug:
                await self._delete(CacheNamespace.BLOG, slug)
            await self._sweep(CacheNamespace.BLOGS)
            await self._sweep_scope(CacheNamespace.USER_BLOGS, author_id)
            await self._delete(CacheNamespace.USER, author_id)
        except Exception as e:
            logger.error(f"文章缓存失效失败 (ID: {blog_id}): {e}")

    async def category_changed(self) -> None:
        """分类创建/更新/删除"""
        try:
            await self._delete(CacheNamespace.CATEGORIES)
        except Exception as e:
            logger.error(f"分类缓存失效失败: {e}")

    async def user_changed(self, user_id: int) -> None:
        """用户资料/密码/头像/API Key 变更"""
        try:
            await self._delete(CacheNamespace.USER, user_id)
            await self._sweep(CacheNamespace.USERS)
        except Exception as e:
            logger.error(f"用户缓存失效失败 (ID: {user_id}): {e}")

    async def messages_changed(self, receiver_id: int) -> None:
        """消息发送/已读/删除"""
        try:
            await self._sweep_scope(CacheNamespace.USER_MESSAGES, receiver_id)
            await self._delete(CacheNamespace.UNREAD_COUNT, receiver_id)
        except Exception as e:
            logger.error(f"消息缓存失效失败 (接收者: {receiver_id}): {e}")

    async def follow_changed(self, followed_id: int) -> None:
        """关注/取消关注（被关注者的粉丝数变化）"""
        try:
            await self._delete(CacheNamespace.USER, followed_id)
        except Exception as e:
            logger.error(f"关注缓存失效失败 (ID: {followed_id}): {e}")

    async def like_changed(self, blog_id: int, slug: str, author_id: int) -> None:
        """点赞/取消点赞（文章与作者的点赞数变化）"""
        try:
            await self._delete(CacheNamespace.BLOG, blog_id)
            await self._delete(CacheNamespace.BLOG, slug)
            await self._delete(CacheNamespace.USER, author_id)
        except Exception as e:
            logger.error(f"点赞缓存失效失败 (文章: {blog_id}): {e}")


def get_invalidator(request: Request) -> CacheInvalidator:
    """获取缓存失效器（依赖注入用）"""
    return request.app.state.invalidator
