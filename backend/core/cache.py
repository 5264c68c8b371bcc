"""
Redis 缓存系统
提供统一的缓存接口（读穿透缓存，故障时降级为未命中）
"""

import json
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, Union

import redis.asyncio as redis
from fastapi import Request

from .cache_keys import CacheKey
from .config import Settings

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = "*?[]\\"


def _escape_glob(text: str) -> str:
    """转义 SCAN MATCH 中的通配符"""
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIAL else ch for ch in text)


async def init_cache(settings: Settings) -> "Cache":
    """初始化 Redis 连接，失败时返回禁用状态的缓存"""
    if not settings.cache_enabled:
        logger.info("缓存已通过配置禁用")
        return Cache(None)

    client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.redis_password,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5
    )
    try:
        # 测试连接
        await client.ping()
        logger.info(f"Redis 连接成功: {settings.redis_host}:{settings.redis_port}")
        return Cache(client)
    except Exception as e:
        logger.warning(f"Redis 连接失败，缓存功能已禁用: {e}")
        await client.aclose()
        return Cache(None)


class Cache:
    """
    缓存操作类

    缓存只是加速器，不是数据源：所有异常都在此处记录并吞掉，
    读操作按未命中处理，写/删操作返回 False。
    """

    def __init__(self, client: Optional[redis.Redis]):
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def close(self):
        """关闭 Redis 连接"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis 连接已关闭")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.error(f"Redis 健康检查失败: {e}")
            return False

    async def get(self, key: Union[str, CacheKey], default: Any = None) -> Any:
        """
        获取缓存值

        Args:
            key: 缓存键
            default: 默认值（如果键不存在）

        Returns:
            缓存值或默认值
        """
        if self._client is None:
            return default

        key = str(key)
        try:
            value = await self._client.get(key)
        except Exception as e:
            logger.error(f"获取缓存失败 {key}: {e}")
            return default

        if value is None:
            return default
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    async def set(
        self,
        key: Union[str, CacheKey],
        value: Any,
        expire: Optional[Union[int, timedelta]] = None
    ) -> bool:
        """
        设置缓存值

        Args:
            key: 缓存键
            value: 缓存值（会自动序列化为 JSON）
            expire: 过期时间（秒或 timedelta 对象）

        Returns:
            是否设置成功
        """
        if self._client is None:
            return False

        key = str(key)
        try:
            serialized = json.dumps(value, ensure_ascii=False)
            if expire is None:
                await self._client.set(key, serialized)
            elif isinstance(expire, timedelta):
                await self._client.setex(key, int(expire.total_seconds()), serialized)
            else:
                await self._client.setex(key, expire, serialized)
            return True
        except Exception as e:
            logger.error(f"设置缓存失败 {key}: {e}")
            return False

    async def delete(self, key: Union[str, CacheKey]) -> bool:
        """删除缓存"""
        if self._client is None:
            return False

        key = str(key)
        try:
            await self._client.delete(key)
            return True
        except Exception as e:
            logger.error(f"删除缓存失败 {key}: {e}")
            return False

    async def delete_by_prefix(self, prefix: str) -> int:
        """
        按前缀删除缓存键

        Args:
            prefix: 键前缀（不含通配符）

        Returns:
            删除的键数量
        """
        if self._client is None:
            return 0

        pattern = f"{_escape_glob(prefix)}*"
        try:
            count = 0
            async for key in self._client.scan_iter(match=pattern):
                await self._client.delete(key)
                count += 1
            logger.debug(f"按前缀清除缓存 {prefix}: {count} 个")
            return count
        except Exception as e:
            logger.error(f"按前缀删除缓存失败 {prefix}: {e}")
            return 0

    async def get_or_load(
        self,
        key: CacheKey,
        ttl: int,
        loader: Callable[[], Awaitable[Any]]
    ) -> Any:
        """
        读穿透缓存

        命中时直接返回缓存内容，不访问数据库；
        未命中时调用 loader 查询数据库，写入缓存后返回。
        loader 返回的数据必须可 JSON 序列化。
        """
        sentinel = object()
        cached = await self.get(key, default=sentinel)
        if cached is not sentinel:
            logger.debug(f"缓存命中: {key}")
            return cached

        logger.debug(f"缓存未命中: {key}")
        payload = await loader()
        await self.set(key, payload, expire=ttl)
        return payload


def get_cache(request: Request) -> Cache:
    """获取缓存实例（依赖注入用）"""
    return request.app.state.cache
