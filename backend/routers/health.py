"""
健康检查路由
数据库为必需组件，缓存为可选组件
"""

import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from core.cache import Cache, get_cache
from core.config import get_settings
from core.database import ping_db

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["健康检查"])


class ComponentHealth(BaseModel):
    """组件健康状态"""
    status: str  # healthy, degraded, unhealthy
    message: Optional[str] = None
    latency_ms: Optional[float] = None


class HealthStatus(BaseModel):
    """健康状态响应"""
    status: str
    version: str
    timestamp: str
    components: dict


async def check_database(request: Request) -> ComponentHealth:
    """检查数据库连接"""
    start = time.time()
    try:
        await ping_db(request.app.state.engine)
        return ComponentHealth(
            status="healthy",
            message="数据库连接正常",
            latency_ms=round((time.time() - start) * 1000, 2)
        )
    except Exception as e:
        logger.error(f"数据库健康检查失败: {e}")
        return ComponentHealth(
            status="unhealthy",
            message=f"数据库连接失败: {str(e)}"
        )


async def check_cache(cache: Cache) -> ComponentHealth:
    """检查缓存连接"""
    if not cache.enabled:
        return ComponentHealth(status="degraded", message="缓存未启用（可选组件）")

    start = time.time()
    if await cache.ping():
        return ComponentHealth(
            status="healthy",
            message="Redis连接正常",
            latency_ms=round((time.time() - start) * 1000, 2)
        )
    return ComponentHealth(status="degraded", message="Redis连接失败")


@router.get("/health")
async def health_check(request: Request, cache: Cache = Depends(get_cache)):
    """
    健康检查端点

    数据库不可用时整体为 unhealthy；缓存不可用只降级为 degraded
    """
    db_health = await check_database(request)
    cache_health = await check_cache(cache)

    if db_health.status == "unhealthy":
        overall_status = "unhealthy"
    elif cache_health.status != "healthy":
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return HealthStatus(
        status=overall_status,
        version=settings.app_version,
        timestamp=datetime.now().isoformat(),
        components={
            "database": db_health.model_dump(),
            "cache": cache_health.model_dump()
        }
    ).model_dump()
