"""
统计分析API路由
所有接口仅统计当前登录用户的数据
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.security import TokenData, get_current_user
from schemas import success

from .analytics_services import AnalyticsService

router = APIRouter()


def get_service(
    db: AsyncSession = Depends(get_db),
    user: TokenData = Depends(get_current_user)
) -> AnalyticsService:
    return AnalyticsService(db, user.user_id)


@router.get("/blog-stats")
async def blog_stats(service: AnalyticsService = Depends(get_service)):
    """文章统计"""
    stats = await service.blog_stats()
    return success(stats.model_dump())


@router.get("/daily-views")
async def daily_views(
    days: int = Query(30, ge=1, le=365),
    service: AnalyticsService = Depends(get_service)
):
    """每日浏览量"""
    views = await service.daily_views(days)
    return success([v.model_dump() for v in views])


@router.get("/detailed-views")
async def detailed_views(
    days: int = Query(30, ge=1, le=365),
    service: AnalyticsService = Depends(get_service)
):
    """浏览明细"""
    views = await service.detailed_views(days)
    return success([v.model_dump(mode="json") for v in views])


@router.get("/messages")
async def message_stats(service: AnalyticsService = Depends(get_service)):
    """消息统计"""
    stats = await service.message_stats()
    return success(stats.model_dump())


@router.get("/performance")
async def performance(service: AnalyticsService = Depends(get_service)):
    """周环比指标"""
    metrics = await service.performance()
    return success(metrics.model_dump())


@router.get("/quarterly-views")
async def quarterly_views(service: AnalyticsService = Depends(get_service)):
    """季度浏览量"""
    quarters = await service.quarterly_views()
    return success([q.model_dump() for q in quarters])
