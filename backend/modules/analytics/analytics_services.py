"""
统计分析业务逻辑
只读查询，统计范围为当前用户名下的文章与收到的消息
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Message
from modules.blog.blog_models import Blog, View

from .analytics_schemas import (
    BlogStats, DailyViews, DetailedView, MessageStats,
    PerformanceMetrics, QuarterViews, TopBlog,
)

# 季度与图表颜色
QUARTERS = (
    ("Q1", 1, "#FF6B6B"),
    ("Q2", 4, "#4ECDC4"),
    ("Q3", 7, "#45B7D1"),
    ("Q4", 10, "#96CEB4"),
)

# 超过一周才读的消息不计入平均响应时间
MAX_RESPONSE_HOURS = 168


def round_half_up(value: float, digits: int = 1) -> float:
    """四舍五入（0.5 向上取整）"""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def growth_rate(current: int, previous: int) -> float:
    """环比增长率（百分比，保留一位小数）；上期为 0 时有增长记 100"""
    if previous > 0:
        return round_half_up((current - previous) / previous * 100)
    return 100.0 if current > 0 else 0.0


def average_response_hours(pairs: Iterable[Tuple[datetime, datetime]]) -> float:
    """
    平均响应时间（小时）

    pairs 为 (创建时间, 已读时间)；只统计 0 到 168 小时之间的值
    """
    total = 0.0
    count = 0
    for created_at, read_at in pairs:
        if not created_at or not read_at:
            continue
        hours = (read_at - created_at).total_seconds() / 3600
        if 0 < hours < MAX_RESPONSE_HOURS:
            total += hours
            count += 1
    return round_half_up(total / count) if count else 0.0


def last_days(days: int, today: Optional[date] = None) -> List[date]:
    """最近 days 天（含今天），按时间正序"""
    today = today or datetime.now().date()
    return [today - timedelta(days=i) for i in range(days - 1, -1, -1)]


def quarter_ranges(year: int) -> List[Tuple[str, datetime, datetime, str]]:
    """某年四个季度的 [开始, 结束) 区间"""
    ranges = []
    for label, month, color in QUARTERS:
        start = datetime(year, month, 1)
        end = datetime(year + 1, 1, 1) if month == 10 else datetime(year, month + 3, 1)
        ranges.append((label, start, end, color))
    return ranges


def _day_key(value) -> str:
    # SQLite 返回字符串，MySQL 返回 date
    return value.isoformat() if isinstance(value, date) else str(value)


class AnalyticsService:
    """统计分析服务"""

    def __init__(self, db: AsyncSession, user_id: int):
        self.db = db
        self.user_id = user_id

    def _own_blog_ids(self):
        return select(Blog.id).where(Blog.author_id == self.user_id)

    async def _views_per_day(self, since: datetime, blog_id: Optional[int] = None) -> Dict[str, int]:
        day = func.date(View.created_at)
        query = select(day, func.count(View.id)).where(View.created_at >= since)
        if blog_id is None:
            query = query.where(View.blog_id.in_(self._own_blog_ids()))
        else:
            query = query.where(View.blog_id == blog_id)
        result = await self.db.execute(query.group_by(day))
        return {_day_key(row[0]): row[1] for row in result.all()}

    async def _count_views(self, start: datetime, end: Optional[datetime] = None) -> int:
        query = select(func.count(View.id)).where(
            View.blog_id.in_(self._own_blog_ids()),
            View.created_at >= start
        )
        if end is not None:
            query = query.where(View.created_at < end)
        return (await self.db.execute(query)).scalar() or 0

    async def _count_messages(self, start: datetime, end: Optional[datetime] = None) -> int:
        query = select(func.count(Message.id)).where(
            Message.receiver_id == self.user_id,
            Message.created_at >= start
        )
        if end is not None:
            query = query.where(Message.created_at < end)
        return (await self.db.execute(query)).scalar() or 0

    async def _response_time(self, since: Optional[datetime] = None, limit: int = 100) -> float:
        query = select(Message.created_at, Message.updated_at).where(
            Message.receiver_id == self.user_id,
            Message.read.is_(True)
        )
        if since is not None:
            query = query.where(Message.created_at >= since)
        result = await self.db.execute(query.order_by(Message.id.desc()).limit(limit))
        return average_response_hours(result.all())

    # ============ 文章统计 ============

    async def blog_stats(self) -> BlogStats:
        """文章总览：数量、总浏览/点赞、近 7 天浏览量、浏览量前 5 的文章"""
        totals = await self.db.execute(
            select(Blog.published, func.count(Blog.id), func.sum(Blog.views_count), func.sum(Blog.likes_count))
            .where(Blog.author_id == self.user_id)
            .group_by(Blog.published)
        )
        published = drafts = total_views = total_likes = 0
        for is_published, count, views, likes in totals.all():
            if is_published:
                published = count
            else:
                drafts = count
            total_views += views or 0
            total_likes += likes or 0

        days = last_days(7)
        since = datetime.combine(days[0], time.min)
        per_day = await self._views_per_day(since)
        weekly_views = [per_day.get(d.isoformat(), 0) for d in days]

        top = await self.db.execute(
            select(Blog.id, Blog.title, Blog.views_count)
            .where(Blog.author_id == self.user_id)
            .order_by(Blog.views_count.desc(), Blog.id.desc())
            .limit(5)
        )
        top_blogs = []
        for row in top.all():
            blog_days = await self._views_per_day(since, blog_id=row.id)
            top_blogs.append(TopBlog(
                blog_id=row.id,
                title=row.title,
                views_count=row.views_count,
                daily_views=[blog_days.get(d.isoformat(), 0) for d in days]
            ))

        return BlogStats(
            total_blogs=published + drafts,
            published_blogs=published,
            draft_blogs=drafts,
            total_views=total_views,
            total_likes=total_likes,
            weekly_views=weekly_views,
            top_blogs=top_blogs
        )

    async def daily_views(self, days: int = 30) -> List[DailyViews]:
        """最近 days 天（含今天）每天的浏览量，只返回有浏览的日期"""
        since = datetime.combine(last_days(days)[0], time.min)
        per_day = await self._views_per_day(since)
        return [DailyViews(date=d, total_views=n) for d, n in sorted(per_day.items())]

    async def detailed_views(self, days: int = 30) -> List[DetailedView]:
        """最近 days 天的浏览记录"""
        since = datetime.combine(last_days(days)[0], time.min)
        result = await self.db.execute(
            select(View.id, View.blog_id, Blog.title, View.created_at)
            .join(Blog, Blog.id == View.blog_id)
            .where(Blog.author_id == self.user_id, View.created_at >= since)
            .order_by(View.created_at.desc(), View.id.desc())
        )
        return [
            DetailedView(id=row.id, blog_id=row.blog_id, title=row.title, created_at=row.created_at)
            for row in result.all()
        ]

    async def quarterly_views(self, year: Optional[int] = None) -> List[QuarterViews]:
        """本年度各季度浏览量"""
        year = year or datetime.now().year
        quarters = []
        for label, start, end, color in quarter_ranges(year):
            quarters.append(QuarterViews(label=label, value=await self._count_views(start, end), color=color))
        return quarters

    # ============ 消息统计 ============

    async def message_stats(self) -> MessageStats:
        """消息总览"""
        counts = await self.db.execute(
            select(Message.read, func.count(Message.id))
            .where(Message.receiver_id == self.user_id)
            .group_by(Message.read)
        )
        by_read = {bool(row[0]): row[1] for row in counts.all()}

        now = datetime.now()
        days = last_days(7, now.date())
        day = func.date(Message.created_at)
        per_day_result = await self.db.execute(
            select(day, func.count(Message.id))
            .where(
                Message.receiver_id == self.user_id,
                Message.created_at >= datetime.combine(days[0], time.min)
            )
            .group_by(day)
        )
        per_day = {_day_key(row[0]): row[1] for row in per_day_result.all()}

        return MessageStats(
            total_messages=sum(by_read.values()),
            unread_messages=by_read.get(False, 0),
            messages_this_week=await self._count_messages(now - timedelta(days=7)),
            messages_by_day=[per_day.get(d.isoformat(), 0) for d in days],
            response_time=await self._response_time()
        )

    # ============ 周环比 ============

    async def performance(self) -> PerformanceMetrics:
        """最近 7 天与前 7 天对比"""
        now = datetime.now()
        week_start = now - timedelta(days=7)
        two_weeks_start = now - timedelta(days=14)

        views_this_week = await self._count_views(week_start)
        views_last_week = await self._count_views(two_weeks_start, week_start)
        messages_this_week = await self._count_messages(week_start)
        messages_last_week = await self._count_messages(two_weeks_start, week_start)

        likes = await self.db.execute(
            select(func.sum(Blog.likes_count)).where(Blog.author_id == self.user_id)
        )

        return PerformanceMetrics(
            views_this_week=views_this_week,
            views_last_week=views_last_week,
            view_growth_rate=growth_rate(views_this_week, views_last_week),
            likes=likes.scalar() or 0,
            messages_this_week=messages_this_week,
            messages_last_week=messages_last_week,
            message_growth_rate=growth_rate(messages_this_week, messages_last_week),
            response_time=await self._response_time(since=week_start, limit=50)
        )
