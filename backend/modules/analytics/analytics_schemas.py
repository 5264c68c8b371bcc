"""
统计分析数据模式
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel


class TopBlog(BaseModel):
    """热门文章及其近 7 天每日浏览量"""
    blog_id: int
    title: str
    views_count: int
    daily_views: List[int]


class BlogStats(BaseModel):
    """文章统计"""
    total_blogs: int
    published_blogs: int
    draft_blogs: int
    total_views: int
    total_likes: int
    weekly_views: List[int]
    top_blogs: List[TopBlog]


class DailyViews(BaseModel):
    """某一天的浏览量"""
    date: str
    total_views: int


class DetailedView(BaseModel):
    """浏览记录（含文章标题）"""
    id: int
    blog_id: int
    title: str
    created_at: datetime


class MessageStats(BaseModel):
    """消息统计"""
    total_messages: int
    unread_messages: int
    messages_this_week: int
    messages_by_day: List[int]
    response_time: float


class PerformanceMetrics(BaseModel):
    """周环比指标"""
    views_this_week: int
    views_last_week: int
    view_growth_rate: float
    likes: int
    messages_this_week: int
    messages_last_week: int
    message_growth_rate: float
    response_time: float


class QuarterViews(BaseModel):
    """季度浏览量"""
    label: str
    value: int
    color: str
