"""
博客数据验证模式
"""

import re
from datetime import datetime
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.text import normalize_tags


# 允许排序的字段（sort=-views_count,title）
BLOG_SORT_FIELDS = (
    "created_at", "updated_at", "published_at", "title", "views_count", "likes_count"
)


def _clean_tags(value) -> List[str]:
    tags = normalize_tags(value)
    # 标签只保留字母数字、下划线、空格和横线，最长 30 个字符
    cleaned = [re.sub(r'[^\w\s-]', '', tag)[:30].strip() for tag in tags]
    result: List[str] = []
    for tag in cleaned:
        if tag and tag not in result:
            result.append(tag)
    return result


def _clean_meta(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip()[:160]


# ============ 文章 ============

class BlogCreate(BaseModel):
    """创建文章"""
    title: str = Field(..., min_length=5, max_length=100)
    content: str = Field(..., min_length=20)
    meta: Optional[str] = None
    category_id: int
    tags: Union[List[str], str] = []
    featured: bool = False
    published: bool = False

    @field_validator('title', 'content')
    @classmethod
    def strip_text(cls, v):
        return v.strip()

    @field_validator('meta')
    @classmethod
    def validate_meta(cls, v):
        return _clean_meta(v)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v)


class BlogUpdate(BaseModel):
    """更新文章（slug 不随标题变化）"""
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    content: Optional[str] = Field(None, min_length=20)
    meta: Optional[str] = None
    category_id: Optional[int] = None
    tags: Optional[Union[List[str], str]] = None
    featured: Optional[bool] = None
    published: Optional[bool] = None

    @field_validator('title', 'content')
    @classmethod
    def strip_text(cls, v):
        return v.strip() if v is not None else v

    @field_validator('meta')
    @classmethod
    def validate_meta(cls, v):
        return _clean_meta(v)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v) if v is not None else v


class BlogListItem(BaseModel):
    """文章列表项（banner 为对象键，响应前解析为临时 URL）"""
    id: int
    title: str
    slug: str
    meta: Optional[str] = None
    banner: Optional[str] = None
    category_id: int
    author_id: int
    tags: List[str] = []
    published: bool
    featured: bool
    likes_count: int
    views_count: int
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_blog(cls, blog):
        item = cls.model_validate(blog)
        item.banner = blog.banner_key
        return item


class BlogInfo(BlogListItem):
    """文章详情"""
    content: str


class ViewInfo(BaseModel):
    """浏览记录"""
    id: int
    blog_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TrendingBlog(BaseModel):
    """今日热门文章"""
    id: int
    title: str
    slug: str
    banner: Optional[str] = None
    author_id: int
    views_today: int
