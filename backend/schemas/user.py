"""
用户列表数据验证
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


# 允许排序的字段（sort=-created_at,username）
USER_SORT_FIELDS = ("created_at", "updated_at", "username", "full_name", "followers_count", "blog_count")


class UserListItem(BaseModel):
    """用户列表项"""
    id: int
    username: str
    full_name: str
    bio: Optional[str] = None
    blog_count: int
    followers_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UsernameAvailability(BaseModel):
    """用户名可用性"""
    username: str
    available: bool
