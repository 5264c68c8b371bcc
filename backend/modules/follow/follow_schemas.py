"""
关注关系数据验证模式
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class FollowType(str, Enum):
    """关注列表类型"""
    FOLLOWERS = "followers"
    FOLLOWING = "following"


class FollowUser(BaseModel):
    """关注列表中的用户"""
    user_id: int
    username: str
    full_name: str
    profile_image: Optional[str] = None
    followed_at: datetime


class FollowStatus(BaseModel):
    """关注操作结果"""
    followed_id: int
    followers_count: int
