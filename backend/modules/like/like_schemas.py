"""
点赞数据验证模式
"""

from datetime import datetime
from pydantic import BaseModel


class LikerInfo(BaseModel):
    """点赞者"""
    user_id: int
    username: str
    liked_at: datetime


class LikeStatus(BaseModel):
    """点赞操作结果"""
    blog_id: int
    likes_count: int
