"""
消息 Schema
"""

import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime

from .auth import normalize_email


class MessageInfo(BaseModel):
    """消息"""
    id: int
    sender_email: str
    sender_name: str
    receiver_id: int
    subject: str
    body: str
    read: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    """发送消息请求（接收者为 API Key 持有者）"""
    sender_email: str = Field(..., max_length=120)
    name: str = Field(..., min_length=1, max_length=100)
    subject: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=5000)

    @field_validator('sender_email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

    @field_validator('name', 'subject')
    @classmethod
    def collapse_whitespace(cls, v):
        v = re.sub(r'\s+', ' ', v.strip())
        if not v:
            raise ValueError('不能为空')
        return v


class MessageUpdate(BaseModel):
    """更新消息请求"""
    read: bool = True


class UnreadCount(BaseModel):
    """未读数量"""
    unread_count: int


# 允许排序的字段
MESSAGE_SORT_FIELDS = ("created_at", "updated_at", "subject", "read")
