"""
数据验证模式目录
"""

from .auth import (
    UserCreate, UserLogin, UserUpdate, UserInfo, PasswordChange,
    LoginResult, ApiKeyInfo
)
from .user import UserListItem, UsernameAvailability, USER_SORT_FIELDS
from .message import (
    MessageInfo, MessageCreate, MessageUpdate,
    UnreadCount, MESSAGE_SORT_FIELDS
)
from .response import ApiResponse, Pagination, PageData, success, created, error, paginate

__all__ = [
    # 认证
    "UserCreate", "UserLogin", "UserUpdate", "UserInfo", "PasswordChange",
    "LoginResult", "ApiKeyInfo",
    # 用户
    "UserListItem", "UsernameAvailability", "USER_SORT_FIELDS",
    # 消息
    "MessageInfo", "MessageCreate", "MessageUpdate",
    "UnreadCount", "MESSAGE_SORT_FIELDS",
    # 响应
    "ApiResponse", "Pagination", "PageData", "success", "created", "error", "paginate"
]
