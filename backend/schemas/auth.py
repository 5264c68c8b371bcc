"""
认证数据验证
用户注册、登录、资料修改、令牌等
"""

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9_]+$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def normalize_username(v: str) -> str:
    """用户名：去空白、只允许字母数字下划线、统一小写"""
    v = v.strip()
    if len(v) < 3:
        raise ValueError('用户名至少需要 3 个字符')
    if not USERNAME_PATTERN.match(v):
        raise ValueError('用户名只能包含字母、数字和下划线')
    return v.lower()


def normalize_email(v: str) -> str:
    """邮箱：去空白、校验格式、统一小写"""
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError('请输入正确的邮箱地址')
    return v


def normalize_bio(v: Optional[str]) -> Optional[str]:
    """个人简介：合并连续空白，最多 500 字符"""
    if v is None:
        return None
    return re.sub(r'\s+', ' ', v.strip())[:500]


class UserCreate(BaseModel):
    """用户注册"""
    full_name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., max_length=50)
    email: str = Field(..., max_length=120)
    password: str = Field(..., min_length=8, max_length=72)
    bio: Optional[str] = None

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        v = re.sub(r'\s+', ' ', v.strip())
        if not v:
            raise ValueError('姓名不能为空')
        return v

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        return normalize_username(v)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v)

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, v):
        return normalize_bio(v)


class UserLogin(BaseModel):
    """用户登录"""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator('username')
    @classmethod
    def lower_username(cls, v):
        return v.strip().lower()


class UserUpdate(BaseModel):
    """用户资料更新（只更新提供的字段）"""
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    username: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=120)
    bio: Optional[str] = None

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        return normalize_username(v) if v is not None else v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v) if v is not None else v

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, v):
        return normalize_bio(v)


class PasswordChange(BaseModel):
    """修改密码"""
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=72)


class UserInfo(BaseModel):
    """用户信息（profile_image 为对象键，响应前解析为临时 URL）"""
    id: int
    username: str
    email: str
    full_name: str
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    blog_count: int
    followers_count: int
    view_count: int
    likes_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_user(cls, user) -> "UserInfo":
        info = cls.model_validate(user)
        info.profile_image = user.profile_image_key
        return info


class LoginResult(BaseModel):
    """登录结果"""
    token: str
    user_id: int


class ApiKeyInfo(BaseModel):
    """API Key 信息"""
    api_key: Optional[str] = None
