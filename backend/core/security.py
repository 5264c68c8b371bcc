"""
统一鉴权模块
提供JWT令牌生成、验证和密码处理功能
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from .config import get_settings
from .errors import AuthException

settings = get_settings()

# Bearer令牌认证（缺失时由本模块抛出 401，而不是框架默认的 403）
security = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    """令牌数据"""
    user_id: int
    username: str
    email: str


def hash_password(password: str) -> str:
    """
    加密密码
    bcrypt 限制密码长度不超过 72 字节
    """
    # 确保密码是字符串
    if not isinstance(password, str):
        password = str(password)

    # bcrypt 限制：密码不能超过 72 字节
    password_bytes = password.encode('utf-8')[:72]

    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    if not isinstance(plain_password, str):
        plain_password = str(plain_password)

    password_bytes = plain_password.encode('utf-8')[:72]
    hashed_bytes = hashed_password.encode('utf-8')

    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        # 存储的哈希格式损坏
        return False


def generate_api_key() -> str:
    """生成 API Key（64 位十六进制）"""
    return secrets.token_hex(32)


def create_token(data: TokenData, expires_delta: Optional[timedelta] = None) -> str:
    """
    创建JWT令牌

    Args:
        data: 令牌数据
        expires_delta: 过期时间增量（默认使用配置值）
    """
    to_encode = data.model_dump()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode.update({
        "exp": expire,
        "type": "access"
    })

    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[TokenData]:
    """解码JWT令牌，无效或过期时返回 None"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    try:
        return TokenData(
            user_id=payload["user_id"],
            username=payload["username"],
            email=payload["email"]
        )
    except (KeyError, ValueError):
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenData:
    """获取当前用户（依赖注入用）"""
    if credentials is None:
        raise AuthException("请先登录")

    token_data = decode_token(credentials.credentials)
    if token_data is None:
        raise AuthException("无效的认证凭据")

    return token_data


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenData]:
    """获取当前用户（可选，未登录返回 None）"""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)
