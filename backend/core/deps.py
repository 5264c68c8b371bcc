"""
依赖注入
提供全局可复用的依赖项（进程级资源均从 app.state 取得）
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .blob_store import LocalBlobStore, get_blob_store
from .cache import Cache, get_cache
from .config import Settings, get_settings
from .database import get_db
from .errors import AuthException
from .invalidation import CacheInvalidator, get_invalidator
from .security import TokenData, get_current_user, get_optional_user


# 重新导出常用依赖
__all__ = [
    "get_db",
    "get_cache",
    "get_blob_store",
    "get_invalidator",
    "get_settings",
    "get_current_user",
    "get_optional_user",
    "get_api_key_user",
    "Cache",
    "CacheInvalidator",
    "LocalBlobStore",
    "Settings",
    "TokenData",
]


async def get_api_key_user(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_db)
) -> TokenData:
    """通过 X-API-Key 请求头识别 Key 持有者"""
    from models import User

    if not x_api_key:
        raise AuthException("缺少 API Key")

    result = await db.execute(select(User).where(User.api_key == x_api_key))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthException("无效的 API Key")

    return TokenData(user_id=user.id, username=user.username, email=user.email)
