"""
关注API路由
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.blob_store import LocalBlobStore, get_blob_store, resolve_blob_url
from core.config import Settings, get_settings
from core.database import get_db
from core.errors import ValidationException
from core.invalidation import CacheInvalidator, get_invalidator
from core.security import TokenData, get_current_user, get_optional_user
from schemas import created, success

from .follow_schemas import FollowStatus, FollowType
from .follow_services import FollowService

router = APIRouter()


@router.post("/{followed_id}", status_code=status.HTTP_201_CREATED)
async def follow_user(
    followed_id: int,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    user: TokenData = Depends(get_current_user)
):
    """关注用户"""
    service = FollowService(db)
    followed = await service.follow(user.user_id, followed_id)
    await invalidator.follow_changed(followed_id)
    return created(
        FollowStatus(followed_id=followed.id, followers_count=followed.followers_count).model_dump(),
        "关注成功"
    )


@router.delete("/{followed_id}")
async def unfollow_user(
    followed_id: int,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    user: TokenData = Depends(get_current_user)
):
    """取消关注"""
    service = FollowService(db)
    followed = await service.unfollow(user.user_id, followed_id)
    await invalidator.follow_changed(followed_id)
    return success(
        FollowStatus(followed_id=followed.id, followers_count=followed.followers_count).model_dump(),
        "已取消关注"
    )


@router.get("")
async def list_follows(
    type: FollowType = Query(...),
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """获取粉丝列表或关注列表（未指定 user_id 时取当前用户）"""
    target_id = user_id if user_id is not None else (user.user_id if user else None)
    if target_id is None:
        raise ValidationException("缺少 user_id 参数或登录凭据")

    service = FollowService(db)
    follows = await service.list_follows(target_id, type)

    items = []
    for f in follows:
        item = f.model_dump(mode="json")
        item["profile_image"] = await resolve_blob_url(
            store, settings.blob_bucket_profiles, f.profile_image, settings.blob_url_expire_seconds
        )
        items.append(item)
    return success(items)
