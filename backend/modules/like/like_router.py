"""
点赞API路由
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.invalidation import CacheInvalidator, get_invalidator
from core.security import TokenData, get_current_user, get_optional_user
from schemas import created, success

from .like_schemas import LikeStatus
from .like_services import LikeService

router = APIRouter()


@router.post("/{blog_id}", status_code=status.HTTP_201_CREATED)
async def like_blog(
    blog_id: int,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    user: TokenData = Depends(get_current_user)
):
    """点赞文章"""
    service = LikeService(db)
    blog = await service.like(user.user_id, blog_id)
    await invalidator.like_changed(blog.id, blog.slug, blog.author_id)
    return created(
        LikeStatus(blog_id=blog.id, likes_count=blog.likes_count).model_dump(),
        "点赞成功"
    )


@router.delete("/{blog_id}")
async def unlike_blog(
    blog_id: int,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    user: TokenData = Depends(get_current_user)
):
    """取消点赞"""
    service = LikeService(db)
    blog = await service.unlike(user.user_id, blog_id)
    await invalidator.like_changed(blog.id, blog.slug, blog.author_id)
    return success(
        LikeStatus(blog_id=blog.id, likes_count=blog.likes_count).model_dump(),
        "已取消点赞"
    )


@router.get("/{blog_id}")
async def list_likes(
    blog_id: int,
    db: AsyncSession = Depends(get_db),
    user: Optional[TokenData] = Depends(get_optional_user)
):
    """获取文章的点赞者（草稿仅作者可查看）"""
    service = LikeService(db)
    likers = await service.list_likers(blog_id, user.user_id if user else None)
    return success([l.model_dump(mode="json") for l in likers])
