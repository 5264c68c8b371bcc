"""
令牌路由
API Key 的生成、查看、吊销，以及会话令牌对应的身份
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.errors import ConflictException, NotFoundException
from core.invalidation import CacheInvalidator, get_invalidator
from core.security import TokenData, generate_api_key, get_current_user
from core.transaction import run_mutation
from models import User
from schemas import ApiKeyInfo, created, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/token", tags=["令牌"])


async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundException("用户", user_id)
    return user


@router.post("/api-key", status_code=status.HTTP_201_CREATED)
async def create_api_key(
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    current_user: TokenData = Depends(get_current_user)
):
    """生成 API Key（已存在时需先吊销）"""
    user = await _get_user(db, current_user.user_id)
    if user.api_key:
        raise ConflictException("API Key 已存在，请先吊销")

    api_key = generate_api_key()

    async def mutation():
        user.api_key = api_key

    await run_mutation(db, mutation, conflict_message="API Key 生成冲突，请重试")
    logger.info(f"API Key 已生成 - 用户ID: {current_user.user_id}")

    await invalidator.user_changed(current_user.user_id)
    return created(ApiKeyInfo(api_key=api_key).model_dump(), "API Key 已生成")


@router.get("/api-key")
async def get_api_key(
    db: AsyncSession = Depends(get_db),
    current_user: TokenData = Depends(get_current_user)
):
    """查看自己的 API Key（未生成时为 null）"""
    user = await _get_user(db, current_user.user_id)
    return success(ApiKeyInfo(api_key=user.api_key).model_dump())


@router.delete("/api-key")
async def revoke_api_key(
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    current_user: TokenData = Depends(get_current_user)
):
    """吊销 API Key"""
    user = await _get_user(db, current_user.user_id)
    if not user.api_key:
        raise NotFoundException("API Key")

    async def mutation():
        user.api_key = None

    await run_mutation(db, mutation)
    logger.info(f"API Key 已吊销 - 用户ID: {current_user.user_id}")

    await invalidator.user_changed(current_user.user_id)
    return success(message="API Key 已吊销")


@router.get("/user-info")
async def user_info(current_user: TokenData = Depends(get_current_user)):
    """会话令牌对应的身份"""
    return success(current_user.model_dump())
