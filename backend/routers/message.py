"""
消息路由
外部站点通过 API Key 提交联系消息，Key 持有者在收件箱中查看和处理
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import Cache, get_cache
from core.cache_keys import CacheNamespace, build_cache_key
from core.config import Settings, get_settings
from core.database import get_db
from core.deps import get_api_key_user
from core.errors import NotFoundException, PermissionException
from core.invalidation import CacheInvalidator, get_invalidator
from core.pagination import build_order_by, normalize_page, paginate as paginate_query
from core.security import TokenData, get_current_user
from core.transaction import run_mutation
from models import Message
from schemas import (
    MessageCreate, MessageInfo, MessageUpdate, UnreadCount,
    MESSAGE_SORT_FIELDS, created, paginate, success,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/messages", tags=["消息"])


async def _get_own_message(db: AsyncSession, message_id: int, user_id: int) -> Message:
    result = await db.execute(
        select(Message)
        .where(Message.id == message_id)
        .execution_options(populate_existing=True)
    )
    message = result.scalar_one_or_none()
    if not message:
        raise NotFoundException("消息", message_id)
    if message.receiver_id != user_id:
        raise PermissionException("只能操作自己收到的消息")
    return message


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    owner: TokenData = Depends(get_api_key_user)
):
    """提交消息（接收者为 API Key 持有者）"""
    message = Message(
        sender_email=data.sender_email,
        sender_name=data.name,
        receiver_id=owner.user_id,
        subject=data.subject,
        body=data.body,
        read=False
    )

    async def mutation():
        db.add(message)
        return message

    await run_mutation(db, mutation)
    logger.info(f"收到消息: {message.id} -> 用户 {owner.user_id}")

    await invalidator.messages_changed(owner.user_id)
    return created(MessageInfo.model_validate(message).model_dump(mode="json"), "消息已发送")


@router.get("")
async def list_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: Optional[str] = None,
    read: Optional[bool] = None,
    sort: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    current_user: TokenData = Depends(get_current_user)
):
    """收件箱"""
    page, limit = normalize_page(page, limit)
    user_id = current_user.user_id

    async def load():
        query = select(Message).where(Message.receiver_id == user_id)
        if read is not None:
            query = query.where(Message.read.is_(read))
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    Message.subject.ilike(pattern),
                    Message.body.ilike(pattern),
                    Message.sender_name.ilike(pattern),
                    Message.sender_email.ilike(pattern)
                )
            )
        query = query.order_by(*build_order_by(Message, sort, MESSAGE_SORT_FIELDS))
        result = await paginate_query(
            db, query, page, limit,
            transformer=lambda m: MessageInfo.model_validate(m).model_dump(mode="json")
        )
        return result.to_dict()

    namespace = CacheNamespace.USER_MESSAGES
    key = build_cache_key(
        namespace,
        {"page": page, "limit": limit, "search": search, "read": read, "sort": sort},
        scope=user_id
    )
    return paginate(await cache.get_or_load(key, namespace.ttl(settings), load))


@router.get("/unread")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    current_user: TokenData = Depends(get_current_user)
):
    """未读消息数"""
    user_id = current_user.user_id

    async def load():
        result = await db.execute(
            select(func.count(Message.id)).where(
                Message.receiver_id == user_id,
                Message.read.is_(False)
            )
        )
        return UnreadCount(unread_count=result.scalar() or 0).model_dump()

    namespace = CacheNamespace.UNREAD_COUNT
    data = await cache.get_or_load(
        build_cache_key(namespace, scope=user_id), namespace.ttl(settings), load
    )
    return success(data)


@router.patch("/{message_id}")
async def update_message(
    message_id: int,
    data: MessageUpdate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    current_user: TokenData = Depends(get_current_user)
):
    """标记已读"""
    message = await _get_own_message(db, message_id, current_user.user_id)

    async def mutation():
        message.read = data.read
        return message

    await run_mutation(db, mutation)
    await invalidator.messages_changed(current_user.user_id)

    message = await _get_own_message(db, message_id, current_user.user_id)
    return success(MessageInfo.model_validate(message).model_dump(mode="json"), "消息已更新")


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    current_user: TokenData = Depends(get_current_user)
):
    """删除消息"""
    message = await _get_own_message(db, message_id, current_user.user_id)

    async def mutation():
        await db.delete(message)

    await run_mutation(db, mutation)
    logger.info(f"消息已删除: {message_id}")

    await invalidator.messages_changed(current_user.user_id)
    return success(message="删除成功")
