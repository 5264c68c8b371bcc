"""
关注业务逻辑
被关注者的 followers_count 随关注行在同一事务内增减
"""

import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictException, NotFoundException, ValidationException
from core.transaction import CounterDelta, MutationResult, run_mutation
from models import User

from .follow_models import Follow
from .follow_schemas import FollowType, FollowUser

logger = logging.getLogger(__name__)

FOLLOW_CONFLICT_MESSAGE = "已经关注了该用户"


class FollowService:
    """关注服务"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_user(self, user_id: int) -> User:
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundException("用户", user_id)
        return user

    async def follow(self, follower_id: int, followed_id: int) -> User:
        """关注用户，返回被关注者"""
        if follower_id == followed_id:
            raise ValidationException("不能关注自己")
        await self._get_user(followed_id)

        existing = await self.db.execute(
            select(Follow.id).where(
                Follow.follower_id == follower_id,
                Follow.followed_id == followed_id
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictException(FOLLOW_CONFLICT_MESSAGE)

        async def mutation():
            self.db.add(Follow(follower_id=follower_id, followed_id=followed_id))

        await run_mutation(
            self.db,
            mutation,
            [CounterDelta(User, followed_id, "followers_count", 1)],
            conflict_message=FOLLOW_CONFLICT_MESSAGE
        )
        logger.info(f"用户 {follower_id} 关注了 {followed_id}")
        return await self._get_user(followed_id)

    async def unfollow(self, follower_id: int, followed_id: int) -> User:
        """取消关注（关系不存在时返回 404，计数器不变）"""
        async def mutation():
            result = await self.db.execute(
                delete(Follow).where(
                    Follow.follower_id == follower_id,
                    Follow.followed_id == followed_id
                )
            )
            if not result.rowcount:
                raise NotFoundException("关注关系")
            return MutationResult(
                value=followed_id,
                deltas=[CounterDelta(User, followed_id, "followers_count", -1)]
            )

        await run_mutation(self.db, mutation)
        logger.info(f"用户 {follower_id} 取消关注 {followed_id}")
        return await self._get_user(followed_id)

    async def list_follows(self, user_id: int, follow_type: FollowType) -> List[FollowUser]:
        """获取粉丝列表或关注列表"""
        await self._get_user(user_id)

        if follow_type == FollowType.FOLLOWERS:
            # 关注了 user_id 的人
            join_on = Follow.follower_id == User.id
            condition = Follow.followed_id == user_id
        else:
            join_on = Follow.followed_id == User.id
            condition = Follow.follower_id == user_id

        result = await self.db.execute(
            select(User, Follow.created_at)
            .join(Follow, join_on)
            .where(condition)
            .order_by(Follow.created_at.desc(), Follow.id.desc())
        )
        return [
            FollowUser(
                user_id=user.id,
                username=user.username,
                full_name=user.full_name,
                profile_image=user.profile_image_key,
                followed_at=followed_at
            )
            for user, followed_at in result.all()
        ]
