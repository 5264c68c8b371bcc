"""
分类业务逻辑
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictException, NotFoundException, ValidationException
from core.transaction import run_mutation
from modules.blog.blog_models import Blog

from .category_models import Category
from .category_schemas import CategoryCreate, CategoryInfo, CategoryUpdate

logger = logging.getLogger(__name__)

CATEGORY_CONFLICT_MESSAGE = "分类已存在"


class CategoryService:
    """分类服务"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_categories(self) -> List[dict]:
        """获取所有分类（可 JSON 序列化）"""
        result = await self.db.execute(select(Category).order_by(Category.value, Category.id))
        return [
            CategoryInfo.model_validate(c).model_dump(mode="json")
            for c in result.scalars().all()
        ]

    async def get_category(self, category_id: int) -> Optional[Category]:
        """获取分类"""
        result = await self.db.execute(
            select(Category)
            .where(Category.id == category_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure_unique(self, normalized: str, exclude_id: Optional[int] = None) -> None:
        query = select(Category.id).where(Category.normalized_value == normalized)
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if (await self.db.execute(query)).scalar_one_or_none() is not None:
            raise ConflictException(CATEGORY_CONFLICT_MESSAGE)

    async def create_category(self, data: CategoryCreate) -> Category:
        """创建分类（名称大小写不敏感唯一）"""
        normalized = data.value.lower()
        await self._ensure_unique(normalized)

        category = Category(value=data.value, normalized_value=normalized, blog_count=0)

        async def mutation():
            self.db.add(category)
            return category

        await run_mutation(self.db, mutation, conflict_message=CATEGORY_CONFLICT_MESSAGE)
        logger.info(f"分类已创建: {category.id} ({category.value})")
        return category

    async def update_category(self, category_id: int, data: CategoryUpdate) -> Category:
        """更新分类名称"""
        category = await self.get_category(category_id)
        if not category:
            raise NotFoundException("分类", category_id)

        normalized = data.value.lower()
        await self._ensure_unique(normalized, exclude_id=category_id)

        async def mutation():
            category.value = data.value
            category.normalized_value = normalized
            return category

        await run_mutation(self.db, mutation, conflict_message=CATEGORY_CONFLICT_MESSAGE)
        return category

    async def delete_category(self, category_id: int) -> None:
        """
        删除分类

        仍有文章引用时拒绝删除，并在消息中给出引用数量
        """
        category = await self.get_category(category_id)
        if not category:
            raise NotFoundException("分类", category_id)

        async def mutation():
            referencing = await self.db.execute(
                select(func.count(Blog.id)).where(Blog.category_id == category_id)
            )
            count = referencing.scalar() or 0
            if count > 0:
                raise ValidationException(f"该分类下还有 {count} 篇文章，无法删除")
            await self.db.execute(delete(Category).where(Category.id == category_id))

        self.db.expunge(category)
        await run_mutation(self.db, mutation)
        logger.info(f"分类已删除: {category_id}")
