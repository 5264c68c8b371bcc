"""
分类API路由
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import Cache, get_cache
from core.cache_keys import CacheNamespace, build_cache_key
from core.config import Settings, get_settings
from core.database import get_db
from core.invalidation import CacheInvalidator, get_invalidator
from core.security import TokenData, get_current_user
from schemas import created, success

from .category_schemas import CategoryCreate, CategoryInfo, CategoryUpdate
from .category_services import CategoryService

router = APIRouter()


@router.get("")
async def list_categories(
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings)
):
    """获取分类列表"""
    service = CategoryService(db)
    namespace = CacheNamespace.CATEGORIES
    categories = await cache.get_or_load(
        build_cache_key(namespace),
        namespace.ttl(settings),
        service.get_categories
    )
    return success(categories)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    user: TokenData = Depends(get_current_user)
):
    """创建分类"""
    service = CategoryService(db)
    category = await service.create_category(data)
    await invalidator.category_changed()
    return created(CategoryInfo.model_validate(category).model_dump(mode="json"), "分类创建成功")


@router.patch("/{category_id}")
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    user: TokenData = Depends(get_current_user)
):
    """更新分类"""
    service = CategoryService(db)
    category = await service.update_category(category_id, data)
    await invalidator.category_changed()
    return success(CategoryInfo.model_validate(category).model_dump(mode="json"), "分类更新成功")


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    user: TokenData = Depends(get_current_user)
):
    """删除分类（仍被文章引用时拒绝）"""
    service = CategoryService(db)
    await service.delete_category(category_id)
    await invalidator.category_changed()
    return success(message="删除成功")
