"""
统一分页工具
提供标准化的分页查询功能
"""

import math
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .errors import ValidationException

T = TypeVar('T')


class PageResult(BaseModel, Generic[T]):
    """
    分页结果

    泛型类，可指定 items 的类型
    """
    items: List[Any] = Field(description="数据列表")
    total: int = Field(description="总记录数")
    current_page: int = Field(description="当前页码")
    limit: int = Field(description="每页数量")
    total_pages: int = Field(description="总页数")
    has_next_page: bool = Field(description="是否有下一页")
    has_prev_page: bool = Field(description="是否有上一页")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def create(
        cls,
        items: List[Any],
        total: int,
        page: int,
        limit: int
    ) -> "PageResult":
        """创建分页结果"""
        total_pages = math.ceil(total / limit) if limit > 0 else 0
        return cls(
            items=items,
            total=total,
            current_page=page,
            limit=limit,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1
        )

    def to_dict(self) -> dict:
        """转换为字典（用于API响应和缓存）"""
        return {
            "items": self.items,
            "pagination": {
                "current_page": self.current_page,
                "total_pages": self.total_pages,
                "total": self.total,
                "limit": self.limit,
                "has_next_page": self.has_next_page,
                "has_prev_page": self.has_prev_page
            }
        }


def normalize_page(page: Optional[int], limit: Optional[int]) -> tuple[int, int]:
    """规范化分页参数（页码从 1 开始，每页数量不超过配置上限）"""
    settings = get_settings()
    if page is None or page < 1:
        page = 1
    if limit is None or limit < 1:
        limit = settings.default_page_size
    limit = min(limit, settings.max_page_size)
    return page, limit


async def paginate(
    db: AsyncSession,
    query,
    page: int = 1,
    limit: int = 10,
    transformer: Optional[Callable] = None
) -> PageResult:
    """
    通用分页查询

    Args:
        db: 数据库会话
        query: SQLAlchemy 查询对象
        page: 页码（从1开始）
        limit: 每页数量
        transformer: 可选的数据转换函数，用于将ORM对象转换为字典

    Usage:
        query = select(Blog).where(Blog.published == True)
        result = await paginate(db, query, page=1, limit=10,
                                transformer=lambda b: BlogInfo.model_validate(b).model_dump(mode="json"))
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * limit
    result = await db.execute(query.offset(offset).limit(limit))
    items = list(result.scalars().all())

    if transformer:
        items = [transformer(item) for item in items]

    return PageResult.create(items=items, total=total, page=page, limit=limit)


def build_order_by(model, sort: Optional[str], allowed: Sequence[str], default: str = "-created_at") -> list:
    """
    解析排序参数

    sort 形如 "-created_at,title"：逗号分隔，前缀 "-" 表示降序。
    只允许 allowed 中的字段，否则抛出 ValidationException。
    """
    spec = sort.strip() if sort and sort.strip() else default
    clauses = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        descending = part.startswith("-")
        name = part.lstrip("-")
        if name not in allowed:
            raise ValidationException(
                f"不支持的排序字段: {name}，允许: {', '.join(allowed)}"
            )
        column = getattr(model, name)
        clauses.append(column.desc() if descending else column.asc())
    # 保证分页稳定
    clauses.append(model.id.desc())
    return clauses
