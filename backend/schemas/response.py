"""
统一响应格式
API返回的标准JSON结构
"""

from datetime import datetime, timezone
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一API响应"""
    success: bool = True
    code: str = "OK"
    message: str = "success"
    data: Optional[T] = None
    timestamp: datetime


class Pagination(BaseModel):
    """分页信息"""
    current_page: int
    total_pages: int
    total: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class PageData(BaseModel, Generic[T]):
    """分页数据"""
    items: List[T]
    pagination: Pagination


def envelope(
    success: bool,
    code: str,
    message: str,
    data: Any = None
) -> dict:
    """构建响应信封（成功与失败共用）"""
    return {
        "success": success,
        "code": code,
        "message": message,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def success(data: Any = None, message: str = "success", code: str = "OK") -> dict:
    """成功响应"""
    return envelope(True, code, message, data)


def created(data: Any = None, message: str = "created") -> dict:
    """创建成功响应（配合 status_code=201 使用）"""
    return envelope(True, "CREATED", message, data)


def error(code: str = "VALIDATION_ERROR", message: str = "error", data: Any = None) -> dict:
    """错误响应"""
    return envelope(False, code, message, data)


def paginate(page_data: dict, message: str = "success") -> dict:
    """
    分页响应

    page_data 为 PageResult.to_dict() 的结果：
    {"items": [...], "pagination": {...}}
    """
    return envelope(True, "OK", message, page_data)
