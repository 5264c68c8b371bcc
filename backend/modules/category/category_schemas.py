"""
分类数据验证模式
"""

import re
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_value(v: str) -> str:
    v = re.sub(r'\s+', ' ', v.strip())[:50]
    if not v:
        raise ValueError('分类名称不能为空')
    return v


class CategoryCreate(BaseModel):
    """创建分类"""
    value: str = Field(..., min_length=1, max_length=100)

    @field_validator('value')
    @classmethod
    def validate_value(cls, v):
        return _clean_value(v)


class CategoryUpdate(CategoryCreate):
    """更新分类"""


class CategoryInfo(BaseModel):
    """分类信息"""
    id: int
    value: str
    blog_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
