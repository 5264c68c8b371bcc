"""
分类数据模型
"""

from datetime import datetime
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class Category(Base):
    """博客分类（value 大小写不敏感唯一）"""
    __tablename__ = "categories"
    __table_args__ = {"comment": "博客分类表"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    value: Mapped[str] = mapped_column(String(50))
    normalized_value: Mapped[str] = mapped_column(String(50), unique=True, index=True)  # value.lower()
    blog_count: Mapped[int] = mapped_column(Integer, default=0)  # 引用该分类的全部文章数（含草稿）
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
