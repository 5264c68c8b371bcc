"""
账户数据模型
用户账号表（含四个反规范化计数器）
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class User(Base):
    """用户表"""
    __tablename__ = "users"
    __table_args__ = {"comment": "用户表"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(100))
    password_hash: Mapped[str] = mapped_column(String(128))
    api_key: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)  # NULL 不参与唯一约束
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_image_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # 计数器（只由事务化写操作维护）
    blog_count: Mapped[int] = mapped_column(Integer, default=0)        # 已发布文章数
    followers_count: Mapped[int] = mapped_column(Integer, default=0)
    view_count: Mapped[int] = mapped_column(Integer, default=0)        # 名下文章的总浏览量
    likes_count: Mapped[int] = mapped_column(Integer, default=0)       # 名下文章的总点赞数

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
