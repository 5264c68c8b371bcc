"""
博客数据模型
文章、标签与浏览记录
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Blog(Base):
    """博客文章"""
    __tablename__ = "blogs"
    __table_args__ = {"comment": "博客文章表"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(200), unique=True, index=True)  # 创建后不可变
    meta: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    content: Mapped[str] = mapped_column(Text)
    banner_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("categories.id"), index=True)
    author_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)

    # 状态
    published: Mapped[bool] = mapped_column(Boolean, default=False)
    featured: Mapped[bool] = mapped_column(Boolean, default=False)

    # 统计
    likes_count: Mapped[int] = mapped_column(Integer, default=0)
    views_count: Mapped[int] = mapped_column(Integer, default=0)

    # 时间
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)  # 首次发布时写入，之后不再变化
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    # 关联关系
    tag_rows: Mapped[list["BlogTag"]] = relationship(
        "BlogTag",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="BlogTag.tag"
    )

    @property
    def tags(self) -> list[str]:
        return [row.tag for row in self.tag_rows]


class BlogTag(Base):
    """文章标签（小写）"""
    __tablename__ = "blog_tags"
    __table_args__ = (
        UniqueConstraint("blog_id", "tag", name="uq_blog_tags_blog_tag"),
        {"comment": "文章标签表"},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blog_id: Mapped[int] = mapped_column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), index=True)
    tag: Mapped[str] = mapped_column(String(50), index=True)


class View(Base):
    """浏览记录（只追加）"""
    __tablename__ = "views"
    __table_args__ = {"comment": "文章浏览记录表"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blog_id: Mapped[int] = mapped_column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
