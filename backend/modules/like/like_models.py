"""
点赞数据模型
"""

from datetime import datetime
from sqlalchemy import Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class Like(Base):
    """点赞（同一用户对同一文章只能点赞一次）"""
    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("user_id", "blog_id", name="uq_likes_user_blog"),
        {"comment": "点赞表"},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    blog_id: Mapped[int] = mapped_column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
