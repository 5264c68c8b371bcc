"""
数据模型目录
导入本包即把所有表注册到 Base.metadata
"""

from .account import User
from .message import Message
from modules.blog.blog_models import Blog, BlogTag, View
from modules.category.category_models import Category
from modules.like.like_models import Like
from modules.follow.follow_models import Follow

__all__ = ["User", "Message", "Blog", "BlogTag", "Category", "View", "Like", "Follow"]
