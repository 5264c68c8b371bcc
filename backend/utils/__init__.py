"""
工具函数目录
按功能分类组织
"""

from .text import generate_slug, normalize_tags

__all__ = [
    # 文本处理
    "generate_slug",
    "normalize_tags",
]
