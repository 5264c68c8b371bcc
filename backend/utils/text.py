"""
文本处理工具
"""

import re
from typing import Iterable, List, Union


def generate_slug(text: str) -> str:
    """
    生成URL友好的slug

    规则：转小写 → 去除 [a-z0-9 空格 -] 以外的字符 → 空白替换为横线
    → 合并连续横线 → 去除首尾横线

    Example:
        generate_slug("Hello World!!")  # -> "hello-world"
    """
    if not text:
        return ""

    slug = text.lower()
    slug = re.sub(r'[^a-z0-9 -]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def normalize_tags(tags: Union[str, Iterable[str], None]) -> List[str]:
    """
    标签规范化

    接受逗号分隔的字符串或字符串列表，去空白、转小写、去重并保持原有顺序
    """
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")

    result: List[str] = []
    for tag in tags:
        value = str(tag).strip().lower()
        if value and value not in result:
            result.append(value)
    return result
