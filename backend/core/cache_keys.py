"""
缓存键生成
命名空间 + 排序后的参数列表，保证相同查询得到相同的键
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from .config import Settings


class CacheNamespace(str, Enum):
    """缓存命名空间（只能使用枚举成员，避免不同实体的键互相冲突）"""
    BLOGS = "blogs"                  # 文章列表
    BLOG = "blog"                    # 单篇文章
    USER_BLOGS = "user_blogs"        # 作者维度的文章列表
    USERS = "users"                  # 用户列表
    USER = "user"                    # 单个用户
    CATEGORIES = "categories"        # 分类列表
    USER_MESSAGES = "user_messages"  # 收件箱列表
    UNREAD_COUNT = "unread_count"    # 未读数量

    def ttl(self, settings: Settings) -> int:
        """该命名空间的缓存有效期（秒）"""
        return getattr(settings, f"cache_ttl_{self.value}")


def _render(value: Any) -> str:
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, Enum):
        text = str(value.value)
    else:
        text = str(value)
    # 转义分隔符，防止参数值伪造出额外的键段
    return text.replace("%", "%25").replace(":", "%3A")


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


@dataclass(frozen=True)
class CacheKey:
    """结构化缓存键"""
    namespace: CacheNamespace
    scope: Optional[str] = None
    params: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def render(self) -> str:
        parts = [self.namespace.value]
        if self.scope is not None:
            parts.append(self.scope)
        for name, value in self.params:
            parts.append(name)
            parts.append(value)
        return ":".join(parts)

    def __str__(self) -> str:
        return self.render()


def build_cache_key(
    namespace: CacheNamespace,
    params: Optional[Mapping[str, Any]] = None,
    scope: Any = None
) -> CacheKey:
    """
    生成缓存键

    规则：
    - 丢弃值为 None 或空字符串的参数
    - 参数名按字典序排序
    - 拼接为 namespace[:scope]:name1:value1:name2:value2...

    Usage:
        build_cache_key(CacheNamespace.BLOGS, {"page": 2, "limit": 10})
        # -> blogs:limit:10:page:2
    """
    if not isinstance(namespace, CacheNamespace):
        raise TypeError(f"无效的缓存命名空间: {namespace!r}")

    items = []
    for name in sorted((params or {}).keys()):
        value = params[name]
        if _is_absent(value):
            continue
        items.append((name, _render(value)))

    rendered_scope = None if _is_absent(scope) else _render(scope)
    return CacheKey(namespace=namespace, scope=rendered_scope, params=tuple(items))


def namespace_prefix(namespace: CacheNamespace) -> str:
    """整个命名空间的清除前缀"""
    return f"{namespace.value}:"


def scope_prefix(namespace: CacheNamespace, scope: Any) -> str:
    """某个作用域（如作者、收件人）下所有键的清除前缀"""
    return f"{namespace.value}:{_render(scope)}:"
