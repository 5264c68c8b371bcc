"""
BlogHub 核心模块
提供框架的基础设施和通用功能

导出列表：
- 配置管理: get_settings, Settings
- 数据库: Base, get_db, create_engine, create_session_factory
- 安全认证: get_current_user, get_optional_user, TokenData
- 缓存: Cache, CacheKey, CacheNamespace, build_cache_key
- 缓存失效: CacheInvalidator
- 事务: run_mutation, CounterDelta, MutationResult
- 对象存储: LocalBlobStore
- 分页工具: paginate, PageResult
- 错误处理: ErrorCode, AppException
"""

# 配置管理
from .config import get_settings, Settings, reload_settings

# 数据库
from .database import Base, get_db, create_engine, create_session_factory, init_db, close_db

# 错误处理
from .errors import (
    ErrorCode,
    AppException,
    ValidationException,
    AuthException,
    PermissionException,
    NotFoundException,
    ConflictException,
    TransactionAborted,
    BlobStoreError,
)

# 安全认证
from .security import (
    get_current_user,
    get_optional_user,
    create_token,
    decode_token,
    hash_password,
    verify_password,
    TokenData
)

# 缓存
from .cache import Cache, init_cache
from .cache_keys import CacheKey, CacheNamespace, build_cache_key
from .invalidation import CacheInvalidator

# 事务
from .transaction import run_mutation, CounterDelta, MutationResult

# 对象存储
from .blob_store import LocalBlobStore

# 分页工具
from .pagination import paginate, PageResult

__all__ = [
    "get_settings", "Settings", "reload_settings",
    "Base", "get_db", "create_engine", "create_session_factory", "init_db", "close_db",
    "ErrorCode", "AppException", "ValidationException", "AuthException",
    "PermissionException", "NotFoundException", "ConflictException",
    "TransactionAborted", "BlobStoreError",
    "get_current_user", "get_optional_user", "create_token", "decode_token",
    "hash_password", "verify_password", "TokenData",
    "Cache", "init_cache", "CacheKey", "CacheNamespace", "build_cache_key",
    "CacheInvalidator",
    "run_mutation", "CounterDelta", "MutationResult",
    "LocalBlobStore",
    "paginate", "PageResult",
]
