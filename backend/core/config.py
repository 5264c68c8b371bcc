"""
系统配置管理
统一管理所有配置项，支持环境变量覆盖
"""

import logging
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import quote, quote_plus

# 获取backend目录的绝对路径
BACKEND_DIR = Path(__file__).parent.parent.resolve()
ENV_FILE = BACKEND_DIR / ".env"

DEFAULT_JWT_SECRET = "your-secret-key-change-in-production"


class Settings(BaseSettings):
    """系统配置"""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # 应用信息
    app_name: str = "BlogHub"
    app_version: str = "1.0.0"
    debug: bool = False

    # 数据库配置（设置 DATABASE_URL 时优先使用）
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "bloghub"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        encoded_user = quote_plus(self.db_user)
        encoded_pwd = quote_plus(self.db_password)
        return f"mysql+aiomysql://{encoded_user}:{encoded_pwd}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis缓存配置
    cache_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    @property
    def redis_url(self) -> str:
        if self.redis_password:
            # URL 编码密码中的特殊字符
            encoded_password = quote(self.redis_password, safe='')
            return f"redis://default:{encoded_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # 各命名空间缓存有效期（秒）
    cache_ttl_blogs: int = 300
    cache_ttl_blog: int = 600
    cache_ttl_user_blogs: int = 300
    cache_ttl_users: int = 300
    cache_ttl_user: int = 600
    cache_ttl_categories: int = 3600
    cache_ttl_user_messages: int = 120
    cache_ttl_unread_count: int = 60

    # JWT令牌配置
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 3  # 3天

    # 对象存储（本地文件实现）
    blob_storage_dir: str = "storage/blobs"
    blob_bucket_banners: str = "banners"
    blob_bucket_profiles: str = "profiles"
    blob_url_expire_seconds: int = 3600
    max_upload_size: int = 5 * 1024 * 1024  # 5MB
    allowed_image_extensions: list[str] = ["jpg", "jpeg", "png", "gif", "webp"]

    # 分页
    default_page_size: int = 10
    max_page_size: int = 100

    # 请求日志
    slow_request_threshold: float = 1.0


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    获取配置单例
    支持运行时重新加载
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()

        # 安全检查: 如果是生产环境且使用默认密钥，发出警告
        if not _settings_instance.debug and _settings_instance.jwt_secret == DEFAULT_JWT_SECRET:
            logging.getLogger("core.config").warning(
                "[安全警告] 正在使用默认的 JWT_SECRET，请在 .env 文件中配置 JWT_SECRET"
            )
    return _settings_instance


def reload_settings() -> Settings:
    """重新加载配置"""
    global _settings_instance
    _settings_instance = Settings()
    return _settings_instance
