"""
数据库连接管理
提供异步数据库引擎、会话工厂和会话依赖
"""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)
from sqlalchemy.orm import DeclarativeBase

from .config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """模型基类"""
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    """根据配置创建异步引擎（进程级资源，仅在启动时创建一次）"""
    url = settings.db_url
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False}
        )
    return create_async_engine(
        url,
        echo=False,  # 禁用 SQL 详细输出，避免日志过多
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """创建会话工厂"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话（依赖注入用）"""
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine):
    """初始化数据库（创建所有表）"""
    # 导入模型以注册到 Base.metadata
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug(f"数据库表初始化完成（共 {len(Base.metadata.sorted_tables)} 张表）")


async def ping_db(engine: AsyncEngine) -> bool:
    """检查数据库连接"""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


async def close_db(engine: AsyncEngine):
    """关闭数据库连接"""
    await engine.dispose()
