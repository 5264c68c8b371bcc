"""
应用生命周期管理
启动时创建进程级资源（数据库引擎、缓存客户端、对象存储）并挂到 app.state，关闭时释放
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from core.blob_store import LocalBlobStore
from core.cache import init_cache
from core.config import get_settings
from core.database import close_db, create_engine, create_session_factory, init_db
from core.invalidation import CacheInvalidator

logger = logging.getLogger(__name__)


async def init_resources(app: FastAPI) -> None:
    """创建进程级资源"""
    settings = get_settings()

    # 1. 数据库
    engine = create_engine(settings)
    await init_db(engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    # 2. 缓存（不可用时降级为禁用状态，读请求全部未命中）
    cache = await init_cache(settings)
    app.state.cache = cache
    app.state.invalidator = CacheInvalidator(cache)

    # 3. 对象存储
    app.state.blob_store = LocalBlobStore.from_settings(settings)
    logger.info(f"对象存储目录: {app.state.blob_store.root_dir}")


async def release_resources(app: FastAPI) -> None:
    """释放进程级资源"""
    cache = getattr(app.state, "cache", None)
    if cache is not None:
        await cache.close()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await close_db(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理器
    负责应用启动时的初始化任务和关闭时的资源清理
    """
    # -------------------- [启动阶段] --------------------
    current_settings = get_settings()
    logger.info(f"🚀 正在启动 {current_settings.app_name} v{current_settings.app_version}...")

    await init_resources(app)

    if not app.state.cache.enabled:
        logger.warning("⚠️ Redis 缓存未启用")

    logger.info(f"🎉 {current_settings.app_name} 启动完成!")

    yield

    # -------------------- [关闭阶段] --------------------
    logger.info("🛑 系统关闭中...")
    await release_resources(app)
    logger.info("👋 系统已关闭")
