"""
BlogHub - 主入口
多租户博客平台后端

- 请求日志中间件
- 安全响应头中间件
- 健康检查端点
- 标准化错误处理
"""

import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.errors import ErrorCode, register_exception_handlers
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from schemas.response import envelope

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# 减少第三方库的日志输出
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

settings = get_settings()


# ==================== 创建应用 ====================
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="多租户博客平台后端",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# ==================== 中间件配置（顺序重要，后添加的先执行） ====================

# 1. CORS 跨域配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"]
)

# 2. 安全响应头中间件
app.add_middleware(SecurityHeadersMiddleware)

# 3. 请求日志中间件
app.add_middleware(
    RequestLoggingMiddleware,
    skip_paths=["/health", "/api/docs", "/api/redoc", "/api/openapi.json"],
    slow_request_threshold=settings.slow_request_threshold
)


# ==================== 异常处理器 ====================
register_exception_handlers(app)

# 全局未捕获异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常捕获"""
    logger.error(f"未处理异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=envelope(False, ErrorCode.SERVER_ERROR.value, "服务器内部错误，请稍后重试")
    )


# ==================== 注册路由 ====================
from routers import files, health, message, token, user

from modules.analytics.analytics_router import router as analytics_router
from modules.blog.blog_router import router as blog_router
from modules.category.category_router import router as category_router
from modules.follow.follow_router import router as follow_router
from modules.like.like_router import router as like_router

# 系统核心路由
app.include_router(user.router)
app.include_router(token.router)
app.include_router(message.router)
app.include_router(files.router)
app.include_router(health.router)

# 业务模块
app.include_router(blog_router, prefix="/api/v1/blogs", tags=["文章"])
app.include_router(category_router, prefix="/api/v1/categories", tags=["分类"])
app.include_router(follow_router, prefix="/api/v1/follows", tags=["关注"])
app.include_router(like_router, prefix="/api/v1/likes", tags=["点赞"])
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["统计"])


@app.get("/api", include_in_schema=False)
async def api_info():
    """API 信息"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/api/docs",
        "health": "/health"
    }


# ==================== 启动入口 ====================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
