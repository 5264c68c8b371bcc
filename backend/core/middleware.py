"""
中间件模块
提供请求日志、安全响应头等中间件
"""

import time
import uuid
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    请求日志中间件
    只记录慢请求和错误请求，并在响应头中附带请求ID与耗时
    """

    def __init__(
        self,
        app: ASGIApp,
        skip_paths=None,  # 支持 list 或 set
        slow_request_threshold: float = 1.0
    ):
        super().__init__(app)
        default_skip = [
            "/health",
            "/api/docs",
            "/api/redoc",
            "/api/openapi.json",
            "/favicon.ico"
        ]
        self.skip_paths = list(skip_paths) if skip_paths else default_skip
        self.slow_request_threshold = slow_request_threshold

    def _should_skip(self, path: str) -> bool:
        """检查是否跳过日志记录"""
        return any(path.startswith(p) for p in self.skip_paths)

    def _get_client_ip(self, request: Request) -> str:
        """获取客户端IP"""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._should_skip(request.url.path):
            return await call_next(request)

        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        client_ip = self._get_client_ip(request)
        method = request.method
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            logger.error(
                f"[请求异常] {method} {path} | {client_ip} | {duration_ms}ms | {str(e)}"
            )
            raise

        duration = time.time() - start_time
        duration_ms = round(duration * 1000, 2)

        # 只记录慢请求或错误请求
        if duration > self.slow_request_threshold:
            logger.warning(
                f"[慢请求] {method} {path} | {response.status_code} | {client_ip} | {duration_ms}ms"
            )
        elif response.status_code >= 400:
            logger.warning(
                f"[请求错误] {method} {path} | {response.status_code} | {client_ip} | {duration_ms}ms"
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    安全响应头中间件
    添加常见的安全响应头，API 响应禁止浏览器缓存
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # API 路径禁用缓存，防止浏览器缓存导致数据不更新
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
            response.headers["Pragma"] = "no-cache"

        return response
