"""
标准错误码体系
提供统一的错误码定义和异常处理
"""

import logging
from typing import Any, Dict, Optional
from enum import Enum

from fastapi import status
from fastapi.responses import JSONResponse

from schemas.response import envelope

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """
    标准错误码

    响应信封中的 code 字段即为该枚举的值
    """

    # ==================== 成功 ====================
    OK = "OK"
    CREATED = "CREATED"

    # ==================== 客户端错误 ====================
    VALIDATION_ERROR = "VALIDATION_ERROR"   # 参数验证失败
    UNAUTHORIZED = "UNAUTHORIZED"           # 未认证或凭据无效
    FORBIDDEN = "FORBIDDEN"                 # 权限不足
    NOT_FOUND = "NOT_FOUND"                 # 资源不存在
    CONFLICT = "CONFLICT"                   # 唯一性冲突

    # ==================== 服务端错误 ====================
    SERVER_ERROR = "SERVER_ERROR"           # 服务器内部错误（含事务中止、对象存储失败）


# 错误码对应的默认消息
ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.OK: "操作成功",
    ErrorCode.CREATED: "创建成功",
    ErrorCode.VALIDATION_ERROR: "参数验证失败",
    ErrorCode.UNAUTHORIZED: "请先登录",
    ErrorCode.FORBIDDEN: "没有权限执行此操作",
    ErrorCode.NOT_FOUND: "请求的资源不存在",
    ErrorCode.CONFLICT: "资源已存在",
    ErrorCode.SERVER_ERROR: "服务器内部错误，请稍后重试",
}

# 错误码对应的 HTTP 状态码
ERROR_HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.OK: status.HTTP_200_OK,
    ErrorCode.CREATED: status.HTTP_201_CREATED,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppException(Exception):
    """
    应用异常基类

    用于抛出业务异常，包含错误码和详细信息

    Usage:
        raise AppException(ErrorCode.NOT_FOUND, "用户不存在")
        raise AppException(ErrorCode.VALIDATION_ERROR, data={"field": "email", "error": "格式不正确"})
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.SERVER_ERROR,
        message: Optional[str] = None,
        data: Any = None
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "未知错误")
        self.data = data
        self.http_status = ERROR_HTTP_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        """转换为 JSONResponse"""
        return JSONResponse(
            status_code=self.http_status,
            content=self.to_dict()
        )

    def to_dict(self) -> dict:
        """转换为字典"""
        return envelope(False, self.code.value, self.message, self.data)


class ValidationException(AppException):
    """参数验证异常"""

    def __init__(self, message: str = "参数验证失败", errors: Optional[list] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            data={"errors": errors} if errors else None
        )


class AuthException(AppException):
    """认证异常"""

    def __init__(self, message: Optional[str] = None):
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message)


class PermissionException(AppException):
    """权限异常"""

    def __init__(self, message: str = "没有权限执行此操作"):
        super().__init__(
            code=ErrorCode.FORBIDDEN,
            message=message
        )


class NotFoundException(AppException):
    """资源不存在异常"""

    def __init__(self, resource: str = "资源", resource_id: Any = None):
        message = f"{resource}不存在"
        if resource_id is not None:
            message = f"{resource} (ID: {resource_id}) 不存在"
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message
        )


class ConflictException(AppException):
    """唯一性冲突异常"""

    def __init__(self, message: str = "资源已存在"):
        super().__init__(code=ErrorCode.CONFLICT, message=message)


class TransactionAborted(AppException):
    """事务中止（已整体回滚）"""

    def __init__(self, message: str = "数据写入失败，请稍后重试"):
        super().__init__(code=ErrorCode.SERVER_ERROR, message=message)


class BlobStoreError(AppException):
    """对象存储异常"""

    def __init__(self, message: str = "存储服务异常"):
        super().__init__(code=ErrorCode.SERVER_ERROR, message=message)


# ==================== 异常处理器 ====================

def register_exception_handlers(app):
    """
    注册异常处理器

    在 main.py 中调用：
        from core.errors import register_exception_handlers
        register_exception_handlers(app)
    """
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    @app.exception_handler(AppException)
    async def handle_app_exception(request, exc: AppException):
        if exc.http_status >= 500:
            logger.error(f"请求处理失败 {request.method} {request.url.path}: {exc.message}")
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=envelope(
                False,
                ErrorCode.VALIDATION_ERROR.value,
                "参数验证失败",
                {"errors": errors}
            )
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request, exc: StarletteHTTPException):
        # 映射 HTTP 状态码到业务错误码
        code_mapping = {
            400: ErrorCode.VALIDATION_ERROR,
            401: ErrorCode.UNAUTHORIZED,
            403: ErrorCode.FORBIDDEN,
            404: ErrorCode.NOT_FOUND,
            405: ErrorCode.VALIDATION_ERROR,
            409: ErrorCode.CONFLICT,
            422: ErrorCode.VALIDATION_ERROR,
        }

        code = code_mapping.get(exc.status_code, ErrorCode.SERVER_ERROR)
        message = str(exc.detail) if exc.detail else ERROR_MESSAGES.get(code, "请求失败")

        return JSONResponse(
            status_code=exc.status_code,
            content=envelope(False, code.value, message, None),
            headers=getattr(exc, "headers", None)
        )

