"""
对象存储
按 bucket 分目录的本地文件存储，通过带签名的临时 URL 对外提供访问
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

import aiofiles
import filetype
from fastapi import Request
from jose import JWTError, jwt

from .config import Settings
from .errors import BlobStoreError, ValidationException

logger = logging.getLogger(__name__)

FILES_URL_PREFIX = "/api/v1/files"


class LocalBlobStore:
    """
    本地对象存储

    - put(bucket, key, data, content_type): 写入对象
    - get(bucket, key, expiry_seconds): 返回临时访问 URL
    - delete(bucket, key): 删除对象（不存在时视为成功）
    """

    def __init__(
        self,
        root_dir: str,
        secret: str,
        algorithm: str = "HS256",
        buckets: Iterable[str] = (),
        max_size: int = 5 * 1024 * 1024,
        allowed_extensions: Iterable[str] = ("jpg", "jpeg", "png", "gif", "webp"),
    ):
        # 使用绝对路径，避免工作目录差异
        self.root_dir = Path(root_dir).resolve()
        self.secret = secret
        self.algorithm = algorithm
        self.max_size = max_size
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}
        self.root_dir.mkdir(parents=True, exist_ok=True)
        for bucket in buckets:
            (self.root_dir / bucket).mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalBlobStore":
        return cls(
            root_dir=settings.blob_storage_dir,
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            buckets=(settings.blob_bucket_banners, settings.blob_bucket_profiles),
            max_size=settings.max_upload_size,
            allowed_extensions=settings.allowed_image_extensions,
        )

    # ==================== 路径 ====================

    def _is_safe_path(self, path: Path) -> bool:
        """检查路径是否在存储根目录内（防止路径遍历）"""
        try:
            path.resolve().relative_to(self.root_dir)
            return True
        except ValueError:
            return False

    def resolve_path(self, bucket: str, key: str) -> Path:
        """bucket/key 对应的完整路径"""
        for part in (bucket, key):
            if not part or ".." in part or "/" in part or "\\" in part:
                logger.warning(f"检测到可疑路径: {bucket}/{key}")
                raise BlobStoreError("非法的对象路径")

        full_path = self.root_dir / bucket / key
        if not self._is_safe_path(full_path):
            logger.warning(f"路径遍历尝试被阻止: {bucket}/{key}")
            raise BlobStoreError("非法的对象路径")
        return full_path

    # ==================== 上传校验 ====================

    def new_key(self, filename: str) -> str:
        """生成唯一对象键（保留扩展名）"""
        ext = Path(filename or "").suffix.lower().lstrip(".")
        file_id = uuid.uuid4().hex
        return f"{file_id}.{ext}" if ext else file_id

    def validate_image(self, filename: str, content: bytes) -> None:
        """
        校验上传的图片

        检查大小、扩展名，并用文件头识别真实类型，扩展名与内容不符时拒绝
        """
        if not content:
            raise ValidationException("上传文件为空")
        if len(content) > self.max_size:
            raise ValidationException(
                f"文件大小超过限制（最大 {self.max_size / 1024 / 1024:.1f}MB）"
            )

        ext = Path(filename or "").suffix.lower().lstrip(".")
        if ext not in self.allowed_extensions:
            raise ValidationException(
                f"不支持的文件类型: {ext or '无扩展名'}，允许的类型: {', '.join(sorted(self.allowed_extensions))}"
            )

        kind = filetype.guess(content)
        if kind is None or not kind.mime.startswith("image/"):
            raise ValidationException("文件内容不是有效的图片")

        ext_mapping = {"jpg": "jpeg"}
        if ext_mapping.get(ext, ext) != ext_mapping.get(kind.extension, kind.extension):
            raise ValidationException(
                f"文件类型不匹配：扩展名为 {ext}，但实际文件类型为 {kind.extension}（{kind.mime}）"
            )

    # ==================== 对象操作 ====================

    async def put(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        """写入对象"""
        full_path = self.resolve_path(bucket, key)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(full_path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error(f"写入对象失败 {bucket}/{key}: {e}")
            raise BlobStoreError("文件保存失败") from e
        logger.info(f"对象已保存: {bucket}/{key} ({len(data)} bytes, {content_type or 'unknown'})")

    async def get(self, bucket: str, key: str, expiry_seconds: int = 3600) -> str:
        """
        获取对象的临时访问 URL

        URL 携带 JWT 签名（bucket、key、过期时间），由 /api/v1/files 校验
        """
        full_path = self.resolve_path(bucket, key)
        if not full_path.is_file():
            raise BlobStoreError(f"对象不存在: {bucket}/{key}")

        expire = datetime.now(timezone.utc) + timedelta(seconds=expiry_seconds)
        token = jwt.encode(
            {"bucket": bucket, "key": key, "exp": expire, "type": "blob"},
            self.secret,
            algorithm=self.algorithm
        )
        return f"{FILES_URL_PREFIX}/{bucket}/{key}?token={token}"

    async def delete(self, bucket: str, key: str) -> None:
        """删除对象"""
        full_path = self.resolve_path(bucket, key)
        try:
            full_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"删除对象失败 {bucket}/{key}: {e}")
            raise BlobStoreError("文件删除失败") from e

    def verify_token(self, bucket: str, key: str, token: str) -> bool:
        """校验临时 URL 的签名与有效期"""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            return False
        return (
            payload.get("type") == "blob"
            and payload.get("bucket") == bucket
            and payload.get("key") == key
        )


async def resolve_blob_url(
    store: LocalBlobStore,
    bucket: str,
    key: Optional[str],
    expiry_seconds: int
) -> Optional[str]:
    """
    将对象键解析为临时 URL

    解析失败时返回原始键，不影响整个请求
    """
    if not key:
        return key
    try:
        return await store.get(bucket, key, expiry_seconds)
    except BlobStoreError as e:
        logger.warning(f"获取对象 URL 失败，返回原始键 {bucket}/{key}: {e.message}")
        return key


async def discard_blob(store: LocalBlobStore, bucket: str, key: Optional[str]) -> None:
    """事务提交后删除不再引用的对象，失败只记录日志"""
    if not key:
        return
    try:
        await store.delete(bucket, key)
    except BlobStoreError as e:
        logger.error(f"清理对象失败 {bucket}/{key}: {e.message}")


def get_blob_store(request: Request) -> LocalBlobStore:
    """获取对象存储实例（依赖注入用）"""
    return request.app.state.blob_store
