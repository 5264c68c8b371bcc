"""
文件访问路由
校验临时 URL 的签名后返回对象内容
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from core.blob_store import LocalBlobStore, get_blob_store
from core.errors import AuthException, BlobStoreError, NotFoundException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/files", tags=["文件"])


@router.get("/{bucket}/{key}")
async def get_file(
    bucket: str,
    key: str,
    token: str = Query(...),
    store: LocalBlobStore = Depends(get_blob_store)
):
    """读取对象（需要有效的临时 URL 签名）"""
    if not store.verify_token(bucket, key, token):
        logger.warning(f"文件访问签名无效或已过期: {bucket}/{key}")
        raise AuthException("链接无效或已过期")

    try:
        path = store.resolve_path(bucket, key)
    except BlobStoreError:
        raise NotFoundException("文件")
    if not path.is_file():
        raise NotFoundException("文件")

    return FileResponse(path)
