"""
用户路由
注册、登录、资料查询与修改、头像上传
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.blob_store import LocalBlobStore, discard_blob, get_blob_store, resolve_blob_url
from core.cache import Cache, get_cache
from core.cache_keys import CacheNamespace, build_cache_key
from core.config import Settings, get_settings
from core.database import get_db
from core.errors import (
    AuthException, ConflictException, NotFoundException,
    PermissionException, ValidationException,
)
from core.invalidation import CacheInvalidator, get_invalidator
from core.pagination import build_order_by, normalize_page, paginate as paginate_query
from core.security import TokenData, create_token, get_current_user, hash_password, verify_password
from core.transaction import run_mutation
from models import User
from modules.blog.blog_services import BlogService, attach_banner_urls
from schemas import (
    LoginResult, PasswordChange, UserCreate, UserInfo, UserListItem, UserLogin,
    UserUpdate, UsernameAvailability, USER_SORT_FIELDS, created, paginate, success,
)
from schemas.auth import normalize_username

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["用户"])

USER_CONFLICT_MESSAGE = "用户名或邮箱已被使用"


async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundException("用户", user_id)
    return user


async def _ensure_available(
    db: AsyncSession,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[int] = None
) -> None:
    """检查用户名/邮箱是否已被其他用户占用"""
    if username is not None:
        query = select(User.id).where(User.username == username)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none() is not None:
            raise ConflictException("用户名已被使用")
    if email is not None:
        query = select(User.id).where(User.email == email)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none() is not None:
            raise ConflictException("邮箱已被使用")


async def _with_profile_image(payload: dict, store: LocalBlobStore, settings: Settings) -> dict:
    """缓存中保存对象键，响应前解析为临时 URL"""
    payload = dict(payload)
    payload["profile_image"] = await resolve_blob_url(
        store, settings.blob_bucket_profiles, payload.get("profile_image"), settings.blob_url_expire_seconds
    )
    return payload


def _ensure_self(user_id: int, current_user: TokenData) -> None:
    if user_id != current_user.user_id:
        raise PermissionException("只能修改自己的账户")


# ============ 注册与登录 ============

@router.post("", status_code=status.HTTP_201_CREATED)
async def register(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator)
):
    """用户注册"""
    await _ensure_available(db, username=data.username, email=data.email)

    user = User(
        full_name=data.full_name,
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        bio=data.bio,
        blog_count=0,
        followers_count=0,
        view_count=0,
        likes_count=0
    )

    async def mutation():
        db.add(user)
        return user

    await run_mutation(db, mutation, conflict_message=USER_CONFLICT_MESSAGE)
    logger.info(f"新用户注册: {user.username} (ID: {user.id})")

    await invalidator.user_changed(user.id)
    user = await _get_user(db, user.id)
    return created(UserInfo.from_user(user).model_dump(mode="json"), "注册成功")


@router.post("/login")
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    """用户登录，返回会话令牌"""
    result = await db.execute(select(User).where(User.username == data.username))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password_hash):
        logger.warning(f"登录失败 - 用户名: {data.username}")
        raise AuthException("用户名或密码错误")

    token = create_token(TokenData(user_id=user.id, username=user.username, email=user.email))
    logger.info(f"用户登录: {user.username}")
    return success(LoginResult(token=token, user_id=user.id).model_dump(), "登录成功")


# ============ 查询 ============

@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: Optional[str] = None,
    sort: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings)
):
    """用户列表（支持搜索用户名/姓名）"""
    page, limit = normalize_page(page, limit)

    async def load():
        query = select(User)
        if search:
            query = query.where(
                or_(
                    User.username.ilike(f"%{search}%"),
                    User.full_name.ilike(f"%{search}%")
                )
            )
        query = query.order_by(*build_order_by(User, sort, USER_SORT_FIELDS))
        result = await paginate_query(
            db, query, page, limit,
            transformer=lambda u: UserListItem.model_validate(u).model_dump(mode="json")
        )
        return result.to_dict()

    namespace = CacheNamespace.USERS
    key = build_cache_key(namespace, {"page": page, "limit": limit, "search": search, "sort": sort})
    return paginate(await cache.get_or_load(key, namespace.ttl(settings), load))


@router.get("/usernames")
async def list_usernames(db: AsyncSession = Depends(get_db)):
    """所有用户名"""
    result = await db.execute(select(User.username).order_by(User.username))
    return success(list(result.scalars().all()))


@router.get("/check-username")
async def check_username(
    username: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db)
):
    """检查用户名是否可用"""
    try:
        normalized = normalize_username(username)
    except ValueError as e:
        raise ValidationException(str(e))

    result = await db.execute(select(User.id).where(User.username == normalized))
    available = result.scalar_one_or_none() is None
    return success(UsernameAvailability(username=normalized, available=available).model_dump())


@router.get("/me")
async def get_me(
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    current_user: TokenData = Depends(get_current_user)
):
    """当前登录用户"""
    user = await _get_user(db, current_user.user_id)
    payload = UserInfo.from_user(user).model_dump(mode="json")
    return success(await _with_profile_image(payload, store, settings))


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings)
):
    """用户资料"""
    async def load():
        user = await _get_user(db, user_id)
        return UserInfo.from_user(user).model_dump(mode="json")

    namespace = CacheNamespace.USER
    payload = await cache.get_or_load(
        build_cache_key(namespace, scope=user_id), namespace.ttl(settings), load
    )
    return success(await _with_profile_image(payload, store, settings))


@router.get("/{user_id}/blogs")
async def list_user_blogs(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    sort: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings)
):
    """某作者已发布的文章"""
    page, limit = normalize_page(page, limit)
    service = BlogService(db)

    async def load():
        await _get_user(db, user_id)
        result = await service.list_blogs(
            page=page, limit=limit, published=True, author_id=user_id, sort=sort
        )
        return result.to_dict()

    namespace = CacheNamespace.USER_BLOGS
    key = build_cache_key(namespace, {"page": page, "limit": limit, "sort": sort}, scope=user_id)
    page_data = await cache.get_or_load(key, namespace.ttl(settings), load)
    items = await attach_banner_urls(page_data["items"], store, settings)
    return paginate({"items": items, "pagination": page_data["pagination"]})


# ============ 修改 ============

@router.patch("/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    current_user: TokenData = Depends(get_current_user)
):
    """修改自己的资料（只更新提供的字段）"""
    _ensure_self(user_id, current_user)
    user = await _get_user(db, user_id)

    update_data = data.model_dump(exclude_unset=True)
    await _ensure_available(
        db,
        username=update_data.get("username"),
        email=update_data.get("email"),
        exclude_id=user_id
    )

    async def mutation():
        for key, value in update_data.items():
            # 只有简介允许清空
            if value is None and key != "bio":
                continue
            setattr(user, key, value)
        return user

    await run_mutation(db, mutation, conflict_message=USER_CONFLICT_MESSAGE)
    await invalidator.user_changed(user_id)

    user = await _get_user(db, user_id)
    payload = UserInfo.from_user(user).model_dump(mode="json")
    return success(await _with_profile_image(payload, store, settings), "资料更新成功")


@router.patch("/{user_id}/password")
async def change_password(
    user_id: int,
    data: PasswordChange,
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    current_user: TokenData = Depends(get_current_user)
):
    """修改自己的密码"""
    _ensure_self(user_id, current_user)
    user = await _get_user(db, user_id)

    if not verify_password(data.old_password, user.password_hash):
        logger.warning(f"密码修改失败 - 用户ID: {user_id}, 原因: 原密码错误")
        raise ValidationException("原密码错误")

    async def mutation():
        user.password_hash = hash_password(data.new_password)

    await run_mutation(db, mutation)
    logger.info(f"密码修改成功 - 用户ID: {user_id}")

    await invalidator.user_changed(user_id)
    return success(message="密码修改成功")


@router.put("/{user_id}/profile-image")
async def upload_profile_image(
    user_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    invalidator: CacheInvalidator = Depends(get_invalidator),
    store: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
    current_user: TokenData = Depends(get_current_user)
):
    """上传自己的头像"""
    _ensure_self(user_id, current_user)
    user = await _get_user(db, user_id)

    content = await file.read()
    store.validate_image(file.filename, content)
    bucket = settings.blob_bucket_profiles
    key = store.new_key(file.filename)
    await store.put(bucket, key, content, file.content_type)

    old_key = user.profile_image_key

    async def mutation():
        user.profile_image_key = key

    try:
        await run_mutation(db, mutation)
    except Exception:
        await discard_blob(store, bucket, key)
        raise

    await discard_blob(store, bucket, old_key)
    await invalidator.user_changed(user_id)

    user = await _get_user(db, user_id)
    payload = UserInfo.from_user(user).model_dump(mode="json")
    return success(await _with_profile_image(payload, store, settings), "头像上传成功")
