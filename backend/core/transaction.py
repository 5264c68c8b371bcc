"""
事务化写操作
主实体变更与其计数器增量在同一事务内提交，任一步失败则整体回滚
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Sequence, Type

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import AppException, ConflictException, TransactionAborted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterDelta:
    """
    计数器增量

    model: 目标模型类（须有 id 主键）
    target_id: 目标行 ID
    field: 计数器字段名
    delta: 有符号增量，0 表示不变
    """
    model: Type[Any]
    target_id: int
    field: str
    delta: int


@dataclass
class MutationResult:
    """写操作的返回值，附带由写操作本身算出的计数器增量"""
    value: Any = None
    deltas: Sequence[CounterDelta] = field(default_factory=tuple)


def _is_unique_violation(exc: IntegrityError) -> bool:
    """判断是否为唯一约束冲突（SQLite: UNIQUE constraint failed / MySQL: Duplicate entry）"""
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


async def apply_counter_delta(session: AsyncSession, delta: CounterDelta) -> None:
    """
    原子地应用一个计数器增量

    生成 UPDATE t SET f = CASE WHEN f + d < 0 THEN 0 ELSE f + d END WHERE id = :id，
    由数据库完成读改写，不在内存中计算。
    """
    if delta.delta == 0:
        return

    model = delta.model
    column = getattr(model, delta.field)
    new_value = column + delta.delta
    stmt = (
        update(model)
        .where(model.id == delta.target_id)
        .values({delta.field: case((new_value < 0, 0), else_=new_value)})
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        logger.warning(
            f"计数器目标不存在: {model.__tablename__}.{delta.field} (ID: {delta.target_id})"
        )
        raise TransactionAborted("关联数据已不存在，操作已取消")


async def run_mutation(
    session: AsyncSession,
    mutation: Callable[[], Awaitable[Any]],
    deltas: Iterable[CounterDelta] = (),
    conflict_message: str = "资源已存在",
) -> Any:
    """
    在一个事务内执行写操作及其计数器增量

    Args:
        session: 数据库会话
        mutation: 主实体写操作（协程函数），可返回 MutationResult 追加增量
        deltas: 调用方预先算好的计数器增量
        conflict_message: 唯一约束冲突时返回给客户端的消息

    Returns:
        mutation 的返回值（MutationResult 时取其 value）

    Raises:
        ConflictException: 唯一约束冲突
        AppException: 写操作自身抛出的业务异常（原样抛出）
        TransactionAborted: 其余任何失败
    """
    pending: List[CounterDelta] = list(deltas)
    try:
        outcome = await mutation()
        value = outcome
        if isinstance(outcome, MutationResult):
            value = outcome.value
            pending.extend(outcome.deltas)

        await session.flush()
        for delta in pending:
            await apply_counter_delta(session, delta)
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if _is_unique_violation(e):
            logger.info(f"唯一约束冲突，事务已回滚: {conflict_message}")
            raise ConflictException(conflict_message) from e
        logger.error(f"数据完整性错误，事务已回滚: {e.orig}")
        raise TransactionAborted() from e
    except AppException:
        await session.rollback()
        raise
    except Exception as e:
        await session.rollback()
        logger.error(f"事务执行失败，已回滚: {e}", exc_info=True)
        raise TransactionAborted() from e

    return value
