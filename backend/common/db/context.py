"""
Database session context management.

Keeps the session of the current transaction in a ContextVar so that
repositories called inside ``transaction()`` share one connection, and
collects callbacks that must only run once that transaction has committed
(domain event delivery, for instance).

Usage:
    # Explicit transaction - multiple ops share one session
    async with transaction():
        await subscription_repo.save(subscription)
        await history_repo.append(entry)
        await after_commit(partial(sink.publish, event))

    # Force readonly for entire call chain
    @readonly
    async def list_catalog():
        ...  # All DB ops use read session
"""

from contextvars import ContextVar
from functools import wraps
from typing import Awaitable, Callable, List, Optional, ParamSpec, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_exporter import get_logger

logger = get_logger(__name__)

AfterCommitCallback = Callable[[], Awaitable[None]]

# Holds the current write session (if inside a write transaction)
_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)

# Holds the current read session (if inside a read transaction)
_read_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_read_session", default=None
)

# Forces all operations in this context to use readonly
_force_readonly: ContextVar[bool] = ContextVar("db_force_readonly", default=False)

# Callbacks queued by the innermost write transaction
_after_commit: ContextVar[Optional[List[AfterCommitCallback]]] = ContextVar(
    "db_after_commit", default=None
)


def is_readonly_forced() -> bool:
    return _force_readonly.get()


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """Return the session of the enclosing transaction, if any."""
    effective_readonly = readonly or is_readonly_forced()
    if effective_readonly:
        return _read_session.get()
    return _write_session.get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> object:
    if readonly:
        return _read_session.set(session)
    return _write_session.set(session)


def reset_current_session(token: object, readonly: bool = False) -> None:
    if readonly:
        _read_session.reset(token)
    else:
        _write_session.reset(token)


def in_transaction(readonly: bool = False) -> bool:
    return get_current_session(readonly=readonly) is not None


def begin_after_commit_scope() -> object:
    """Start collecting after-commit callbacks. Returns a reset token."""
    return _after_commit.set([])


def end_after_commit_scope(token: object) -> List[AfterCommitCallback]:
    """Stop collecting and hand back whatever was queued."""
    callbacks = _after_commit.get() or []
    _after_commit.reset(token)
    return callbacks


async def after_commit(callback: AfterCommitCallback) -> None:
    """
    Run ``callback`` once the enclosing write transaction commits.

    Outside a transaction the callback runs immediately. If the transaction
    rolls back, queued callbacks are dropped.
    """
    pending = _after_commit.get()
    if pending is None:
        await callback()
        return
    pending.append(callback)


P = ParamSpec("P")
T = TypeVar("T")


def readonly(func: Callable[P, T]) -> Callable[P, T]:
    """Force every DB operation in this call chain onto the read session."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        token = _force_readonly.set(True)
        try:
            return await func(*args, **kwargs)
        finally:
            _force_readonly.reset(token)

    return wrapper

