"""
Task-local session sharing.

``transaction()`` parks its session here so every repository call made inside
the block lands on the same connection and commits with it. Reporting code
wrapped in ``@readonly`` is steered onto the read factory for its whole call
chain, nested calls included.
"""

from contextvars import ContextVar, Token
from functools import wraps
from typing import Callable, Optional, ParamSpec, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

_sessions: dict[bool, ContextVar[Optional[AsyncSession]]] = {
    False: ContextVar("billing_write_session", default=None),
    True: ContextVar("billing_read_session", default=None),
}
_readonly_scope: ContextVar[bool] = ContextVar("billing_readonly_scope", default=False)


def is_readonly_forced() -> bool:
    return _readonly_scope.get()


def _effective(readonly: bool) -> bool:
    return readonly or is_readonly_forced()


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """Session of the enclosing transaction for this kind of access, or None."""
    return _sessions[_effective(readonly)].get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> Token:
    return _sessions[readonly].set(session)


def reset_current_session(token: Token, readonly: bool = False) -> None:
    _sessions[readonly].reset(token)


def in_transaction(readonly: bool = False) -> bool:
    return get_current_session(readonly=readonly) is not None


P = ParamSpec("P")
R = TypeVar("R")


def readonly(func: Callable[P, R]) -> Callable[P, R]:
    """Run an async callable with every session it opens taken from the read factory."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        token = _readonly_scope.set(True)
        try:
            return await func(*args, **kwargs)
        finally:
            _readonly_scope.reset(token)

    return wrapper
