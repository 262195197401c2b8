"""
Session decorators.

Callables and tasks receive the session from their caller; when they fail,
the session must not be handed back with a half-written transaction.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    session = kwargs.get("session")
    if session is None and args:
        first = args[0]
        if isinstance(first, AsyncSession):
            session = first
        elif isinstance(getattr(first, "session", None), AsyncSession):
            # Service method
            session = first.session
    return session


def with_rollback_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Roll back the session when the wrapped coroutine raises, then re-raise.

    The session is the ``session`` keyword, the first positional argument,
    or ``self.session``.

    Example:
        @with_rollback_on_error
        async def create_user_transfer(session: AsyncSession, caller_uid, data):
            ...
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)
        if session is None:
            raise TypeError(f"{func.__name__} needs an AsyncSession argument")

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            try:
                await session.rollback()
            except Exception as rollback_error:
                logger.error(
                    f"Rollback failed in {func.__name__}: {rollback_error}",
                    exc_info=True,
                )
            else:
                logger.debug(
                    f"Rolled back {func.__name__} after {type(e).__name__}"
                )
            raise

    return wrapper
