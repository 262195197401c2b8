"""
Service base.

Every service works on one ``AsyncSession`` passed in by the caller (a
callable or a job) and logs through a loguru logger bound to its class name.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.utils.exceptions import MLMError


T = TypeVar("T")


class BaseService:
    """Holds the session and a service-bound logger."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Run a service method as one unit of work.

    Commits when the method returns. On any exception the session is rolled
    back and the exception propagates; domain refusals (``MLMError``) are
    logged at info level, anything else with its traceback.

    Usage:
        @transaction
        async def create_transfer(self, sender, recipient_id, amount):
            ...
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.session.commit()
            return result
        except MLMError as e:
            await self.session.rollback()
            self.logger.info(
                f"{func.__name__} refused: {e.message}",
                extra={"code": e.code, "details": e.details},
            )
            raise
        except Exception as e:
            await self.session.rollback()
            self.logger.error(
                f"Transaction failed in {func.__name__}",
                extra={"error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            raise

    return wrapper
