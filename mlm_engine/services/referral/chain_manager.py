"""
Referral chain management module.

Walks the single-parent upline of a user and detects self-referral and
circular chains. Also validates referral codes and attaches new users to
their referrer.
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import text, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.settings import settings
from mlm_engine.models.enums import ACTIVE_USER_STATUSES
from mlm_engine.models.user import User
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.utils.exceptions import (
    CircularReferralError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotFoundError,
    SelfReferralError,
)


UPLINE_QUERY = text("""
    WITH RECURSIVE upline(id, referrer_id, status, program_type, depth) AS (
        -- Base case: start with the user
        SELECT u.id, u.referrer_id, u.status, u.program_type, 0
        FROM users u
        WHERE u.id = :user_id

        UNION ALL

        -- Recursive case: follow the referrer pointer
        SELECT u.id, u.referrer_id, u.status, u.program_type, up.depth + 1
        FROM users u
        INNER JOIN upline up ON u.id = up.referrer_id
        WHERE up.depth < :max_hops
    )
    SELECT id, referrer_id, status, program_type, depth
    FROM upline
    ORDER BY depth ASC
""")


@dataclass(frozen=True)
class UplineNode:
    """One user in an upline walk; ``level`` 1 is the direct referrer."""

    user_id: int
    status: str
    program_type: str
    level: int


@dataclass
class UplineChain:
    """Result of walking up from a user."""

    user_id: int
    ancestors: list[UplineNode] = field(default_factory=list)
    self_referral: bool = False
    circular: bool = False

    def at_level(self, level: int) -> UplineNode | None:
        if 1 <= level <= len(self.ancestors):
            return self.ancestors[level - 1]
        return None


class ReferralChainManager:
    """Manages referral chain operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize chain manager."""
        self.session = session
        self.user_repo = UserRepository(session)

    async def get_upline(
        self, user_id: int, max_hops: int | None = None
    ) -> UplineChain:
        """
        Walk the upline with a bounded recursive CTE.

        The walk stops at the first user seen twice; ``self_referral`` and
        ``circular`` report what stopped it.

        Args:
            user_id: Starting user
            max_hops: Walk bound, defaults to MAX_UPLINE_HOPS

        Returns:
            UplineChain with ancestors ordered from the direct referrer up
        """
        hops = max_hops or settings.max_upline_hops
        result = await self.session.execute(
            UPLINE_QUERY, {"user_id": user_id, "max_hops": hops}
        )
        rows = result.all()

        chain = UplineChain(user_id=user_id)
        seen = {user_id}
        for row in rows:
            if row.depth == 0:
                continue
            if row.id in seen:
                if row.id == user_id and row.depth == 1:
                    chain.self_referral = True
                else:
                    chain.circular = True
                break
            seen.add(row.id)
            chain.ancestors.append(
                UplineNode(
                    user_id=row.id,
                    status=row.status,
                    program_type=row.program_type,
                    level=row.depth,
                )
            )

        if chain.self_referral or chain.circular:
            logger.warning(
                "Referral loop detected",
                extra={
                    "user_id": user_id,
                    "self_referral": chain.self_referral,
                    "chain_ids": [node.user_id for node in chain.ancestors],
                },
            )
        return chain

    async def validate_referral_code(self, code: str) -> User:
        """
        Resolve a referral code to an active referrer.

        Raises:
            InvalidRequestError: Empty code or inactive referrer
            NotFoundError: Unknown code
        """
        if not code or not code.strip():
            raise InvalidRequestError("Referral code is required")

        referrer = await self.user_repo.get_by_referral_code(code)
        if referrer is None:
            raise NotFoundError("Invalid referral code")
        if referrer.status not in ACTIVE_USER_STATUSES:
            raise InvalidRequestError("Referrer account is not active")
        return referrer

    async def assign_referrer(self, user_id: int, code: str) -> User:
        """
        Attach a user without a referrer to the owner of ``code``.

        Raises:
            SelfReferralError: Code belongs to the user
            CircularReferralError: User is already in the referrer's upline
            InvalidStateTransitionError: User already has a referrer
        """
        referrer = await self.validate_referral_code(code)
        if referrer.id == user_id:
            raise SelfReferralError("You cannot use your own referral code")

        upline = await self.get_upline(referrer.id)
        if upline.circular or any(node.user_id == user_id for node in upline.ancestors):
            raise CircularReferralError("Referral would create a circular chain")

        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .where(User.referrer_id.is_(None))
            .values(referrer_id=referrer.id)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise InvalidStateTransitionError("Referrer is already set")

        logger.info(
            "Referrer assigned",
            extra={"user_id": user_id, "referrer_id": referrer.id},
        )
        return referrer
