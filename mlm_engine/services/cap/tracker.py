"""
Earnings cap tracker.

Cumulative eligible earnings are incremented by one conditional UPDATE per
credit, so the cap check and the increment cannot be separated by another
writer.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import and_, case, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ProgramConfig, RenewalConfig
from mlm_engine.models.enums import CapAction, CapStatus, ProgramType
from mlm_engine.models.user import User
from mlm_engine.services.base_service import BaseService
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import (
    CapReachedError,
    InvalidAmountError,
    NotFoundError,
)
from mlm_engine.utils.money import ZERO, quantize


@dataclass(frozen=True)
class CapReservation:
    """Result of counting one credit toward the cap."""

    counted: Decimal
    cumulative_after: Decimal | None
    cap_reached: bool
    bypassed: bool = False


def compute_cap(
    program_type: str,
    activation_amount: Decimal,
    programs: ProgramConfig,
    default_multiplier: Decimal | None = None,
) -> tuple[Decimal, Decimal]:
    """
    Cap base and cap amount for a program.

    Investors use their own activation amount as base; leaders use the
    configured flat base. ``default_multiplier`` applies to programs that
    are neither.

    Returns:
        Tuple of (base_amount, cap_amount)
    """
    if program_type == ProgramType.LEADER.value:
        base = programs.leader_base_amount
    else:
        base = activation_amount
    base = quantize(base)
    return base, quantize(base * programs.cap_multiplier(program_type, default_multiplier))


def is_withdrawal_blocked(user: User, renewals: RenewalConfig) -> bool:
    """True when the cap action blocks withdrawals for this user."""
    if not renewals.enable_id_renewal_rule or not renewals.blocks_withdrawals:
        return False
    if user.cap_status != CapStatus.ACTIVE.value:
        return True
    cap = Decimal(str(user.earnings_cap or 0))
    return cap > ZERO and Decimal(str(user.cumulative_earnings or 0)) >= cap


class CapTracker(BaseService):
    """Counts eligible earnings against each user's cap."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def reserve(
        self,
        user_id: int,
        amount: Decimal,
        income_type: str,
        renewals: RenewalConfig,
        counts_toward_cap: bool = True,
    ) -> CapReservation:
        """
        Count ``amount`` toward the user's cap.

        Under ``STOP_EARNINGS`` / ``STOP_BOTH`` the whole credit is refused
        unless it fits under cap, or under cap + grace when the user was
        below cap before it. Under ``BLOCK_WITHDRAWALS`` the credit is always
        allowed; the counted cumulative stops at cap + grace and the rest is
        tracked in ``over_cap_earnings``.

        Raises:
            CapReachedError: credit refused
        """
        amount = quantize(amount)
        if amount <= ZERO:
            raise InvalidAmountError("Cap reservation amount must be positive")

        if (
            not renewals.enable_id_renewal_rule
            or not counts_toward_cap
            or income_type not in renewals.eligible_income_types
        ):
            return CapReservation(
                counted=ZERO,
                cumulative_after=None,
                cap_reached=False,
                bypassed=True,
            )

        if renewals.stops_earnings:
            return await self._reserve_strict(user_id, amount, renewals)
        return await self._reserve_clamped(user_id, amount, renewals)

    async def _reserve_strict(
        self, user_id: int, amount: Decimal, renewals: RenewalConfig
    ) -> CapReservation:
        grace = quantize(renewals.grace_limit_inr)
        new_total = User.cumulative_earnings + amount
        reached = new_total >= User.earnings_cap

        values = {"cumulative_earnings": new_total}
        if renewals.auto_mark_cap_reached:
            values["cap_status"] = case(
                (reached, CapStatus.CAP_REACHED.value), else_=User.cap_status
            )
            values["cap_reached_at"] = case(
                (reached, utc_now()), else_=User.cap_reached_at
            )

        stmt = (
            update(User)
            .where(User.id == user_id)
            .where(User.cap_status == CapStatus.ACTIVE.value)
            .where(
                or_(
                    new_total <= User.earnings_cap,
                    and_(
                        User.cumulative_earnings < User.earnings_cap,
                        new_total <= User.earnings_cap + grace,
                    ),
                )
            )
            .values(**values)
            .returning(User.cumulative_earnings, User.cap_status)
            .execution_options(synchronize_session="fetch")
        )
        row = (await self.session.execute(stmt)).one_or_none()
        if row is None:
            self.logger.info(
                "Credit refused by earnings cap",
                extra={"user_id": user_id, "amount": str(amount)},
            )
            raise CapReachedError(
                renewals.renewal_required_message, user_id=user_id, amount=str(amount)
            )

        cumulative_after, cap_status = row
        return CapReservation(
            counted=amount,
            cumulative_after=quantize(cumulative_after),
            cap_reached=cap_status == CapStatus.CAP_REACHED.value,
        )

    async def _reserve_clamped(
        self, user_id: int, amount: Decimal, renewals: RenewalConfig
    ) -> CapReservation:
        grace = quantize(renewals.grace_limit_inr)
        ceiling = User.earnings_cap + grace
        new_total = User.cumulative_earnings + amount

        counted_total = case(
            (new_total <= ceiling, new_total),
            (User.cumulative_earnings > ceiling, User.cumulative_earnings),
            else_=ceiling,
        )
        excess = case(
            (new_total <= ceiling, 0),
            (User.cumulative_earnings > ceiling, amount),
            else_=new_total - ceiling,
        )
        reached = and_(
            User.cap_status == CapStatus.ACTIVE.value,
            new_total >= User.earnings_cap,
        )

        values = {
            "cumulative_earnings": counted_total,
            "over_cap_earnings": User.over_cap_earnings + excess,
        }
        if renewals.auto_mark_cap_reached:
            values["cap_status"] = case(
                (reached, CapStatus.CAP_REACHED.value), else_=User.cap_status
            )
            values["cap_reached_at"] = case(
                (reached, utc_now()), else_=User.cap_reached_at
            )

        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .returning(User.cumulative_earnings, User.over_cap_earnings, User.cap_status)
            .execution_options(synchronize_session="fetch")
        )
        row = (await self.session.execute(stmt)).one_or_none()
        if row is None:
            raise NotFoundError("User not found for cap tracking", user_id=user_id)

        cumulative_after, over_cap_total, cap_status = row
        reached_now = cap_status == CapStatus.CAP_REACHED.value
        if reached_now:
            self.logger.info(
                "Earnings cap reached, withdrawals blocked",
                extra={
                    "user_id": user_id,
                    "action": CapAction.BLOCK_WITHDRAWALS.value,
                    "over_cap_earnings": str(over_cap_total),
                },
            )
        return CapReservation(
            counted=amount,
            cumulative_after=quantize(cumulative_after),
            cap_reached=reached_now,
        )
