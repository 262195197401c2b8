"""
ID renewal service.

A renewal closes the user's current cap cycle and opens the next one with
cumulative earnings reset. Renewing a cycle is idempotent: the state change
is a conditional UPDATE keyed on the cycle number, and the renewal record is
unique per (user, cycle).
"""

from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.enums import (
    CapStatus,
    LedgerSource,
    ProgramType,
    RenewalMethod,
    RenewalStatus,
)
from mlm_engine.models.renewal import Renewal
from mlm_engine.models.user import User
from mlm_engine.repositories.admin_config_repository import AuditLogRepository
from mlm_engine.repositories.renewal_repository import RenewalRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.services.base_service import BaseService, transaction
from mlm_engine.services.cap.tracker import compute_cap
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import (
    FeatureDisabledError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from mlm_engine.utils.money import ZERO, percent_of, quantize


RENEWABLE_STATUSES = (CapStatus.CAP_REACHED.value, CapStatus.RENEWAL_PENDING.value)


class RenewalService(BaseService):
    """Renewal requests and completions."""

    def __init__(self, session: AsyncSession, config: ConfigSnapshot) -> None:
        super().__init__(session)
        self.config = config
        self.user_repo = UserRepository(session)
        self.renewal_repo = RenewalRepository(session)
        self.audit_repo = AuditLogRepository(session)
        self.ledger = WalletLedger(session)

    @transaction
    async def request_renewal(self, user: User) -> Renewal:
        """Mark the user's capped cycle as awaiting renewal."""
        renewals = self.config.renewals
        if not renewals.enable_id_renewal_rule:
            raise FeatureDisabledError("ID renewal is disabled")
        if not renewals.renewal_options.user_can_request_renewal:
            raise FeatureDisabledError("Renewal requests are disabled")

        existing = await self.renewal_repo.get_for_cycle(user.id, user.cap_cycle)
        if existing is not None:
            return existing

        result = await self.session.execute(
            update(User)
            .where(User.id == user.id)
            .where(User.cap_cycle == user.cap_cycle)
            .where(User.cap_status == CapStatus.CAP_REACHED.value)
            .values(cap_status=CapStatus.RENEWAL_PENDING.value)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise InvalidStateTransitionError(
                "Renewal can only be requested after the earnings cap is reached"
            )

        renewal = await self.renewal_repo.create(
            user_id=user.id,
            cap_cycle=user.cap_cycle,
            status=RenewalStatus.REQUESTED.value,
        )
        await self.audit_repo.record(
            "renewal_requested", user_id=user.id, performed_by=user.id, cap_cycle=user.cap_cycle
        )
        return renewal

    @transaction
    async def renew(
        self,
        user_id: int,
        method: RenewalMethod,
        performer: User | None,
        base_amount: Decimal | None = None,
        plan_id: str | None = None,
        payment_reference: str | None = None,
        note: str | None = None,
    ) -> Renewal:
        """
        Complete the renewal of the user's current cap cycle.

        Args:
            user_id: User being renewed
            method: Who funds the renewal
            performer: Acting user (admin, sponsor or the user); None for
                payment gateway confirmations
            base_amount: New cap base for an upgrade; defaults to the
                current base
            plan_id: Plan bought on renewal, for the record
            payment_reference: Gateway payment id (payment_gateway only)

        Returns:
            Completed renewal; a repeat for an already renewed cycle returns
            the existing record
        """
        renewals = self.config.renewals
        if not renewals.enable_id_renewal_rule:
            raise FeatureDisabledError("ID renewal is disabled")

        if payment_reference:
            paid = await self.renewal_repo.get_by_payment_reference(payment_reference)
            if paid is not None:
                return paid

        user = await self.user_repo.lock(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        self._check_method(method, performer, user, payment_reference)
        if renewals.require_kyc_for_renewal and not user.kyc_verified:
            raise PermissionDeniedError("KYC verification is required for renewal")

        cycle = user.cap_cycle
        if user.cap_status not in RENEWABLE_STATUSES:
            previous = await self.renewal_repo.get_for_cycle(user.id, cycle - 1)
            if previous is not None and previous.status == RenewalStatus.COMPLETED.value:
                return previous
            raise InvalidStateTransitionError(
                "Renewal is only possible after the earnings cap is reached"
            )

        base, cap = self._new_cap(user, base_amount)
        fee = percent_of(base, renewals.renewal_fee_percent)

        result = await self.session.execute(
            update(User)
            .where(User.id == user.id)
            .where(User.cap_cycle == cycle)
            .where(User.cap_status.in_(RENEWABLE_STATUSES))
            .values(
                cap_status=CapStatus.ACTIVE.value,
                cap_cycle=cycle + 1,
                cumulative_earnings=ZERO,
                over_cap_earnings=ZERO,
                cap_base_amount=base,
                earnings_cap=cap,
                cap_reached_at=None,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise InvalidStateTransitionError("Cap cycle was renewed concurrently")

        payer_id = self._payer_id(method, performer, user)
        if payer_id is not None:
            await self.ledger.debit(
                payer_id,
                base + fee,
                LedgerSource.RENEWAL.value,
                f"{user.id}:{cycle}",
                description=f"ID renewal (cycle {cycle})",
                meta={"renewed_user_id": user.id, "fee": str(fee)},
            )

        renewal = await self.renewal_repo.get_for_cycle(user.id, cycle)
        values = {
            "method": method.value,
            "status": RenewalStatus.COMPLETED.value,
            "base_amount": base,
            "new_cap": cap,
            "fee": fee,
            "plan_id": plan_id,
            "funded_by_id": payer_id,
            "payment_reference": payment_reference,
            "note": note,
            "completed_at": utc_now(),
        }
        try:
            if renewal is None:
                async with self.session.begin_nested():
                    renewal = Renewal(user_id=user.id, cap_cycle=cycle, **values)
                    self.session.add(renewal)
            else:
                for key, value in values.items():
                    setattr(renewal, key, value)
                await self.session.flush()
        except IntegrityError as e:
            raise InvalidStateTransitionError("Renewal already recorded") from e

        await self.audit_repo.record(
            "renewal_completed",
            user_id=user.id,
            performed_by=performer.id if performer else None,
            method=method.value,
            cap_cycle=cycle,
            base_amount=str(base),
            new_cap=str(cap),
            fee=str(fee),
        )
        self.logger.info(
            "Renewal completed",
            extra={
                "user_id": user.id,
                "method": method.value,
                "cap_cycle": cycle,
                "new_cap": str(cap),
            },
        )
        return renewal

    def _check_method(
        self,
        method: RenewalMethod,
        performer: User | None,
        user: User,
        payment_reference: str | None,
    ) -> None:
        options = self.config.renewals.renewal_options
        if method == RenewalMethod.ADMIN:
            if not options.admin_can_renew:
                raise FeatureDisabledError("Admin renewal is disabled")
            if performer is None or not performer.is_admin:
                raise PermissionDeniedError("Admin access required")
        elif method == RenewalMethod.SPONSOR:
            if not options.sponsor_can_renew:
                raise FeatureDisabledError("Sponsor renewal is disabled")
            if performer is None or performer.id == user.id:
                raise PermissionDeniedError("Sponsor renewal must be paid by another user")
        elif method == RenewalMethod.WALLET:
            if not options.wallet_can_pay_renewal:
                raise FeatureDisabledError("Wallet renewal is disabled")
            if performer is None or performer.id != user.id:
                raise PermissionDeniedError("Only the user can renew from their wallet")
        elif method == RenewalMethod.PAYMENT_GATEWAY:
            if not options.payment_gateway_renewal:
                raise FeatureDisabledError("Payment gateway renewal is disabled")
            if not payment_reference:
                raise InvalidRequestError("Payment reference is required")

    def _payer_id(
        self, method: RenewalMethod, performer: User | None, user: User
    ) -> int | None:
        if method == RenewalMethod.SPONSOR and performer is not None:
            return performer.id
        if method == RenewalMethod.WALLET:
            return user.id
        return None

    def _new_cap(self, user: User, base_amount: Decimal | None) -> tuple[Decimal, Decimal]:
        renewals = self.config.renewals
        current_base = quantize(user.cap_base_amount or ZERO)

        if user.program_type == ProgramType.LEADER.value:
            return compute_cap(user.program_type, current_base, self.config.programs)

        base = quantize(base_amount) if base_amount is not None else current_base
        if base <= ZERO:
            raise InvalidRequestError("Renewal base amount must be positive")
        if base > current_base and not renewals.allow_renew_upgrade:
            raise PermissionDeniedError("Renewal with upgrade is disabled")
        if base == current_base and not renewals.allow_renew_same_plan:
            raise PermissionDeniedError("Renewal with the same plan is disabled")
        if base < current_base:
            raise InvalidRequestError("Renewal base cannot be lower than the current plan")
        return compute_cap(
            user.program_type, base, self.config.programs, renewals.default_cap_multiplier
        )
