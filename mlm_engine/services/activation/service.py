"""
Activation service.

Funds a package for a pending user (payment gateway, sponsor wallet or
admin), flips the user to active, opens their earnings cap and then runs
the referral engine. A failed engine run leaves the activation pending for
the batch processor.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.activation import Activation
from mlm_engine.models.enums import (
    ActivationSource,
    ACTIVE_USER_STATUSES,
    CapStatus,
    LedgerSource,
    ProgramType,
    UserStatus,
)
from mlm_engine.models.package import Package
from mlm_engine.models.user import User
from mlm_engine.repositories.activation_repository import ActivationRepository
from mlm_engine.repositories.admin_config_repository import AuditLogRepository
from mlm_engine.repositories.base import BaseRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.repositories.wallet_repository import WalletRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.cap.tracker import compute_cap
from mlm_engine.services.referral.engine import ActivationOutcome, ReferralIncomeEngine
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import start_of_day, utc_now
from mlm_engine.utils.exceptions import (
    FeatureDisabledError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidRequestError,
    InvalidStateTransitionError,
    MLMError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)
from mlm_engine.utils.money import ZERO, quantize


ACTIVATABLE_STATUSES = (
    UserStatus.PENDING_ACTIVATION.value,
    UserStatus.AUTO_BLOCKED.value,
)


class ActivationService(BaseService):
    """Creates activations and runs referral income for them."""

    def __init__(self, session: AsyncSession, config: ConfigSnapshot) -> None:
        super().__init__(session)
        self.config = config
        self.user_repo = UserRepository(session)
        self.package_repo = BaseRepository(Package, session)
        self.wallet_repo = WalletRepository(session)
        self.activation_repo = ActivationRepository(session)
        self.audit_repo = AuditLogRepository(session)
        self.ledger = WalletLedger(session)

    async def activate_from_payment(
        self,
        user_id: int,
        plan_id: str,
        payment_reference: str,
        paid_amount: Decimal | None = None,
    ) -> tuple[Activation, ActivationOutcome | None]:
        """
        Consume a successful gateway payment.

        Idempotent on ``payment_reference``: a repeat returns the existing
        activation and runs nothing.
        """
        if not payment_reference:
            raise InvalidRequestError("Payment reference is required")

        existing = await self.activation_repo.get_by_payment_reference(payment_reference)
        if existing is not None:
            return existing, None

        try:
            user = await self._get_user(user_id)
            package = await self._get_package(plan_id)
            if paid_amount is not None and quantize(paid_amount) != quantize(package.amount):
                raise InvalidAmountError(
                    "Paid amount does not match the plan",
                    paid=str(quantize(paid_amount)),
                    expected=str(quantize(package.amount)),
                )
            activation = await self._activate(
                user,
                package,
                source=ActivationSource.PAYMENT_GATEWAY,
                payment_reference=payment_reference,
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            existing = await self.activation_repo.get_by_payment_reference(payment_reference)
            if existing is None:
                raise
            return existing, None
        except Exception:
            await self.session.rollback()
            raise

        return activation, await self.run_referral_income(activation)

    async def create_sponsor_activation(
        self,
        sponsor: User,
        target_user_id: int,
        plan_id: str,
        expected_amount: Decimal | None = None,
        now: datetime | None = None,
    ) -> tuple[Activation, ActivationOutcome | None]:
        """
        Activate another user's ID paid from the sponsor's wallet.

        Checks the feature switch, allowed plans, the amount the sponsor saw
        (when given), the minimum balance the sponsor must keep, and the
        sponsor's daily count and amount limits.
        """
        features = self.config.features
        now = now or utc_now()

        try:
            if not features.enable_sponsor_activation:
                raise FeatureDisabledError("Sponsor activation is disabled")
            if sponsor.status not in ACTIVE_USER_STATUSES:
                raise PermissionDeniedError("Only active members can sponsor an activation")
            if target_user_id == sponsor.id:
                raise InvalidRequestError("Use a payment to activate your own ID")

            target = await self._get_user(target_user_id)
            package = await self._get_package(plan_id)
            allowed = features.sponsor_activation_allowed_plans
            if allowed and package.plan_id not in allowed:
                raise InvalidRequestError(f"Plan {package.plan_id} cannot be sponsor-activated")

            amount = quantize(package.amount)
            if expected_amount is not None and quantize(expected_amount) != amount:
                raise InvalidAmountError(
                    "Activation amount does not match the plan",
                    sent=str(quantize(expected_amount)),
                    expected=str(amount),
                )
            wallet = await self.wallet_repo.lock_by_user_id(sponsor.id)
            balance = quantize(wallet.available_balance) if wallet else ZERO
            if balance - amount < features.sponsor_activation_min_balance_rule:
                raise InsufficientFundsError(
                    "Insufficient balance for sponsor activation",
                    required=str(amount + features.sponsor_activation_min_balance_rule),
                    available=str(balance),
                )

            count, total = await self.activation_repo.get_sponsor_totals_since(
                sponsor.id, start_of_day(now)
            )
            if features.sponsor_activation_daily_limit > 0 and count >= features.sponsor_activation_daily_limit:
                raise RateLimitError(
                    f"Daily sponsor activation limit reached ({features.sponsor_activation_daily_limit})"
                )
            daily_amount = features.sponsor_activation_daily_amount_limit
            if daily_amount > ZERO and quantize(total) + amount > daily_amount:
                raise RateLimitError(f"Daily sponsor activation amount limit is {daily_amount}")

            activation = await self._activate(
                target,
                package,
                source=ActivationSource.SPONSOR_WALLET,
                sponsor_id=sponsor.id,
                now=now,
            )
            await self.ledger.debit(
                sponsor.id,
                amount,
                LedgerSource.SPONSOR_ACTIVATION.value,
                str(activation.id),
                description=f"Activation of {target.uid} ({package.plan_id})",
                meta={"target_user_id": target.id, "plan_id": package.plan_id},
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        return activation, await self.run_referral_income(activation)

    async def admin_activate(
        self, admin: User, user_id: int, plan_id: str
    ) -> tuple[Activation, ActivationOutcome | None]:
        """Activate a user without payment (admin only)."""
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")
        try:
            user = await self._get_user(user_id)
            package = await self._get_package(plan_id)
            activation = await self._activate(
                user, package, source=ActivationSource.ADMIN, performed_by=admin.id
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return activation, await self.run_referral_income(activation)

    async def run_referral_income(
        self, activation: Activation
    ) -> ActivationOutcome | None:
        """
        Run the engine right after activation.

        Returns None when it failed; the activation then stays pending and
        the batch processor retries it.
        """
        engine = ReferralIncomeEngine(self.session, self.config)
        try:
            outcome = await engine.process_activation(activation)
            await self.session.commit()
            return outcome
        except MLMError as e:
            await self.session.rollback()
            self.logger.warning(
                "Referral income deferred to batch run",
                extra={"activation_id": activation.id, "error": e.message, "code": e.code},
            )
        except Exception:
            await self.session.rollback()
            self.logger.exception(
                "Referral income failed, deferred to batch run",
                extra={"activation_id": activation.id},
            )
        return None

    async def _get_user(self, user_id: int) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    async def _get_package(self, plan_id: str) -> Package:
        package = await self.package_repo.get_by(plan_id=plan_id)
        if package is None or not package.is_active:
            raise NotFoundError("Plan not found", plan_id=plan_id)

        programs = self.config.programs
        if package.program_type == ProgramType.LEADER.value and not programs.enable_leader_program:
            raise FeatureDisabledError("Leader program is disabled")
        if package.program_type == ProgramType.INVESTOR.value and not programs.enable_investor_program:
            raise FeatureDisabledError("Investor program is disabled")
        return package

    async def _activate(
        self,
        user: User,
        package: Package,
        source: ActivationSource,
        sponsor_id: int | None = None,
        payment_reference: str | None = None,
        now: datetime | None = None,
        performed_by: int | None = None,
    ) -> Activation:
        now = now or utc_now()
        amount = quantize(package.amount)
        program = package.program_type
        base, cap = compute_cap(program, amount, self.config.programs)
        new_status = (
            UserStatus.ACTIVE_LEADER.value
            if program == ProgramType.LEADER.value
            else UserStatus.ACTIVE_INVESTOR.value
        )

        result = await self.session.execute(
            update(User)
            .where(User.id == user.id)
            .where(User.status.in_(ACTIVATABLE_STATUSES))
            .values(
                status=new_status,
                program_type=program,
                activation_amount=amount,
                activation_date=now,
                active_plan_id=package.plan_id,
                cap_base_amount=base,
                earnings_cap=cap,
                cumulative_earnings=ZERO,
                over_cap_earnings=ZERO,
                cap_status=CapStatus.ACTIVE.value,
                blocked_at=None,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise InvalidStateTransitionError(
                f"User cannot be activated from status {user.status}", user_id=user.id
            )

        activation = await self.activation_repo.create(
            user_id=user.id,
            package_id=package.id,
            plan_id=package.plan_id,
            amount=amount,
            program_type=program,
            source=source.value,
            sponsor_id=sponsor_id,
            payment_reference=payment_reference,
            activated_at=now,
        )
        await self.ledger.ensure_wallet(user.id)
        await self.audit_repo.record(
            "user_activated",
            user_id=user.id,
            performed_by=performed_by or sponsor_id,
            activation_id=activation.id,
            plan_id=package.plan_id,
            amount=str(amount),
            source=source.value,
        )

        self.logger.info(
            "User activated",
            extra={
                "user_id": user.id,
                "activation_id": activation.id,
                "plan_id": package.plan_id,
                "source": source.value,
                "earnings_cap": str(cap),
            },
        )
        return activation
