"""
Referral income engine.

Turns one activation into direct and level referral credits. Each
(activation, beneficiary, level) is decided once: the distribution record,
the cap reservation and the wallet credit are written in one savepoint, and
the record's unique key makes reruns no-ops.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.config.settings import settings
from mlm_engine.models.activation import Activation
from mlm_engine.models.enums import (
    DistributionStatus,
    LedgerDirection,
    LedgerSource,
    ProgramType,
    SkipReason,
    UserStatus,
)
from mlm_engine.models.referral_distribution import ReferralIncomeDistribution
from mlm_engine.repositories.activation_repository import DistributionRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.repositories.wallet_repository import LedgerRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.cap.tracker import CapTracker
from mlm_engine.services.referral.chain_manager import (
    ReferralChainManager,
    UplineChain,
    UplineNode,
)
from mlm_engine.services.referral.level_income import LevelShare, plan_shares
from mlm_engine.services.referral.qualification import QualificationChecker
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import start_of_day, utc_now
from mlm_engine.utils.exceptions import (
    CapReachedError,
    CircularReferralError,
    ConfigurationError,
    SelfReferralError,
)
from mlm_engine.utils.money import ZERO, quantize


@dataclass
class ActivationOutcome:
    """What one engine run did for one activation."""

    activation_id: int
    skip_reason: str | None = None
    credited: list[LevelShare] = field(default_factory=list)
    skipped: dict[int, str] = field(default_factory=dict)  # level -> reason
    repaired: int = 0

    @property
    def total_credited(self) -> Decimal:
        return sum((share.amount for share in self.credited), ZERO)


class ReferralIncomeEngine(BaseService):
    """Computes and credits referral income for activations."""

    def __init__(self, session: AsyncSession, config: ConfigSnapshot) -> None:
        super().__init__(session)
        self.config = config
        self.chain_manager = ReferralChainManager(session)
        self.qualification = QualificationChecker(session, config.referral_income)
        self.cap_tracker = CapTracker(session)
        self.ledger = WalletLedger(session)
        self.user_repo = UserRepository(session)
        self.distribution_repo = DistributionRepository(session)
        self.ledger_repo = LedgerRepository(session)

    async def process_activation(
        self, activation: Activation, force: bool = False
    ) -> ActivationOutcome:
        """
        Distribute referral income for one activation.

        Does not commit. With ``force`` an already processed activation is
        re-examined: missing levels are decided and credited records whose
        ledger entry is missing are re-posted; nothing is credited twice.

        Raises:
            ConfigurationError: level table is invalid; nothing is written
                and the activation stays pending
        """
        outcome = ActivationOutcome(activation_id=activation.id)
        if activation.referral_processed and not force:
            outcome.skip_reason = SkipReason.ALREADY_PROCESSED.value
            return outcome

        self.qualification.reset()

        cfg = self.config.referral_income
        reason = self._activation_skip_reason(activation)
        if reason is None:
            activator = await self.user_repo.get_by_id(activation.user_id)
            if activator is None:
                reason = SkipReason.ACTIVATOR_NOT_FOUND.value
            elif activator.status != UserStatus.ACTIVE_INVESTOR.value:
                reason = SkipReason.ACTIVATOR_NOT_ACTIVE_INVESTOR.value
        if reason is not None:
            await self._mark_processed(activation)
            outcome.skip_reason = reason
            return outcome

        try:
            chain = await self._load_chain(activation.user_id)
        except (SelfReferralError, CircularReferralError) as e:
            self.logger.warning(
                "Referral income rejected",
                extra={"activation_id": activation.id, "reason": e.code},
            )
            await self._mark_processed(activation, error=e.message)
            outcome.skip_reason = (
                SkipReason.SELF_REFERRAL.value
                if isinstance(e, SelfReferralError)
                else SkipReason.CIRCULAR_REFERRAL.value
            )
            return outcome

        if not chain.ancestors:
            await self._mark_processed(activation)
            outcome.skip_reason = SkipReason.NO_REFERRER.value
            return outcome

        if cfg.enable_multi_level_income:
            errors = cfg.level_table_errors()
            if errors:
                raise ConfigurationError("Invalid level income table", errors=errors)

        amount = quantize(activation.amount)
        for share in plan_shares(amount, len(chain.ancestors), cfg):
            node = chain.at_level(share.level)
            if node is None:
                continue
            await self._distribute(activation, node, share, force, outcome)

        await self._mark_processed(activation)
        if not outcome.credited and outcome.skipped and not force:
            outcome.skip_reason = next(iter(outcome.skipped.values()))

        self.logger.info(
            "Referral income processed",
            extra={
                "activation_id": activation.id,
                "credited": len(outcome.credited),
                "skipped": len(outcome.skipped),
                "total": str(outcome.total_credited),
            },
        )
        return outcome

    def _activation_skip_reason(self, activation: Activation) -> str | None:
        cfg = self.config.referral_income
        if not cfg.enable_referral_income_global:
            return SkipReason.REFERRAL_INCOME_DISABLED.value
        # Leader-program activations never pay referral income
        if activation.program_type == ProgramType.LEADER.value:
            return SkipReason.LEADER_PROGRAM.value
        amount = quantize(activation.amount)
        if amount <= ZERO:
            return SkipReason.ZERO_AMOUNT.value
        if amount < cfg.min_activation_amount_for_referral:
            return SkipReason.BELOW_MINIMUM_AMOUNT.value
        return None

    async def _load_chain(self, user_id: int) -> UplineChain:
        limits = self.config.referral_income.anti_abuse_limits
        chain = await self.chain_manager.get_upline(user_id, settings.max_upline_hops)
        if chain.self_referral and limits.block_self_referral:
            raise SelfReferralError("Self-referral detected", user_id=user_id)
        if chain.circular and limits.block_circular_referral:
            raise CircularReferralError("Circular referral chain detected", user_id=user_id)
        return chain

    async def _distribute(
        self,
        activation: Activation,
        node: UplineNode,
        share: LevelShare,
        force: bool,
        outcome: ActivationOutcome,
    ) -> None:
        existing = await self.distribution_repo.get_triple(
            activation.id, node.user_id, share.level
        )
        if existing is not None:
            if force and existing.status == DistributionStatus.CREDITED.value:
                if await self._repair(existing):
                    outcome.repaired += 1
            return

        reason = await self._beneficiary_skip_reason(node, share, activation.user_id)
        cfg = self.config.referral_income
        try:
            async with self.session.begin_nested():
                record = ReferralIncomeDistribution(
                    activation_id=activation.id,
                    beneficiary_id=node.user_id,
                    source_user_id=activation.user_id,
                    level=share.level,
                    income_type=share.income_type,
                    percent=share.percent,
                    amount=share.amount,
                    status=DistributionStatus.CREDITED.value,
                    skip_reason=None,
                )
                if reason is not None:
                    record.status = DistributionStatus.SKIPPED.value
                    record.skip_reason = reason
                self.session.add(record)
                await self.session.flush()

                if reason is None:
                    reason = await self._credit(record, share, cfg.referral_income_counts_toward_cap)
        except IntegrityError:
            self.logger.debug(
                "Distribution already recorded",
                extra={
                    "activation_id": activation.id,
                    "beneficiary_id": node.user_id,
                    "level": share.level,
                },
            )
            return

        if reason is None:
            outcome.credited.append(share)
        else:
            outcome.skipped[share.level] = reason

    async def _credit(
        self,
        record: ReferralIncomeDistribution,
        share: LevelShare,
        counts_toward_cap: bool,
    ) -> str | None:
        """Reserve cap and credit the wallet; returns a skip reason on refusal."""
        try:
            async with self.session.begin_nested():
                await self.cap_tracker.reserve(
                    record.beneficiary_id,
                    share.amount,
                    share.income_type,
                    self.config.renewals,
                    counts_toward_cap=counts_toward_cap,
                )
                posting = await self.ledger.credit(
                    record.beneficiary_id,
                    share.amount,
                    LedgerSource(share.income_type).value,
                    record.ledger_source_id,
                    income_type=share.income_type,
                    description=f"Referral income level {share.level}",
                    meta={
                        "activation_id": record.activation_id,
                        "source_user_id": record.source_user_id,
                        "level": share.level,
                    },
                )
        except CapReachedError:
            record.status = DistributionStatus.SKIPPED.value
            record.skip_reason = SkipReason.CAP_REACHED.value
            await self.session.flush()
            return SkipReason.CAP_REACHED.value

        record.ledger_entry_id = posting.entry_id
        await self.session.flush()
        return None

    async def _beneficiary_skip_reason(
        self, node: UplineNode, share: LevelShare, source_user_id: int
    ) -> str | None:
        cfg = self.config.referral_income
        if node.program_type == ProgramType.LEADER.value and not cfg.enable_leader_referral_income:
            return SkipReason.LEADER_PROGRAM.value
        if not cfg.enable_investor_referral_income:
            return SkipReason.INVESTOR_INCOME_DISABLED.value
        if (
            node.status != UserStatus.ACTIVE_INVESTOR.value
            or node.status not in cfg.referral_income_eligible_statuses
        ):
            return SkipReason.REFERRER_NOT_ACTIVE_INVESTOR.value
        if share.amount <= ZERO:
            return SkipReason.ZERO_AMOUNT.value
        if not await self.qualification.is_qualified(node.user_id, share.level):
            return SkipReason.NOT_QUALIFIED.value

        limits = cfg.anti_abuse_limits
        if limits.max_referral_income_per_day > ZERO:
            today = await self.distribution_repo.sum_credited_since(
                node.user_id, start_of_day(utc_now())
            )
            if quantize(today) + share.amount > limits.max_referral_income_per_day:
                return SkipReason.DAILY_LIMIT_REACHED.value
        if limits.max_per_referred_user > ZERO:
            earned = await self.distribution_repo.sum_credited_from_source(
                node.user_id, source_user_id
            )
            if quantize(earned) + share.amount > limits.max_per_referred_user:
                return SkipReason.REFERRED_USER_LIMIT_REACHED.value
        return None

    async def _repair(self, record: ReferralIncomeDistribution) -> bool:
        """Re-post the wallet credit of a CREDITED record whose entry is missing."""
        entry = await self.ledger_repo.get_by_source(
            record.beneficiary_id,
            LedgerDirection.CREDIT.value,
            LedgerSource(record.income_type).value,
            record.ledger_source_id,
        )
        if entry is not None:
            return False

        posting = await self.ledger.credit(
            record.beneficiary_id,
            quantize(record.amount),
            LedgerSource(record.income_type).value,
            record.ledger_source_id,
            income_type=record.income_type,
            description=f"Referral income level {record.level} (reprocessed)",
            meta={"activation_id": record.activation_id, "reprocessed": True},
        )
        record.ledger_entry_id = posting.entry_id
        await self.session.flush()
        self.logger.warning(
            "Missing referral credit re-posted",
            extra={
                "activation_id": record.activation_id,
                "beneficiary_id": record.beneficiary_id,
                "level": record.level,
            },
        )
        return True

    async def _mark_processed(
        self, activation: Activation, error: str | None = None
    ) -> None:
        await self.session.execute(
            update(Activation)
            .where(Activation.id == activation.id)
            .values(
                referral_processed=True,
                referral_processed_at=utc_now(),
                referral_last_error=error,
            )
            .execution_options(synchronize_session="fetch")
        )
