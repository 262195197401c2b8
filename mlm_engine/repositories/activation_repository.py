"""
Activation repository.

Data access layer for Activation and ReferralIncomeDistribution models.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.activation import Activation
from mlm_engine.models.enums import ActivationSource, DistributionStatus, ProgramType
from mlm_engine.models.referral_distribution import ReferralIncomeDistribution
from mlm_engine.repositories.base import BaseRepository


class ActivationRepository(BaseRepository[Activation]):
    """Activation repository with batch queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize activation repository."""
        super().__init__(Activation, session)

    async def get_by_payment_reference(
        self, payment_reference: str
    ) -> Activation | None:
        return await self.get_by(payment_reference=payment_reference)

    async def find_for_referral_run(
        self, after_id: int, limit: int, include_processed: bool = False
    ) -> list[Activation]:
        """
        Keyset page of activations for the referral income job.

        Args:
            after_id: Last activation ID of the previous page
            limit: Page size
            include_processed: Also return processed activations (force run)

        Returns:
            Activations ordered by ID
        """
        stmt = select(Activation).where(Activation.id > after_id)
        if not include_processed:
            stmt = stmt.where(Activation.referral_processed == False)  # noqa: E712
        stmt = stmt.order_by(Activation.id).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_pending_referral(self) -> int:
        return await self.count(referral_processed=False)

    async def find_roi_candidates(
        self, after_id: int, limit: int
    ) -> list[Activation]:
        """Investor activations whose ROI term is not complete."""
        stmt = (
            select(Activation)
            .where(Activation.id > after_id)
            .where(Activation.program_type == ProgramType.INVESTOR.value)
            .where(Activation.roi_completed == False)  # noqa: E712
            .order_by(Activation.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_sponsor_totals_since(
        self, sponsor_id: int, since: datetime
    ) -> tuple[int, Decimal]:
        """
        Sponsor-funded activations made by ``sponsor_id`` since a moment.

        Returns:
            Tuple of (count, total_amount)
        """
        stmt = (
            select(func.count(), func.coalesce(func.sum(Activation.amount), 0))
            .where(Activation.sponsor_id == sponsor_id)
            .where(Activation.source == ActivationSource.SPONSOR_WALLET.value)
            .where(Activation.activated_at >= since)
        )
        result = await self.session.execute(stmt)
        count, total = result.one()
        return count, Decimal(str(total))


class DistributionRepository(BaseRepository[ReferralIncomeDistribution]):
    """Referral income distribution repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize distribution repository."""
        super().__init__(ReferralIncomeDistribution, session)

    async def get_triple(
        self, activation_id: int, beneficiary_id: int, level: int
    ) -> ReferralIncomeDistribution | None:
        return await self.get_by(
            activation_id=activation_id,
            beneficiary_id=beneficiary_id,
            level=level,
        )

    async def sum_credited_since(
        self, beneficiary_id: int, since: datetime
    ) -> Decimal:
        """Referral income credited to a beneficiary since a moment."""
        stmt = (
            select(func.coalesce(func.sum(ReferralIncomeDistribution.amount), 0))
            .where(ReferralIncomeDistribution.beneficiary_id == beneficiary_id)
            .where(ReferralIncomeDistribution.status == DistributionStatus.CREDITED.value)
            .where(ReferralIncomeDistribution.created_at >= since)
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar_one()))

    async def sum_credited_from_source(
        self, beneficiary_id: int, source_user_id: int
    ) -> Decimal:
        """Referral income a beneficiary has earned from one referred user."""
        stmt = (
            select(func.coalesce(func.sum(ReferralIncomeDistribution.amount), 0))
            .where(ReferralIncomeDistribution.beneficiary_id == beneficiary_id)
            .where(ReferralIncomeDistribution.source_user_id == source_user_id)
            .where(ReferralIncomeDistribution.status == DistributionStatus.CREDITED.value)
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar_one()))
