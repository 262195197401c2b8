"""
Callable operations.

Each callable takes ``(session, caller_uid, data)`` and returns a plain
dictionary: ``{"success": True, ...}`` or
``{"success": False, "error": message, "code": code}``. Domain errors are
expected outcomes; anything else is logged with its traceback and reported
as ``INTERNAL``.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.api.schemas import (
    AdminConfigPayload,
    PaymentActivationPayload,
    ProcessReferralPayload,
    ReferralCodePayload,
    RenewalPayload,
    SponsorActivationPayload,
    TransferPayload,
    UnblockPayload,
    WalletAdjustmentPayload,
    WithdrawalCancelPayload,
    WithdrawalPayload,
    WithdrawalReviewPayload,
)
from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.user import User
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.services.activation import ActivationService, AutoBlockService
from mlm_engine.services.cap import RenewalService
from mlm_engine.services.config_service import ConfigService
from mlm_engine.services.referral import (
    ActivationOutcome,
    PendingReferralProcessor,
    ReferralChainManager,
)
from mlm_engine.services.transfer import TransferService
from mlm_engine.services.wallet import WalletAdjustmentService, WalletSyncService
from mlm_engine.services.withdrawal import (
    WithdrawalLifecycleHandler,
    WithdrawalRequestHandler,
)
from mlm_engine.utils.db_decorators import with_rollback_on_error
from mlm_engine.utils.exceptions import MLMError, NotFoundError, PermissionDeniedError


CallableResult = dict[str, Any]
CallableHandler = Callable[[AsyncSession, str | None, dict[str, Any]], Awaitable[CallableResult]]


def callable_endpoint(
    func: CallableHandler | None = None, *, on_failure: dict[str, Any] | None = None
) -> Any:
    """
    Convert exceptions of a callable into error dictionaries.

    The session is rolled back before the error is returned. ``on_failure``
    keys are added to every error dictionary, for clients that read a field
    such as ``valid`` on both outcomes.

    Usable bare (``@callable_endpoint``) or with options
    (``@callable_endpoint(on_failure={...})``).
    """
    extra_keys = on_failure or {}

    def decorator(handler: CallableHandler) -> CallableHandler:
        guarded = with_rollback_on_error(handler)

        @wraps(handler)
        async def wrapper(
            session: AsyncSession, caller_uid: str | None, data: dict[str, Any] | None = None
        ) -> CallableResult:
            try:
                return await guarded(session, caller_uid, data or {})
            except ValidationError as e:
                errors = [
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                    for err in e.errors(include_url=False)
                ]
                result = {
                    "success": False,
                    "error": "; ".join(errors),
                    "code": "VALIDATION",
                }
            except MLMError as e:
                logger.info(
                    f"{handler.__name__} refused: {e.message}",
                    extra={"code": e.code, "caller_uid": caller_uid},
                )
                result = e.to_dict()
            except Exception:
                logger.exception(
                    f"{handler.__name__} failed", extra={"caller_uid": caller_uid}
                )
                result = {"success": False, "error": "Internal error", "code": "INTERNAL"}
            return {**result, **extra_keys}

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


async def _require_caller(session: AsyncSession, caller_uid: str | None) -> User:
    if not caller_uid:
        raise PermissionDeniedError("User must be authenticated")
    user = await UserRepository(session).get_by_uid(caller_uid)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def _require_admin(session: AsyncSession, caller_uid: str | None) -> User:
    user = await _require_caller(session, caller_uid)
    if not user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return user


async def _user_by_uid(session: AsyncSession, uid: str) -> User:
    user = await UserRepository(session).get_by_uid(uid)
    if user is None:
        raise NotFoundError("User not found", uid=uid)
    return user


async def _user_by_email(session: AsyncSession, email: str) -> User:
    user = await UserRepository(session).get_by_email(email)
    if user is None:
        raise NotFoundError("Recipient not found", email=email)
    return user


async def _snapshot(session: AsyncSession) -> ConfigSnapshot:
    return await ConfigService(session).get_snapshot()


def _outcome_dict(outcome: ActivationOutcome | None) -> dict[str, Any] | None:
    if outcome is None:
        return None
    return {
        "skipReason": outcome.skip_reason,
        "credited": len(outcome.credited),
        "totalCredited": str(outcome.total_credited),
        "skipped": {str(level): reason for level, reason in outcome.skipped.items()},
    }


# ---------------------------------------------------------------------------
# User callables
# ---------------------------------------------------------------------------


@callable_endpoint(on_failure={"valid": False})
async def validate_referral_code(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    """Check a referral code at signup; no authentication required.

    Answers ``valid`` on every outcome; ``error`` explains a refusal.
    """
    payload = ReferralCodePayload.model_validate(data)
    referrer = await ReferralChainManager(session).validate_referral_code(payload.code)
    return {
        "success": True,
        "valid": True,
        "referrerUid": referrer.uid,
        "referrerName": referrer.name,
    }


@callable_endpoint
async def create_sponsor_activation(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    sponsor = await _require_caller(session, caller_uid)
    payload = SponsorActivationPayload.model_validate(data)
    target = await _user_by_uid(session, payload.target_uid)
    config = await _snapshot(session)

    activation, outcome = await ActivationService(session, config).create_sponsor_activation(
        sponsor, target.id, payload.plan_id, expected_amount=payload.amount
    )
    return {
        "success": True,
        "activationId": activation.id,
        "amount": str(activation.amount),
        "referralIncome": _outcome_dict(outcome),
    }


@callable_endpoint
async def create_user_transfer(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    sender = await _require_caller(session, caller_uid)
    payload = TransferPayload.model_validate(data)
    if payload.recipient_email:
        recipient = await _user_by_email(session, payload.recipient_email)
    else:
        recipient = await _user_by_uid(session, payload.recipient_uid)
    config = await _snapshot(session)

    transfer = await TransferService(session, config).create_transfer(
        sender, recipient.id, payload.amount, note=payload.note
    )
    return {
        "success": True,
        "transferId": transfer.id,
        "amount": str(transfer.amount),
        "fee": str(transfer.fee),
        "netAmount": str(transfer.net_amount),
    }


@callable_endpoint
async def create_withdrawal_request(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    user = await _require_caller(session, caller_uid)
    payload = WithdrawalPayload.model_validate(data)
    config = await _snapshot(session)

    withdrawal = await WithdrawalRequestHandler(session, config).request_withdrawal(
        user.id, payload.amount, payload.method, payload.payout_details
    )
    return {
        "success": True,
        "withdrawalId": withdrawal.id,
        "amount": str(withdrawal.amount),
        "fee": str(withdrawal.fee),
        "netAmount": str(withdrawal.net_amount),
        "status": withdrawal.status,
    }


@callable_endpoint
async def cancel_withdrawal(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    user = await _require_caller(session, caller_uid)
    payload = WithdrawalCancelPayload.model_validate(data)
    withdrawal = await WithdrawalLifecycleHandler(session).cancel(payload.withdrawal_id, user)
    return {"success": True, "withdrawalId": withdrawal.id, "status": withdrawal.status}


@callable_endpoint
async def request_renewal(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    user = await _require_caller(session, caller_uid)
    config = await _snapshot(session)
    renewal = await RenewalService(session, config).request_renewal(user)
    return {
        "success": True,
        "renewalId": renewal.id,
        "capCycle": renewal.cap_cycle,
        "status": renewal.status,
    }


@callable_endpoint
async def process_renewal(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    """
    Renew a user's cap cycle.

    Admins renew anyone; sponsors renew their direct referrals; users pay
    their own renewal from the wallet.
    """
    performer = await _require_caller(session, caller_uid)
    payload = RenewalPayload.model_validate(data)
    target = await _user_by_uid(session, payload.user_uid)
    config = await _snapshot(session)

    renewal = await RenewalService(session, config).renew(
        target.id,
        payload.method,
        performer,
        base_amount=payload.base_amount,
        plan_id=payload.plan_id,
        payment_reference=payload.payment_reference,
        note=payload.note,
    )
    return {
        "success": True,
        "renewalId": renewal.id,
        "capCycle": renewal.cap_cycle,
        "newCap": str(renewal.new_cap),
        "fee": str(renewal.fee),
    }


# ---------------------------------------------------------------------------
# Admin callables
# ---------------------------------------------------------------------------


@callable_endpoint
async def process_all_pending_referral_income(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    await _require_admin(session, caller_uid)
    payload = ProcessReferralPayload.model_validate(data)
    config = await _snapshot(session)

    report = await PendingReferralProcessor(session, config).process_all(force=payload.force)
    return {"success": True, **report.to_dict()}


@callable_endpoint
async def sync_wallet_balances(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    await _require_admin(session, caller_uid)
    report = await WalletSyncService(session).sync_wallet_balances()
    return {"success": True, **report.to_dict()}


@callable_endpoint
async def adjust_user_wallet(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    admin = await _require_admin(session, caller_uid)
    payload = WalletAdjustmentPayload.model_validate(data)
    target = await _user_by_uid(session, payload.user_uid)

    posting = await WalletAdjustmentService(session).adjust_user_wallet(
        admin,
        target.id,
        payload.amount,
        payload.type,
        payload.description,
        admin_note=payload.admin_note,
        reference=payload.reference,
    )
    return {
        "success": True,
        "entryId": posting.entry_id,
        "balance": str(posting.balance_after),
        "replayed": posting.replayed,
    }


@callable_endpoint
async def review_withdrawal(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    admin = await _require_admin(session, caller_uid)
    payload = WithdrawalReviewPayload.model_validate(data)
    withdrawal = await WithdrawalLifecycleHandler(session).review(
        payload.withdrawal_id,
        payload.status,
        admin,
        note=payload.note,
        payout_reference=payload.payout_reference,
    )
    return {"success": True, "withdrawalId": withdrawal.id, "status": withdrawal.status}


@callable_endpoint
async def save_admin_config(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    admin = await _require_admin(session, caller_uid)
    payload = AdminConfigPayload.model_validate(data)
    stored = await ConfigService(session).save_document(payload.key, payload.data, admin.id)
    return {"success": True, "key": payload.key, "data": stored}


@callable_endpoint
async def unblock_user(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    admin = await _require_admin(session, caller_uid)
    payload = UnblockPayload.model_validate(data)
    target = await _user_by_uid(session, payload.user_uid)
    config = await _snapshot(session)

    user = await AutoBlockService(session, config).unblock_user(admin, target.id)
    return {"success": True, "uid": user.uid, "status": user.status}


# ---------------------------------------------------------------------------
# Payment gateway trigger
# ---------------------------------------------------------------------------


@callable_endpoint
async def activate_from_payment(
    session: AsyncSession, caller_uid: str | None, data: dict[str, Any]
) -> CallableResult:
    """
    Consume a verified gateway payment for the paying user's activation.

    Called by the payment webhook with the admin service account uid.
    """
    await _require_admin(session, caller_uid)
    payload = PaymentActivationPayload.model_validate(data)
    user = await _user_by_uid(session, payload.user_uid)
    config = await _snapshot(session)

    activation, outcome = await ActivationService(session, config).activate_from_payment(
        user.id, payload.plan_id, payload.payment_reference, payload.amount
    )
    return {
        "success": True,
        "activationId": activation.id,
        "referralIncome": _outcome_dict(outcome),
    }
