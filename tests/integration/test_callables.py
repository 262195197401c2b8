"""Integration tests for the callable layer: auth, payloads and error mapping."""

from decimal import Decimal

import pytest
from sqlalchemy import delete, update

from mlm_engine.api import callables
from mlm_engine.config.admin_config import WEEKDAYS
from mlm_engine.models.enums import CapStatus, UserRole, UserStatus, WithdrawalStatus
from mlm_engine.models.ledger_entry import LedgerEntry
from mlm_engine.models.wallet import Wallet
from mlm_engine.services.config_service import ConfigService


pytestmark = pytest.mark.integration

BANK_DETAILS = {"accountNumber": "XXXXXX4321", "ifsc": "HDFC0001234", "holderName": "Asha Rao"}


@pytest.fixture
async def admin(session, make_user):
    admin = await make_user(role=UserRole.ADMIN.value)
    await session.commit()
    return admin


@pytest.fixture
async def member(session, make_user, fund):
    user = await make_user()
    await fund(user, Decimal("5000"))
    return user


class TestValidateReferralCode:
    @pytest.mark.asyncio
    async def test_valid_code(self, session, make_user):
        referrer = await make_user()
        await session.commit()

        result = await callables.validate_referral_code(
            session, None, {"refCode": referrer.referral_code.lower()}
        )

        assert result["success"] is True
        assert result["valid"] is True
        assert result["referrerUid"] == referrer.uid

    @pytest.mark.asyncio
    async def test_code_key_still_accepted(self, session, make_user):
        referrer = await make_user()
        await session.commit()

        result = await callables.validate_referral_code(
            session, None, {"code": referrer.referral_code}
        )

        assert result["valid"] is True

    @pytest.mark.asyncio
    async def test_unknown_code(self, session):
        result = await callables.validate_referral_code(session, None, {"refCode": "ZZZZ9999"})
        assert result == {
            "success": False,
            "valid": False,
            "error": "Invalid referral code",
            "code": "NOT_FOUND",
        }

    @pytest.mark.asyncio
    async def test_malformed_code(self, session):
        result = await callables.validate_referral_code(session, None, {"refCode": "a-b"})
        assert result["success"] is False
        assert result["valid"] is False
        assert result["code"] == "VALIDATION"

    @pytest.mark.asyncio
    async def test_missing_code(self, session):
        result = await callables.validate_referral_code(session, None, {})
        assert result["valid"] is False
        assert result["code"] == "VALIDATION"

    @pytest.mark.asyncio
    async def test_pending_referrer(self, session, make_user):
        referrer = await make_user(status=UserStatus.PENDING_ACTIVATION.value)
        await session.commit()

        result = await callables.validate_referral_code(
            session, None, {"refCode": referrer.referral_code}
        )

        assert result["valid"] is False
        assert result["code"] == "VALIDATION"


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_anonymous_caller(self, session):
        result = await callables.create_user_transfer(
            session, None, {"recipientEmail": "user1@example.com", "amount": "100"}
        )
        assert result["code"] == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_unknown_caller(self, session):
        result = await callables.create_withdrawal_request(
            session, "ghost", {"amount": "1000", "method": "bank"}
        )
        assert result["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_admin_callable_needs_admin(self, session, member):
        uid = member.uid
        result = await callables.sync_wallet_balances(session, uid, {})
        assert result["code"] == "PERMISSION_DENIED"

        result = await callables.process_all_pending_referral_income(session, uid, {})
        assert result["code"] == "PERMISSION_DENIED"


class TestAdminConfig:
    @pytest.mark.asyncio
    async def test_saved_document_is_used(self, session, admin):
        result = await callables.save_admin_config(
            session, admin.uid, {"key": "features", "data": {"enableUserTransfers": True}}
        )

        assert result["success"] is True
        assert result["data"]["enableUserTransfers"] is True
        snapshot = await ConfigService(session).get_snapshot()
        assert snapshot.features.enable_user_transfers is True

    @pytest.mark.asyncio
    async def test_invalid_level_table_rejected(self, session, admin):
        data = {
            "levelReferralPercents": [
                {"levelFrom": 2, "levelTo": 5, "percent": "10"},
                {"levelFrom": 6, "levelTo": 10, "percent": "10"},
            ]
        }

        result = await callables.save_admin_config(
            session, admin.uid, {"key": "referralIncome", "data": data}
        )

        assert result["success"] is False
        assert result["code"] == "VALIDATION"
        assert result["details"]["errors"]

    @pytest.mark.asyncio
    async def test_unknown_document(self, session, admin):
        result = await callables.save_admin_config(
            session, admin.uid, {"key": "colours", "data": {}}
        )
        assert result["code"] == "VALIDATION"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, session, member, monkeypatch):
        async def broken(self):
            raise RuntimeError("database on fire")

        monkeypatch.setattr(ConfigService, "get_snapshot", broken)

        result = await callables.create_withdrawal_request(
            session, member.uid, {"amount": "1000", "method": "bank"}
        )

        assert result == {"success": False, "error": "Internal error", "code": "INTERNAL"}


class TestUserCallables:
    @pytest.mark.asyncio
    async def test_transfer(self, session, admin, member, make_user, balance_of):
        recipient = await make_user()
        await session.commit()
        await callables.save_admin_config(
            session, admin.uid, {"key": "features", "data": {"enableUserTransfers": True}}
        )

        result = await callables.create_user_transfer(
            session,
            member.uid,
            {"recipientEmail": recipient.email.upper(), "amount": 250, "note": "Gift"},
        )

        assert result["success"] is True
        assert Decimal(result["netAmount"]) == Decimal("250")
        assert await balance_of(recipient) == Decimal("250.00")

    @pytest.mark.asyncio
    async def test_transfer_to_uid(self, session, admin, member, make_user, balance_of):
        recipient = await make_user()
        await session.commit()
        await callables.save_admin_config(
            session, admin.uid, {"key": "features", "data": {"enableUserTransfers": True}}
        )

        result = await callables.create_user_transfer(
            session, member.uid, {"recipientUid": recipient.uid, "amount": "100"}
        )

        assert result["success"] is True
        assert await balance_of(recipient) == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_transfer_unknown_email(self, session, admin, member):
        await callables.save_admin_config(
            session, admin.uid, {"key": "features", "data": {"enableUserTransfers": True}}
        )

        result = await callables.create_user_transfer(
            session, member.uid, {"recipientEmail": "nobody@example.com", "amount": "100"}
        )

        assert result["code"] == "NOT_FOUND"
        assert result["error"] == "Recipient not found"

    @pytest.mark.asyncio
    async def test_transfer_without_recipient(self, session, member):
        result = await callables.create_user_transfer(
            session, member.uid, {"amount": "100", "note": "Lunch"}
        )
        assert result["code"] == "VALIDATION"

    @pytest.mark.asyncio
    async def test_transfer_disabled(self, session, member, make_user):
        recipient = await make_user()
        await session.commit()

        result = await callables.create_user_transfer(
            session, member.uid, {"recipientEmail": recipient.email, "amount": "250"}
        )

        assert result["code"] == "FEATURE_DISABLED"

    @pytest.mark.asyncio
    async def test_withdrawal(self, session, admin, member, balance_of):
        await callables.save_admin_config(
            session,
            admin.uid,
            {"key": "withdrawals", "data": {"allowedDays": list(WEEKDAYS), "cooldownHours": 0}},
        )

        result = await callables.create_withdrawal_request(
            session,
            member.uid,
            {"amount": "1000", "method": "bank", "payoutDetails": BANK_DETAILS},
        )

        assert result["success"] is True
        assert result["status"] == WithdrawalStatus.REQUESTED.value
        assert Decimal(result["fee"]) == Decimal("100")
        assert Decimal(result["netAmount"]) == Decimal("900")
        assert await balance_of(member) == Decimal("4000.00")

    @pytest.mark.asyncio
    async def test_withdrawal_payload_errors(self, session, member):
        result = await callables.create_withdrawal_request(
            session, member.uid, {"amount": "lots", "method": "bank"}
        )
        assert result["success"] is False
        assert result["code"] == "VALIDATION"

    @pytest.mark.asyncio
    async def test_bank_withdrawal_without_details(self, session, admin, member, balance_of):
        await callables.save_admin_config(
            session,
            admin.uid,
            {"key": "withdrawals", "data": {"allowedDays": list(WEEKDAYS), "cooldownHours": 0}},
        )

        result = await callables.create_withdrawal_request(
            session, member.uid, {"amount": "1000", "method": "bank"}
        )

        assert result["code"] == "VALIDATION"
        assert "accountNumber" in result["error"]
        assert await balance_of(member) == Decimal("5000.00")


class TestSponsorActivationCallable:
    @pytest.fixture
    async def target(self, session, admin, member, make_user, make_package, fund):
        await callables.save_admin_config(
            session, admin.uid, {"key": "features", "data": {"enableSponsorActivation": True}}
        )
        await fund(member, Decimal("10000"))
        target = await make_user(status=UserStatus.PENDING_ACTIVATION.value)
        await make_package()
        await session.commit()
        return target

    @pytest.mark.asyncio
    async def test_client_payload(self, session, member, target, balance_of, user_column):
        result = await callables.create_sponsor_activation(
            session,
            member.uid,
            {
                "targetUid": target.uid,
                "targetEmail": target.email,
                "planId": "INV10K",
                "amount": 10000,
            },
        )

        assert result["success"] is True
        assert Decimal(result["amount"]) == Decimal("10000")
        assert await balance_of(member) == Decimal("5000.00")
        assert await user_column(target, "status") == UserStatus.ACTIVE_INVESTOR.value

    @pytest.mark.asyncio
    async def test_amount_mismatch(self, session, member, target, balance_of, user_column):
        result = await callables.create_sponsor_activation(
            session,
            member.uid,
            {"targetUid": target.uid, "planId": "INV10K", "amount": "5000"},
        )

        assert result["success"] is False
        assert result["code"] == "INVALID_AMOUNT"
        assert result["details"] == {"sent": "5000.00", "expected": "10000.00"}
        assert await balance_of(member) == Decimal("15000.00")
        assert await user_column(target, "status") == UserStatus.PENDING_ACTIVATION.value


class TestAdminCallables:
    @pytest.mark.asyncio
    async def test_process_pending_referral_income(
        self, session, admin, make_user, make_activation, balance_of
    ):
        referrer = await make_user()
        referred = await make_user(referrer=referrer)
        await make_activation(referred)
        await session.commit()

        result = await callables.process_all_pending_referral_income(session, admin.uid, {})
        again = await callables.process_all_pending_referral_income(session, admin.uid, {})

        assert result["success"] is True
        assert result["processed"] == 1
        assert again["processed"] == 0
        assert await balance_of(referrer) == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_force_reprocess_repairs_lost_credit(
        self, session, admin, make_user, make_activation, balance_of
    ):
        referrer = await make_user()
        referred = await make_user(referrer=referrer)
        await make_activation(referred)
        await session.commit()
        await callables.process_all_pending_referral_income(session, admin.uid, {})

        # Lose the referrer's wallet posting
        await session.execute(delete(LedgerEntry).where(LedgerEntry.user_id == referrer.id))
        await session.execute(
            update(Wallet)
            .where(Wallet.user_id == referrer.id)
            .values(available_balance=Decimal("0"), total_credited=Decimal("0"))
        )
        await session.commit()

        plain = await callables.process_all_pending_referral_income(
            session, admin.uid, {"forceReprocess": False}
        )
        forced = await callables.process_all_pending_referral_income(
            session, admin.uid, {"forceReprocess": True}
        )

        assert plain["repaired"] == 0
        assert forced["success"] is True
        assert forced["repaired"] == 1
        assert await balance_of(referrer) == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_sync_wallet_balances(self, session, admin, member):
        result = await callables.sync_wallet_balances(session, admin.uid, {})

        assert result["success"] is True
        assert result["errors"] == []
        assert result["synced"] >= 2

    @pytest.mark.asyncio
    async def test_adjust_wallet(self, session, admin, member, balance_of):
        result = await callables.adjust_user_wallet(
            session,
            admin.uid,
            {"userUid": member.uid, "amount": "-500", "description": "Correction"},
        )

        assert result["success"] is True
        assert await balance_of(member) == Decimal("4500.00")

    @pytest.mark.asyncio
    async def test_adjust_wallet_client_payload(self, session, admin, member, balance_of):
        result = await callables.adjust_user_wallet(
            session,
            admin.uid,
            {
                "userId": member.uid,
                "amount": 250,
                "type": "admin_adjust",
                "description": "Goodwill credit",
                "adminNote": "Ticket 4411",
            },
        )

        assert result["success"] is True
        assert await balance_of(member) == Decimal("5250.00")


class TestWithdrawalLifecycle:
    @pytest.fixture
    async def withdrawal_id(self, session, admin, member):
        await callables.save_admin_config(
            session,
            admin.uid,
            {"key": "withdrawals", "data": {"allowedDays": list(WEEKDAYS), "cooldownHours": 0}},
        )
        result = await callables.create_withdrawal_request(
            session,
            member.uid,
            {"amount": "1000", "method": "bank", "payoutDetails": BANK_DETAILS},
        )
        return result["withdrawalId"]

    @pytest.mark.asyncio
    async def test_owner_cancels(self, session, member, withdrawal_id, balance_of):
        result = await callables.cancel_withdrawal(
            session, member.uid, {"withdrawalId": withdrawal_id}
        )

        assert result["success"] is True
        assert result["status"] == WithdrawalStatus.CANCELLED.value
        assert await balance_of(member) == Decimal("5000.00")

    @pytest.mark.asyncio
    async def test_review_to_paid(self, session, admin, member, withdrawal_id, balance_of):
        for status in ("under_review", "approved"):
            result = await callables.review_withdrawal(
                session, admin.uid, {"withdrawalId": withdrawal_id, "status": status}
            )
            assert result["status"] == status

        result = await callables.review_withdrawal(
            session,
            admin.uid,
            {"withdrawalId": withdrawal_id, "status": "paid", "payoutReference": "UTR-881"},
        )

        assert result["status"] == WithdrawalStatus.PAID.value
        assert await balance_of(member) == Decimal("4000.00")

    @pytest.mark.asyncio
    async def test_rejection_refunds(self, session, admin, member, withdrawal_id, balance_of):
        result = await callables.review_withdrawal(
            session,
            admin.uid,
            {"withdrawalId": withdrawal_id, "status": "rejected", "note": "Bank details mismatch"},
        )

        assert result["status"] == WithdrawalStatus.REJECTED.value
        assert await balance_of(member) == Decimal("5000.00")

    @pytest.mark.asyncio
    async def test_skipping_a_state_refused(self, session, admin, withdrawal_id):
        result = await callables.review_withdrawal(
            session, admin.uid, {"withdrawalId": withdrawal_id, "status": "paid"}
        )
        assert result["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_member_cannot_review(self, session, member, withdrawal_id):
        result = await callables.review_withdrawal(
            session, member.uid, {"withdrawalId": withdrawal_id, "status": "approved"}
        )
        assert result["code"] == "PERMISSION_DENIED"


class TestRenewalCallables:
    @pytest.fixture
    async def capped_user(self, session, make_user):
        user = await make_user(
            cumulative_earnings=Decimal("20000"),
            cap_status=CapStatus.CAP_REACHED.value,
        )
        await session.commit()
        return user

    @pytest.mark.asyncio
    async def test_request_then_admin_renews(self, session, admin, capped_user, user_column):
        requested = await callables.request_renewal(session, capped_user.uid, {})
        assert requested["success"] is True

        result = await callables.process_renewal(
            session, admin.uid, {"userUid": capped_user.uid, "method": "admin"}
        )

        assert result["success"] is True
        assert Decimal(result["newCap"]) == Decimal("20000")
        assert await user_column(capped_user, "cap_cycle") == 2
        assert await user_column(capped_user, "cap_status") == CapStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_client_renewal_payload(self, session, admin, capped_user, user_column):
        result = await callables.process_renewal(
            session,
            admin.uid,
            {
                "targetUid": capped_user.uid,
                "renewalMethod": "admin",
                "paymentReference": None,
                "notes": "Renewed at the branch",
            },
        )

        assert result["success"] is True
        assert await user_column(capped_user, "cap_cycle") == 2

    @pytest.mark.asyncio
    async def test_unknown_method(self, session, admin, capped_user):
        result = await callables.process_renewal(
            session, admin.uid, {"userUid": capped_user.uid, "method": "barter"}
        )
        assert result["code"] == "VALIDATION"
