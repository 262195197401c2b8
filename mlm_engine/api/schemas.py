"""
Callable payloads.

Clients send camelCase JSON; snake_case names are accepted too. Fields
whose client key differs from the field name list it in ``AliasChoices``.
"""

from decimal import Decimal
from typing import Annotated, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from mlm_engine.models.enums import RenewalMethod, WithdrawalStatus
from mlm_engine.validators import validate_amount, validate_referral_code


class Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


def _amount(value: Any) -> Decimal:
    is_valid, amount, error = validate_amount(value)
    if not is_valid:
        raise ValueError(error)
    return amount


def _signed_amount(value: Any) -> Decimal:
    if isinstance(value, str) and value.strip().startswith("-"):
        return -_amount(value.strip()[1:])
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool) and value < 0:
        return -_amount(-value)
    return _amount(value)


Amount = Annotated[Decimal, BeforeValidator(_amount)]
SignedAmount = Annotated[Decimal, BeforeValidator(_signed_amount)]


class ReferralCodePayload(Payload):
    code: str = Field(validation_alias=AliasChoices("refCode", "ref_code", "code"))

    @field_validator("code")
    @classmethod
    def check_code(cls, v: str) -> str:
        is_valid, code, error = validate_referral_code(v)
        if not is_valid:
            raise ValueError(error)
        return code


class SponsorActivationPayload(Payload):
    target_uid: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)
    # Plan amount shown to the sponsor; refused when the plan changed since
    amount: Decimal | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v: Any) -> Decimal | None:
        return None if v is None else _amount(v)


class TransferPayload(Payload):
    recipient_email: str | None = Field(default=None, max_length=255)
    recipient_uid: str | None = None
    amount: Amount
    note: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_recipient(self) -> "TransferPayload":
        if not self.recipient_email and not self.recipient_uid:
            raise ValueError("recipientEmail is required")
        return self


class WithdrawalPayload(Payload):
    amount: Amount
    method: str = Field(min_length=1, max_length=32)
    payout_details: dict[str, Any] | None = None


class ProcessReferralPayload(Payload):
    force: bool = Field(
        default=False,
        validation_alias=AliasChoices("forceReprocess", "force_reprocess", "force"),
    )


class WalletAdjustmentPayload(Payload):
    user_uid: str = Field(
        min_length=1, validation_alias=AliasChoices("userId", "userUid", "user_uid")
    )
    amount: SignedAmount
    type: str = Field(default="manual", max_length=32)
    description: str = Field(min_length=1, max_length=500)
    admin_note: str | None = None
    reference: str | None = Field(default=None, max_length=128)


class RenewalPayload(Payload):
    user_uid: str = Field(
        min_length=1, validation_alias=AliasChoices("targetUid", "userUid", "user_uid")
    )
    method: RenewalMethod = Field(
        validation_alias=AliasChoices("renewalMethod", "method")
    )
    base_amount: Decimal | None = None
    plan_id: str | None = Field(
        default=None, validation_alias=AliasChoices("renewalPlanId", "planId", "plan_id")
    )
    payment_reference: str | None = None
    note: str | None = Field(default=None, validation_alias=AliasChoices("notes", "note"))

    @field_validator("base_amount", mode="before")
    @classmethod
    def check_base_amount(cls, v: Any) -> Decimal | None:
        return None if v is None else _amount(v)


class WithdrawalReviewPayload(Payload):
    withdrawal_id: int = Field(gt=0)
    status: WithdrawalStatus
    note: str | None = None
    payout_reference: str | None = None


class WithdrawalCancelPayload(Payload):
    withdrawal_id: int = Field(gt=0)


class AdminConfigPayload(Payload):
    key: str = Field(min_length=1)
    data: dict[str, Any]


class PaymentActivationPayload(Payload):
    user_uid: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)
    payment_reference: str = Field(min_length=1, max_length=128)
    amount: Decimal | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v: Any) -> Decimal | None:
        return None if v is None else _amount(v)


class UnblockPayload(Payload):
    user_uid: str = Field(min_length=1)
