"""
Common validators for callable input.

Each validator returns a tuple of (is_valid, parsed_value, error_message).
"""

import re
from decimal import Decimal, InvalidOperation


REFERRAL_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,20}$")


def validate_amount(
    value: str | int | float | Decimal | None,
    min_val: Decimal = Decimal("0"),
    max_val: Decimal | None = None,
) -> tuple[bool, Decimal | None, str | None]:
    """
    Validate a money amount.

    Args:
        value: Amount as sent by the client
        min_val: Minimum allowed value (exclusive when zero)
        max_val: Maximum allowed value (optional)

    Returns:
        Tuple of (is_valid, parsed_value, error_message)

    Examples:
        >>> validate_amount("100.50")
        (True, Decimal('100.50'), None)
        >>> validate_amount("-10")
        (False, None, 'Amount must be greater than 0')
    """
    if value is None or isinstance(value, bool):
        return False, None, "Amount is empty"

    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return False, None, "Amount is empty"

    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return False, None, "Invalid amount format"

    if not amount.is_finite():
        return False, None, "Amount must be a finite number"

    if amount <= 0:
        return False, None, "Amount must be greater than 0"

    if amount < min_val:
        return False, None, f"Amount must be >= {min_val}"

    if max_val is not None and amount > max_val:
        return False, None, f"Amount must be <= {max_val}"

    # Paise precision
    if amount.as_tuple().exponent < -2:
        return False, None, "Amount has too many decimal places (maximum 2)"

    return True, amount, None


def validate_referral_code(value: str | None) -> tuple[bool, str | None, str | None]:
    """
    Validate referral code format and normalize it to upper case.

    Examples:
        >>> validate_referral_code(" ab12cd ")
        (True, 'AB12CD', None)
        >>> validate_referral_code("a-b")
        (False, None, 'Referral code must be 4-20 letters or digits')
    """
    if not value or not isinstance(value, str) or not value.strip():
        return False, None, "Referral code is required"

    code = value.strip().upper()
    if not REFERRAL_CODE_PATTERN.match(code):
        return False, None, "Referral code must be 4-20 letters or digits"

    return True, code, None
