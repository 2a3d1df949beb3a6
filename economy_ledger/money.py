"""
Amount Handling Module

All monetary values are Decimal. Floats are never used for balances, rates or
fees; values arriving as strings or numbers are converted via str().

Amounts are bounded to MAX_AMOUNT_DIGITS integer digits so that sums and
quantized conversions always fit the 28-digit decimal context.
"""

from decimal import Decimal, DecimalException, ROUND_HALF_UP, getcontext
from typing import Union
import re

from .errors import InvalidAmountError

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')
ONE = Decimal('1')
HUNDRED = Decimal('100')

MAX_AMOUNT_DIGITS = 18

AmountLike = Union[Decimal, int, float, str]

_NUMERIC_LITERAL = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a number or numeric string to Decimal

    Raises:
        InvalidAmountError: If the value is not a finite number, or has more
            than MAX_AMOUNT_DIGITS integer digits
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidAmountError(f"Cannot use boolean {value!r} as an amount")
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        result = decimal_from_string(value)
    else:
        raise InvalidAmountError(f"Cannot convert {value!r} to an amount")

    if not result.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    return require_in_range(result)


def require_in_range(amount: Decimal) -> Decimal:
    """Reject amounts with more than MAX_AMOUNT_DIGITS integer digits"""
    if amount != ZERO and amount.adjusted() >= MAX_AMOUNT_DIGITS:
        raise InvalidAmountError(
            f"Amount {amount} exceeds {MAX_AMOUNT_DIGITS} integer digits"
        )
    return amount


def decimal_from_string(value: str) -> Decimal:
    """
    Convert a string to Decimal, handling common formats

    A bare numeric literal ("12.5", "1e3") is taken as is. Otherwise
    currency symbols, unit names and whitespace are dropped and commas are
    read as either thousands or decimal separators:

        "1,250.5 gp" -> 1250.5
        "1,5"        -> 1.5
        "1,250"      -> 1250
        "5 silver"   -> 5
    """
    if not value or not value.strip():
        raise InvalidAmountError("Amount must be a non-empty string")

    stripped = value.strip()
    if _NUMERIC_LITERAL.fullmatch(stripped):
        clean_value = stripped
    else:
        # Remove currency symbols, unit names and whitespace
        clean_value = re.sub(r'[^\d.,\-+]', '', stripped)

        if ',' in clean_value and '.' in clean_value:
            # Both comma and dot - comma is the thousands separator
            clean_value = clean_value.replace(',', '')
        elif clean_value.count(',') == 1:
            # Single comma - one or two trailing digits make it a decimal separator
            if len(clean_value.split(',')[1]) <= 2:
                clean_value = clean_value.replace(',', '.')
            else:
                clean_value = clean_value.replace(',', '')
        else:
            clean_value = clean_value.replace(',', '')

        if not _NUMERIC_LITERAL.fullmatch(clean_value):
            raise InvalidAmountError(f"Cannot convert '{value}' to an amount")

    try:
        return Decimal(clean_value)
    except DecimalException:
        raise InvalidAmountError(f"Cannot convert '{value}' to an amount") from None


def require_positive(value: AmountLike, what: str = "Amount") -> Decimal:
    """Convert and check that the amount is strictly positive"""
    amount = to_decimal(value)
    if amount <= ZERO:
        raise InvalidAmountError(f"{what} must be positive, got {amount}")
    return amount


def require_non_negative(value: AmountLike, what: str = "Amount") -> Decimal:
    amount = to_decimal(value)
    if amount < ZERO:
        raise InvalidAmountError(f"{what} cannot be negative, got {amount}")
    return amount


def quantize_amount(value: Decimal, places: int) -> Decimal:
    """
    Round to a fixed number of decimal places (half up)

    Raises:
        InvalidAmountError: If the rounded value does not fit the decimal context
    """
    try:
        return value.quantize(Decimal('0.1') ** places, rounding=ROUND_HALF_UP)
    except DecimalException:
        raise InvalidAmountError(
            f"Amount {value} is too large to round to {places} places"
        ) from None


def percentage_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Return percent% of amount, e.g. percentage_of(200, 2) == 4"""
    return amount * percent / HUNDRED
