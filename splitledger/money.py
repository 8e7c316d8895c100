import re
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Union

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Share sums must lie strictly closer than this to the stated total.
SHARE_SUM_TOLERANCE = Decimal("0.01")
# Largest amount a caller may submit; same bound as the API's max_digits=12.
MAX_AMOUNT = Decimal("9999999999.99")
# Stored values are cents in a signed 64-bit column.
MAX_CENTS = 2 ** 63 - 1

AmountLike = Union[Decimal, str, int]

_AMOUNT_TEXT = re.compile(r"-?\d+(\.\d{1,2})?", re.ASCII)


def to_money(value: AmountLike) -> Decimal:
    """
    Parse an amount into a Decimal with exactly two fractional digits.

    Accepts Decimal, int or a plain base-10 string such as "25.50". Floats are
    rejected so that binary rounding never reaches the ledger.

    Raises:
        TypeError: for floats and other unsupported types
        ValueError: for malformed text, non-finite values, more than two
            fractional digits or amounts that do not fit the cents column
    """
    if isinstance(value, bool) or not isinstance(value, (Decimal, str, int)):
        raise TypeError(f"Amounts must be Decimal, str or int, got {type(value).__name__}")
    if isinstance(value, str):
        value = value.strip()
        if not _AMOUNT_TEXT.fullmatch(value):
            raise ValueError(f"Invalid amount {value!r}")
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise InvalidOperation
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise ValueError(f"Invalid amount {value!r}") from None
    if quantized != amount:
        raise ValueError(f"Amount {value!r} has more than two decimal places")
    if abs(quantized.scaleb(2)) > MAX_CENTS:
        raise ValueError(f"Amount {value!r} is out of range")
    return quantized


def split_down(total: Decimal, parts: int) -> Decimal:
    """Per-part amount of an even split, rounded down to the cent."""
    return (total / parts).quantize(CENT, rounding=ROUND_DOWN)


class Money(TypeDecorator):
    """
    Exact two-decimal amount stored as an integer number of cents.

    Keeps `balance = balance + :delta` exact on every backend, including
    SQLite which has no fixed-point column type.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(to_money(value).scaleb(2))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-2)
