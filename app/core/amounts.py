"""
Monetary amounts are arbitrary-precision integers in the smallest currency unit.
They never pass through float arithmetic and are stored as decimal strings.
"""
import re
from typing import Any

from app.core.exceptions import InvalidInputError

# Amounts, rates and fees are uint256 values on-chain
MAX_AMOUNT = 2 ** 256 - 1

_DIGITS = re.compile(r"\s*[0-9]+\s*")


def parse_amount(value: Any, field_name: str) -> int:
    """
    Parse a JSON number or numeric string into an int.

    Accepts ints, strings of decimal digits (surrounding whitespace ignored)
    and integral floats such as ``100.0``. Rejects booleans, fractions,
    exponent or decimal-point strings, negative values and anything that
    does not fit in a uint256.

    Raises:
        InvalidInputError: If the value is not an integer in ``[0, 2**256)``
    """
    if isinstance(value, bool):
        raise InvalidInputError(f"{field_name} must be an integer amount", {"field": field_name})

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise InvalidInputError(f"{field_name} must be an integer amount", {"field": field_name})
        parsed = int(value)
    elif isinstance(value, str):
        # Longer than any uint256 without leading zeros; also keeps int() under its digit limit
        if not _DIGITS.fullmatch(value) or len(value.strip().lstrip("0")) > 78:
            raise InvalidInputError(f"{field_name} must be an integer amount", {"field": field_name})
        parsed = int(value.strip())
    else:
        raise InvalidInputError(f"{field_name} must be an integer amount", {"field": field_name})

    if parsed < 0:
        raise InvalidInputError(f"{field_name} must not be negative", {"field": field_name})
    if parsed > MAX_AMOUNT:
        raise InvalidInputError(f"{field_name} exceeds the maximum amount", {"field": field_name})
    return parsed
