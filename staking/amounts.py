"""Unsigned integer arithmetic in the asset's smallest unit, bounded to uint256."""

from .constants import PERCENT_DENOMINATOR, UINT256_MAX
from .errors import AmountOverflowError, ValidationError


def require_positive(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise ValidationError(f"Amount must be positive, got {amount}")
    if amount > UINT256_MAX:
        raise AmountOverflowError("Amount exceeds uint256 range")
    return amount


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > UINT256_MAX:
        raise AmountOverflowError(f"Overflow adding {b} to {a}")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise AmountOverflowError(f"Underflow subtracting {b} from {a}")
    return a - b


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > UINT256_MAX:
        raise AmountOverflowError(f"Overflow multiplying {a} by {b}")
    return result


def percent_of(amount: int, percent: int) -> int:
    """Floor of ``amount * percent / 100``; the product is overflow-checked first."""
    return checked_mul(amount, percent) // PERCENT_DENOMINATOR
