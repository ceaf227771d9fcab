"""Checked integer arithmetic for ledger amounts.

Balances, share supply and fee ledgers are plain integers that must stay in
the uint256 range. SafeInt makes the arithmetic on them fail loudly instead
of silently producing an invalid value:
- Subtraction below zero raises Underflow
- Addition or multiplication above 2^256-1 raises Uint256Overflow
- Division by zero raises DivisionByZero

Usage pattern:
    from pool_engine.safe_int import S

    record.balance = (S(record.balance) - amount_out).value
"""

from __future__ import annotations

UINT256_MAX = 2**256 - 1


class SafeIntError(ArithmeticError):
    """Base class for checked arithmetic errors."""

    pass


class DivisionByZero(SafeIntError):
    """Division or modulo by zero."""

    pass


class Underflow(SafeIntError):
    """Subtraction would produce a negative result."""

    pass


class Uint256Overflow(SafeIntError):
    """Value exceeds the uint256 range."""

    pass


def check_uint256(value: int) -> int:
    """Return value unchanged if it fits in uint256.

    Raises:
        Underflow: If value is negative
        Uint256Overflow: If value exceeds 2^256-1
    """
    if value < 0:
        raise Underflow(f"Negative value cannot be uint256: {value}")
    if value > UINT256_MAX:
        raise Uint256Overflow(f"Value exceeds uint256 max: {value}")
    return value


class SafeInt:
    """Ledger amount with checked arithmetic.

    Wraps a uint256 value; every operator returns a new SafeInt and raises
    instead of leaving the uint256 range.

    Attributes:
        value: The wrapped integer
    """

    __slots__ = ("value",)

    def __init__(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"SafeInt requires int, got {type(value).__name__}")
        self.value = check_uint256(value)

    def __repr__(self) -> str:
        return f"S({self.value})"

    def __add__(self, other: int) -> SafeInt:
        return SafeInt(check_uint256(self.value + other))

    def __sub__(self, other: int) -> SafeInt:
        if other > self.value:
            raise Underflow(f"Underflow: {self.value} - {other}")
        return SafeInt(self.value - other)

    def __mul__(self, other: int) -> SafeInt:
        return SafeInt(check_uint256(self.value * other))

    def __floordiv__(self, other: int) -> SafeInt:
        if other == 0:
            raise DivisionByZero(f"Division by zero: {self.value} // 0")
        return SafeInt(self.value // other)


# Convenience alias for concise code
S = SafeInt
