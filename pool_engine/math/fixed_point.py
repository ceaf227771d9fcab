"""Pool fixed-point (Bfp) math library.

18-decimal fixed-point arithmetic for the weighted pool. All values are
stored as integers scaled by 10^18 and every operation rounds in an explicit
direction, so callers can always choose the direction that favours the pool.

Unlike plain Python integers, results are range-checked: a subtraction below
zero raises Underflow and a value above 2^256-1 raises Uint256Overflow.

Powers follow Balancer's LogExpMath: x^y = exp(y * ln(x)), with ln computed
by extracting known powers of e and finishing with an arctanh series, and
exp by the reverse extraction plus a Taylor series. Bases close to one use a
36-decimal logarithm. Whole exponents skip the ln/exp round trip and are
computed by repeated multiplication in the requested rounding direction.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

from pool_engine.safe_int import DivisionByZero, SafeIntError, Underflow, check_uint256

__all__ = [
    # Classes
    "Bfp",
    # Errors
    "PowError",
    "PowBaseOutOfBounds",
    "PowExponentOutOfBounds",
    "PowProductOutOfBounds",
    # Functions
    "pow_raw",
    # Constants
    "ONE_18",
    "ONE_20",
    "ONE_36",
]

# =============================================================================
# Constants
# =============================================================================

ONE_18 = 10**18
ONE_20 = 10**20
ONE_36 = 10**36

# exp() is defined on [-41, 130]; e^130 still fits in 256 bits
MAX_NATURAL_EXPONENT = 130 * ONE_18
MIN_NATURAL_EXPONENT = -41 * ONE_18

# Bases in (0.9, 1.1) take the 36-decimal logarithm
LN_36_LOWER_BOUND = ONE_18 - 10**17
LN_36_UPPER_BOUND = ONE_18 + 10**17

MAX_POW_BASE = (1 << 255) - 1
MILD_EXPONENT_BOUND = (1 << 254) // ONE_20

# Relative error of pow_raw (1e-14), used to round fractional powers
MAX_POW_RELATIVE_ERROR = 10**4

# (x, e^x) pairs peeled off during ln/exp. The two large terms are kept at
# 18 decimals with e^x as a plain integer; the rest are at 20 decimals.
_LARGE_TERMS = (
    (128 * ONE_18, 38877084059945950922200000000000000000000000000000000000),
    (64 * ONE_18, 6235149080811616882910000000),
)
_SMALL_TERMS = (
    (32 * ONE_20, 7896296018268069516100000000000000),
    (16 * ONE_20, 888611052050787263676000000),
    (8 * ONE_20, 298095798704172827474000),
    (4 * ONE_20, 5459815003314423907810),
    (2 * ONE_20, 738905609893065022723),
    (ONE_20, 271828182845904523536),
    (ONE_20 // 2, 164872127070012814685),
    (ONE_20 // 4, 128402541668774148407),
    (ONE_20 // 8, 113314845306682631683),
    (ONE_20 // 16, 106449445891785942956),
)
# exp() stops peeling at e^0.25; ln() goes down to e^0.0625
_EXP_SMALL_TERMS = _SMALL_TERMS[:8]


class PowError(SafeIntError):
    """A power's inputs are outside the range ln/exp can handle."""

    pass


class PowBaseOutOfBounds(PowError):
    pass


class PowExponentOutOfBounds(PowError):
    pass


class PowProductOutOfBounds(PowError):
    """y * ln(x) falls outside [MIN_NATURAL_EXPONENT, MAX_NATURAL_EXPONENT]."""

    pass


# =============================================================================
# ln / exp
# =============================================================================


def _div_trunc(a: int, b: int) -> int:
    """a / b rounded toward zero, for b > 0."""
    quotient = abs(a) // b
    return quotient if a >= 0 else -quotient


def _ln(a: int) -> int:
    """Natural logarithm of a positive 18-decimal value."""
    if a < ONE_18:
        return -_ln(ONE_18 * ONE_18 // a)

    total = 0
    for x_n, a_n in _LARGE_TERMS:
        if a >= a_n * ONE_18:
            a //= a_n
            total += x_n

    total *= 100
    a *= 100
    for x_n, a_n in _SMALL_TERMS:
        if a >= a_n:
            a = a * ONE_20 // a_n
            total += x_n

    # ln(a) = 2 * arctanh(z) with z = (a - 1) / (a + 1)
    z = (a - ONE_20) * ONE_20 // (a + ONE_20)
    z_squared = z * z // ONE_20
    term = z
    series = z
    for k in range(3, 12, 2):
        term = term * z_squared // ONE_20
        series += term // k

    return (total + 2 * series) // 100


def _ln_36(x: int) -> int:
    """Natural logarithm of an 18-decimal value near one, at 36 decimals."""
    x *= ONE_18
    z = _div_trunc((x - ONE_36) * ONE_36, x + ONE_36)
    z_squared = _div_trunc(z * z, ONE_36)
    term = z
    series = z
    for k in range(3, 16, 2):
        term = _div_trunc(term * z_squared, ONE_36)
        series += _div_trunc(term, k)
    return 2 * series


def _exp(x: int) -> int:
    """e^x for an 18-decimal exponent in [MIN_NATURAL_EXPONENT, MAX_NATURAL_EXPONENT]."""
    if not MIN_NATURAL_EXPONENT <= x <= MAX_NATURAL_EXPONENT:
        raise PowProductOutOfBounds(f"Exponent {x} outside exp range")
    if x < 0:
        return ONE_18 * ONE_18 // _exp(-x)

    first_factor = 1
    for x_n, a_n in _LARGE_TERMS:
        if x >= x_n:
            x -= x_n
            first_factor = a_n
            break

    x *= 100
    product = ONE_20
    for x_n, a_n in _EXP_SMALL_TERMS:
        if x >= x_n:
            x -= x_n
            product = product * a_n // ONE_20

    # Taylor series up to x^12 / 12!
    term = x
    series = ONE_20 + x
    for k in range(2, 13):
        term = term * x // ONE_20 // k
        series += term

    return product * series // ONE_20 * first_factor // 100


def pow_raw(base: int, exp: int) -> int:
    """Compute base^exp where both are 18-decimal fixed-point (non-negative).

    Args:
        base: Base, below 2^255
        exp: Exponent, below MILD_EXPONENT_BOUND

    Returns:
        base^exp as 18-decimal fixed-point, accurate to MAX_POW_RELATIVE_ERROR

    Raises:
        PowBaseOutOfBounds: If base is 2^255 or more
        PowExponentOutOfBounds: If exp is too large
        PowProductOutOfBounds: If exp * ln(base) leaves the exp range
    """
    if exp == 0:
        return ONE_18
    if base == 0:
        return 0
    if base > MAX_POW_BASE:
        raise PowBaseOutOfBounds(f"Base {base} too large")
    if exp >= MILD_EXPONENT_BOUND:
        raise PowExponentOutOfBounds(f"Exponent {exp} too large")

    if LN_36_LOWER_BOUND < base < LN_36_UPPER_BOUND:
        ln_36 = _ln_36(base)
        whole = _div_trunc(ln_36, ONE_18)
        fraction = ln_36 - whole * ONE_18
        log_times_exp = whole * exp + _div_trunc(fraction * exp, ONE_18)
    else:
        log_times_exp = _ln(base) * exp

    return _exp(_div_trunc(log_times_exp, ONE_18))


# =============================================================================
# Bfp value type
# =============================================================================


@functools.total_ordering
class Bfp:
    """Non-negative 18-decimal fixed-point value.

    ``Bfp(value)`` takes the raw scaled integer: ``Bfp(ONE_18 // 2)`` is 0.5.
    There is no implicit rounding; every product, quotient and power names
    its direction.
    """

    ONE: ClassVar[int] = ONE_18

    __slots__ = ("value",)
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, value: int) -> None:
        self.value = check_uint256(value)

    @classmethod
    def from_int(cls, i: int) -> Bfp:
        """Whole number i as fixed-point."""
        return cls(i * ONE_18)

    @classmethod
    def from_decimal(cls, d: Decimal) -> Bfp:
        """Decimal d as fixed-point, half-up at the 18th decimal."""
        if d < 0:
            raise ValueError(f"Bfp cannot hold a negative value: {d}")
        return cls(int((d * ONE_18).to_integral_value(rounding=ROUND_HALF_UP)))

    @classmethod
    def one(cls) -> Bfp:
        return cls(ONE_18)

    def to_decimal(self) -> Decimal:
        return Decimal(self.value) / ONE_18

    # -------------------------------------------------------------------------
    # Rounded products and quotients
    # -------------------------------------------------------------------------

    def mul_down(self, other: Bfp) -> Bfp:
        return Bfp(self.value * other.value // ONE_18)

    def mul_up(self, other: Bfp) -> Bfp:
        return Bfp(-(-self.value * other.value // ONE_18))

    def div_down(self, other: Bfp) -> Bfp:
        """Quotient rounded toward zero.

        Raises:
            DivisionByZero: If other is zero
        """
        if not other.value:
            raise DivisionByZero(f"Bfp division of {self.value} by zero")
        return Bfp(self.value * ONE_18 // other.value)

    def div_up(self, other: Bfp) -> Bfp:
        """Quotient rounded away from zero.

        Raises:
            DivisionByZero: If other is zero
        """
        if not other.value:
            raise DivisionByZero(f"Bfp division of {self.value} by zero")
        return Bfp(-(-self.value * ONE_18 // other.value))

    # -------------------------------------------------------------------------
    # Sums and differences
    # -------------------------------------------------------------------------

    def add(self, other: Bfp) -> Bfp:
        return Bfp(self.value + other.value)

    def sub(self, other: Bfp) -> Bfp:
        """Difference, which must not be negative.

        Raises:
            Underflow: If other is larger than self
        """
        if other.value > self.value:
            raise Underflow(f"Bfp underflow: {self.value} - {other.value}")
        return Bfp(self.value - other.value)

    def saturating_sub(self, other: Bfp) -> Bfp:
        """Difference clamped to zero."""
        return Bfp(max(self.value - other.value, 0))

    def complement(self) -> Bfp:
        """1 - self, clamped to zero for values above one."""
        return Bfp(max(ONE_18 - self.value, 0))

    # -------------------------------------------------------------------------
    # Powers
    # -------------------------------------------------------------------------

    def pow_down(self, exp: Bfp) -> Bfp:
        """self^exp, never above the exact power."""
        whole, fraction = divmod(exp.value, ONE_18)
        if fraction == 0:
            return self._whole_pow(whole, Bfp.mul_down)
        raw = pow_raw(self.value, exp.value)
        return Bfp(max(raw - self._pow_error(raw), 0))

    def pow_up(self, exp: Bfp) -> Bfp:
        """self^exp, never below the exact power."""
        whole, fraction = divmod(exp.value, ONE_18)
        if fraction == 0:
            return self._whole_pow(whole, Bfp.mul_up)
        raw = pow_raw(self.value, exp.value)
        return Bfp(raw + self._pow_error(raw))

    def _whole_pow(self, n: int, mul: Callable[[Bfp, Bfp], Bfp]) -> Bfp:
        # Square-and-multiply; every product rounds the same way
        result = Bfp.one()
        square = self
        while n:
            if n % 2:
                result = mul(result, square)
            n //= 2
            if n:
                square = mul(square, square)
        return result

    @staticmethod
    def _pow_error(raw: int) -> int:
        return -(-raw * MAX_POW_RELATIVE_ERROR // ONE_18) + 1

    # -------------------------------------------------------------------------
    # Comparison and display
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Bfp):
            return NotImplemented
        return self.value < other.value

    def __repr__(self) -> str:
        return f"Bfp({self.value})"

    def __str__(self) -> str:
        return str(self.to_decimal())
