"""Tests for checked uint256 arithmetic."""

import pytest

from pool_engine.safe_int import (
    UINT256_MAX,
    DivisionByZero,
    S,
    Underflow,
    Uint256Overflow,
    check_uint256,
)


class TestCheckUint256:
    """Range check helper."""

    def test_in_range_passes_through(self):
        assert check_uint256(42) == 42

    def test_negative_raises(self):
        with pytest.raises(Underflow):
            check_uint256(-1)

    def test_above_max_raises(self):
        with pytest.raises(Uint256Overflow):
            check_uint256(UINT256_MAX + 1)


class TestSafeIntArithmetic:
    """Checked operators."""

    def test_add(self):
        assert (S(2) + 3).value == 5

    def test_add_overflow(self):
        with pytest.raises(Uint256Overflow):
            S(UINT256_MAX) + 1

    def test_sub_underflow(self):
        """Balances never go negative."""
        with pytest.raises(Underflow):
            S(3) - 5

    def test_mul_overflow(self):
        with pytest.raises(Uint256Overflow):
            S(2**200) * 2**100

    def test_floordiv_by_zero(self):
        with pytest.raises(DivisionByZero):
            S(1) // 0

    def test_floordiv(self):
        assert (S(7) // 2).value == 3

    def test_rejects_non_int(self):
        with pytest.raises(TypeError):
            S(1.5)  # type: ignore[arg-type]
