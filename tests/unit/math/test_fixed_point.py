"""Tests for Bfp fixed-point arithmetic and powers."""

from decimal import Decimal

import pytest

from pool_engine.math import ONE_18, Bfp, PowBaseOutOfBounds, PowError, pow_raw
from pool_engine.safe_int import DivisionByZero, Underflow, Uint256Overflow


class TestBfpConstruction:
    """Construction and conversion."""

    def test_from_int_scales(self):
        """from_int(3) stores 3 * 10^18."""
        assert Bfp.from_int(3).value == 3 * ONE_18

    def test_from_decimal_rounds_half_up(self):
        """Sub-wei decimals round half up."""
        assert Bfp.from_decimal(Decimal("0.0000000000000000015")).value == 2

    def test_from_decimal_rejects_negative(self):
        """Negative decimals are rejected."""
        with pytest.raises(ValueError):
            Bfp.from_decimal(Decimal("-1"))

    def test_negative_raw_value_rejected(self):
        """Raw values must be non-negative."""
        with pytest.raises(Underflow):
            Bfp(-1)

    def test_raw_value_above_uint256_rejected(self):
        """Raw values must fit in uint256."""
        with pytest.raises(Uint256Overflow):
            Bfp(2**256)

    def test_to_decimal(self):
        """to_decimal divides by 10^18."""
        assert Bfp(ONE_18 // 4).to_decimal() == Decimal("0.25")


class TestBfpRounding:
    """Explicit rounding direction of mul and div."""

    def test_mul_down_truncates(self):
        """1 wei * 0.5 rounds down to 0."""
        assert Bfp(1).mul_down(Bfp(ONE_18 // 2)).value == 0

    def test_mul_up_rounds_up(self):
        """1 wei * 0.5 rounds up to 1."""
        assert Bfp(1).mul_up(Bfp(ONE_18 // 2)).value == 1

    def test_mul_up_of_zero_is_zero(self):
        """mul_up never invents a wei from zero."""
        assert Bfp(0).mul_up(Bfp(ONE_18)).value == 0

    def test_div_down_and_up_differ_by_one_wei(self):
        """1 / 3 rounds down and up to adjacent values."""
        one, three = Bfp.one(), Bfp.from_int(3)
        down = one.div_down(three).value
        up = one.div_up(three).value
        assert down == 333333333333333333
        assert up == down + 1

    def test_exact_division_does_not_round(self):
        """Exact quotients are identical in both directions."""
        ten, hundred = Bfp.from_int(10), Bfp.from_int(100)
        assert ten.div_down(hundred) == ten.div_up(hundred) == Bfp(ONE_18 // 10)

    def test_division_by_zero(self):
        """Both division directions raise DivisionByZero."""
        with pytest.raises(DivisionByZero):
            Bfp.one().div_down(Bfp(0))
        with pytest.raises(DivisionByZero):
            Bfp.one().div_up(Bfp(0))


class TestBfpAddSub:
    """Checked addition and subtraction."""

    def test_add(self):
        assert Bfp.from_int(2).add(Bfp.from_int(3)) == Bfp.from_int(5)

    def test_sub_underflow_raises(self):
        """3 - 5 raises instead of going negative."""
        with pytest.raises(Underflow):
            Bfp.from_int(3).sub(Bfp.from_int(5))

    def test_saturating_sub_clamps(self):
        """saturating_sub clamps to zero."""
        assert Bfp.from_int(3).saturating_sub(Bfp.from_int(5)).value == 0

    def test_complement_clamps_above_one(self):
        """complement(1.5) is 0, not negative."""
        assert Bfp(ONE_18 * 3 // 2).complement().value == 0

    def test_complement_of_fee(self):
        """complement(0.1) = 0.9."""
        assert Bfp(ONE_18 // 10).complement().value == 9 * ONE_18 // 10


class TestPow:
    """Whole and fractional powers."""

    def test_zero_exponent_is_one(self):
        assert pow_raw(3 * ONE_18 // 2, 0) == ONE_18

    def test_zero_base_is_zero(self):
        assert pow_raw(0, ONE_18 // 2) == 0

    def test_square_root(self):
        """1.44^0.5 = 1.2."""
        result = pow_raw(144 * ONE_18 // 100, ONE_18 // 2)
        assert result == pytest.approx(12 * ONE_18 // 10, rel=1e-13)

    def test_base_below_one_fractional_exponent(self):
        """0.81^0.5 = 0.9 (takes the 36-decimal logarithm)."""
        result = pow_raw(81 * ONE_18 // 100, ONE_18 // 2)
        assert result == pytest.approx(9 * ONE_18 // 10, rel=1e-13)

    def test_mixed_exponent(self):
        """1.21^1.5 = 1.331."""
        result = pow_raw(121 * ONE_18 // 100, 3 * ONE_18 // 2)
        assert result == pytest.approx(1331 * ONE_18 // 1000, rel=1e-13)

    def test_large_base(self):
        """1000^(1/3) = 10, outside the 36-decimal window."""
        result = pow_raw(1000 * ONE_18, ONE_18 // 3)
        assert result == pytest.approx(10 * ONE_18, rel=1e-12)

    def test_matches_decimal_reference(self):
        base, exp = Decimal("0.7"), Decimal("0.3")
        expected = base**exp * ONE_18
        result = pow_raw(Bfp.from_decimal(base).value, Bfp.from_decimal(exp).value)
        assert result == pytest.approx(int(expected), rel=1e-13)

    def test_base_too_large_rejected(self):
        with pytest.raises(PowBaseOutOfBounds):
            pow_raw(1 << 255, ONE_18 // 2)

    def test_product_out_of_range_rejected(self):
        """e^131 does not fit the exp range."""
        with pytest.raises(PowError):
            pow_raw(10**6 * ONE_18, 10 * ONE_18 + ONE_18 // 2)

    def test_whole_exponent_is_exact(self):
        """1.5^2 = 2.25 with no ln/exp error in either direction."""
        base, exp = Bfp(3 * ONE_18 // 2), Bfp.from_int(2)
        assert base.pow_up(exp).value == 9 * ONE_18 // 4
        assert base.pow_down(exp).value == 9 * ONE_18 // 4

    def test_whole_exponent_rounds_each_product(self):
        """(1/3)^3 lies between the down- and up-rounded products."""
        base, exp = Bfp(ONE_18 // 3), Bfp.from_int(3)
        down, up = base.pow_down(exp).value, base.pow_up(exp).value
        assert down < up
        assert down <= ONE_18 // 27 + 1
        assert up >= ONE_18 // 27

    def test_pow_up_brackets_pow_down(self):
        """pow_down <= raw <= pow_up."""
        base, exp = Bfp(9 * ONE_18 // 10), Bfp(ONE_18 * 3 // 7)
        raw = pow_raw(base.value, exp.value)
        assert base.pow_down(exp).value < raw < base.pow_up(exp).value

    def test_fractional_margin_is_tight(self):
        base, exp = Bfp(144 * ONE_18 // 100), Bfp(ONE_18 // 2)
        assert base.pow_up(exp).value - base.pow_down(exp).value < 10**5
