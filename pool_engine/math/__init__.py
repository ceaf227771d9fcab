"""Mathematical utilities for the pool engine.

This package provides the fixed-point primitive used by the pool math:
- Bfp: 18-decimal fixed-point arithmetic with explicit rounding
- pow_raw: LogExpMath power behind Bfp.pow_up / Bfp.pow_down
"""

from pool_engine.math.fixed_point import ONE_18, Bfp, PowBaseOutOfBounds, PowError, pow_raw

__all__ = ["Bfp", "ONE_18", "PowBaseOutOfBounds", "PowError", "pow_raw"]
