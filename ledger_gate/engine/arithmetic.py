"""
Checked Arithmetic

Every mutation of a balance or counter that represents transferable value
goes through these helpers. A result outside the unsigned 64-bit range is
an error, never a wrapped value.
"""

import logging

from ..core.config import U64_MAX
from ..core.errors import ArithmeticOverflowError, ArithmeticUnderflowError


logger = logging.getLogger(__name__)


def _require_u64(*values: int) -> None:
    for value in values:
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"Expected int, got {type(value).__name__}")
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"Operand out of u64 range: {value}")


def checked_add(a: int, b: int) -> int:
    """a + b, or Overflow if the sum does not fit in u64."""
    _require_u64(a, b)
    result = a + b
    if result > U64_MAX:
        raise ArithmeticOverflowError("Integer overflow occurred", {"op": "add"})
    return result


def checked_sub(a: int, b: int) -> int:
    """a - b, or Underflow if b > a."""
    _require_u64(a, b)
    if b > a:
        raise ArithmeticUnderflowError("Integer underflow occurred", {"op": "sub"})
    return a - b


def checked_mul(a: int, b: int) -> int:
    _require_u64(a, b)
    result = a * b
    if result > U64_MAX:
        raise ArithmeticOverflowError("Integer overflow occurred", {"op": "mul"})
    return result


def wrapping_add(a: int, b: int, *, label: str) -> int:
    """
    Modular u64 addition for counters where wraparound is the intended
    semantic (sequence numbers, nonces). Never use for transferable value.

    Args:
        a, b: u64 operands
        label: Name of the modular counter, required so every wrapping
               call site is explicit about what it is counting
    """
    if not label:
        raise ValueError("wrapping_add requires a counter label")
    _require_u64(a, b)
    result = (a + b) & U64_MAX
    if result < a:
        logger.debug(f"Counter {label} wrapped around")
    return result
