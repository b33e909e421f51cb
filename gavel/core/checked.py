"""
Checked integer arithmetic.

Record fields are fixed-width (u64 amounts, i64 timestamps). Python ints do
not overflow, so every accumulation goes through these helpers and raises
ArithmeticOverflow when the result leaves the field's range.
"""

from gavel.core.errors import ArithmeticOverflow
from gavel.utils.validation import MAX_U64, MIN_I64, MAX_I64


def checked_add(a: int, b: int, max_val: int = MAX_U64) -> int:
    result = a + b
    if result > max_val:
        raise ArithmeticOverflow(f"{a} + {b} exceeds {max_val}")
    return result


def checked_sub(a: int, b: int, min_val: int = 0) -> int:
    result = a - b
    if result < min_val:
        raise ArithmeticOverflow(f"{a} - {b} below {min_val}")
    return result


def checked_mul(a: int, b: int, max_val: int = MAX_U64) -> int:
    result = a * b
    if result > max_val:
        raise ArithmeticOverflow(f"{a} * {b} exceeds {max_val}")
    return result


def checked_add_i64(a: int, b: int) -> int:
    result = a + b
    if result > MAX_I64 or result < MIN_I64:
        raise ArithmeticOverflow(f"{a} + {b} out of i64 range")
    return result


def checked_sub_i64(a: int, b: int) -> int:
    result = a - b
    if result > MAX_I64 or result < MIN_I64:
        raise ArithmeticOverflow(f"{a} - {b} out of i64 range")
    return result


def mul_div(value: int, numerator: int, denominator: int) -> int:
    """
    floor(value * numerator / denominator) with a 128-bit intermediate.

    The result must fit back into a u64.
    """
    product = value * numerator
    if product >= 2**128:
        raise ArithmeticOverflow(f"{value} * {numerator} exceeds 128 bits")
    result = product // denominator
    if result > MAX_U64:
        raise ArithmeticOverflow(f"{result} exceeds u64")
    return result
