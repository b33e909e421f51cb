"""
Input Validation - Security-focused input sanitization.

Provides validation for all external inputs to prevent:
- Integer overflows in fixed-width record fields
- Invalid identity / hex format attacks
- Out-of-range protocol parameters
"""

from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

IDENTITY_SIZE = 32

# Field bounds (record fields are fixed-width little-endian integers)
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MIN_I64 = -(2**63)
MAX_I64 = 2**63 - 1

MAX_BPS = 10_000


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_identity(identity: Any, name: str = "identity") -> Tuple[bool, str]:
    """Validate a 32-byte ledger identity or address."""
    return validate_bytes(identity, name, expected_length=IDENTITY_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = 0,
    max_val: int = MAX_U64,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a lamport amount (u64)."""
    return validate_integer(amount, name, 0, MAX_U64)


def validate_u32(value: Any, name: str) -> Tuple[bool, str]:
    return validate_integer(value, name, 0, MAX_U32)


def validate_hex_string(value: Any, name: str, expected_bytes: Optional[int] = None) -> Tuple[bool, str]:
    """
    Validate a hex string (with or without 0x prefix).

    Args:
        value: Value to validate
        name: Field name
        expected_bytes: Expected byte length when decoded

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    hex_str = value[2:] if value.startswith("0x") else value

    if len(hex_str) % 2 != 0:
        return False, f"{name} has odd length, invalid hex"

    try:
        bytes.fromhex(hex_str)
    except ValueError:
        return False, f"{name} contains invalid hex characters"

    if expected_bytes is not None:
        actual_bytes = len(hex_str) // 2
        if actual_bytes != expected_bytes:
            return False, f"{name} must be {expected_bytes} bytes, got {actual_bytes}"

    return True, ""


# =============================================================================
# Composite Validators
# =============================================================================


def validate_auction_params(
    reserve_price: Any,
    duration_seconds: Any,
    extension_seconds: Any,
    extension_window: Any,
    min_bid_increment: Any,
) -> Tuple[bool, str]:
    """Check auction creation parameters fit their record field widths."""
    checks = (
        validate_amount(reserve_price, "reserve_price"),
        validate_amount(duration_seconds, "duration_seconds"),
        validate_u32(extension_seconds, "extension_seconds"),
        validate_u32(extension_window, "extension_window"),
        validate_amount(min_bid_increment, "min_bid_increment"),
    )
    for valid, err in checks:
        if not valid:
            return False, err
    return True, ""


__all__ = [
    "validate_bytes",
    "validate_identity",
    "validate_integer",
    "validate_amount",
    "validate_u32",
    "validate_hex_string",
    "validate_auction_params",
    "IDENTITY_SIZE",
    "MAX_U32",
    "MAX_U64",
    "MIN_I64",
    "MAX_I64",
    "MAX_BPS",
]
