"""
Cryptographic primitives for Gavel.

This module provides:
- Hashing functions (SHA-256, Keccak-256)
- Key generation and management
- Digital signatures (ECDSA on secp256k1)
- Curve membership checks used by program-derived addresses

Design Notes:
-------------
An identity is the 32-byte x-coordinate of a secp256k1 public key. Anyone
holding the private key can produce signatures the ledger attributes to that
identity.

Program-derived addresses are 32-byte digests that are deliberately NOT valid
x-coordinates on the curve, so no private key can ever sign for them. Only the
program that derived them can authorize movements out of them.
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# secp256k1 base field prime
SECP256K1_FIELD_PRIME = secp256k1.P

IDENTITY_SIZE = 32
PUBLIC_KEY_SIZE = 64
SIGNATURE_SIZE = 64


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash.

    Used for: transaction signing hashes, content addressing.
    """
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash.

    Used for: deterministic address derivation.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)

    @property
    def identity(self) -> bytes:
        """32-byte ledger identity (public key x-coordinate)."""
        return identity_from_public_key(self.public_key)

    @property
    def address(self) -> str:
        """Identity hex-encoded with 0x prefix."""
        return bytes_to_hex(self.identity)

    @property
    def private_key_hex(self) -> str:
        return self.private_key.hex()

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.

    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.

    Args:
        private_key: 32-byte private key

    Returns:
        64-byte uncompressed public key
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    public_key_point = secp256k1.privtopub(private_key)
    x_bytes = public_key_point[0].to_bytes(32, byteorder="big")
    y_bytes = public_key_point[1].to_bytes(32, byteorder="big")
    return x_bytes + y_bytes


def identity_from_public_key(public_key: bytes) -> bytes:
    """Ledger identity of a 64-byte public key."""
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(public_key)}")
    return public_key[:IDENTITY_SIZE]


def is_on_curve_x(candidate: bytes) -> bool:
    """
    Check whether 32 bytes are the x-coordinate of a secp256k1 point.

    y^2 = x^3 + 7 has a solution mod P iff the right-hand side is a
    quadratic residue (Euler's criterion).
    """
    x = int.from_bytes(candidate, byteorder="big")
    if x >= SECP256K1_FIELD_PRIME:
        return False
    rhs = (pow(x, 3, SECP256K1_FIELD_PRIME) + 7) % SECP256K1_FIELD_PRIME
    if rhs == 0:
        return True
    return pow(rhs, (SECP256K1_FIELD_PRIME - 1) // 2, SECP256K1_FIELD_PRIME) == 1


# =============================================================================
# Digital Signatures (ECDSA)
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a message hash using ECDSA on secp256k1.

    Args:
        message_hash: 32-byte hash of the message to sign
        private_key: 32-byte private key

    Returns:
        64-byte signature (r || s, each 32 bytes)
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    v, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)

    # Low-s normalization (BIP 62) prevents signature malleability
    if s > SECP256K1_ORDER // 2:
        s = SECP256K1_ORDER - s

    return r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big")


def verify(message_hash: bytes, signature: bytes, public_key: bytes) -> bool:
    """
    Verify an ECDSA signature.

    Args:
        message_hash: 32-byte hash of the signed message
        signature: 64-byte signature (r || s)
        public_key: 64-byte public key (x || y)

    Returns:
        True if signature is valid, False otherwise
    """
    if len(message_hash) != 32:
        return False
    if len(signature) != SIGNATURE_SIZE:
        return False
    if len(public_key) != PUBLIC_KEY_SIZE:
        return False

    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:], byteorder="big")
    if r < 1 or r >= SECP256K1_ORDER:
        return False
    if s < 1 or s >= SECP256K1_ORDER:
        return False

    public_key_point = (
        int.from_bytes(public_key[:32], byteorder="big"),
        int.from_bytes(public_key[32:], byteorder="big"),
    )

    # Without the recovery id, try both parities (Ethereum v convention)
    for v in (27, 28):
        try:
            recovered = secp256k1.ecdsa_raw_recover(message_hash, (v, r, s))
        except (ValueError, ZeroDivisionError):
            continue
        if recovered == public_key_point:
            return True

    return False


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def short_hex(data: Optional[bytes], length: int = 10) -> str:
    """Abbreviated hex for log lines."""
    if not data:
        return "<none>"
    return bytes_to_hex(data)[:length] + "..."
