"""
Unit tests for cryptographic primitives.

Tests cover:
1. Hash functions (SHA-256, Keccak-256)
2. Keypair generation and identities
3. ECDSA sign/verify
4. Curve membership used by program-derived addresses
"""

import pytest

from gavel.crypto import (
    SECP256K1_ORDER,
    bytes_to_hex,
    generate_keypair,
    hex_to_bytes,
    identity_from_public_key,
    is_on_curve_x,
    keccak256,
    private_key_to_public_key,
    sha256,
    short_hex,
    sign,
    verify,
)


class TestHashing:
    """Tests for hash functions."""

    def test_sha256_known_vector(self):
        assert sha256(b"abc").hex() == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_keccak256_known_vector(self):
        """Keccak-256 (not NIST SHA3) of the empty string."""
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_hashes_are_32_bytes(self):
        assert len(sha256(b"x")) == 32
        assert len(keccak256(b"x")) == 32


class TestKeys:
    """Tests for keypairs and identities."""

    def test_keypair_sizes(self):
        kp = generate_keypair()
        assert len(kp.private_key) == 32
        assert len(kp.public_key) == 64
        assert len(kp.identity) == 32

    def test_public_key_deterministic(self):
        kp = generate_keypair()
        assert private_key_to_public_key(kp.private_key) == kp.public_key

    def test_identity_is_x_coordinate(self):
        kp = generate_keypair()
        assert kp.identity == kp.public_key[:32]
        assert identity_from_public_key(kp.public_key) == kp.identity

    def test_identity_rejects_bad_length(self):
        with pytest.raises(ValueError):
            identity_from_public_key(b"\x01" * 33)

    def test_invalid_private_key_length(self):
        with pytest.raises(ValueError):
            private_key_to_public_key(b"\x01" * 31)

    def test_address_hex(self):
        kp = generate_keypair()
        assert kp.address == "0x" + kp.identity.hex()


class TestSignatures:
    """Tests for ECDSA sign/verify."""

    def test_sign_and_verify(self):
        kp = generate_keypair()
        msg = sha256(b"bid 100")
        sig = sign(msg, kp.private_key)
        assert len(sig) == 64
        assert verify(msg, sig, kp.public_key)

    def test_low_s(self):
        kp = generate_keypair()
        sig = sign(sha256(b"m"), kp.private_key)
        s = int.from_bytes(sig[32:], "big")
        assert s <= SECP256K1_ORDER // 2

    def test_wrong_message_fails(self):
        kp = generate_keypair()
        sig = sign(sha256(b"a"), kp.private_key)
        assert not verify(sha256(b"b"), sig, kp.public_key)

    def test_wrong_key_fails(self):
        kp, other = generate_keypair(), generate_keypair()
        msg = sha256(b"a")
        assert not verify(msg, sign(msg, kp.private_key), other.public_key)

    def test_malformed_signature_fails(self):
        kp = generate_keypair()
        msg = sha256(b"a")
        assert not verify(msg, b"\x00" * 64, kp.public_key)
        assert not verify(msg, b"\x01" * 10, kp.public_key)

    def test_sign_rejects_bad_hash(self):
        kp = generate_keypair()
        with pytest.raises(ValueError):
            sign(b"short", kp.private_key)


class TestCurveMembership:
    """Tests for is_on_curve_x."""

    def test_public_key_x_is_on_curve(self):
        for _ in range(3):
            assert is_on_curve_x(generate_keypair().identity)

    def test_field_overflow_is_not_on_curve(self):
        assert not is_on_curve_x(b"\xff" * 32)

    def test_roughly_half_of_digests_on_curve(self):
        hits = sum(is_on_curve_x(keccak256(bytes([i]))) for i in range(200))
        assert 50 < hits < 150


class TestHexHelpers:
    def test_roundtrip_with_prefix(self):
        assert hex_to_bytes(bytes_to_hex(b"\x01\x02")) == b"\x01\x02"
        assert hex_to_bytes("0102") == b"\x01\x02"

    def test_short_hex(self):
        assert short_hex(None) == "<none>"
        assert short_hex(b"\xab" * 32).startswith("0xabab")
