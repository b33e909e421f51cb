"""
Unit tests for deterministic address derivation.
"""

import pytest

from gavel.core.state.address import (
    AUCTION_PROGRAM_ID,
    AUCTION_SEED,
    ASSET_PROGRAM_ID,
    auction_address,
    create_program_address,
    custody_address,
    deposit_address,
    find_program_address,
    session_address,
    signer_seeds,
    vault_address,
)
from gavel.crypto import generate_keypair, is_on_curve_x


@pytest.fixture
def seller():
    return generate_keypair().identity


@pytest.fixture
def mint():
    return b"\x07" * 32


class TestProgramAddresses:
    """Tests for find/create_program_address."""

    def test_deterministic(self, seller, mint):
        assert auction_address(seller, mint) == auction_address(seller, mint)

    def test_off_curve(self, seller, mint):
        addr, _ = auction_address(seller, mint)
        assert not is_on_curve_x(addr)

    def test_bump_rederives(self, seller, mint):
        addr, bump = auction_address(seller, mint)
        seeds = signer_seeds([AUCTION_SEED, seller, mint], bump)
        assert create_program_address(seeds, AUCTION_PROGRAM_ID) == addr

    def test_highest_valid_bump_wins(self, seller, mint):
        _, bump = auction_address(seller, mint)
        for higher in range(bump + 1, 256):
            seeds = signer_seeds([AUCTION_SEED, seller, mint], higher)
            assert create_program_address(seeds, AUCTION_PROGRAM_ID) is None

    def test_program_id_separates_namespaces(self, seller, mint):
        a = find_program_address([AUCTION_SEED, seller, mint], AUCTION_PROGRAM_ID)[0]
        b = find_program_address([AUCTION_SEED, seller, mint], ASSET_PROGRAM_ID)[0]
        assert a != b

    def test_seed_too_long(self):
        with pytest.raises(ValueError):
            create_program_address([b"x" * 33], AUCTION_PROGRAM_ID)

    def test_too_many_seeds(self):
        with pytest.raises(ValueError):
            create_program_address([b"x"] * 17, AUCTION_PROGRAM_ID)


class TestRecordAddresses:
    """Per-record address helpers."""

    def test_distinct_per_seller(self, mint):
        a = auction_address(generate_keypair().identity, mint)[0]
        b = auction_address(generate_keypair().identity, mint)[0]
        assert a != b

    def test_vault_deposit_session_distinct(self, seller, mint):
        auction = auction_address(seller, mint)[0]
        bidder = generate_keypair().identity
        addresses = {
            vault_address(auction)[0],
            deposit_address(auction, bidder)[0],
            session_address(auction, bidder)[0],
            auction,
        }
        assert len(addresses) == 4

    def test_custody_per_owner(self, seller, mint):
        assert custody_address(seller, mint) != custody_address(b"\x01" * 32, mint)
