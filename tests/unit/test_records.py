"""
Unit tests for record codecs.

Tests cover:
1. Encoding layout (header, fixed size)
2. Optional identity encoding
3. Rejection of wrong kind, version, length and status
"""

import pytest

from gavel.core.state.records import (
    HEADER,
    AuctionState,
    AuctionStatus,
    AuctionVault,
    BidderDeposit,
    DelegationRecord,
    RecordDecodeError,
    RecordKind,
    SessionToken,
)


@pytest.fixture
def state():
    return AuctionState(
        seller=b"\x01" * 32,
        asset_mint=b"\x02" * 32,
        reserve_price=100,
        duration_seconds=300,
        extension_seconds=60,
        extension_window=30,
        min_bid_increment=10,
        bump=254,
        instance_id=b"\x09" * 32,
    )


class TestAuctionState:
    """Tests for the auction record codec."""

    def test_header(self, state):
        data = state.to_bytes()
        assert HEADER.unpack_from(data, 0) == (RecordKind.AUCTION, 1)
        assert len(data) == AuctionState.size()

    def test_no_bidder_roundtrip(self, state):
        decoded = AuctionState.from_bytes(state.to_bytes())
        assert decoded.highest_bidder is None
        assert decoded.status == AuctionStatus.CREATED
        assert decoded == state

    def test_with_bid_roundtrip(self, state):
        state.current_bid = 150
        state.highest_bidder = b"\x03" * 32
        state.bid_count = 2
        state.status = AuctionStatus.ACTIVE
        state.start_time = 1_700_000_000
        state.end_time = 1_700_000_300
        decoded = AuctionState.from_bytes(state.to_bytes())
        assert decoded == state
        assert decoded.has_bids

    def test_wrong_kind_rejected(self):
        vault = AuctionVault(auction=b"\x01" * 32, bump=1)
        with pytest.raises(RecordDecodeError):
            AuctionState.from_bytes(vault.to_bytes())

    def test_truncated_rejected(self, state):
        with pytest.raises(RecordDecodeError):
            AuctionState.from_bytes(state.to_bytes()[:-1])
        with pytest.raises(RecordDecodeError):
            AuctionState.from_bytes(b"\x01")

    def test_unknown_version_rejected(self, state):
        data = bytearray(state.to_bytes())
        data[1] = 9
        with pytest.raises(RecordDecodeError):
            AuctionState.from_bytes(bytes(data))

    def test_unknown_status_rejected(self, state):
        state.status = AuctionStatus.ACTIVE
        data = bytearray(state.to_bytes())
        status_offset = HEADER.size + AuctionState.LAYOUT.size - 32 - 1 - 4 - 1
        assert data[status_offset] == AuctionStatus.ACTIVE
        data[status_offset] = 42
        with pytest.raises(RecordDecodeError):
            AuctionState.from_bytes(bytes(data))

    def test_u64_overflow_not_encodable(self, state):
        state.reserve_price = 2**64
        with pytest.raises(Exception):
            state.to_bytes()


class TestOtherRecords:
    def test_deposit(self):
        entry = BidderDeposit(auction=b"\x01" * 32, bidder=b"\x02" * 32, amount=500, bump=7, instance_id=b"\x09" * 32)
        assert BidderDeposit.from_bytes(entry.to_bytes()) == entry

    def test_session(self):
        token = SessionToken(
            auction=b"\x01" * 32, bidder=b"\x02" * 32, session_signer=b"\x03" * 32, bump=3, instance_id=b"\x09" * 32,
        )
        assert SessionToken.from_bytes(token.to_bytes()) == token

    def test_delegation(self):
        record = DelegationRecord(
            account=b"\x01" * 32, original_owner=b"\x02" * 32, payer=b"\x03" * 32, delegated_at=12345,
        )
        assert DelegationRecord.from_bytes(record.to_bytes()) == record
