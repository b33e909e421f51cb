"""
Unit tests for the bidding engine: bid rules, anti-sniping extension and
session-key bidding.
"""

import pytest

from gavel.core.auction import instructions as ix
from gavel.core.auction.bidding import extended_end_time
from gavel.core.errors import ErrorCode
from gavel.core.events import BidPlaced, SessionCreated
from gavel.core.state import AuctionState, AuctionStatus, Instruction, SessionToken
from gavel.core.state.address import AUCTION_PROGRAM_ID, session_address
from gavel.crypto import generate_keypair


class TestBidRules:
    """Reserve, increment, actor and timing checks."""

    def test_first_bid_at_reserve(self, active):
        active.bid(active.alice, 100)
        state = active.state()
        assert state.current_bid == 100
        assert state.highest_bidder == active.alice.identity
        assert state.bid_count == 1

    def test_first_bid_below_reserve(self, active):
        active.fails(
            ix.place_bid(active.alice.identity, active.auction, 99),
            active.alice, code=ErrorCode.BELOW_RESERVE,
        )

    def test_increment_enforced(self, active):
        active.bid(active.alice, 100)
        active.fails(
            ix.place_bid(active.bob.identity, active.auction, 109),
            active.bob, code=ErrorCode.BID_TOO_LOW,
        )
        active.bid(active.bob, 110)
        state = active.state()
        assert state.highest_bidder == active.bob.identity
        assert state.bid_count == 2

        placed = active.ledger.events_of(BidPlaced)[-1]
        assert placed.previous_bid == 100
        assert placed.amount == 110

    def test_bidder_may_raise_own_bid(self, active):
        active.bid(active.alice, 100)
        active.bid(active.alice, 200)
        assert active.state().current_bid == 200
        assert active.state().bid_count == 2

    def test_no_deposit_needed_to_bid(self, active):
        active.bid(active.carol, 1_000)
        assert active.deposit_amount(active.carol) is None

    def test_seller_cannot_bid(self, active):
        active.fails(
            ix.place_bid(active.seller.identity, active.auction, 500),
            active.seller, code=ErrorCode.SELLER_CANNOT_BID,
        )

    def test_not_started(self, harness):
        harness.create()
        harness.fails(
            ix.place_bid(harness.alice.identity, harness.auction, 500),
            harness.alice, code=ErrorCode.AUCTION_NOT_STARTED,
        )

    def test_at_end_time(self, active):
        active.ledger.clock.warp_to(active.state().end_time)
        active.fails(
            ix.place_bid(active.alice.identity, active.auction, 500),
            active.alice, code=ErrorCode.AUCTION_ENDED,
        )

    def test_one_second_before_end(self, active):
        active.ledger.clock.warp_to(active.state().end_time - 1)
        active.bid(active.alice, 100)

    def test_requires_signature(self, active):
        active.fails(
            ix.place_bid(active.alice.identity, active.auction, 500),
            active.bob, code=ErrorCode.MISSING_SIGNATURE,
        )

    def test_failed_bid_changes_nothing(self, active):
        active.bid(active.alice, 100)
        before = active.state()
        active.fails(
            ix.place_bid(active.bob.identity, active.auction, 105),
            active.bob, code=ErrorCode.BID_TOO_LOW,
        )
        assert active.state() == before
        assert len(active.ledger.events_of(BidPlaced)) == 1


class TestExtension:
    """Anti-sniping end-time extension."""

    @pytest.fixture
    def sniping(self, harness):
        harness.create_and_start(duration=300, extension_seconds=60, extension_window=60)
        return harness

    def test_bid_outside_window(self, sniping):
        end = sniping.state().end_time
        sniping.ledger.clock.warp_to(end - 61)
        sniping.bid(sniping.alice, 100)
        assert sniping.state().end_time == end

    def test_bid_inside_window_extends(self, sniping):
        end = sniping.state().end_time
        sniping.ledger.clock.warp_to(end - 30)
        sniping.bid(sniping.alice, 100)
        assert sniping.state().end_time == end + 60
        assert sniping.ledger.events_of(BidPlaced)[-1].new_end_time == end + 60

    def test_extended_auction_accepts_bids(self, sniping):
        end = sniping.state().end_time
        sniping.ledger.clock.warp_to(end - 1)
        sniping.bid(sniping.alice, 100)
        sniping.ledger.clock.warp_to(end + 30)
        sniping.bid(sniping.bob, 110)
        assert sniping.state().end_time == end + 120

    def test_no_window_never_extends(self, active):
        end = active.state().end_time
        active.ledger.clock.warp_to(end - 1)
        active.bid(active.alice, 100)
        assert active.state().end_time == end


def _state(**overrides):
    values = dict(
        seller=b"\x01" * 32,
        asset_mint=b"\x02" * 32,
        reserve_price=1,
        duration_seconds=3_600,
        start_time=1_000,
        end_time=4_600,
        extension_seconds=300,
        extension_window=300,
        status=AuctionStatus.ACTIVE,
    )
    values.update(overrides)
    return AuctionState(**values)


class TestExtendedEndTime:
    """The pure end-time rule."""

    def test_remaining_equal_to_window_does_not_extend(self):
        assert extended_end_time(_state(), 4_300, 3_600) == 4_600

    def test_extends_by_extension_seconds(self):
        assert extended_end_time(_state(), 4_400, 3_600) == 4_900

    def test_capped_at_double_duration(self):
        state = _state(end_time=8_100)
        assert extended_end_time(state, 8_000, 3_600) == 1_000 + 3_600 + 3_600

    def test_capped_by_protocol_limit(self):
        assert extended_end_time(_state(), 4_400, 100) == 4_700

    def test_short_auction_cap_uses_duration(self):
        state = _state(duration_seconds=60, end_time=1_060, extension_seconds=100, extension_window=30)
        assert extended_end_time(state, 1_050, 3_600) == 1_120

    def test_lowered_cap_keeps_current_end(self):
        state = _state(end_time=4_900)
        assert extended_end_time(state, 4_890, 60) == 4_900


class TestSessions:
    """Session-key bidding."""

    @pytest.fixture
    def session(self, active):
        key = generate_keypair()
        active.ok(ix.create_session(active.alice.identity, active.auction, key.identity), active.alice)
        return key

    def test_create_session(self, active, session):
        address, _ = session_address(active.auction, active.alice.identity)
        token = active.ledger.get_record(address, SessionToken)
        assert token.bidder == active.alice.identity
        assert token.session_signer == session.identity
        assert len(active.ledger.events_of(SessionCreated)) == 1

    def test_session_bid_credits_real_bidder(self, active, session):
        active.ok(ix.place_bid_session(active.alice.identity, active.auction, 150), session)
        state = active.state()
        assert state.highest_bidder == active.alice.identity
        assert state.current_bid == 150

    def test_session_bid_follows_same_rules(self, active, session):
        active.fails(
            ix.place_bid_session(active.alice.identity, active.auction, 50),
            session, code=ErrorCode.BELOW_RESERVE,
        )

    def test_wrong_session_signer(self, active, session):
        active.fails(
            ix.place_bid_session(active.alice.identity, active.auction, 150),
            active.bob, code=ErrorCode.SESSION_SIGNER_MISMATCH,
        )

    def test_session_key_cannot_bid_directly(self, active, session):
        active.fails(
            ix.place_bid(active.alice.identity, active.auction, 150),
            session, code=ErrorCode.MISSING_SIGNATURE,
        )

    def test_session_bound_to_its_auction(self, active, session):
        other_mint = active.ledger.create_asset(active.seller.identity)
        active.ok(ix.create_auction(active.seller.identity, other_mint, 100, 300), active.seller)
        other = ix.derive_auction(active.seller.identity, other_mint)
        active.ok(ix.start_auction(active.seller.identity, other), active.seller)

        forged = Instruction(
            program_id=AUCTION_PROGRAM_ID,
            name="place_bid_session",
            accounts={"auction": other, "session": session_address(active.auction, active.alice.identity)[0]},
            args={"amount": 150},
        )
        active.fails(forged, session, code=ErrorCode.SESSION_AUCTION_MISMATCH)

    def test_duplicate_session(self, active, session):
        active.fails(
            ix.create_session(active.alice.identity, active.auction, generate_keypair().identity),
            active.alice, code=ErrorCode.ACCOUNT_ALREADY_EXISTS,
        )

    def test_session_on_ended_auction(self, active):
        active.end()
        active.fails(
            ix.create_session(active.bob.identity, active.auction, generate_keypair().identity),
            active.bob, code=ErrorCode.INVALID_AUCTION_STATUS,
        )
