"""
Bidding Engine - one bid algorithm, two ways to name the bidder.

A bid arrives either signed by the bidder directly, or signed by an
ephemeral session key registered on the durable tier. Both paths resolve to
a single effective bidder identity and then run `apply_bid`, so the
economic rules cannot drift apart:

- status must be Active, the clock before end_time, the bidder not the seller
- first bid >= reserve price, later bids >= current_bid + min_bid_increment
- a bid landing inside the extension window pushes end_time out by
  extension_seconds, capped at start + duration + min(duration, max extension)

Deposits are not checked here; the fast tier only sees bid state.
Collateral is enforced at settlement.
"""

from gavel.core.auction.accounts import int_arg, key, load_auction, require_open_for_bidders, require_status
from gavel.core.checked import checked_add, checked_add_i64, checked_sub_i64
from gavel.core.errors import ErrorCode, error
from gavel.core.events import BidPlaced, SessionCreated
from gavel.core.state.address import SESSION_SEED, create_program_address, session_address, signer_seeds
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import AuctionState, AuctionStatus, SessionToken
from gavel.core.state.transaction import Instruction
from gavel.crypto import short_hex
from gavel.utils.logger import get_logger
from gavel.utils.validation import MAX_U32

logger = get_logger("auction.bidding")


# =============================================================================
# Sessions
# =============================================================================


def create_session(ctx: InvocationContext, ix: Instruction) -> None:
    """
    Bind an ephemeral signer to the bidder for one auction.

    Accounts: bidder (signer), auction, session_signer
    """
    bidder = key(ix, "bidder")
    auction = key(ix, "auction")
    session_signer = key(ix, "session_signer")
    ctx.require_signer(bidder)

    instance_id = require_open_for_bidders(ctx, auction, allow_delegated=True)

    address, bump = session_address(auction, bidder)
    token = SessionToken(
        auction=auction, bidder=bidder, session_signer=session_signer, bump=bump, instance_id=instance_id,
    )
    if ctx.exists(address) and ctx.load(address, SessionToken).instance_id != instance_id:
        # left over from an earlier auction at this address
        ctx.save(address, token)
    else:
        ctx.create(address, token, payer=bidder)

    ctx.emit(SessionCreated(auction=auction, bidder=bidder, session_signer=session_signer))
    logger.info(f"Session {short_hex(session_signer)} registered for {short_hex(bidder)} on {short_hex(auction)}")


# =============================================================================
# Identity resolution
# =============================================================================


def resolve_direct_bidder(ctx: InvocationContext, ix: Instruction) -> bytes:
    """The bidder signs for themselves."""
    bidder = key(ix, "bidder")
    ctx.require_signer(bidder)
    return bidder


def resolve_session_bidder(ctx: InvocationContext, ix: Instruction) -> bytes:
    """
    The real bidder named by a session entry whose ephemeral key signed.

    The entry must sit at its canonical address for (auction, bidder) and
    carry the auction's instance_id, so a session for one auction cannot be
    replayed against another, nor against a later auction at the same address.
    """
    auction = key(ix, "auction")
    address = key(ix, "session")
    token = ctx.load(address, SessionToken)

    if not ctx.is_signer(token.session_signer):
        raise error(ErrorCode.SESSION_SIGNER_MISMATCH, short_hex(token.session_signer))
    if token.auction != auction:
        raise error(ErrorCode.SESSION_AUCTION_MISMATCH)
    if token.instance_id != load_auction(ctx, auction).instance_id:
        raise error(ErrorCode.SESSION_AUCTION_MISMATCH, "session entry belongs to an earlier auction")
    expected = create_program_address(signer_seeds([SESSION_SEED, auction, token.bidder], token.bump), ctx.program_id)
    if expected != address:
        raise error(ErrorCode.SESSION_AUCTION_MISMATCH, "session entry not at its derived address")
    return token.bidder


# =============================================================================
# Bid algorithm
# =============================================================================


def extended_end_time(state: AuctionState, now: int, max_extension_seconds: int) -> int:
    """
    End time after a bid at `now`; never earlier than the current end.

    The cap comes from configuration, which may have been lowered since the
    auction was last extended; an end already past the cap stays where it is.
    """
    remaining = checked_sub_i64(state.end_time, now)
    if remaining >= state.extension_window:
        return state.end_time

    max_extension = min(state.duration_seconds, max_extension_seconds)
    cap = checked_add_i64(checked_add_i64(state.start_time, state.duration_seconds), max_extension)
    proposed = checked_add_i64(state.end_time, state.extension_seconds)
    return max(state.end_time, min(proposed, cap))


def apply_bid(ctx: InvocationContext, auction: bytes, bidder: bytes, amount: int) -> AuctionState:
    state = load_auction(ctx, auction)
    if state.status == AuctionStatus.CREATED:
        raise error(ErrorCode.AUCTION_NOT_STARTED)
    require_status(state, AuctionStatus.ACTIVE)
    if bidder == state.seller:
        raise error(ErrorCode.SELLER_CANNOT_BID)
    if ctx.now >= state.end_time:
        raise error(ErrorCode.AUCTION_ENDED, f"ended at {state.end_time}")

    if state.bid_count == 0:
        if amount < state.reserve_price:
            raise error(ErrorCode.BELOW_RESERVE, f"{amount} < {state.reserve_price}")
    else:
        min_bid = checked_add(state.current_bid, state.min_bid_increment)
        if amount < min_bid:
            raise error(ErrorCode.BID_TOO_LOW, f"{amount} < {min_bid}")

    previous_bid = state.current_bid
    state.current_bid = amount
    state.highest_bidder = bidder
    state.bid_count = checked_add(state.bid_count, 1, MAX_U32)
    state.end_time = extended_end_time(state, ctx.now, ctx.config.max_extension_seconds)
    ctx.save(auction, state)

    ctx.emit(BidPlaced(
        auction=auction,
        bidder=bidder,
        amount=amount,
        previous_bid=previous_bid,
        bid_count=state.bid_count,
        new_end_time=state.end_time,
    ))
    logger.info(f"Bid {amount} by {short_hex(bidder)} on {short_hex(auction)} (#{state.bid_count})")
    return state


def place_bid(ctx: InvocationContext, ix: Instruction) -> None:
    """Accounts: bidder (signer), auction. Args: amount."""
    bidder = resolve_direct_bidder(ctx, ix)
    apply_bid(ctx, key(ix, "auction"), bidder, int_arg(ix, "amount"))


def place_bid_session(ctx: InvocationContext, ix: Instruction) -> None:
    """Accounts: auction, session (entry address); signed by its session key. Args: amount."""
    bidder = resolve_session_bidder(ctx, ix)
    apply_bid(ctx, key(ix, "auction"), bidder, int_arg(ix, "amount"))
