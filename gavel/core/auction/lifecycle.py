"""
Lifecycle Controller - create, start, end and cancel.

    Created --start--> Active --end--> Ended --settle/forfeit--> Settled
       |                                 |
       +------------cancel---------------+ (zero bids) --> Cancelled

Each handler re-checks status on entry so a stale or replayed call fails
instead of applying twice.
"""

from gavel.core.auction.accounts import (
    auction_seeds,
    escrow_address,
    key,
    load_auction,
    require_seller,
    require_status,
)
from gavel.core.checked import checked_add_i64
from gavel.core.errors import ErrorCode, error
from gavel.core.events import AuctionCancelled, AuctionCreated, AuctionEnded, AuctionStarted
from gavel.core.state.address import auction_address, custody_address, vault_address
from gavel.core.state.assets import (
    create_asset_account,
    get_or_create_asset_account,
    load_asset_account,
    load_mint,
    transfer_asset,
)
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import AuctionState, AuctionStatus, AuctionVault
from gavel.core.state.transaction import Instruction
from gavel.crypto import short_hex
from gavel.utils.logger import get_logger
from gavel.utils.validation import validate_auction_params

logger = get_logger("auction.lifecycle")


def create_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """
    Initialize the auction record and vault and escrow the asset.

    Accounts: seller (signer), asset_mint
    Args: reserve_price, duration_seconds, extension_seconds,
          extension_window, min_bid_increment
    """
    seller = key(ix, "seller")
    mint = key(ix, "asset_mint")
    ctx.require_signer(seller)

    reserve_price = ix.args.get("reserve_price")
    duration = ix.args.get("duration_seconds")
    extension_seconds = ix.args.get("extension_seconds", 0)
    extension_window = ix.args.get("extension_window", 0)
    increment = ix.args.get("min_bid_increment")

    valid, err = validate_auction_params(reserve_price, duration, extension_seconds, extension_window, increment)
    if not valid:
        raise error(ErrorCode.INVALID_PARAMETER, err)
    if reserve_price == 0:
        raise error(ErrorCode.INVALID_RESERVE_PRICE)
    if not ctx.config.min_auction_duration <= duration <= ctx.config.max_auction_duration:
        raise error(
            ErrorCode.INVALID_DURATION,
            f"{duration} not in [{ctx.config.min_auction_duration}, {ctx.config.max_auction_duration}]",
        )
    if increment == 0:
        raise error(ErrorCode.INVALID_BID_INCREMENT)

    # Exactly one indivisible unit
    mint_record = load_mint(ctx, mint)
    if mint_record.decimals != 0:
        raise error(ErrorCode.INVALID_ASSET, f"mint has {mint_record.decimals} decimals")
    seller_holding_address = custody_address(seller, mint)
    seller_holding = load_asset_account(ctx, seller_holding_address)
    if seller_holding.owner != seller or seller_holding.mint != mint or seller_holding.amount != 1:
        raise error(ErrorCode.INVALID_ASSET, f"seller holds {seller_holding.amount} unit(s)")

    auction, bump = auction_address(seller, mint)
    state = AuctionState(
        seller=seller,
        asset_mint=mint,
        reserve_price=reserve_price,
        duration_seconds=duration,
        extension_seconds=extension_seconds,
        extension_window=extension_window,
        min_bid_increment=increment,
        bump=bump,
        instance_id=ctx.tx_hash,
    )
    ctx.create(auction, state, payer=seller)

    vault, vault_bump = vault_address(auction)
    ctx.create(vault, AuctionVault(auction=auction, bump=vault_bump), payer=seller)

    escrow = create_asset_account(ctx, auction, mint, payer=seller)
    transfer_asset(ctx, seller_holding_address, escrow, 1)

    ctx.emit(AuctionCreated(
        auction=auction,
        seller=seller,
        asset_mint=mint,
        reserve_price=reserve_price,
        duration_seconds=duration,
    ))
    logger.info(f"Auction {short_hex(auction)} created by {short_hex(seller)} reserve={reserve_price}")


def start_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """Created -> Active; fixes start and end time. Accounts: seller, auction."""
    auction = key(ix, "auction")
    state = load_auction(ctx, auction)
    require_seller(ctx, state, key(ix, "seller"))
    require_status(state, AuctionStatus.CREATED)

    state.start_time = ctx.now
    state.end_time = checked_add_i64(ctx.now, state.duration_seconds)
    state.status = AuctionStatus.ACTIVE
    ctx.save(auction, state)

    ctx.emit(AuctionStarted(auction=auction, start_time=state.start_time, end_time=state.end_time))
    logger.info(f"Auction {short_hex(auction)} started, ends at {state.end_time}")


def end_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """Active -> Ended once the clock reaches end_time. Permissionless."""
    auction = key(ix, "auction")
    state = load_auction(ctx, auction)
    require_status(state, AuctionStatus.ACTIVE)
    if ctx.now < state.end_time:
        raise error(ErrorCode.AUCTION_STILL_ACTIVE, f"{state.end_time - ctx.now}s remaining")

    state.status = AuctionStatus.ENDED
    ctx.save(auction, state)

    ctx.emit(AuctionEnded(
        auction=auction,
        winner=state.highest_bidder,
        winning_bid=state.current_bid,
        total_bids=state.bid_count,
    ))
    logger.info(f"Auction {short_hex(auction)} ended: {state.bid_count} bid(s), top {state.current_bid}")


def cancel_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """
    Created -> Cancelled, or Ended -> Cancelled with zero bids.

    Returns the escrowed unit to the seller. Accounts: seller, auction.
    """
    auction = key(ix, "auction")
    seller = key(ix, "seller")
    state = load_auction(ctx, auction)
    require_seller(ctx, state, seller)

    if state.has_bids:
        raise error(ErrorCode.CANNOT_CANCEL_WITH_BIDS, f"{state.bid_count} bid(s)")
    require_status(state, AuctionStatus.CREATED, AuctionStatus.ENDED)

    state.status = AuctionStatus.CANCELLED
    if state.end_time == 0:
        # never started: end_time records when it was cancelled
        state.end_time = ctx.now
    ctx.save(auction, state)

    seller_holding = get_or_create_asset_account(ctx, seller, state.asset_mint, payer=seller)
    transfer_asset(ctx, escrow_address(auction, state.asset_mint), seller_holding, 1, seeds=auction_seeds(state))

    ctx.emit(AuctionCancelled(auction=auction, seller=seller))
    logger.info(f"Auction {short_hex(auction)} cancelled")


__all__ = ["create_auction", "start_auction", "end_auction", "cancel_auction"]
