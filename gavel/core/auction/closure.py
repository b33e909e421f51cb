"""
Closure Protocol - reclaim storage once obligations are discharged.

close        seller-only; the vault must hold nothing above its rent floor,
             i.e. every bidder has been refunded.
force_close  permissionless after a grace period; any unclaimed vault balance
             is swept to the seller before the records are deleted.

Grace deadline for force_close:
    Settled                        end_time + grace
    Cancelled after starting       start_time + grace
    Cancelled before starting      immediately if no deposits are held,
                                   otherwise cancellation time + grace
"""

from gavel.core.auction.accounts import auction_seeds, escrow_address, key, load_auction, require_seller, require_status
from gavel.core.checked import checked_add, checked_add_i64
from gavel.core.errors import ErrorCode, error
from gavel.core.events import AuctionClosed, AuctionForceClosed
from gavel.core.state.address import vault_address
from gavel.core.state.assets import close_asset_account
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import AuctionState, AuctionStatus, AuctionVault
from gavel.core.state.transaction import Instruction
from gavel.crypto import short_hex
from gavel.utils.logger import get_logger

logger = get_logger("auction.closure")


def force_close_deadline(state: AuctionState, grace_period: int, outstanding: int = 0) -> int:
    """
    Earliest clock value at which force_close is allowed.

    An auction cancelled before it started keeps its cancellation time in
    end_time; deposits made while it was Created still get the full grace.
    """
    if state.status == AuctionStatus.SETTLED:
        return checked_add_i64(state.end_time, grace_period)
    if state.start_time == 0:
        if outstanding == 0:
            return 0
        return checked_add_i64(state.end_time, grace_period)
    return checked_add_i64(state.start_time, grace_period)


def _delete_records(ctx: InvocationContext, auction: bytes, state: AuctionState) -> int:
    """Close escrow custody, vault and auction record; all lamports to the seller."""
    reclaimed = 0
    escrow = escrow_address(auction, state.asset_mint)
    if ctx.exists(escrow):
        reclaimed = close_asset_account(ctx, escrow, state.seller, seeds=auction_seeds(state))

    vault, _ = vault_address(auction)
    ctx.load(vault, AuctionVault)
    reclaimed = checked_add(reclaimed, ctx.close(vault, state.seller))
    reclaimed = checked_add(reclaimed, ctx.close(auction, state.seller))
    return reclaimed


def close_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """Accounts: seller (signer), auction."""
    auction = key(ix, "auction")
    state = load_auction(ctx, auction)
    require_seller(ctx, state, key(ix, "seller"))
    require_status(state, AuctionStatus.SETTLED, AuctionStatus.CANCELLED)

    vault, _ = vault_address(auction)
    outstanding = ctx.excess_lamports(vault)
    if outstanding > 0:
        raise error(ErrorCode.OUTSTANDING_DEPOSITS, f"{outstanding} lamports still in vault")

    reclaimed = _delete_records(ctx, auction, state)

    ctx.emit(AuctionClosed(auction=auction, seller=state.seller, reclaimed_lamports=reclaimed))
    logger.info(f"Auction {short_hex(auction)} closed, {reclaimed} lamports reclaimed")


def force_close_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """Accounts: auction. Anyone may call once the grace period has elapsed."""
    auction = key(ix, "auction")
    state = load_auction(ctx, auction)
    require_status(state, AuctionStatus.SETTLED, AuctionStatus.CANCELLED)

    vault, _ = vault_address(auction)
    drained = ctx.excess_lamports(vault)

    deadline = force_close_deadline(state, ctx.config.force_close_grace_period, drained)
    if ctx.now < deadline:
        raise error(ErrorCode.GRACE_PERIOD_NOT_ELAPSED, f"eligible at {deadline}, now {ctx.now}")

    ctx.debit(vault, state.seller, drained)

    reclaimed = _delete_records(ctx, auction, state)

    ctx.emit(AuctionForceClosed(auction=auction, seller=state.seller, drained_lamports=drained))
    logger.info(
        f"Auction {short_hex(auction)} force-closed: {drained} unclaimed lamports swept, {reclaimed} reclaimed"
    )
