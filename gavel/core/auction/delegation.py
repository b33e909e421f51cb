"""
Dual-tier coordination.

delegate    (durable tier) hands the Active auction record to the fast tier.
undelegate  (fast tier) once Ended, commits the record back; settlement and
            forfeiture can read it on the durable tier again.

Vault, deposit and session entries never leave the durable tier.
"""

from gavel.core.auction.accounts import key, load_auction, require_seller, require_status
from gavel.core.events import AuctionDelegated, AuctionUndelegated
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import AuctionStatus
from gavel.core.state.transaction import Instruction
from gavel.crypto import short_hex
from gavel.utils.logger import get_logger

logger = get_logger("auction.delegation")


def delegate_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """Accounts: seller (signer, pays the delegation record), auction."""
    auction = key(ix, "auction")
    seller = key(ix, "seller")
    state = load_auction(ctx, auction)
    require_seller(ctx, state, seller)
    require_status(state, AuctionStatus.ACTIVE)

    ctx.delegate(auction, payer=seller)

    ctx.emit(AuctionDelegated(auction=auction, seller=seller))
    logger.info(f"Auction {short_hex(auction)} delegated to fast tier")


def undelegate_auction(ctx: InvocationContext, ix: Instruction) -> None:
    """Accounts: seller (signer), auction. Runs on the fast tier."""
    auction = key(ix, "auction")
    state = load_auction(ctx, auction)
    require_seller(ctx, state, key(ix, "seller"))
    require_status(state, AuctionStatus.ENDED)

    ctx.commit_and_undelegate(auction)

    ctx.emit(AuctionUndelegated(auction=auction, end_time=state.end_time))
    logger.info(f"Auction {short_hex(auction)} scheduled for commit to durable tier")
