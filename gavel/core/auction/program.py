"""
AuctionProgram - dispatches instructions to their handlers.
"""

from typing import Callable, Dict

from gavel.core.auction import bidding, closure, delegation, escrow, lifecycle, settlement
from gavel.core.errors import ErrorCode, error
from gavel.core.state.address import AUCTION_PROGRAM_ID
from gavel.core.state.context import InvocationContext
from gavel.core.state.transaction import Instruction
from gavel.utils.logger import get_logger

logger = get_logger("auction.program")

Handler = Callable[[InvocationContext, Instruction], None]


class AuctionProgram:
    """The auction program as seen by a tier: a name -> handler table."""

    program_id = AUCTION_PROGRAM_ID

    def __init__(self):
        self.handlers: Dict[str, Handler] = {
            "create_auction": lifecycle.create_auction,
            "start_auction": lifecycle.start_auction,
            "end_auction": lifecycle.end_auction,
            "cancel_auction": lifecycle.cancel_auction,
            "deposit": escrow.deposit,
            "claim_refund": escrow.claim_refund,
            "claim_refund_for": escrow.claim_refund_for,
            "create_session": bidding.create_session,
            "place_bid": bidding.place_bid,
            "place_bid_session": bidding.place_bid_session,
            "delegate_auction": delegation.delegate_auction,
            "undelegate_auction": delegation.undelegate_auction,
            "settle_auction": settlement.settle,
            "forfeit_auction": settlement.forfeit,
            "close_auction": closure.close_auction,
            "force_close_auction": closure.force_close_auction,
        }

    def process(self, ctx: InvocationContext, ix: Instruction) -> None:
        handler = self.handlers.get(ix.name)
        if handler is None:
            raise error(ErrorCode.UNKNOWN_INSTRUCTION, ix.name)
        logger.debug(f"[{ctx.tier.name}] {ix.name} signers={len(ctx.signers)}")
        handler(ctx, ix)
