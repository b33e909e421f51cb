"""
Escrow Vault & Deposit Ledger.

Bidders lock native currency in the auction's vault before (or while)
bidding. Each (auction, bidder) pair has one deposit entry holding the
cumulative amount. Deposits only grow until the auction is settled or
cancelled; afterwards an entry is paid out exactly once by a refund, which
zeroes and closes it.

Invariant: vault balance - rent floor >= sum of live deposit amounts,
until settlement moves the winning bid out.

An entry stamped with another instance_id was left behind by an earlier
auction at the same address whose vault was swept by force_close; it holds
no claim on this vault and reads as empty.
"""

from gavel.core.auction.accounts import int_arg, key, load_auction, require_open_for_bidders
from gavel.core.checked import checked_add
from gavel.core.errors import ErrorCode, error
from gavel.core.events import DepositMade, RefundClaimed
from gavel.core.state.address import deposit_address, vault_address
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import AuctionStatus, AuctionVault, BidderDeposit
from gavel.core.state.transaction import Instruction
from gavel.crypto import short_hex
from gavel.utils.logger import get_logger

logger = get_logger("auction.escrow")


def deposit(ctx: InvocationContext, ix: Instruction) -> None:
    """
    Add collateral to the bidder's deposit entry.

    Accounts: bidder (signer), auction
    Args: amount
    """
    bidder = key(ix, "bidder")
    auction = key(ix, "auction")
    amount = int_arg(ix, "amount")
    ctx.require_signer(bidder)
    if amount == 0:
        raise error(ErrorCode.INVALID_DEPOSIT_AMOUNT)

    instance_id = require_open_for_bidders(ctx, auction, ctx.config.accept_deposits_while_delegated)

    vault, _ = vault_address(auction)
    ctx.load(vault, AuctionVault)

    entry_address, bump = deposit_address(auction, bidder)
    if ctx.exists(entry_address):
        entry = ctx.load(entry_address, BidderDeposit)
        if entry.instance_id != instance_id:
            logger.debug(f"Resetting stale deposit entry of {short_hex(bidder)} on {short_hex(auction)}")
            entry = BidderDeposit(auction=auction, bidder=bidder, amount=0, bump=bump, instance_id=instance_id)
    else:
        entry = BidderDeposit(auction=auction, bidder=bidder, amount=0, bump=bump, instance_id=instance_id)
        ctx.create(entry_address, entry, payer=bidder)

    entry.amount = checked_add(entry.amount, amount)
    ctx.save(entry_address, entry)
    ctx.transfer(bidder, vault, amount)

    ctx.emit(DepositMade(auction=auction, bidder=bidder, amount=amount, total_deposit=entry.amount))
    logger.info(f"Deposit {amount} by {short_hex(bidder)} into {short_hex(auction)} (total {entry.amount})")


def refund(ctx: InvocationContext, auction: bytes, bidder: bytes) -> int:
    """
    Pay a bidder's whole deposit back and close the entry.

    Funds and the entry's rent always go to the bidder, whoever calls.

    Returns:
        Amount refunded
    """
    state = load_auction(ctx, auction)
    if state.status not in (AuctionStatus.SETTLED, AuctionStatus.CANCELLED):
        raise error(ErrorCode.REFUND_NOT_AVAILABLE, f"status {state.status.name}")

    entry_address, _ = deposit_address(auction, bidder)
    if not ctx.exists(entry_address):
        raise error(ErrorCode.NOTHING_TO_REFUND, "no deposit entry")
    entry = ctx.load(entry_address, BidderDeposit)
    if entry.instance_id != state.instance_id:
        raise error(ErrorCode.NOTHING_TO_REFUND, "deposit entry belongs to an earlier auction")
    if entry.amount == 0:
        raise error(ErrorCode.NOTHING_TO_REFUND)

    amount = entry.amount
    entry.amount = 0
    ctx.save(entry_address, entry)

    vault, _ = vault_address(auction)
    ctx.debit(vault, bidder, amount)
    ctx.close(entry_address, bidder)

    ctx.emit(RefundClaimed(auction=auction, bidder=bidder, amount=amount))
    logger.info(f"Refunded {amount} to {short_hex(bidder)} from {short_hex(auction)}")
    return amount


def claim_refund(ctx: InvocationContext, ix: Instruction) -> None:
    """Bidder reclaims their own deposit. Accounts: bidder (signer), auction."""
    bidder = key(ix, "bidder")
    ctx.require_signer(bidder)
    refund(ctx, key(ix, "auction"), bidder)


def claim_refund_for(ctx: InvocationContext, ix: Instruction) -> None:
    """Anyone refunds a bidder on their behalf. Accounts: bidder, auction."""
    refund(ctx, key(ix, "auction"), key(ix, "bidder"))
