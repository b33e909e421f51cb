"""
Settlement Engine and Forfeiture path.

Both run once per auction, after bidding has ended and the record is back on
the durable tier. Each advances the record to Settled as its FIRST write;
a concurrent or retried crank re-validates against that status and aborts
before any value moves.

settle  - the winner's deposit covers the bid: pay royalties, the protocol
          fee (if configured) and the seller from the vault, deliver the
          asset to the winner.
forfeit - it does not: the winner's deposit (if any) goes to the seller as a
          penalty and the asset returns to the seller.
"""

from typing import List, Optional, Tuple

from gavel.core.auction.accounts import auction_seeds, escrow_address, key, load_auction, require_status
from gavel.core.checked import checked_add, checked_sub, mul_div
from gavel.core.errors import ErrorCode, error
from gavel.core.events import AuctionSettled
from gavel.core.metadata import RoyaltyMetadata, parse_metadata
from gavel.core.state.address import deposit_address, metadata_address, vault_address
from gavel.core.state.assets import get_or_create_asset_account, transfer_asset
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import AuctionState, AuctionStatus, BidderDeposit, RecordDecodeError
from gavel.core.state.transaction import Instruction
from gavel.crypto import short_hex
from gavel.utils.logger import get_logger
from gavel.utils.validation import MAX_BPS

logger = get_logger("auction.settlement")

PERCENT = 100


# =============================================================================
# Royalties
# =============================================================================


def load_royalty_metadata(ctx: InvocationContext, mint: bytes) -> Optional[RoyaltyMetadata]:
    """
    Royalty descriptor for a mint, or None when the mint has no metadata.

    A record that exists but does not decode aborts the transaction.
    """
    address = metadata_address(mint)
    account = ctx.account(address)
    if account is None or not account.data:
        return None

    metadata, err = parse_metadata(account.data, ctx.config.max_creators)
    if metadata is None:
        raise error(ErrorCode.INVALID_METADATA, err)
    if metadata.mint != mint:
        raise error(ErrorCode.INVALID_METADATA, "metadata mint does not match the auctioned asset")
    return metadata


def royalty_payouts(price: int, metadata: Optional[RoyaltyMetadata]) -> List[Tuple[bytes, int]]:
    """
    (creator, amount) pairs for a sale at `price`.

    total = price * bps / 10000, then each creator gets total * share / 100.
    Rounding dust stays with the seller.
    """
    if metadata is None or metadata.seller_fee_basis_points == 0:
        return []
    total_royalty = mul_div(price, metadata.seller_fee_basis_points, MAX_BPS)
    payouts = []
    for creator in metadata.creators:
        if creator.share == 0:
            continue
        payouts.append((creator.address, mul_div(total_royalty, creator.share, PERCENT)))
    return payouts


# =============================================================================
# Winner deposit
# =============================================================================


def read_winner_deposit(ctx: InvocationContext, state: AuctionState, auction: bytes) -> Tuple[bytes, Optional[BidderDeposit]]:
    """
    The winner's deposit entry, decoded without trusting it.

    A missing entry is legitimate (the winner never deposited), and so is a
    stale one left by an earlier auction at this address: both read as None.
    An entry that exists but is not a deposit record for this (auction, winner)
    aborts.
    """
    address, _ = deposit_address(auction, state.highest_bidder)
    if not ctx.exists(address):
        return address, None

    account = ctx.account(address)
    if account.owner != ctx.program_id:
        raise error(ErrorCode.INVALID_DEPOSIT_ACCOUNT, "deposit entry has wrong owner")
    try:
        entry = BidderDeposit.from_bytes(account.data)
    except RecordDecodeError as exc:
        raise error(ErrorCode.INVALID_DEPOSIT_ACCOUNT, str(exc))
    if entry.auction != auction or entry.bidder != state.highest_bidder:
        raise error(ErrorCode.INVALID_DEPOSIT_ACCOUNT, "deposit entry belongs to another auction or bidder")
    if entry.instance_id != state.instance_id:
        return address, None
    return address, entry


def _require_settleable(state: AuctionState) -> None:
    require_status(state, AuctionStatus.ENDED)
    if not state.has_bids:
        raise error(ErrorCode.NO_BIDS_TO_SETTLE)


def _advance_to_settled(ctx: InvocationContext, auction: bytes, state: AuctionState) -> None:
    state.status = AuctionStatus.SETTLED
    ctx.save(auction, state)


# =============================================================================
# Handlers
# =============================================================================


def settle(ctx: InvocationContext, ix: Instruction) -> None:
    """
    Disburse the winning bid and deliver the asset. Permissionless.

    Accounts: payer (signer, funds the winner's asset account if needed),
              auction, treasury (when a protocol fee is configured)
    Remaining accounts: royalty creators, matched by identity
    """
    payer = key(ix, "payer")
    auction = key(ix, "auction")
    ctx.require_signer(payer)

    state = load_auction(ctx, auction)
    _require_settleable(state)

    winner = state.highest_bidder
    price = state.current_bid
    entry_address, entry = read_winner_deposit(ctx, state, auction)
    deposited = entry.amount if entry else 0
    if deposited < price:
        raise error(ErrorCode.INSUFFICIENT_DEPOSIT, f"deposit {deposited} < bid {price}")

    _advance_to_settled(ctx, auction, state)

    entry.amount = checked_sub(entry.amount, price)
    ctx.save(entry_address, entry)

    vault, _ = vault_address(auction)

    metadata = load_royalty_metadata(ctx, state.asset_mint)
    supplied = set(ix.remaining_accounts)
    royalties_paid = 0
    for creator, amount in royalty_payouts(price, metadata):
        if creator not in supplied:
            raise error(ErrorCode.MISSING_CREATOR_ACCOUNT, short_hex(creator))
        ctx.debit(vault, creator, amount)
        royalties_paid = checked_add(royalties_paid, amount)

    protocol_fee = 0
    if ctx.config.protocol_fee_bps > 0:
        treasury = ix.accounts.get("treasury")
        if treasury is None or treasury != ctx.config.treasury_identity:
            raise error(ErrorCode.INVALID_TREASURY)
        protocol_fee = mul_div(price, ctx.config.protocol_fee_bps, MAX_BPS)
        ctx.debit(vault, treasury, protocol_fee)

    seller_received = checked_sub(checked_sub(price, royalties_paid), protocol_fee)
    ctx.debit(vault, state.seller, seller_received)

    winner_holding = get_or_create_asset_account(ctx, winner, state.asset_mint, payer=payer)
    transfer_asset(ctx, escrow_address(auction, state.asset_mint), winner_holding, 1, seeds=auction_seeds(state))

    if entry.amount == 0:
        ctx.close(entry_address, winner)

    ctx.emit(AuctionSettled(
        auction=auction,
        winner=winner,
        final_price=price,
        seller_received=seller_received,
        royalties_paid=royalties_paid,
        protocol_fee=protocol_fee,
    ))
    logger.info(
        f"Auction {short_hex(auction)} settled: {short_hex(winner)} paid {price}, "
        f"seller {seller_received}, royalties {royalties_paid}, fee {protocol_fee}"
    )


def forfeit(ctx: InvocationContext, ix: Instruction) -> None:
    """
    Penalize an under-collateralized winner. Permissionless.

    Accounts: payer (signer, funds the seller's asset account if needed), auction
    """
    payer = key(ix, "payer")
    auction = key(ix, "auction")
    ctx.require_signer(payer)

    state = load_auction(ctx, auction)
    _require_settleable(state)

    winner = state.highest_bidder
    entry_address, entry = read_winner_deposit(ctx, state, auction)
    penalty = entry.amount if entry else 0
    if penalty >= state.current_bid:
        raise error(ErrorCode.FORFEIT_NOT_NEEDED, f"deposit {penalty} covers bid {state.current_bid}")

    _advance_to_settled(ctx, auction, state)

    if entry is not None:
        if penalty > 0:
            entry.amount = 0
            ctx.save(entry_address, entry)
            vault, _ = vault_address(auction)
            ctx.debit(vault, state.seller, penalty)
        ctx.close(entry_address, winner)

    seller_holding = get_or_create_asset_account(ctx, state.seller, state.asset_mint, payer=payer)
    transfer_asset(ctx, escrow_address(auction, state.asset_mint), seller_holding, 1, seeds=auction_seeds(state))

    ctx.emit(AuctionSettled(
        auction=auction,
        winner=winner,
        final_price=0,
        seller_received=penalty,
        royalties_paid=0,
    ))
    logger.info(f"Auction {short_hex(auction)} forfeited by {short_hex(winner)}: penalty {penalty} to seller")
