"""
Instruction builders for the auction program.

Clients build an Instruction, wrap it with `build_transaction(ix, *signers)`
and submit it to the Ledger (or the FastTier for bids on delegated
auctions). Addresses are derived here so callers only deal in identities.
"""

from typing import Iterable, Optional

from gavel.core.state.address import AUCTION_PROGRAM_ID, auction_address, session_address
from gavel.core.state.transaction import Instruction


def _ix(name: str, accounts: dict, args: Optional[dict] = None, remaining: Iterable[bytes] = ()) -> Instruction:
    return Instruction(
        program_id=AUCTION_PROGRAM_ID,
        name=name,
        accounts=accounts,
        args=args or {},
        remaining_accounts=list(remaining),
    )


def create_auction(
    seller: bytes,
    asset_mint: bytes,
    reserve_price: int,
    duration_seconds: int,
    extension_seconds: int = 0,
    extension_window: int = 0,
    min_bid_increment: int = 1,
) -> Instruction:
    return _ix(
        "create_auction",
        {"seller": seller, "asset_mint": asset_mint},
        {
            "reserve_price": reserve_price,
            "duration_seconds": duration_seconds,
            "extension_seconds": extension_seconds,
            "extension_window": extension_window,
            "min_bid_increment": min_bid_increment,
        },
    )


def start_auction(seller: bytes, auction: bytes) -> Instruction:
    return _ix("start_auction", {"seller": seller, "auction": auction})


def end_auction(auction: bytes) -> Instruction:
    return _ix("end_auction", {"auction": auction})


def cancel_auction(seller: bytes, auction: bytes) -> Instruction:
    return _ix("cancel_auction", {"seller": seller, "auction": auction})


def deposit(bidder: bytes, auction: bytes, amount: int) -> Instruction:
    return _ix("deposit", {"bidder": bidder, "auction": auction}, {"amount": amount})


def claim_refund(bidder: bytes, auction: bytes) -> Instruction:
    return _ix("claim_refund", {"bidder": bidder, "auction": auction})


def claim_refund_for(bidder: bytes, auction: bytes) -> Instruction:
    """Refund `bidder`; any signer may submit it."""
    return _ix("claim_refund_for", {"bidder": bidder, "auction": auction})


def create_session(bidder: bytes, auction: bytes, session_signer: bytes) -> Instruction:
    return _ix("create_session", {"bidder": bidder, "auction": auction, "session_signer": session_signer})


def place_bid(bidder: bytes, auction: bytes, amount: int) -> Instruction:
    return _ix("place_bid", {"bidder": bidder, "auction": auction}, {"amount": amount})


def place_bid_session(bidder: bytes, auction: bytes, amount: int) -> Instruction:
    """Bid for `bidder` through their session entry; sign with the session key."""
    session, _ = session_address(auction, bidder)
    return _ix("place_bid_session", {"auction": auction, "session": session}, {"amount": amount})


def delegate_auction(seller: bytes, auction: bytes) -> Instruction:
    return _ix("delegate_auction", {"seller": seller, "auction": auction})


def undelegate_auction(seller: bytes, auction: bytes) -> Instruction:
    return _ix("undelegate_auction", {"seller": seller, "auction": auction})


def settle_auction(
    payer: bytes,
    auction: bytes,
    creators: Iterable[bytes] = (),
    treasury: Optional[bytes] = None,
) -> Instruction:
    accounts = {"payer": payer, "auction": auction}
    if treasury is not None:
        accounts["treasury"] = treasury
    return _ix("settle_auction", accounts, remaining=creators)


def forfeit_auction(payer: bytes, auction: bytes) -> Instruction:
    return _ix("forfeit_auction", {"payer": payer, "auction": auction})


def close_auction(seller: bytes, auction: bytes) -> Instruction:
    return _ix("close_auction", {"seller": seller, "auction": auction})


def force_close_auction(auction: bytes) -> Instruction:
    return _ix("force_close_auction", {"auction": auction})


def derive_auction(seller: bytes, asset_mint: bytes) -> bytes:
    """Auction record address for (seller, mint)."""
    return auction_address(seller, asset_mint)[0]
