"""
Shared account and argument helpers for auction handlers.

Instructions address accounts by role; every handler resolves roles and
arguments through these helpers so a malformed instruction fails the same
way everywhere.
"""

from typing import Any, Callable, List, Tuple

from gavel.core.errors import ErrorCode, error
from gavel.core.state.address import AUCTION_SEED, DELEGATION_PROGRAM_ID, custody_address, delegation_record_address, signer_seeds
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import AuctionState, AuctionStatus, DelegationRecord, RecordDecodeError
from gavel.core.state.transaction import Instruction
from gavel.utils.validation import validate_amount, validate_identity


def key(ix: Instruction, role: str) -> bytes:
    """32-byte identity/address for an account role."""
    value = ix.accounts.get(role)
    valid, err = validate_identity(value, role)
    if not valid:
        raise error(ErrorCode.INVALID_PARAMETER, err)
    return bytes(value)


def int_arg(
    ix: Instruction,
    name: str,
    validator: Callable[[Any, str], Tuple[bool, str]] = validate_amount,
    default: Any = None,
) -> int:
    value = ix.args.get(name, default)
    valid, err = validator(value, name)
    if not valid:
        raise error(ErrorCode.INVALID_PARAMETER, err)
    return value


def load_auction(ctx: InvocationContext, address: bytes) -> AuctionState:
    return ctx.load(address, AuctionState)


def require_status(state: AuctionState, *allowed: AuctionStatus) -> None:
    if state.status not in allowed:
        expected = "/".join(s.name for s in allowed)
        raise error(ErrorCode.INVALID_AUCTION_STATUS, f"status {state.status.name}, expected {expected}")


def require_seller(ctx: InvocationContext, state: AuctionState, seller: bytes) -> None:
    """The named seller must match the record and have signed."""
    if seller != state.seller:
        raise error(ErrorCode.UNAUTHORIZED_SELLER)
    ctx.require_signer(seller, ErrorCode.UNAUTHORIZED_SELLER)


def auction_seeds(state: AuctionState) -> List[bytes]:
    """Seeds that let the program sign as the auction address."""
    return signer_seeds([AUCTION_SEED, state.seller, state.asset_mint], state.bump)


def escrow_address(auction: bytes, mint: bytes) -> bytes:
    """Custody account holding the escrowed unit (owned by the auction address)."""
    return custody_address(auction, mint)


def require_open_for_bidders(ctx: InvocationContext, auction: bytes, allow_delegated: bool) -> bytes:
    """
    Accept bidder-side setup (deposits, sessions) only for live auctions.

    A readable auction must be Created or Active. A delegated auction is
    accepted only when a delegation record shows this program handed it
    over, since only Active auctions can be delegated.

    Returns:
        The auction's instance_id
    """
    account = ctx.require_account(auction)
    if account.owner != DELEGATION_PROGRAM_ID:
        state = load_auction(ctx, auction)
        require_status(state, AuctionStatus.CREATED, AuctionStatus.ACTIVE)
        return state.instance_id

    if not allow_delegated:
        raise error(ErrorCode.ACCOUNT_DELEGATED, "auction is on the fast tier")
    record = ctx.load(delegation_record_address(auction), DelegationRecord, owner=DELEGATION_PROGRAM_ID)
    if record.account != auction or record.original_owner != ctx.program_id:
        raise error(ErrorCode.INVALID_ACCOUNT_OWNER, "delegation record does not belong to this auction")

    # instance_id is fixed at creation, so the durable copy is current for it
    try:
        return AuctionState.from_bytes(account.data).instance_id
    except RecordDecodeError as exc:
        raise error(ErrorCode.INVALID_ACCOUNT_DATA, str(exc))
