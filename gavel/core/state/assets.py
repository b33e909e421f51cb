"""
Assets - uniquely identified, indivisible units held in custody accounts.

The asset program is a collaborator of the auction program: a mint record
describes an asset (decimals, supply, authority) and an asset account holds
some amount of one mint for one owner. The auction program moves its
escrowed unit by presenting the seeds of its own auction address, which is
the custody account's owner.

An asset suitable for auction has decimals == 0 and exactly one unit in the
seller's account.
"""

import struct
from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence

from gavel.core.checked import checked_add, checked_sub
from gavel.core.errors import ErrorCode, error
from gavel.core.state.address import ASSET_PROGRAM_ID, custody_address
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import Record, RecordKind


@dataclass
class AssetMint(Record):
    """Describes one asset type."""
    mint_authority: bytes
    supply: int
    decimals: int

    KIND: ClassVar[RecordKind] = RecordKind.ASSET_MINT
    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32sQB")


@dataclass
class AssetAccount(Record):
    """Units of `mint` held for `owner`."""
    mint: bytes
    owner: bytes
    amount: int

    KIND: ClassVar[RecordKind] = RecordKind.ASSET_ACCOUNT
    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32s32sQ")


def load_mint(ctx: InvocationContext, mint: bytes) -> AssetMint:
    return ctx.load(mint, AssetMint, owner=ASSET_PROGRAM_ID)


def load_asset_account(ctx: InvocationContext, address: bytes) -> AssetAccount:
    return ctx.load(address, AssetAccount, owner=ASSET_PROGRAM_ID)


def create_asset_account(ctx: InvocationContext, owner: bytes, mint: bytes, payer: bytes) -> bytes:
    """Create the canonical (owner, mint) asset account, paid by payer."""
    address = custody_address(owner, mint)
    ctx.create(address, AssetAccount(mint=mint, owner=owner, amount=0), payer, owner=ASSET_PROGRAM_ID)
    return address


def get_or_create_asset_account(ctx: InvocationContext, owner: bytes, mint: bytes, payer: bytes) -> bytes:
    """Canonical asset account for (owner, mint), created on demand."""
    address = custody_address(owner, mint)
    if ctx.exists(address):
        holding = load_asset_account(ctx, address)
        if holding.owner != owner or holding.mint != mint:
            raise error(ErrorCode.INVALID_ADDRESS, "asset account does not match owner/mint")
        return address
    return create_asset_account(ctx, owner, mint, payer)


def transfer_asset(
    ctx: InvocationContext,
    source: bytes,
    destination: bytes,
    amount: int,
    seeds: Optional[Sequence[bytes]] = None,
) -> None:
    """
    Move units between two asset accounts of the same mint.

    The source owner must have signed, or `seeds` must derive it under the
    calling program.
    """
    src = load_asset_account(ctx, source)
    dst = load_asset_account(ctx, destination)
    if src.mint != dst.mint:
        raise error(ErrorCode.INVALID_ASSET, "mint mismatch between asset accounts")
    ctx.authorize(src.owner, seeds)
    if src.amount < amount:
        raise error(ErrorCode.INSUFFICIENT_FUNDS, f"asset balance {src.amount} < {amount}")

    src.amount = checked_sub(src.amount, amount)
    dst.amount = checked_add(dst.amount, amount)
    ctx.save(source, src, owner=ASSET_PROGRAM_ID)
    ctx.save(destination, dst, owner=ASSET_PROGRAM_ID)


def close_asset_account(
    ctx: InvocationContext,
    address: bytes,
    destination: bytes,
    seeds: Optional[Sequence[bytes]] = None,
) -> int:
    """Close an empty asset account; returns reclaimed lamports."""
    holding = load_asset_account(ctx, address)
    if holding.amount != 0:
        raise error(ErrorCode.ESCROW_NOT_EMPTY, f"{holding.amount} unit(s) remain")
    ctx.authorize(holding.owner, seeds)
    return ctx.close(address, destination, owner=ASSET_PROGRAM_ID)
