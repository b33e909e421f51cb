"""
Records - typed account data and their versioned binary codec.

Account data is an opaque blob on the ledger. Each record type encodes as:

    kind (u8) || version (u8) || fixed little-endian fields

Decoding checks kind, version and exact length before unpacking, so a
record of the wrong type or a truncated blob is rejected instead of being
misread.
"""

import struct
from dataclasses import dataclass, fields
from enum import IntEnum
from typing import ClassVar, Optional, Tuple, Type, TypeVar

HEADER = struct.Struct("<BB")
NO_IDENTITY = bytes(32)

R = TypeVar("R", bound="Record")


class RecordKind(IntEnum):
    AUCTION = 1
    VAULT = 2
    DEPOSIT = 3
    SESSION = 4
    DELEGATION = 5
    ASSET_MINT = 10
    ASSET_ACCOUNT = 11


class AuctionStatus(IntEnum):
    """Lifecycle of an auction record (Closed = record deleted)."""
    CREATED = 0
    ACTIVE = 1
    ENDED = 2
    SETTLED = 3
    CANCELLED = 4


class RecordDecodeError(ValueError):
    """Blob does not decode as the requested record type."""


class Record:
    """Base for fixed-layout records."""

    KIND: ClassVar[RecordKind]
    VERSION: ClassVar[int] = 1
    LAYOUT: ClassVar[struct.Struct]

    @classmethod
    def size(cls) -> int:
        """Encoded size in bytes (header included)."""
        return HEADER.size + cls.LAYOUT.size

    def _pack_values(self) -> Tuple:
        return tuple(getattr(self, f.name) for f in fields(self))

    @classmethod
    def _from_values(cls: Type[R], values: Tuple) -> R:
        return cls(*values)

    def to_bytes(self) -> bytes:
        return HEADER.pack(self.KIND, self.VERSION) + self.LAYOUT.pack(*self._pack_values())

    @classmethod
    def from_bytes(cls: Type[R], data: bytes) -> R:
        if len(data) < HEADER.size:
            raise RecordDecodeError(f"{cls.__name__}: data too short ({len(data)} bytes)")
        kind, version = HEADER.unpack_from(data, 0)
        if kind != cls.KIND:
            raise RecordDecodeError(f"{cls.__name__}: wrong record kind {kind}")
        if version != cls.VERSION:
            raise RecordDecodeError(f"{cls.__name__}: unsupported version {version}")
        if len(data) != cls.size():
            raise RecordDecodeError(
                f"{cls.__name__}: expected {cls.size()} bytes, got {len(data)}"
            )
        return cls._from_values(cls.LAYOUT.unpack_from(data, HEADER.size))


# =============================================================================
# Auction program records
# =============================================================================


@dataclass
class AuctionState(Record):
    """
    The durable state machine instance for one auction.

    Invariant: current_bid == 0 <=> highest_bidder is None <=> bid_count == 0

    instance_id is the hash of the creating transaction. Deposit and session
    entries carry it, so entries left behind by an earlier auction at the same
    address are never mistaken for this one's.
    """
    seller: bytes
    asset_mint: bytes
    reserve_price: int
    duration_seconds: int
    current_bid: int = 0
    highest_bidder: Optional[bytes] = None
    start_time: int = 0
    end_time: int = 0
    extension_seconds: int = 0
    extension_window: int = 0
    min_bid_increment: int = 1
    status: AuctionStatus = AuctionStatus.CREATED
    bid_count: int = 0
    bump: int = 0
    instance_id: bytes = NO_IDENTITY

    KIND: ClassVar[RecordKind] = RecordKind.AUCTION
    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32s32sQQQ32sqqIIQBIB32s")

    def _pack_values(self) -> Tuple:
        return (
            self.seller,
            self.asset_mint,
            self.reserve_price,
            self.duration_seconds,
            self.current_bid,
            self.highest_bidder or NO_IDENTITY,
            self.start_time,
            self.end_time,
            self.extension_seconds,
            self.extension_window,
            self.min_bid_increment,
            int(self.status),
            self.bid_count,
            self.bump,
            self.instance_id,
        )

    @classmethod
    def _from_values(cls, values: Tuple) -> "AuctionState":
        values = list(values)
        if values[5] == NO_IDENTITY:
            values[5] = None
        try:
            values[11] = AuctionStatus(values[11])
        except ValueError:
            raise RecordDecodeError(f"AuctionState: unknown status {values[11]}")
        return cls(*values)

    @property
    def has_bids(self) -> bool:
        return self.bid_count > 0


@dataclass
class AuctionVault(Record):
    """Custodial lamport balance for one auction's bidder deposits."""
    auction: bytes
    bump: int

    KIND: ClassVar[RecordKind] = RecordKind.VAULT
    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32sB")


@dataclass
class BidderDeposit(Record):
    """Cumulative collateral deposited by one bidder into one auction."""
    auction: bytes
    bidder: bytes
    amount: int
    bump: int
    instance_id: bytes = NO_IDENTITY

    KIND: ClassVar[RecordKind] = RecordKind.DEPOSIT
    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32s32sQB32s")


@dataclass
class SessionToken(Record):
    """Binds an ephemeral signer to a real bidder for fast-tier bids."""
    auction: bytes
    bidder: bytes
    session_signer: bytes
    bump: int
    instance_id: bytes = NO_IDENTITY

    KIND: ClassVar[RecordKind] = RecordKind.SESSION
    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32s32s32sB32s")


@dataclass
class DelegationRecord(Record):
    """Durable-tier marker that an account's write authority moved to the fast tier."""
    account: bytes
    original_owner: bytes
    payer: bytes
    delegated_at: int

    KIND: ClassVar[RecordKind] = RecordKind.DELEGATION
    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<32s32s32sq")
