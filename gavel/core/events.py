"""
Events emitted by the auction program.

Handlers buffer events on the invocation context; the executing tier
publishes them only if the transaction commits.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from gavel.crypto import bytes_to_hex


@dataclass
class Event:
    """Base event; `auction` is the auction record address."""
    auction: bytes

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view (bytes rendered as hex)."""
        out = {"event": self.name}
        for key, value in asdict(self).items():
            out[key] = bytes_to_hex(value) if isinstance(value, bytes) else value
        return out


@dataclass
class AuctionCreated(Event):
    seller: bytes
    asset_mint: bytes
    reserve_price: int
    duration_seconds: int


@dataclass
class AuctionStarted(Event):
    start_time: int
    end_time: int


@dataclass
class DepositMade(Event):
    bidder: bytes
    amount: int
    total_deposit: int


@dataclass
class SessionCreated(Event):
    bidder: bytes
    session_signer: bytes


@dataclass
class AuctionDelegated(Event):
    seller: bytes


@dataclass
class BidPlaced(Event):
    bidder: bytes
    amount: int
    previous_bid: int
    bid_count: int
    new_end_time: int


@dataclass
class AuctionEnded(Event):
    winner: Optional[bytes]
    winning_bid: int
    total_bids: int


@dataclass
class AuctionUndelegated(Event):
    end_time: int


@dataclass
class AuctionSettled(Event):
    winner: bytes
    final_price: int
    seller_received: int
    royalties_paid: int
    protocol_fee: int = 0


@dataclass
class RefundClaimed(Event):
    bidder: bytes
    amount: int


@dataclass
class AuctionCancelled(Event):
    seller: bytes


@dataclass
class AuctionClosed(Event):
    seller: bytes
    reclaimed_lamports: int


@dataclass
class AuctionForceClosed(Event):
    seller: bytes
    drained_lamports: int
