"""
Royalty metadata - defensive decoder for externally-owned asset metadata.

The metadata record of a mint is written by another program and supplied by
the caller, so nothing in it is trusted. Layout (little-endian):

    key                      u8
    update_authority         32 bytes
    mint                     32 bytes
    name, symbol, uri        u32 length || bytes   (each)
    seller_fee_basis_points  u16
    creators                 u8 option flag
                             [u32 count || count * (32-byte address, u8 verified, u8 share)]

Trailing bytes after the creator list are ignored. Every read is bounds
checked against the remaining buffer before slicing; a truncated or
inconsistent record decodes to an error instead of a partial result.
"""

import struct
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from gavel.utils.logger import get_logger
from gavel.utils.validation import MAX_BPS

logger = get_logger("metadata")

METADATA_KEY = 4
MAX_STRING_LENGTH = 256
DEFAULT_MAX_CREATORS = 5


@dataclass
class Creator:
    """A royalty recipient and its share of the royalty (percent)."""
    address: bytes
    verified: bool
    share: int


@dataclass
class RoyaltyMetadata:
    """Decoded view of the fields settlement needs."""
    update_authority: bytes
    mint: bytes
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creators: List[Creator] = field(default_factory=list)

    @property
    def total_share(self) -> int:
        return sum(c.share for c in self.creators)


class MetadataDecodeError(ValueError):
    """Raised internally when a read would leave the buffer."""


class _Reader:
    """Cursor over an untrusted buffer; every read checks remaining length."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def take(self, length: int, what: str) -> bytes:
        if length < 0 or length > self.remaining:
            raise MetadataDecodeError(
                f"{what}: need {length} bytes at offset {self.offset}, {self.remaining} left"
            )
        chunk = self.data[self.offset:self.offset + length]
        self.offset += length
        return chunk

    def u8(self, what: str) -> int:
        return self.take(1, what)[0]

    def u16(self, what: str) -> int:
        return struct.unpack("<H", self.take(2, what))[0]

    def u32(self, what: str) -> int:
        return struct.unpack("<I", self.take(4, what))[0]

    def string(self, what: str) -> str:
        length = self.u32(f"{what} length")
        if length > MAX_STRING_LENGTH:
            raise MetadataDecodeError(f"{what}: length {length} exceeds {MAX_STRING_LENGTH}")
        raw = self.take(length, what)
        # Fixed-size fields are NUL padded
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")


def parse_metadata(data: bytes, max_creators: int = DEFAULT_MAX_CREATORS) -> Tuple[Optional[RoyaltyMetadata], str]:
    """
    Decode a royalty metadata record.

    Args:
        data: Raw account data
        max_creators: Upper bound on the creator list

    Returns:
        (metadata, error_message) - metadata is None on failure
    """
    reader = _Reader(data)
    try:
        key = reader.u8("key")
        if key != METADATA_KEY:
            return None, f"unexpected metadata key {key}"
        update_authority = reader.take(32, "update_authority")
        mint = reader.take(32, "mint")
        name = reader.string("name")
        symbol = reader.string("symbol")
        uri = reader.string("uri")
        fee_bps = reader.u16("seller_fee_basis_points")

        creators: List[Creator] = []
        has_creators = reader.u8("creators option")
        if has_creators > 1:
            return None, f"invalid creators option flag {has_creators}"
        if has_creators:
            count = reader.u32("creators count")
            if count > max_creators:
                return None, f"{count} creators exceeds limit {max_creators}"
            for i in range(count):
                address = reader.take(32, f"creator {i} address")
                verified = reader.u8(f"creator {i} verified")
                share = reader.u8(f"creator {i} share")
                creators.append(Creator(address=address, verified=bool(verified), share=share))
    except MetadataDecodeError as exc:
        logger.debug(f"Metadata decode failed: {exc}")
        return None, str(exc)

    if fee_bps > MAX_BPS:
        return None, f"seller_fee_basis_points {fee_bps} exceeds {MAX_BPS}"

    total_share = sum(c.share for c in creators)
    if total_share > 100:
        return None, f"creator shares sum to {total_share}, max 100"

    return RoyaltyMetadata(
        update_authority=update_authority,
        mint=mint,
        name=name,
        symbol=symbol,
        uri=uri,
        seller_fee_basis_points=fee_bps,
        creators=creators,
    ), ""


def encode_metadata(
    mint: bytes,
    seller_fee_basis_points: int,
    creators: Optional[List[Tuple[bytes, int]]] = None,
    name: str = "",
    symbol: str = "",
    uri: str = "",
    update_authority: bytes = bytes(32),
    verified: bool = True,
) -> bytes:
    """
    Build a metadata record in the layout parse_metadata reads.

    creators: list of (address, share); None writes an absent creator list.
    """
    def _string(value: str) -> bytes:
        raw = value.encode("utf-8")
        return struct.pack("<I", len(raw)) + raw

    out = bytearray()
    out.append(METADATA_KEY)
    out += update_authority
    out += mint
    out += _string(name)
    out += _string(symbol)
    out += _string(uri)
    out += struct.pack("<H", seller_fee_basis_points)
    if creators is None:
        out.append(0)
    else:
        out.append(1)
        out += struct.pack("<I", len(creators))
        for address, share in creators:
            out += address + bytes([1 if verified else 0, share])
    return bytes(out)
