"""
Deterministic address derivation.

Every record lives at an address computed from a namespace tag and the
identities that own it, so any party can recompute it without a directory:

    auction  = PDA([b"auction", seller, mint])
    vault    = PDA([b"vault", auction])
    deposit  = PDA([b"deposit", auction, bidder])
    session  = PDA([b"session", auction, bidder])

A PDA is keccak256(seeds || bump || program_id || marker), searched from
bump 255 downward until the digest is not a secp256k1 x-coordinate. The
winning bump is stored in the record as its derivation tag.
"""

from typing import List, Optional, Sequence, Tuple

from gavel.crypto import keccak256, is_on_curve_x

PDA_MARKER = b"ProgramDerivedAddress"

# Namespace tags
AUCTION_SEED = b"auction"
VAULT_SEED = b"vault"
DEPOSIT_SEED = b"deposit"
SESSION_SEED = b"session"
DELEGATION_SEED = b"delegation"
METADATA_SEED = b"metadata"
CUSTODY_SEED = b"custody"

MAX_SEED_LENGTH = 32
MAX_SEEDS = 16


def _program_id(label: bytes) -> bytes:
    return keccak256(b"gavel:program:" + label)


SYSTEM_PROGRAM_ID = bytes(32)
AUCTION_PROGRAM_ID = _program_id(b"auction")
ASSET_PROGRAM_ID = _program_id(b"asset")
METADATA_PROGRAM_ID = _program_id(b"metadata")
DELEGATION_PROGRAM_ID = _program_id(b"delegation")


def create_program_address(seeds: Sequence[bytes], program_id: bytes) -> Optional[bytes]:
    """
    Hash seeds into an address owned by program_id.

    Returns None when the digest lands on the curve (a private key could
    exist for it).
    """
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"At most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ValueError(f"Seed exceeds {MAX_SEED_LENGTH} bytes")

    digest = keccak256(b"".join(seeds) + program_id + PDA_MARKER)
    if is_on_curve_x(digest):
        return None
    return digest


def find_program_address(seeds: Sequence[bytes], program_id: bytes) -> Tuple[bytes, int]:
    """Find the canonical (address, bump) for seeds under program_id."""
    for bump in range(255, -1, -1):
        address = create_program_address(list(seeds) + [bytes([bump])], program_id)
        if address is not None:
            return address, bump
    raise ValueError("Unable to find a viable program address bump")


def signer_seeds(seeds: Sequence[bytes], bump: int) -> List[bytes]:
    """Seeds plus bump, as passed when a program signs for its PDA."""
    return list(seeds) + [bytes([bump])]


# =============================================================================
# Auction program addresses
# =============================================================================


def auction_address(seller: bytes, mint: bytes) -> Tuple[bytes, int]:
    return find_program_address([AUCTION_SEED, seller, mint], AUCTION_PROGRAM_ID)


def vault_address(auction: bytes) -> Tuple[bytes, int]:
    return find_program_address([VAULT_SEED, auction], AUCTION_PROGRAM_ID)


def deposit_address(auction: bytes, bidder: bytes) -> Tuple[bytes, int]:
    return find_program_address([DEPOSIT_SEED, auction, bidder], AUCTION_PROGRAM_ID)


def session_address(auction: bytes, bidder: bytes) -> Tuple[bytes, int]:
    return find_program_address([SESSION_SEED, auction, bidder], AUCTION_PROGRAM_ID)


# =============================================================================
# Collaborator program addresses
# =============================================================================


def delegation_record_address(account: bytes) -> bytes:
    return find_program_address([DELEGATION_SEED, account], DELEGATION_PROGRAM_ID)[0]


def metadata_address(mint: bytes) -> bytes:
    return find_program_address([METADATA_SEED, mint], METADATA_PROGRAM_ID)[0]


def custody_address(owner: bytes, mint: bytes) -> bytes:
    """Canonical asset account for (owner, mint)."""
    return find_program_address([CUSTODY_SEED, owner, mint], ASSET_PROGRAM_ID)[0]
