"""Ledger accounts: lamport balance plus an opaque data blob owned by a program."""

from dataclasses import dataclass

from gavel.crypto import bytes_to_hex


@dataclass
class Account:
    """
    A ledger account.

    Attributes:
        address: 32-byte address (identity or program-derived)
        owner: Program id allowed to mutate `data` and debit `lamports`
        lamports: Native currency balance
        data: Encoded record (empty for plain wallets)
    """
    address: bytes
    owner: bytes
    lamports: int = 0
    data: bytes = b""

    def copy(self) -> "Account":
        return Account(self.address, self.owner, self.lamports, self.data)

    def __repr__(self) -> str:
        return (
            f"Account({bytes_to_hex(self.address)[:10]}..., owner={bytes_to_hex(self.owner)[:10]}..., "
            f"lamports={self.lamports}, data={len(self.data)}B)"
        )
