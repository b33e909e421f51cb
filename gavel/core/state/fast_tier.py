"""
FastTier - low-latency execution context for delegated auctions.

While an auction is delegated, its durable account is owned by the
delegation program and only the fast tier may write it. The fast tier:

- clones a delegated account on first access, restoring the original
  owner from the durable delegation record, and keeps the clone writable
- serves every other durable account as a fresh read-only copy (session
  entries, asset records), so nothing but delegated state can change here
- after a transaction that undelegates an account commits, writes the
  clone back to the durable Ledger and discards it

The fast tier shares the Ledger's clock and configuration and is never
persisted: the durable tier is authoritative once an account returns.
"""

from typing import Dict, List, Optional

from gavel.core.errors import ErrorCode, error
from gavel.core.state.account import Account
from gavel.core.state.context import InvocationContext
from gavel.core.state.ledger import Ledger, Tier
from gavel.core.state.transaction import Transaction
from gavel.crypto import short_hex
from gavel.utils.logger import get_logger

logger = get_logger("fast_tier")


class FastTier(Tier):
    """
    Bidding tier bound to one durable Ledger.

    Attributes:
        ledger: Durable tier holding delegation records
        accounts: Writable clones of delegated accounts
    """

    name = "fast"

    def __init__(self, ledger: Ledger):
        super().__init__(config=ledger.config, clock=ledger.clock, programs=ledger.programs)
        self.ledger = ledger
        self._pending_commits: List[bytes] = []

    # =========================================================================
    # Account store
    # =========================================================================

    def get_account(self, address: bytes) -> Optional[Account]:
        if address in self.accounts:
            return self.accounts[address]

        durable = self.ledger.get_account(address)
        if durable is None:
            return None

        if self.ledger.is_delegated(address):
            record = self.ledger.delegation_record(address)
            if record is None:
                return durable.copy()
            clone = durable.copy()
            clone.owner = record.original_owner
            self.accounts[address] = clone
            logger.debug(f"Cloned delegated account {short_hex(address)}")
            return clone

        return durable.copy()

    def check_writable(self, address: bytes) -> None:
        if not self.ledger.is_delegated(address):
            raise error(ErrorCode.ACCOUNT_NOT_WRITABLE, f"{short_hex(address)} is not delegated")

    def put_account(self, account: Account) -> None:
        self.check_writable(account.address)
        super().put_account(account)

    def remove_account(self, address: bytes) -> None:
        raise error(ErrorCode.ACCOUNT_NOT_WRITABLE, "accounts cannot be closed on the fast tier")

    def is_cloned(self, address: bytes) -> bool:
        return address in self.accounts

    # =========================================================================
    # Commit-back
    # =========================================================================

    def schedule_undelegate(self, ctx: InvocationContext, address: bytes) -> None:
        if not self.ledger.is_delegated(address):
            raise error(ErrorCode.ACCOUNT_NOT_DELEGATED, short_hex(address))
        if address not in self._pending_commits:
            self._pending_commits.append(address)

    def _begin(self) -> None:
        self._pending_commits = []

    def _after_commit(self, tx: Transaction, ctx: InvocationContext) -> None:
        for address in self._pending_commits:
            clone = self.get_account(address)
            self.ledger.commit_from_fast_tier(clone)
            self.accounts.pop(address, None)
        self._pending_commits = []

    def __repr__(self) -> str:
        return f"FastTier(clones={len(self.accounts)}, txs={self.transaction_count})"
