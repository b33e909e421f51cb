"""
Ledger - the durable tier of the Gavel runtime.

Conceptual Background:
---------------------
The Ledger holds every account (wallets, auction records, vaults, deposit
entries, asset accounts) keyed by address. Programs mutate it only by
executing transactions:

1. Verify all signatures, derive the signer set; refuse already-committed hashes
2. Snapshot the account store
3. Run the program handler through an InvocationContext
4. On any ProgramError: restore the snapshot, drop buffered events
5. On success: publish events, persist touched accounts

Each transaction is therefore all-or-nothing. Conflicting transactions are
serialized by construction: one `execute` call runs at a time, and a loser
re-validates against the state the winner left behind.

A companion FastTier (see fast_tier.py) may hold write authority over
delegated accounts; on this tier such accounts are owned by the delegation
program and cannot be read as program records.
"""

import secrets
import time
from typing import Dict, List, Optional, Set, Tuple, Type, TypeVar

from gavel.core.config import ProtocolConfig
from gavel.core.errors import ErrorCode, ProgramError, error
from gavel.core.events import Event
from gavel.core.state.account import Account
from gavel.core.state.address import (
    ASSET_PROGRAM_ID,
    AUCTION_PROGRAM_ID,
    DELEGATION_PROGRAM_ID,
    METADATA_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    custody_address,
    delegation_record_address,
    metadata_address,
)
from gavel.core.state.assets import AssetAccount, AssetMint
from gavel.core.state.context import InvocationContext
from gavel.core.state.records import DelegationRecord, Record, RecordDecodeError
from gavel.core.state.transaction import Transaction
from gavel.core.storage.storage_manager import StorageManager
from gavel.crypto import bytes_to_hex, short_hex
from gavel.utils.logger import get_logger

logger = get_logger("ledger")

R = TypeVar("R", bound=Record)


# =============================================================================
# Clock
# =============================================================================


class Clock:
    """Shared unix clock read by both tiers at execution time."""

    def __init__(self, unix_timestamp: Optional[int] = None):
        self.unix_timestamp = int(time.time()) if unix_timestamp is None else unix_timestamp

    @property
    def now(self) -> int:
        return self.unix_timestamp

    def warp_to(self, unix_timestamp: int) -> None:
        if unix_timestamp < self.unix_timestamp:
            raise ValueError(f"Clock cannot move backwards: {unix_timestamp} < {self.unix_timestamp}")
        self.unix_timestamp = unix_timestamp

    def advance(self, seconds: int) -> None:
        self.warp_to(self.unix_timestamp + seconds)


# =============================================================================
# Tier base
# =============================================================================


class Tier:
    """
    An execution context that applies transactions atomically.

    Subclasses decide which accounts are visible and writable.
    """

    name = "tier"

    def __init__(
        self,
        config: Optional[ProtocolConfig] = None,
        clock: Optional[Clock] = None,
        programs: Optional[Dict[bytes, object]] = None,
    ):
        self.config = config or ProtocolConfig()
        self.clock = clock or Clock()
        self.accounts: Dict[bytes, Account] = {}
        self.events: List[Event] = []
        self.transaction_count = 0
        self.seen_transactions: Set[bytes] = set()

        if programs is None:
            from gavel.core.auction.program import AuctionProgram
            programs = {AUCTION_PROGRAM_ID: AuctionProgram()}
        self.programs = programs

    # =========================================================================
    # Account store (used by InvocationContext)
    # =========================================================================

    def get_account(self, address: bytes) -> Optional[Account]:
        return self.accounts.get(address)

    def check_writable(self, address: bytes) -> None:
        """Raise if the account may not be modified on this tier."""

    def put_account(self, account: Account) -> None:
        self.accounts[account.address] = account

    def remove_account(self, address: bytes) -> None:
        self.accounts.pop(address, None)

    def delegate_account(self, ctx: InvocationContext, address: bytes, payer: bytes) -> None:
        raise error(ErrorCode.ACCOUNT_NOT_WRITABLE, f"delegation is not available on the {self.name} tier")

    def schedule_undelegate(self, ctx: InvocationContext, address: bytes) -> None:
        raise error(ErrorCode.ACCOUNT_NOT_DELEGATED, f"nothing to undelegate on the {self.name} tier")

    # =========================================================================
    # Execution
    # =========================================================================

    def _snapshot(self) -> Dict[bytes, Account]:
        return {address: account.copy() for address, account in self.accounts.items()}

    def _restore(self, snapshot: Dict[bytes, Account]) -> None:
        self.accounts = snapshot

    def _begin(self) -> None:
        """Reset per-transaction bookkeeping."""

    def _after_commit(self, tx: Transaction, ctx: InvocationContext) -> None:
        """Hook run once a transaction has committed."""

    def execute(self, tx: Transaction) -> Tuple[bool, str]:
        """
        Apply a transaction atomically.

        Args:
            tx: Signed transaction

        Returns:
            (success, message)
        """
        instruction = tx.instruction

        is_valid, err = tx.verify_signatures()
        if not is_valid:
            logger.warning(f"[{self.name}] rejected {instruction.name}: {err}")
            return False, f"{ErrorCode.INVALID_SIGNATURE.name}: {err}"

        tx_hash = tx.tx_hash
        if tx_hash in self.seen_transactions:
            logger.warning(f"[{self.name}] rejected {instruction.name}: duplicate {short_hex(tx_hash)}")
            return False, f"{ErrorCode.DUPLICATE_TRANSACTION.name}: {short_hex(tx_hash)} already committed"

        program = self.programs.get(instruction.program_id)
        if program is None:
            return False, f"{ErrorCode.UNKNOWN_INSTRUCTION.name}: no program {short_hex(instruction.program_id)}"

        snapshot = self._snapshot()
        self._begin()
        ctx = InvocationContext(
            tier=self,
            program_id=instruction.program_id,
            signers=tx.signer_identities(),
            now=self.clock.now,
            config=self.config,
            tx_hash=tx_hash,
        )

        try:
            program.process(ctx, instruction)
        except ProgramError as exc:
            self._restore(snapshot)
            self._begin()
            logger.warning(f"[{self.name}] {instruction.name} aborted: {exc}")
            return False, str(exc)
        except Exception:
            self._restore(snapshot)
            self._begin()
            raise

        self._after_commit(tx, ctx)
        self.seen_transactions.add(tx_hash)
        self.events.extend(ctx.events)
        self.transaction_count += 1
        for event in ctx.events:
            logger.debug(f"[{self.name}] event {event.name} auction={short_hex(event.auction)}")
        return True, ""

    # =========================================================================
    # Read helpers (clients and tests)
    # =========================================================================

    def get_balance(self, address: bytes) -> int:
        account = self.get_account(address)
        return account.lamports if account else 0

    def get_record(self, address: bytes, record_cls: Type[R]) -> Optional[R]:
        """Decode the record at address, or None if absent or not decodable."""
        account = self.get_account(address)
        if account is None or not account.data:
            return None
        try:
            return record_cls.from_bytes(account.data)
        except RecordDecodeError:
            return None

    def events_of(self, event_cls: Type[Event]) -> List[Event]:
        return [event for event in self.events if isinstance(event, event_cls)]


# =============================================================================
# Durable tier
# =============================================================================


class Ledger(Tier):
    """
    The durable tier: persistent home of escrow, deposits and settlement.

    Attributes:
        accounts: address -> Account
        clock: Shared clock
        storage_manager: Optional persistence (None = in-memory only)
    """

    name = "durable"

    def __init__(
        self,
        config: Optional[ProtocolConfig] = None,
        storage_manager: Optional[StorageManager] = None,
        clock: Optional[Clock] = None,
        programs: Optional[Dict[bytes, object]] = None,
    ):
        super().__init__(config=config, clock=clock, programs=programs)
        self.storage_manager = storage_manager
        self._dirty: Set[bytes] = set()
        self._deleted: Set[bytes] = set()

        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # Account store
    # =========================================================================

    def put_account(self, account: Account) -> None:
        super().put_account(account)
        self._dirty.add(account.address)
        self._deleted.discard(account.address)

    def remove_account(self, address: bytes) -> None:
        super().remove_account(address)
        self._dirty.discard(address)
        self._deleted.add(address)

    def _begin(self) -> None:
        self._dirty = set()
        self._deleted = set()

    def _after_commit(self, tx: Transaction, ctx: InvocationContext) -> None:
        self._persist(tx)

    # =========================================================================
    # Delegation
    # =========================================================================

    def delegate_account(self, ctx: InvocationContext, address: bytes, payer: bytes) -> None:
        """
        Move write authority over `address` to the fast tier.

        The account is re-owned by the delegation program and a delegation
        record remembers who owned it, so the fast tier can clone it as a
        writable copy and the durable tier refuses to read it meanwhile.
        """
        account = ctx.require_account(address)
        if account.owner != ctx.program_id:
            raise error(ErrorCode.INVALID_ACCOUNT_OWNER, "only the owning program may delegate")

        record_address = delegation_record_address(address)
        record = DelegationRecord(
            account=address,
            original_owner=account.owner,
            payer=payer,
            delegated_at=ctx.now,
        )
        ctx.create(record_address, record, payer, owner=DELEGATION_PROGRAM_ID)

        account.owner = DELEGATION_PROGRAM_ID
        self.put_account(account)
        logger.info(f"Delegated {short_hex(address)} to fast tier")

    def delegation_record(self, address: bytes) -> Optional[DelegationRecord]:
        record_account = self.accounts.get(delegation_record_address(address))
        if record_account is None or record_account.owner != DELEGATION_PROGRAM_ID:
            return None
        try:
            return DelegationRecord.from_bytes(record_account.data)
        except RecordDecodeError:
            return None

    def is_delegated(self, address: bytes) -> bool:
        account = self.accounts.get(address)
        return account is not None and account.owner == DELEGATION_PROGRAM_ID

    def commit_from_fast_tier(self, fast_copy: Account) -> None:
        """
        Write a fast-tier account back and restore its original owner.

        Called by the FastTier after an undelegating transaction commits.
        """
        address = fast_copy.address
        record = self.delegation_record(address)
        if record is None:
            raise RuntimeError(f"No delegation record for {bytes_to_hex(address)}")

        self._begin()
        account = self.accounts[address]
        account.data = fast_copy.data
        account.owner = record.original_owner
        self.put_account(account)

        record_address = delegation_record_address(address)
        reclaimed = self.accounts[record_address].lamports
        self.remove_account(record_address)
        payer = self.accounts.get(record.payer) or Account(address=record.payer, owner=SYSTEM_PROGRAM_ID)
        payer.lamports += reclaimed
        self.put_account(payer)

        self._persist(None)
        logger.info(f"Committed {short_hex(address)} back from fast tier")

    # =========================================================================
    # Genesis helpers (outside transactions)
    # =========================================================================

    def airdrop(self, identity: bytes, lamports: int) -> None:
        """Credit lamports to a wallet."""
        self._begin()
        account = self.accounts.get(identity) or Account(address=identity, owner=SYSTEM_PROGRAM_ID)
        account.lamports += lamports
        self.put_account(account)
        self._persist(None)

    def create_asset(
        self,
        owner: bytes,
        decimals: int = 0,
        supply: int = 1,
        metadata: Optional[bytes] = None,
        mint_authority: Optional[bytes] = None,
    ) -> bytes:
        """
        Mint a new asset held entirely by `owner`.

        Args:
            owner: Initial holder
            decimals: Mint decimals (auctionable assets use 0)
            supply: Units minted into the owner's asset account
            metadata: Optional raw royalty metadata record
            mint_authority: Defaults to owner

        Returns:
            Mint address
        """
        self._begin()
        mint = secrets.token_bytes(32)
        mint_record = AssetMint(mint_authority=mint_authority or owner, supply=supply, decimals=decimals)
        self._put_genesis(mint, ASSET_PROGRAM_ID, mint_record.to_bytes())

        holding = AssetAccount(mint=mint, owner=owner, amount=supply)
        self._put_genesis(custody_address(owner, mint), ASSET_PROGRAM_ID, holding.to_bytes())

        if metadata is not None:
            self._put_genesis(metadata_address(mint), METADATA_PROGRAM_ID, metadata)

        self._persist(None)
        logger.info(f"Created asset {short_hex(mint)} supply={supply} decimals={decimals}")
        return mint

    def set_metadata(self, mint: bytes, metadata: bytes) -> None:
        """Replace the raw metadata record of a mint."""
        self._begin()
        self._put_genesis(metadata_address(mint), METADATA_PROGRAM_ID, metadata)
        self._persist(None)

    def _put_genesis(self, address: bytes, owner: bytes, data: bytes) -> None:
        account = Account(
            address=address,
            owner=owner,
            lamports=self.config.minimum_balance(len(data)),
            data=data,
        )
        self.put_account(account)

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self) -> None:
        """Load accounts and clock from storage manager."""
        rows = self.storage_manager.load_accounts()
        for address, owner, lamports, data in rows:
            self.accounts[address] = Account(address, owner, lamports, data)

        clock = self.storage_manager.get_clock()
        if clock is not None and clock > self.clock.now:
            self.clock.warp_to(clock)

        self.transaction_count = self.storage_manager.get_transaction_count()
        self.seen_transactions = set(self.storage_manager.transaction_hashes())
        logger.info(f"Loaded ledger: {len(self.accounts)} accounts, clock={self.clock.now}")

    def _persist(self, tx: Optional[Transaction]) -> None:
        if not self.storage_manager:
            return
        upserts = [
            (a.address, a.owner, a.lamports, a.data)
            for a in (self.accounts[addr] for addr in self._dirty if addr in self.accounts)
        ]
        self.storage_manager.persist_ledger_update(
            tx_hash=tx.tx_hash if tx else None,
            upserts=upserts,
            deletions=list(self._deleted),
            clock=self.clock.now,
            instruction=tx.instruction.name if tx else None,
        )
        self._begin()

    def close(self) -> None:
        """Close storage."""
        if self.storage_manager:
            self.storage_manager.close()

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return f"Ledger(accounts={len(self.accounts)}, txs={self.transaction_count}, clock={self.clock.now})"

    def stats(self) -> dict:
        """Get ledger statistics."""
        return {
            "accounts": len(self.accounts),
            "transactions": self.transaction_count,
            "clock": self.clock.now,
            "total_lamports": sum(a.lamports for a in self.accounts.values()),
            "delegated": sum(1 for a in self.accounts.values() if a.owner == DELEGATION_PROGRAM_ID),
        }
