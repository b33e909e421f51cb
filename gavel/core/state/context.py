"""
InvocationContext - the program's only window onto ledger state.

A handler never touches a tier's account store directly. It reads, creates,
writes and closes accounts through the context, which enforces the runtime
rules every handler relies on:

1. Only the owning program may change an account's data or debit it
2. Wallet (system) accounts are debited only with their owner's signature
3. Program-owned accounts keep their rent-exempt minimum
4. Accounts not writable on the executing tier cannot be modified
5. Events are buffered and published only if the transaction commits
"""

from typing import TYPE_CHECKING, List, Optional, Sequence, Set, Type, TypeVar

from gavel.core.checked import checked_add, checked_sub
from gavel.core.config import ProtocolConfig
from gavel.core.errors import ErrorCode, error
from gavel.core.events import Event
from gavel.core.state.account import Account
from gavel.core.state.address import (
    DELEGATION_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    create_program_address,
)
from gavel.core.state.records import Record, RecordDecodeError

if TYPE_CHECKING:
    from gavel.core.state.ledger import Tier

R = TypeVar("R", bound=Record)


class InvocationContext:
    """
    Per-transaction view of a tier.

    Attributes:
        tier: Executing tier (durable Ledger or FastTier)
        program_id: Program processing the instruction
        signers: Verified signer identities
        now: Ledger clock at execution time (unix seconds)
        config: Protocol configuration
        tx_hash: Hash of the executing transaction
        events: Events buffered by the handler
    """

    def __init__(
        self,
        tier: "Tier",
        program_id: bytes,
        signers: Set[bytes],
        now: int,
        config: ProtocolConfig,
        tx_hash: bytes = bytes(32),
    ):
        self.tier = tier
        self.program_id = program_id
        self.signers = set(signers)
        self.now = now
        self.config = config
        self.tx_hash = tx_hash
        self.events: List[Event] = []

    # =========================================================================
    # Signers
    # =========================================================================

    def is_signer(self, identity: bytes) -> bool:
        return identity in self.signers

    def require_signer(self, identity: bytes, code: ErrorCode = ErrorCode.MISSING_SIGNATURE) -> None:
        if identity not in self.signers:
            raise error(code, f"expected signature from {identity.hex()[:16]}...")

    def authorize(self, authority: bytes, seeds: Optional[Sequence[bytes]] = None) -> None:
        """
        Check the transaction may act for `authority`.

        Either authority signed, or the program proves it derived authority
        by presenting the seeds (with bump) that hash to it.
        """
        if authority in self.signers:
            return
        if seeds is not None and create_program_address(list(seeds), self.program_id) == authority:
            return
        raise error(ErrorCode.UNAUTHORIZED_AUTHORITY, f"authority {authority.hex()[:16]}...")

    # =========================================================================
    # Reads
    # =========================================================================

    def account(self, address: bytes) -> Optional[Account]:
        return self.tier.get_account(address)

    def exists(self, address: bytes) -> bool:
        account = self.tier.get_account(address)
        return account is not None and (bool(account.data) or account.owner != SYSTEM_PROGRAM_ID)

    def require_account(self, address: bytes) -> Account:
        account = self.tier.get_account(address)
        if account is None:
            raise error(ErrorCode.ACCOUNT_NOT_FOUND, address.hex()[:16] + "...")
        return account

    def balance(self, address: bytes) -> int:
        account = self.tier.get_account(address)
        return account.lamports if account else 0

    def load(self, address: bytes, record_cls: Type[R], owner: Optional[bytes] = None) -> R:
        """
        Load and decode a record owned by `owner` (default: this program).

        An account handed to the delegation program reads as ACCOUNT_DELEGATED:
        its live state is on the fast tier.
        """
        expected_owner = owner or self.program_id
        account = self.require_account(address)
        if account.owner != expected_owner:
            if account.owner == DELEGATION_PROGRAM_ID:
                raise error(ErrorCode.ACCOUNT_DELEGATED, address.hex()[:16] + "...")
            raise error(ErrorCode.INVALID_ACCOUNT_OWNER, f"{record_cls.__name__} at {address.hex()[:16]}...")
        try:
            return record_cls.from_bytes(account.data)
        except RecordDecodeError as exc:
            raise error(ErrorCode.INVALID_ACCOUNT_DATA, str(exc))

    # =========================================================================
    # Writes
    # =========================================================================

    def _writable(self, address: bytes) -> Account:
        account = self.require_account(address)
        self.tier.check_writable(address)
        return account

    def _touch(self, account: Account) -> None:
        self.tier.put_account(account)

    def save(self, address: bytes, record: Record, owner: Optional[bytes] = None) -> None:
        """Overwrite the record stored at address (owner must match)."""
        expected_owner = owner or self.program_id
        account = self._writable(address)
        if account.owner != expected_owner:
            raise error(ErrorCode.INVALID_ACCOUNT_OWNER, f"cannot write {address.hex()[:16]}...")
        account.data = record.to_bytes()
        self._touch(account)

    def create(
        self,
        address: bytes,
        record: Record,
        payer: bytes,
        owner: Optional[bytes] = None,
    ) -> Account:
        """
        Create a record account funded with its rent-exempt minimum by payer.
        """
        if self.exists(address):
            raise error(ErrorCode.ACCOUNT_ALREADY_EXISTS, address.hex()[:16] + "...")
        self.tier.check_writable(address)

        data = record.to_bytes()
        rent = self.config.minimum_balance(len(data))
        self.transfer(payer, address, rent)

        account = self.require_account(address)
        account.owner = owner or self.program_id
        account.data = data
        self._touch(account)
        return account

    def close(self, address: bytes, destination: bytes, owner: Optional[bytes] = None) -> int:
        """
        Delete a record account, sending all its lamports to destination.

        Returns:
            Lamports reclaimed
        """
        expected_owner = owner or self.program_id
        account = self._writable(address)
        if account.owner != expected_owner:
            raise error(ErrorCode.INVALID_ACCOUNT_OWNER, f"cannot close {address.hex()[:16]}...")
        reclaimed = account.lamports
        self._credit(destination, reclaimed)
        self.tier.remove_account(address)
        return reclaimed

    # =========================================================================
    # Lamport movements
    # =========================================================================

    def _credit(self, destination: bytes, amount: int) -> None:
        self.tier.check_writable(destination)
        account = self.tier.get_account(destination)
        if account is None:
            account = Account(address=destination, owner=SYSTEM_PROGRAM_ID)
        account.lamports = checked_add(account.lamports, amount)
        self._touch(account)

    def transfer(self, source: bytes, destination: bytes, amount: int) -> None:
        """Move lamports out of a wallet; the wallet must have signed."""
        if amount == 0:
            return
        self.require_signer(source)
        account = self._writable(source)
        if account.owner != SYSTEM_PROGRAM_ID:
            raise error(ErrorCode.INVALID_ACCOUNT_OWNER, "transfer source must be a wallet")
        if account.lamports < amount:
            raise error(ErrorCode.INSUFFICIENT_FUNDS, f"balance {account.lamports} < {amount}")
        account.lamports = checked_sub(account.lamports, amount)
        self._touch(account)
        self._credit(destination, amount)

    def debit(self, source: bytes, destination: bytes, amount: int) -> None:
        """
        Move lamports out of an account this program owns.

        The source always keeps its rent-exempt minimum.
        """
        if amount == 0:
            return
        account = self._writable(source)
        if account.owner != self.program_id:
            raise error(ErrorCode.INVALID_ACCOUNT_OWNER, "only the owning program may debit")
        floor = self.config.minimum_balance(len(account.data))
        if account.lamports - amount < floor:
            raise error(
                ErrorCode.INSUFFICIENT_VAULT_BALANCE,
                f"balance {account.lamports} - {amount} below rent floor {floor}",
            )
        account.lamports -= amount
        self._touch(account)
        self._credit(destination, amount)

    def excess_lamports(self, address: bytes) -> int:
        """Lamports above the account's rent-exempt minimum."""
        account = self.require_account(address)
        floor = self.config.minimum_balance(len(account.data))
        return max(0, account.lamports - floor)

    # =========================================================================
    # Tier coordination
    # =========================================================================

    def delegate(self, address: bytes, payer: bytes) -> None:
        """Hand write authority over a program account to the fast tier."""
        self.tier.delegate_account(self, address, payer)

    def commit_and_undelegate(self, address: bytes) -> None:
        """Commit a delegated account back to the durable tier after this transaction."""
        self.tier.schedule_undelegate(self, address)

    # =========================================================================
    # Events
    # =========================================================================

    def emit(self, event: Event) -> None:
        self.events.append(event)
