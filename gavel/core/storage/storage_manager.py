from pathlib import Path
from typing import List, Optional, Tuple

from gavel.core.storage.sqlite_adapter import AccountRow, SQLiteAdapter
from gavel.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for the durable tier.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Account state (upserts and deletions per committed transaction)
    - Transaction log
    - Metadata (ledger clock)
    """

    def __init__(self, data_dir: Path, db_name: str = "ledger.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    # =========================================================================
    # Chain State (Metadata)
    # =========================================================================

    def get_clock(self) -> Optional[int]:
        """Clock value saved with the last committed update."""
        value = self.adapter.get_chain_meta("clock")
        return int(value) if value is not None else None

    # =========================================================================
    # Ledger Support
    # =========================================================================

    def load_accounts(self) -> List[AccountRow]:
        """
        Load full account state.

        Returns:
            List of (address, owner, lamports, data)
        """
        return self.adapter.get_all_accounts()

    def get_account(self, address: bytes) -> Optional[AccountRow]:
        return self.adapter.get_account(address)

    def get_transaction_count(self) -> int:
        return self.adapter.get_transaction_count()

    def recent_transactions(self, limit: int = 100) -> List[Tuple[bytes, str, int]]:
        return self.adapter.get_transactions(limit)

    def transaction_hashes(self) -> List[bytes]:
        """Hashes of every committed transaction."""
        return self.adapter.get_transaction_hashes()

    def persist_ledger_update(
        self,
        tx_hash: Optional[bytes],
        upserts: List[AccountRow],
        deletions: List[bytes],
        clock: int,
        instruction: Optional[str] = None,
    ):
        """Atomically persist ledger update."""
        self.adapter.persist_ledger_update(tx_hash, instruction, upserts, deletions, clock)
        logger.debug(
            f"Persisted {len(upserts)} account(s), {len(deletions)} deletion(s) at clock={clock}"
        )

    def close(self):
        self.adapter.close()
