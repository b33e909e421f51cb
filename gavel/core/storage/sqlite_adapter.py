import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from gavel.utils.logger import get_logger

logger = get_logger("storage.sqlite")

AccountRow = Tuple[bytes, bytes, int, bytes]


class SQLiteAdapter:
    """
    SQLite backend for durable-tier persistence.

    Provides:
    1. Account store (address -> owner, lamports, data)
    2. Transaction log (hash, instruction name, clock at commit)
    3. Ledger metadata (clock, counters)
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    address BLOB PRIMARY KEY,
                    owner BLOB NOT NULL,
                    lamports INTEGER NOT NULL,
                    data BLOB NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_account_owner ON accounts(owner);")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    tx_hash BLOB NOT NULL,
                    instruction TEXT NOT NULL,
                    clock INTEGER NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS chain_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    # =========================================================================
    # Chain State Operations
    # =========================================================================

    def set_chain_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))

    def get_chain_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM chain_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    # =========================================================================
    # Account Operations
    # =========================================================================

    def get_account(self, address: bytes) -> Optional[AccountRow]:
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT address, owner, lamports, data FROM accounts WHERE address = ?", (address,)
        )
        row = cursor.fetchone()
        return (row['address'], row['owner'], row['lamports'], row['data']) if row else None

    def get_all_accounts(self) -> List[AccountRow]:
        """Get all (address, owner, lamports, data)."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT address, owner, lamports, data FROM accounts")
        return [(row['address'], row['owner'], row['lamports'], row['data']) for row in cursor]

    def get_transaction_count(self) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as cnt FROM transactions")
        return cursor.fetchone()['cnt']

    def get_transactions(self, limit: int = 100) -> List[Tuple[bytes, str, int]]:
        """Most recent (tx_hash, instruction, clock), newest first."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT tx_hash, instruction, clock FROM transactions ORDER BY seq DESC LIMIT ?", (limit,)
        )
        return [(row['tx_hash'], row['instruction'], row['clock']) for row in cursor]

    def get_transaction_hashes(self) -> List[bytes]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT tx_hash FROM transactions")
        return [row['tx_hash'] for row in cursor]

    def persist_ledger_update(
        self,
        tx_hash: Optional[bytes],
        instruction: Optional[str],
        upserts: List[AccountRow],
        deletions: List[bytes],
        clock: int,
    ):
        """
        Atomically update ledger state for a transaction.

        Args:
            tx_hash: Transaction hash (None for genesis/commit-back writes)
            instruction: Instruction name logged with the hash
            upserts: List of (address, owner, lamports, data) to write
            deletions: Addresses of closed accounts
            clock: Ledger clock at commit
        """
        conn = self._get_conn()
        with conn:
            if tx_hash is not None:
                conn.execute(
                    "INSERT INTO transactions (tx_hash, instruction, clock) VALUES (?, ?, ?)",
                    (tx_hash, instruction or "", clock)
                )

            for address in deletions:
                conn.execute("DELETE FROM accounts WHERE address = ?", (address,))

            conn.executemany(
                "INSERT OR REPLACE INTO accounts (address, owner, lamports, data) VALUES (?, ?, ?, ?)",
                upserts
            )

            conn.execute(
                "INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)",
                ("clock", str(clock))
            )

    def close(self):
        """Close the current thread's connection."""
        if hasattr(self._conn_local, "conn"):
            self._conn_local.conn.close()
            del self._conn_local.conn
