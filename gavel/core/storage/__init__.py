"""
Persistent Storage Module.

Provides SQLite-backed persistence for the durable tier:
- Accounts (address -> owner, lamports, data)
- Committed transaction log
- Ledger metadata (clock, transaction count)
"""

from gavel.core.storage.sqlite_adapter import SQLiteAdapter
from gavel.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
