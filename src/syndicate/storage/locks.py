"""
LockStore - advisory locks shared by every process on the database file.

A lock is one row in ``locks``. Taking it is an ``INSERT OR IGNORE`` inside
an immediate transaction, after expired rows for the same name are
removed, so two connections can never both hold a live lock. Each holder
passes an owner token and only that owner can release the row.
"""

import time
import logging
from typing import Any, Dict, Optional

from .database import Database

logger = logging.getLogger(__name__)


class LockStore:
    """
    Named locks with an expiry.

    Example:
        locks = LockStore(db)
        if locks.add("acquire-lock-1-document_save_actions", owner="a1b2", ttl=60):
            ...
            locks.delete("acquire-lock-1-document_save_actions", owner="a1b2")
    """

    def __init__(self, db: Database):
        self.db = db

    def add(self, name: str, owner: str, ttl: float) -> bool:
        """
        Take ``name`` if nobody holds it (or the holder's lock expired).

        Returns:
            True if the lock is now held by ``owner``
        """
        now = time.time()
        with self.db.transaction(immediate=True) as conn:
            conn.execute("DELETE FROM locks WHERE name = ? AND expires_at <= ?", (name, now))
            cursor = conn.execute(
                "INSERT OR IGNORE INTO locks (name, owner, expires_at) VALUES (?, ?, ?)",
                (name, owner, now + ttl)
            )
            return cursor.rowcount == 1

    def delete(self, name: str, owner: Optional[str] = None) -> bool:
        """Release ``name``; with an owner, only that owner's row is removed."""
        if owner is None:
            cursor = self.db.execute("DELETE FROM locks WHERE name = ?", (name,))
        else:
            cursor = self.db.execute("DELETE FROM locks WHERE name = ? AND owner = ?", (name, owner))
        return cursor.rowcount > 0

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        """Current live holder of ``name``, if any."""
        row = self.db.fetchone(
            "SELECT owner, expires_at FROM locks WHERE name = ? AND expires_at > ?",
            (name, time.time())
        )
        if row is None:
            return None
        return {"owner": row["owner"], "expires_at": row["expires_at"]}
