"""
NodeDirectory - registered nodes and the active node context.

Every store reads and writes rows of the *active* node. The active node is
tracked per thread so a background flush never leaks its context into a
caller's thread. ``switch_to()`` is the only way the engine changes it and
always restores the previous node, including when the block raises.
"""

import sqlite3
import threading
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from .database import Database
from .models import Node
from ..errors import InvalidInputError, NodeNotFoundError

logger = logging.getLogger(__name__)


class NodeDirectory:
    """Registry of nodes plus the per-thread active node stack."""

    def __init__(self, db: Database, default_node: int = 1):
        self.db = db
        self.default_node = default_node
        self._local = threading.local()

    def add(self, name: str, url: Optional[str] = None, node_id: Optional[int] = None) -> Node:
        """
        Register a node.

        Args:
            name: Human readable name
            url: Base URL, used to build canonical links
            node_id: Explicit id (autoincrement when omitted)

        Raises:
            InvalidInputError: If the id or name is already registered
        """
        try:
            cursor = self.db.execute(
                "INSERT INTO nodes (id, name, url) VALUES (?, ?, ?)",
                (node_id, name, url)
            )
        except sqlite3.IntegrityError as e:
            raise InvalidInputError(f"Node {node_id or name} already exists: {e}")
        created = self.get(cursor.lastrowid if node_id is None else node_id)
        logger.info(f"Registered node {created.id} ({name})")
        return created

    def get(self, node_id: int) -> Optional[Node]:
        row = self.db.fetchone(
            "SELECT id, name, url, created_at FROM nodes WHERE id = ?", (node_id,)
        )
        if row is None:
            return None
        return Node(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )

    def exists(self, node_id) -> bool:
        try:
            return self.get(int(node_id)) is not None
        except (TypeError, ValueError):
            return False

    def list(self) -> List[Node]:
        rows = self.db.fetchall("SELECT id FROM nodes ORDER BY id")
        return [self.get(row["id"]) for row in rows]

    @property
    def current(self) -> int:
        """Id of the active node for this thread."""
        stack = getattr(self._local, "stack", None)
        return stack[-1] if stack else self.default_node

    @contextmanager
    def switch_to(self, node_id: int) -> Iterator[int]:
        """
        Make ``node_id`` the active node for the duration of the block.

        Raises:
            NodeNotFoundError: If the node is not registered (nothing is switched)
        """
        if not self.exists(node_id):
            raise NodeNotFoundError(node_id)

        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        stack.append(int(node_id))
        try:
            yield int(node_id)
        finally:
            stack.pop()
