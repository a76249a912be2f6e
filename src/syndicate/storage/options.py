"""
OptionStore - named durable records per node.

The durable action queue of each object type lives here under
``queued-actions-<type>``.
"""

import json
from typing import Any

from .database import Database
from .nodes import NodeDirectory


class OptionStore:
    """JSON records keyed by name, scoped to the active node."""

    def __init__(self, db: Database, nodes: NodeDirectory):
        self.db = db
        self.nodes = nodes

    def get(self, name: str, default: Any = None) -> Any:
        row = self.db.fetchone(
            "SELECT value FROM options WHERE node_id = ? AND name = ?",
            (self.nodes.current, name)
        )
        if row is None:
            return default
        return json.loads(row["value"])

    def set(self, name: str, value: Any) -> None:
        self.db.execute("""
            INSERT INTO options (node_id, name, value) VALUES (?, ?, ?)
            ON CONFLICT(node_id, name) DO UPDATE SET value = excluded.value
        """, (self.nodes.current, name, json.dumps(value)))

    def delete(self, name: str) -> bool:
        cursor = self.db.execute(
            "DELETE FROM options WHERE node_id = ? AND name = ?",
            (self.nodes.current, name)
        )
        return cursor.rowcount > 0
