"""
MetadataStore - per-object key/value attributes on the active node.

Values are stored as JSON, one row per value, so a key can hold several
values (multi-value) or exactly one (scalar). Rows keep insertion order.

Write notifications (consumed by the canonical index):
- meta.<type>.added     (object_id, key, value)     after the row exists
- meta.<type>.updating  (object_id, key, value)     before an update
- meta.<type>.updated   (object_id, key, value)     after an update
- meta.<type>.deleting  (object_id, key, old_values) before removal
- meta.<type>.deleted   (object_id, key, old_values) after removal
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .database import Database
from .nodes import NodeDirectory
from ..hooks import HookBus

logger = logging.getLogger(__name__)


def _valid_id(object_id) -> Optional[int]:
    try:
        object_id = int(object_id or 0)
    except (TypeError, ValueError):
        return None
    return object_id if object_id > 0 else None


class MetadataStore:
    """Metadata adapter scoped to the node that is active at call time."""

    def __init__(self, db: Database, nodes: NodeDirectory, hooks: HookBus):
        self.db = db
        self.nodes = nodes
        self.hooks = hooks

    def get_all(self, object_type: str, object_id) -> Dict[str, List[Any]]:
        """Return every key with its list of values, in insertion order."""
        object_id = _valid_id(object_id)
        if object_id is None:
            return {}

        rows = self.db.fetchall("""
            SELECT meta_key, meta_value FROM object_meta
            WHERE node_id = ? AND object_type = ? AND object_id = ?
            ORDER BY meta_id
        """, (self.nodes.current, object_type, object_id))

        result: Dict[str, List[Any]] = {}
        for row in rows:
            result.setdefault(row["meta_key"], []).append(json.loads(row["meta_value"]))
        return result

    def get(self, object_type: str, object_id, key: str, single: bool = True) -> Any:
        """
        Read a key.

        Returns:
            The first value (or None) when ``single``, else the list of values
        """
        object_id = _valid_id(object_id)
        if object_id is None:
            return None if single else []

        rows = self.db.fetchall("""
            SELECT meta_value FROM object_meta
            WHERE node_id = ? AND object_type = ? AND object_id = ? AND meta_key = ?
            ORDER BY meta_id
        """, (self.nodes.current, object_type, object_id, key))
        values = [json.loads(row["meta_value"]) for row in rows]
        if single:
            return values[0] if values else None
        return values

    def add(self, object_type: str, object_id, key: str, value: Any) -> bool:
        """Append a value to a key (multi-value)."""
        object_id = _valid_id(object_id)
        if object_id is None:
            return False

        self.db.execute("""
            INSERT INTO object_meta (node_id, object_type, object_id, meta_key, meta_value)
            VALUES (?, ?, ?, ?, ?)
        """, (self.nodes.current, object_type, object_id, key, json.dumps(value)))

        self.hooks.do_action(f"meta.{object_type}.added", object_id, key, value)
        return True

    def set(self, object_type: str, object_id, key: str, value: Any) -> bool:
        """
        Set a key to a single value.

        Updates the existing row(s) in place, or adds a row when the key is
        absent. Writing the value the key already holds is a no-op.
        """
        object_id = _valid_id(object_id)
        if object_id is None:
            return False

        current = self.get(object_type, object_id, key, single=False)
        if not current:
            return self.add(object_type, object_id, key, value)
        if len(current) == 1 and current[0] == value:
            return False

        self.hooks.do_action(f"meta.{object_type}.updating", object_id, key, value)
        with self.db.transaction() as conn:
            conn.execute("""
                DELETE FROM object_meta
                WHERE node_id = ? AND object_type = ? AND object_id = ? AND meta_key = ?
                  AND meta_id NOT IN (
                    SELECT MIN(meta_id) FROM object_meta
                    WHERE node_id = ? AND object_type = ? AND object_id = ? AND meta_key = ?
                  )
            """, (self.nodes.current, object_type, object_id, key) * 2)
            conn.execute("""
                UPDATE object_meta SET meta_value = ?
                WHERE node_id = ? AND object_type = ? AND object_id = ? AND meta_key = ?
            """, (json.dumps(value), self.nodes.current, object_type, object_id, key))
        self.hooks.do_action(f"meta.{object_type}.updated", object_id, key, value)
        return True

    def delete(self, object_type: str, object_id, key: str, value: Any = None) -> bool:
        """
        Remove a key, or only the rows holding ``value`` when given.

        Returns:
            True if at least one row was removed
        """
        object_id = _valid_id(object_id)
        if object_id is None:
            return False

        old_values = self.get(object_type, object_id, key, single=False)
        if value is not None:
            old_values = [v for v in old_values if v == value]
        if not old_values:
            return False

        self.hooks.do_action(f"meta.{object_type}.deleting", object_id, key, old_values)
        if value is None:
            self.db.execute("""
                DELETE FROM object_meta
                WHERE node_id = ? AND object_type = ? AND object_id = ? AND meta_key = ?
            """, (self.nodes.current, object_type, object_id, key))
        else:
            self.db.execute("""
                DELETE FROM object_meta
                WHERE node_id = ? AND object_type = ? AND object_id = ? AND meta_key = ?
                  AND meta_value = ?
            """, (self.nodes.current, object_type, object_id, key, json.dumps(value)))
        self.hooks.do_action(f"meta.{object_type}.deleted", object_id, key, old_values)
        return True

    def delete_object(self, object_type: str, object_id) -> None:
        """Remove every key of an object, firing delete notifications per key."""
        for key in list(self.get_all(object_type, object_id)):
            self.delete(object_type, object_id, key)

    def find_object_ids(self, object_type: str, key: str, value: Any) -> List[int]:
        """
        Ids of objects on the active node holding ``key == value``.

        Integer-like values match both their numeric and string encodings.
        """
        candidates = {json.dumps(value)}
        if isinstance(value, int) and not isinstance(value, bool):
            candidates.add(json.dumps(str(value)))
        elif isinstance(value, str) and value.strip().isdigit():
            candidates.add(json.dumps(int(value)))

        placeholders = ",".join("?" for _ in candidates)
        rows = self.db.fetchall(f"""
            SELECT DISTINCT object_id FROM object_meta
            WHERE node_id = ? AND object_type = ? AND meta_key = ?
              AND meta_value IN ({placeholders})
            ORDER BY object_id
        """, (self.nodes.current, object_type, key, *candidates))
        return [row["object_id"] for row in rows]

    def object_ids_with_key(self, object_type: str, key: str) -> List[int]:
        """Ids of objects on the active node that have ``key`` at all."""
        rows = self.db.fetchall("""
            SELECT DISTINCT object_id FROM object_meta
            WHERE node_id = ? AND object_type = ? AND meta_key = ?
            ORDER BY object_id
        """, (self.nodes.current, object_type, key))
        return [row["object_id"] for row in rows]
