"""
ContentStore - content objects (documents, assets, terms, comments).

Object ids are allocated per node and per type. Terms are unique on
(taxonomy, name, parent) within a node; a conflicting insert or update
raises WriteRejectedError carrying the id of the existing term.

Lifecycle notifications:
- <type>.inserted        (object_id)
- <type>.updated         (object_id)
- <type>.status_changed  (object_id, old_status, new_status)
- <type>.deleting        (object_id)   metadata still present
- <type>.deleted         (object_id)
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .database import Database
from .nodes import NodeDirectory
from .meta import MetadataStore
from .models import ContentObject, OBJECT_TYPES, TERM, COMMENT
from ..cache import ObjectCache
from ..errors import InvalidInputError, ObjectNotFoundError, WriteRejectedError
from ..hooks import HookBus

logger = logging.getLogger(__name__)

OBJECT_CACHE_GROUP = "objects"


class ContentStore:
    """
    Object store adapter for the active node.

    Reads go through the ``objects`` local cache group, which the queue
    flush clears periodically.
    """

    def __init__(self, db: Database, nodes: NodeDirectory, meta: MetadataStore,
                 hooks: HookBus, cache: ObjectCache):
        self.db = db
        self.nodes = nodes
        self.meta = meta
        self.hooks = hooks
        self.cache = cache
        self.cache.add_local_group(OBJECT_CACHE_GROUP)

    def _cache_key(self, object_type: str, object_id: int) -> str:
        return f"{self.nodes.current}:{object_type}:{object_id}"

    @staticmethod
    def _validate_type(object_type: str) -> None:
        if object_type not in OBJECT_TYPES:
            raise InvalidInputError(f"Invalid object type: {object_type}. Must be one of: {OBJECT_TYPES}")

    @staticmethod
    def _columns(object_type: str, fields: Dict[str, Any]) -> tuple:
        parent_key = "document_id" if object_type == COMMENT else "parent"
        try:
            parent_id = int(fields.get(parent_key) or 0)
        except (TypeError, ValueError):
            parent_id = 0
        return (
            fields.get("name") or fields.get("title"),
            fields.get("taxonomy") if object_type == TERM else None,
            parent_id,
            fields.get("status"),
            fields.get("doc_type"),
        )

    def get(self, object_type: str, object_id) -> Optional[ContentObject]:
        """Fetch an object from the active node, or None."""
        try:
            object_id = int(object_id or 0)
        except (TypeError, ValueError):
            return None
        if object_id <= 0:
            return None

        key = self._cache_key(object_type, object_id)
        cached = self.cache.get(key, group=OBJECT_CACHE_GROUP)
        if cached is not None:
            return cached.copy()

        row = self.db.fetchone("""
            SELECT fields FROM objects WHERE node_id = ? AND object_type = ? AND id = ?
        """, (self.nodes.current, object_type, object_id))
        if row is None:
            return None

        obj = ContentObject(
            object_type=object_type,
            id=object_id,
            fields=json.loads(row["fields"]),
            node_id=self.nodes.current,
        )
        self.cache.set(key, obj, group=OBJECT_CACHE_GROUP)
        return obj.copy()

    def exists(self, object_type: str, object_id) -> bool:
        return self.get(object_type, object_id) is not None

    def _find_term_conflict(self, fields: Dict[str, Any], exclude_id: Optional[int] = None) -> Optional[int]:
        name, taxonomy, parent_id, _, _ = self._columns(TERM, fields)
        row = self.db.fetchone("""
            SELECT id FROM objects
            WHERE node_id = ? AND object_type = ? AND taxonomy = ? AND name = ? AND parent_id = ?
              AND id != ?
            ORDER BY id LIMIT 1
        """, (self.nodes.current, TERM, taxonomy, name, parent_id, exclude_id or 0))
        return row["id"] if row else None

    def _check_term(self, fields: Dict[str, Any], exclude_id: Optional[int] = None) -> None:
        if not fields.get("name") or not fields.get("taxonomy"):
            raise WriteRejectedError("A term needs a name and a taxonomy")
        existing_id = self._find_term_conflict(fields, exclude_id)
        if existing_id:
            raise WriteRejectedError(
                f"Term {fields.get('name')!r} already exists in {fields.get('taxonomy')}",
                existing_id=existing_id
            )

    def insert(self, object_type: str, fields: Dict[str, Any]) -> int:
        """
        Create an object on the active node.

        Returns:
            The new object id

        Raises:
            WriteRejectedError: On a term uniqueness conflict or missing term name
        """
        self._validate_type(object_type)
        fields = {k: v for k, v in fields.items() if k != "id"}
        node_id = self.nodes.current

        with self.db.transaction() as conn:
            if object_type == TERM:
                self._check_term(fields)

            conn.execute("""
                INSERT INTO object_sequences (node_id, object_type, last_id) VALUES (?, ?, 1)
                ON CONFLICT(node_id, object_type) DO UPDATE SET last_id = last_id + 1
            """, (node_id, object_type))
            object_id = conn.execute("""
                SELECT last_id FROM object_sequences WHERE node_id = ? AND object_type = ?
            """, (node_id, object_type)).fetchone()["last_id"]

            conn.execute("""
                INSERT INTO objects
                (node_id, object_type, id, name, taxonomy, parent_id, status, subtype, fields)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (node_id, object_type, object_id, *self._columns(object_type, fields),
                  json.dumps(fields)))

        logger.debug(f"Inserted {object_type} {object_id} on node {node_id}")
        self.hooks.do_action(f"{object_type}.inserted", object_id)
        return object_id

    def update(self, object_type: str, object_id: int, fields: Dict[str, Any]) -> int:
        """
        Merge ``fields`` into an existing object.

        Raises:
            ObjectNotFoundError: If the object does not exist on the active node
            WriteRejectedError: On a term uniqueness conflict
        """
        self._validate_type(object_type)
        existing = self.get(object_type, object_id)
        if existing is None:
            raise ObjectNotFoundError(object_type, object_id, self.nodes.current)

        merged = dict(existing.fields)
        merged.update({k: v for k, v in fields.items() if k != "id"})

        with self.db.transaction() as conn:
            if object_type == TERM:
                self._check_term(merged, exclude_id=existing.id)
            conn.execute("""
                UPDATE objects
                SET name = ?, taxonomy = ?, parent_id = ?, status = ?, subtype = ?,
                    fields = ?, updated_at = CURRENT_TIMESTAMP
                WHERE node_id = ? AND object_type = ? AND id = ?
            """, (*self._columns(object_type, merged), json.dumps(merged),
                  self.nodes.current, object_type, existing.id))

        self.cache.delete(self._cache_key(object_type, existing.id), group=OBJECT_CACHE_GROUP)
        self.hooks.do_action(f"{object_type}.updated", existing.id)

        old_status = existing.get("status")
        new_status = merged.get("status")
        if old_status != new_status:
            self.hooks.do_action(f"{object_type}.status_changed", existing.id, old_status, new_status)
        return existing.id

    def set_status(self, object_type: str, object_id: int, status: str) -> int:
        return self.update(object_type, object_id, {"status": status})

    def delete(self, object_type: str, object_id) -> bool:
        """
        Remove an object with its metadata and term assignments.

        Returns:
            False if the object does not exist on the active node
        """
        obj = self.get(object_type, object_id)
        if obj is None:
            return False

        self.hooks.do_action(f"{object_type}.deleting", obj.id)
        self.meta.delete_object(object_type, obj.id)

        node_id = self.nodes.current
        with self.db.transaction() as conn:
            conn.execute("""
                DELETE FROM object_terms WHERE node_id = ? AND object_type = ? AND object_id = ?
            """, (node_id, object_type, obj.id))
            if object_type == TERM:
                conn.execute(
                    "DELETE FROM object_terms WHERE node_id = ? AND term_id = ?", (node_id, obj.id)
                )
            conn.execute("""
                DELETE FROM objects WHERE node_id = ? AND object_type = ? AND id = ?
            """, (node_id, object_type, obj.id))

        self.cache.delete(self._cache_key(object_type, obj.id), group=OBJECT_CACHE_GROUP)
        logger.debug(f"Deleted {object_type} {obj.id} on node {node_id}")
        self.hooks.do_action(f"{object_type}.deleted", obj.id)
        return True

    def query(self, object_type: str, ids: Optional[Iterable[int]] = None,
              status: Optional[str] = None, subtype: Optional[str] = None,
              taxonomy: Optional[str] = None, name: Optional[str] = None,
              parent: Optional[int] = None, meta_key: Optional[str] = None,
              limit: Optional[int] = None, offset: int = 0) -> List[ContentObject]:
        """
        Find objects on the active node.

        Args:
            ids: Restrict to these ids
            status: Match the ``status`` field
            subtype: Match the document ``doc_type`` field
            taxonomy: Match the term taxonomy
            name: Match title or term name
            parent: Match the parent (or a comment's document) id
            meta_key: Only objects holding this metadata key
            limit: Maximum number of results
            offset: Results to skip
        """
        self._validate_type(object_type)
        sql = "SELECT id FROM objects WHERE node_id = ? AND object_type = ?"
        params: List[Any] = [self.nodes.current, object_type]

        if ids is not None:
            ids = [int(i) for i in ids]
            if not ids:
                return []
            sql += f" AND id IN ({','.join('?' for _ in ids)})"
            params.extend(ids)
        for column, value in (("status", status), ("subtype", subtype),
                              ("taxonomy", taxonomy), ("name", name), ("parent_id", parent)):
            if value is not None:
                sql += f" AND {column} = ?"
                params.append(value)
        if meta_key is not None:
            sql += """ AND id IN (
                SELECT object_id FROM object_meta
                WHERE node_id = ? AND object_type = ? AND meta_key = ?
            )"""
            params.extend([self.nodes.current, object_type, meta_key])

        sql += " ORDER BY id"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([int(limit), int(offset)])

        rows = self.db.fetchall(sql, tuple(params))
        return [self.get(object_type, row["id"]) for row in rows]

    def get_object_terms(self, object_type: str, object_id: int,
                         taxonomy: Optional[str] = None) -> List[ContentObject]:
        """Terms assigned to an object, optionally limited to one taxonomy."""
        sql = """
            SELECT term_id FROM object_terms
            WHERE node_id = ? AND object_type = ? AND object_id = ?
        """
        params: List[Any] = [self.nodes.current, object_type, int(object_id)]
        if taxonomy is not None:
            sql += " AND taxonomy = ?"
            params.append(taxonomy)
        sql += " ORDER BY term_id"

        terms = []
        for row in self.db.fetchall(sql, tuple(params)):
            term = self.get(TERM, row["term_id"])
            if term is not None:
                terms.append(term)
        return terms

    def set_object_terms(self, object_type: str, object_id: int,
                         term_ids: Iterable[int], taxonomy: str) -> List[int]:
        """
        Replace the object's assignments in ``taxonomy`` with ``term_ids``.

        Ids that are not terms of that taxonomy on the active node are ignored.

        Returns:
            The term ids actually assigned
        """
        node_id = self.nodes.current
        assigned = []
        for term_id in term_ids:
            term = self.get(TERM, term_id)
            if term is not None and term.get("taxonomy") == taxonomy and term.id not in assigned:
                assigned.append(term.id)

        with self.db.transaction() as conn:
            conn.execute("""
                DELETE FROM object_terms
                WHERE node_id = ? AND object_type = ? AND object_id = ? AND taxonomy = ?
            """, (node_id, object_type, int(object_id), taxonomy))
            for term_id in assigned:
                conn.execute("""
                    INSERT INTO object_terms (node_id, object_type, object_id, term_id, taxonomy)
                    VALUES (?, ?, ?, ?, ?)
                """, (node_id, object_type, int(object_id), term_id, taxonomy))
        return assigned

    def get_link(self, object_type: str, object_id: int) -> Optional[str]:
        """Public URL of an object on the active node."""
        obj = self.get(object_type, object_id)
        if obj is None:
            return None
        node = self.nodes.get(self.nodes.current)
        base = (node.url or "").rstrip("/") if node else ""
        return f"{base}/{object_type}/{obj.id}"
