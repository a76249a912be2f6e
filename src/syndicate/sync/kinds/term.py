"""
Taxonomy terms.

Terms are unique per (taxonomy, name, parent) on a node, so a term created
independently on both sides must be matched rather than duplicated:

- when no replication record matches, an existing term with the same name
  and a matching ancestry is reused
- when an insert still collides, the existing term is adopted only if it
  is itself a continuously synced replica

Deleting a source term detaches its replicas instead of deleting them.
"""

import logging
from typing import Any, Dict, List

from ...errors import WriteRejectedError
from ...storage.models import ContentObject, TERM
from ..payload import SyncMethod
from .base import SyncableKind

logger = logging.getLogger(__name__)


class TermKind(SyncableKind):
    name = TERM

    def queue_args(self, obj: ContentObject) -> Dict[str, Any]:
        return {"term_id": obj.id, "taxonomy": obj.get("taxonomy")}

    def extend_data(self, syncable, data: Dict[str, Any]) -> Dict[str, Any]:
        content = syncable.ctx.content
        hierarchy = []
        seen = {syncable.source_id}
        parent_id = syncable.obj.parent
        while parent_id and parent_id not in seen:
            parent = content.get(TERM, parent_id)
            if parent is None:
                break
            hierarchy.append(parent)
            seen.add(parent_id)
            parent_id = parent.parent
        data["hierarchy"] = hierarchy
        return data

    def get_dependencies(self, syncable, payload) -> List[ContentObject]:
        parent_id = payload.object.parent
        if not parent_id:
            return []
        parent = syncable.ctx.content.get(TERM, parent_id)
        return [parent] if parent is not None else []

    def map_dependencies(self, syncable, payload, synced: List[Any]):
        self.remap_parent(payload, "parent", TERM, synced)
        return payload

    def object_exists(self, syncable, payload) -> int:
        obj = payload.object
        hierarchy = payload.snapshot.get("hierarchy") or []
        content = syncable.ctx.content

        for term in content.query(TERM, taxonomy=obj.get("taxonomy"), name=obj.get("name")):
            # no hierarchy on either side
            if not term.parent and not hierarchy:
                return term.id
            local_parent = content.get(TERM, term.parent) if term.parent else None
            if local_parent is None:
                continue
            for ancestor in hierarchy:
                if str(local_parent.get("name")) == str(ancestor.get("name")):
                    return term.id
        return 0

    def _fields(self, payload) -> Dict[str, Any]:
        obj = payload.object
        return {
            "name": obj.get("name"),
            "taxonomy": obj.get("taxonomy"),
            "description": obj.get("description", ""),
            "parent": obj.parent,
        }

    def insert_object(self, syncable, payload, existing_id: int) -> int:
        content = syncable.ctx.content
        fields = self._fields(payload)

        if existing_id:
            return content.update(TERM, existing_id, fields)

        try:
            return content.insert(TERM, fields)
        except WriteRejectedError as e:
            method = syncable.handler.get_meta(e.existing_id, syncable.keys.import_method)
            if not e.existing_id or method != SyncMethod.SYNC.value:
                raise
            logger.debug(f"Adopting existing synced term {e.existing_id} for {fields['name']!r}")
            return content.update(TERM, e.existing_id, fields)

    def delete_replica(self, handler, object_id: int) -> None:
        handler.destination_set_is_detached(object_id, True)
