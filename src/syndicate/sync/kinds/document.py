"""Documents: parent document and assigned terms are dependencies."""

from typing import Any, Dict, List

from ...storage.models import ContentObject, DOCUMENT, TERM
from .base import SyncableKind


class DocumentKind(SyncableKind):
    name = DOCUMENT
    sync_hooks = ("inserted", "updated", "status_changed")
    excluded_meta = ("_edit_lock",)

    def extend_data(self, syncable, data: Dict[str, Any]) -> Dict[str, Any]:
        data["terms"] = syncable.ctx.content.get_object_terms(DOCUMENT, syncable.source_id)
        return data

    def get_dependencies(self, syncable, payload) -> List[ContentObject]:
        dependencies = []
        parent_id = payload.object.parent
        if parent_id:
            parent = syncable.ctx.content.get(DOCUMENT, parent_id)
            if parent is not None:
                dependencies.append(parent)
        dependencies.extend(payload.snapshot.get("terms") or [])
        return dependencies

    def map_dependencies(self, syncable, payload, synced: List[Any]):
        self.remap_parent(payload, "parent", DOCUMENT, synced)

        assigned = {term.id for term in payload.snapshot.get("terms") or []}
        by_taxonomy: Dict[str, List[int]] = {}
        for dep in synced:
            # term dependencies added by filters may not be assigned
            if dep.object_type != TERM or dep.source_id not in assigned:
                continue
            by_taxonomy.setdefault(dep.obj.get("taxonomy"), []).append(dep.destination_id)
        payload.snapshot["mapped_terms"] = by_taxonomy
        return payload

    def insert_object(self, syncable, payload, existing_id: int) -> int:
        content = syncable.ctx.content
        fields = self.copy_fields(payload, skip=("slug",))
        if existing_id:
            return content.update(DOCUMENT, existing_id, fields)
        return content.insert(DOCUMENT, fields)

    def insert_associations(self, syncable, object_id: int, payload) -> None:
        for taxonomy, term_ids in (payload.snapshot.get("mapped_terms") or {}).items():
            syncable.ctx.content.set_object_terms(DOCUMENT, object_id, term_ids, taxonomy)
