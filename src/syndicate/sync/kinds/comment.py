"""Comments: the commented document is the only dependency."""

from typing import Any, List

from ...storage.models import ContentObject, COMMENT, DOCUMENT
from .base import SyncableKind


class CommentKind(SyncableKind):
    name = COMMENT
    sync_hooks = ("inserted", "updated", "status_changed")

    def get_dependencies(self, syncable, payload) -> List[ContentObject]:
        document_id = payload.object.parent
        if not document_id:
            return []
        document = syncable.ctx.content.get(DOCUMENT, document_id)
        return [document] if document is not None else []

    def map_dependencies(self, syncable, payload, synced: List[Any]):
        self.remap_parent(payload, "document_id", DOCUMENT, synced)
        return payload

    def insert_object(self, syncable, payload, existing_id: int) -> int:
        content = syncable.ctx.content
        fields = self.copy_fields(payload)
        if existing_id:
            return content.update(COMMENT, existing_id, fields)
        return content.insert(COMMENT, fields)
