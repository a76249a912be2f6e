"""
SyncableKind - the type-specific half of the sync engine.

The engine (``Syncable``) runs the shared replication algorithm and calls
into a kind for the four operations that differ per object type:

- ``insert_object``     upsert on the destination
- ``get_dependencies``  objects that must exist on the destination first
- ``map_dependencies``  rewrite source references to destination ids
- ``object_exists``     extra lookups after the shared existence mapping

Kinds are stateless; per-object state lives on the Syncable.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

from ...storage.models import ContentObject


class SyncableKind(ABC):
    """
    Capability interface for one object type.

    Attributes:
        name: Object type handled (document, asset, term, comment)
        sync_hooks: Lifecycle actions (``<name>.<hook>``) that queue a sync
        delete_hooks: Lifecycle actions that queue delete handling
        excluded_meta: Keys dropped from the snapshot before propagation
    """

    name: str = ""
    sync_hooks: Tuple[str, ...] = ("inserted", "updated")
    delete_hooks: Tuple[str, ...] = ("deleting",)
    excluded_meta: Tuple[str, ...] = ()

    @abstractmethod
    def insert_object(self, syncable, payload, existing_id: int) -> int:
        """
        Create or update the replica on the active (destination) node.

        Args:
            syncable: The Syncable being replicated
            payload: SyncPayload with remapped references
            existing_id: Replica id resolved by object_exists (0 if none)

        Returns:
            Destination object id

        Raises:
            WriteRejectedError: If the store refuses the write
        """
        pass

    @abstractmethod
    def get_dependencies(self, syncable, payload) -> List[ContentObject]:
        """Objects (on the source node) to replicate before this one."""
        pass

    @abstractmethod
    def map_dependencies(self, syncable, payload, synced: List[Any]):
        """
        Rewrite references in the payload snapshot to destination ids.

        References that cannot be remapped must be zeroed.
        """
        pass

    def object_exists(self, syncable, payload) -> int:
        """Fallback lookup when no replication record matches. 0 if none."""
        return 0

    def extend_data(self, syncable, data: Dict[str, Any]) -> Dict[str, Any]:
        """Add type-specific entries to the snapshot."""
        return data

    def queue_args(self, obj: ContentObject) -> Dict[str, Any]:
        """Arguments recorded with a queued sync action."""
        return {}

    def insert_associations(self, syncable, object_id: int, payload) -> None:
        """Write associations of the replica (term assignments, ...)."""
        pass

    def delete_replica(self, handler, object_id: int) -> None:
        """
        React to the source object being deleted, on the destination node.

        Replicas are removed unless the destination detached them.
        """
        if handler.destination_is_detached(object_id):
            return
        handler.ctx.content.delete(self.name, object_id)

    @staticmethod
    def remap_parent(payload, field: str, dependency_type: str, synced: List[Any],
                     enabled: bool = True) -> bool:
        """
        Point ``field`` of the snapshot object at the replicated parent.

        Zeroes the field when no replicated dependency matches.

        Returns:
            True if the field was remapped
        """
        obj = payload.snapshot["object"]
        parent = _as_int(obj.fields.get(field))
        if parent and enabled:
            for dep in synced:
                if dep.object_type == dependency_type and dep.source_id == parent and dep.destination_id:
                    obj.fields[field] = dep.destination_id
                    return True
        obj.fields[field] = 0
        return False

    @staticmethod
    def copy_fields(payload, skip: Tuple[str, ...] = ()) -> Dict[str, Any]:
        fields = dict(payload.snapshot["object"].fields)
        for key in ("id",) + tuple(skip):
            fields.pop(key, None)
        return fields


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0
