"""
Payload and action types passed through the sync engine.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List


class SyncMethod(str, Enum):
    """
    How a replica is written.

    CREATE: One-shot copy, an existing replica is never overwritten
    SYNC: Continuous replication, every sync updates the replica
    """
    CREATE = "create"
    SYNC = "sync"


class QueueAction(str, Enum):
    """
    Action kinds recorded in the action queue.

    SYNC / CREATE: Replay through sync_to with the kind as method
    DELETE: Source object was deleted, args carry ``by_site_ids``
    DELETE_SYNCED: Replica was deleted, args carry ``site_id`` and ``source_id``
    """
    SYNC = "sync"
    CREATE = "create"
    DELETE = "delete"
    DELETE_SYNCED = "delete_synced"


SYNC_FAMILY = (QueueAction.SYNC.value, QueueAction.CREATE.value)


@dataclass
class SyncPayload:
    """
    Everything one sync_to call carries to the destination.

    Attributes:
        destination_node: Node the object is replicated to
        method: 'create' or 'sync' (hooks may rewrite it)
        snapshot: Source data: ``object`` (ContentObject copy), ``meta``
            ({key: [values]}), ``url`` and per-type extras such as
            ``terms``, ``hierarchy`` and ``mapped_terms``
        origin_node: Node the call was made from
        dependencies: Syncables of dependencies that were replicated
    """
    destination_node: int
    method: str
    snapshot: Dict[str, Any]
    origin_node: int
    dependencies: List[Any] = field(default_factory=list)

    @property
    def object(self):
        return self.snapshot["object"]

    @property
    def meta(self) -> Dict[str, List[Any]]:
        return self.snapshot.get("meta", {})

    def first_meta(self, key: str, default: Any = None) -> Any:
        """First value of a snapshot meta key."""
        values = self.meta.get(key) or []
        return values[0] if values else default

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        obj = self.snapshot.get("object")
        return {
            "destination_node": self.destination_node,
            "method": self.method,
            "origin_node": self.origin_node,
            "object": obj.to_dict() if obj is not None else None,
            "dependencies": [dep.source_id for dep in self.dependencies],
        }
