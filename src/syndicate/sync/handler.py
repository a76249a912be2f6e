"""
SyncHandler - per-type callbacks and replication bookkeeping.

One handler exists per object type. It owns:

- the lifecycle callbacks that decide eligibility and enqueue actions
- the queue replays (insert, delete, delete-synced)
- the syncable-sites map and the detach flags on both sides of a
  relationship

Detach flags live on both sides: the destination replica carries
``is-detached`` and every producer (current source and alternative
sources) carries ``is-detached-<destination>``, so no candidate producer
writes to a detached replica.
"""

import logging
from typing import Any, Dict, List, Optional

from ..storage.models import ContentObject
from .engine import Syncable
from .keys import MetaKeys
from .payload import QueueAction
from .queue import ActionQueue

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class SyncHandler:
    """
    Callbacks, queue replays and metadata helpers for one object type.

    Attributes:
        kind: SyncableKind of the type
        keys: MetaKeys for the type
        queue: ActionQueue of the type
    """

    def __init__(self, ctx, kind):
        self.ctx = ctx
        self.kind = kind
        self.name = kind.name
        self.keys = MetaKeys(ctx.config.meta_prefix, kind.name)
        self.queue = ActionQueue(ctx, kind.name)

    def __repr__(self) -> str:
        return f"SyncHandler({self.name})"

    def get_syncable(self, obj: ContentObject) -> Syncable:
        return Syncable(obj, self)

    # Metadata helpers, all scoped to the active node

    def get_meta(self, object_id, key: str, single: bool = True) -> Any:
        return self.ctx.meta.get(self.name, object_id, key, single=single)

    def set_meta(self, object_id, key: str, value: Any) -> bool:
        return self.ctx.meta.set(self.name, object_id, key, value)

    def add_meta(self, object_id, key: str, value: Any) -> bool:
        return self.ctx.meta.add(self.name, object_id, key, value)

    def delete_meta(self, object_id, key: str, value: Any = None) -> bool:
        return self.ctx.meta.delete(self.name, object_id, key, value)

    def get_alternative_sources(self, object_id) -> List[Dict[str, Any]]:
        alternatives = self.get_meta(object_id, self.keys.src_alternative_sites)
        if not isinstance(alternatives, list):
            return []
        return [a for a in alternatives if isinstance(a, dict)]

    # Syncable sites

    def get_syncable_sites(self, object_id) -> Dict[int, bool]:
        """Destination nodes configured for an object: {node_id: should replicate}."""
        sites = self.get_meta(object_id, self.keys.syncable_sites)
        if not isinstance(sites, dict):
            return {}
        return {int(node): bool(flag) for node, flag in sites.items() if _as_int(node)}

    def get_is_syncable(self, node_id, object_id) -> bool:
        return self.get_syncable_sites(object_id).get(_as_int(node_id), False)

    def set_is_syncable(self, node_id, object_id, is_syncable: bool) -> None:
        sites = self.get_syncable_sites(object_id)
        sites[_as_int(node_id)] = bool(is_syncable)
        self.set_meta(object_id, self.keys.syncable_sites, {str(n): f for n, f in sites.items()})

    # Detach flags

    def destination_is_detached(self, object_id) -> bool:
        """Expects the active node to be the destination."""
        return bool(self.get_meta(object_id, self.keys.is_detached))

    def source_is_detached(self, object_id, destination) -> bool:
        """Expects the active node to be the source."""
        return bool(self.get_meta(object_id, self.keys.is_detached_for(destination)))

    def _set_producer_flag(self, node_id, object_id, destination: int, flag: bool) -> None:
        nodes = self.ctx.nodes
        if not node_id or not object_id or not nodes.exists(node_id):
            return
        with nodes.switch_to(int(node_id)):
            if self.ctx.content.exists(self.name, object_id):
                self.set_meta(object_id, self.keys.is_detached_for(destination), flag)

    def destination_set_is_detached(self, object_id, flag: bool) -> bool:
        """
        Set the destination flag and propagate it to every producer.

        Expects the active node to be the destination.

        Returns:
            False if the replica has no reachable current source
        """
        self.set_meta(object_id, self.keys.is_detached, bool(flag))

        destination = self.ctx.nodes.current
        src_site = _as_int(self.get_meta(object_id, self.keys.src_site))
        src_id = _as_int(self.get_meta(object_id, self.keys.src_id))
        if not src_site or not src_id or not self.ctx.nodes.exists(src_site):
            return False

        self._set_producer_flag(src_site, src_id, destination, bool(flag))
        for alternative in self.get_alternative_sources(object_id):
            self._set_producer_flag(
                _as_int(alternative.get("site")), _as_int(alternative.get("object")), destination, bool(flag)
            )

        logger.debug(f"{self.name} {object_id} on node {destination}: detached={bool(flag)}")
        return True

    def source_set_is_detached(self, object_id, destination, flag: bool) -> None:
        """
        Set the source flag for one destination and mirror it on the replica.

        Expects the active node to be the source.
        """
        destination = _as_int(destination)
        self.set_meta(object_id, self.keys.is_detached_for(destination), bool(flag))

        dest_id = _as_int(self.get_meta(object_id, self.keys.synced_to(destination)))
        if not dest_id or not self.ctx.nodes.exists(destination):
            return

        with self.ctx.nodes.switch_to(destination):
            if self.ctx.content.exists(self.name, dest_id):
                self.set_meta(dest_id, self.keys.is_detached, bool(flag))

    def source_set_all_is_detached(self, object_id, flag: bool) -> None:
        for destination in self.get_syncable_sites(object_id):
            self.source_set_is_detached(object_id, destination, flag)

    # Status helpers

    def is_synced(self, object_id) -> bool:
        """Replica with a current source, attached and continuously synced."""
        return (
            bool(self.get_meta(object_id, self.keys.src_site))
            and not self.destination_is_detached(object_id)
            and self.get_meta(object_id, self.keys.import_method) != "create"
        )

    def is_syndicated(self, object_id) -> bool:
        return bool(self.get_meta(object_id, self.keys.src_site))

    def is_object_syncable(self, node_id, object_id) -> bool:
        return self.get_is_syncable(node_id, object_id) and not self.source_is_detached(object_id, node_id)

    def get_source_url(self, object_id) -> str:
        return self.get_meta(object_id, self.keys.src_canonical_url) or ""

    def remove_syndication_meta(self, object_id) -> List[str]:
        """Delete every replication key of an object. Returns the removed keys."""
        removed = []
        for key in list(self.ctx.meta.get_all(self.name, object_id)):
            if self.keys.is_replication_key(key):
                self.delete_meta(object_id, key)
                removed.append(key)
        return removed

    # Lifecycle callbacks

    def insert_callback(self, object_id, *args: Any) -> None:
        """Queue a sync when an object with configured destinations changes."""
        obj = self.ctx.content.get(self.name, object_id)
        if obj is None or not self.get_syncable_sites(object_id):
            return
        self.queue.enqueue(QueueAction.SYNC.value, object_id, self.kind.queue_args(obj))

    def delete_callback(self, object_id, *args: Any) -> None:
        """
        Queue delete handling before an object is removed.

        A source object queues ``delete`` with its replica ids per node; a
        replica queues ``delete_synced`` so its source marks it detached.
        """
        sites = self.get_syncable_sites(object_id)
        if sites:
            by_site_ids = {
                str(node): _as_int(self.get_meta(object_id, self.keys.synced_to(node)))
                for node in sites
            }
            self.queue.enqueue(QueueAction.DELETE.value, object_id, {"by_site_ids": by_site_ids})

        src_site = _as_int(self.get_meta(object_id, self.keys.src_site))
        src_id = _as_int(self.get_meta(object_id, self.keys.src_id))
        if src_site and src_id:
            self.queue.enqueue(
                QueueAction.DELETE_SYNCED.value, object_id, {"site_id": src_site, "source_id": src_id}
            )

    # Queue replays

    def insert_from_queue(self, object_id, kind: str, args: Optional[Dict[str, Any]] = None) -> Dict[int, Optional[int]]:
        """
        Replay a sync/create action to every enabled destination.

        Returns:
            {node_id: destination id or None}
        """
        obj = self.ctx.content.get(self.name, object_id)
        if obj is None:
            logger.debug(f"{self.name} {object_id} no longer exists, dropped {kind}")
            return {}

        syncable = self.get_syncable(obj)
        results = {}
        for node_id, enabled in self.get_syncable_sites(object_id).items():
            if not enabled or not self.ctx.nodes.exists(node_id):
                continue
            results[node_id] = syncable.sync_to(node_id, kind)
        return results

    def delete_from_queue(self, object_id, kind: str, args: Optional[Dict[str, Any]] = None) -> None:
        """Source object deleted: let each destination react to it."""
        by_site_ids = (args or {}).get("by_site_ids") or {}
        for node_id, dest_id in by_site_ids.items():
            node_id, dest_id = _as_int(node_id), _as_int(dest_id)
            if not dest_id or not self.ctx.nodes.exists(node_id):
                continue
            with self.ctx.nodes.switch_to(node_id):
                if self.ctx.content.exists(self.name, dest_id):
                    self.kind.delete_replica(self, dest_id)

    def delete_synced_from_queue(self, object_id, kind: str, args: Optional[Dict[str, Any]] = None) -> None:
        """Replica deleted on the active node: mark it detached on its source."""
        args = args or {}
        site_id = _as_int(args.get("site_id"))
        source_id = _as_int(args.get("source_id"))
        if not object_id or not site_id or not source_id or not self.ctx.nodes.exists(site_id):
            return

        destination = self.ctx.nodes.current
        with self.ctx.nodes.switch_to(site_id):
            if self.ctx.content.exists(self.name, source_id):
                self.source_set_is_detached(source_id, destination, True)

    def execute_queued_actions(self) -> int:
        return self.queue.flush(self)

    def save_actions(self) -> bool:
        return self.queue.persist()
