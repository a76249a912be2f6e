"""
Syncable - replication of one content object.

A Syncable is built from an object on the node that is active at
construction (``source_node``) and loads the object's metadata once.
``sync_to()`` is a complete, restartable operation:

    1. unknown destination or the source node itself -> None
    2. reset destination_id
    3. build the payload, apply ``syncable.<type>.pre_process``
    4. source believes destination detached -> recorded forward id
    5. replicate dependencies (method 'create', depth bounded)
    6. switch to the destination node
    7. resolve the existing replica
    8. arbitrate between the current source and this origin
    9. skip on create-and-exists / detached / canonical / alternative source
    10. upsert, propagate metadata, write associations, restore context,
        update the source forward pointer
    11. return the destination id (None when the write was rejected)

Existence mapping order: forward pointer for the destination, then
same-origin shortcut, then per-origin-node source id, then canonical index
(snapshot canonical pair, then own source pair), then the kind's fallback.
"""

import copy
import time
import logging
from typing import Any, Dict, List, Optional

from ..errors import ObjectNotFoundError, WriteRejectedError
from ..storage.models import ContentObject
from .payload import SyncMethod, SyncPayload

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class Syncable:
    """
    Replication state machine for one source object.

    Attributes:
        obj: Source object snapshot
        source_node: Node active at construction
        meta: Source metadata ({key: [values]}), loaded once
        destination_id: Result of the last sync_to, None until one succeeds
    """

    def __init__(self, obj: ContentObject, handler):
        self.handler = handler
        self.kind = handler.kind
        self.ctx = handler.ctx
        self.keys = handler.keys
        self.obj = obj
        self.source_node = self.ctx.nodes.current
        self.meta = self.ctx.meta.get_all(obj.object_type, obj.id)
        self.destination_id: Optional[int] = None

    @property
    def object_type(self) -> str:
        return self.obj.object_type

    @property
    def source_id(self) -> int:
        return int(self.obj.id)

    def __repr__(self) -> str:
        return f"Syncable({self.object_type} {self.source_id} @ node {self.source_node})"

    def _filter(self, suffix: str, value: Any, *args: Any) -> Any:
        return self.ctx.hooks.apply_filters(f"syncable.{self.object_type}.{suffix}", value, *args)

    def _action(self, suffix: str, *args: Any) -> None:
        self.ctx.hooks.do_action(f"syncable.{self.object_type}.{suffix}", *args)

    def get_data(self) -> Dict[str, Any]:
        """Snapshot of the source object sent to the destination."""
        data = {
            "object": self.obj.copy(),
            "meta": copy.deepcopy(self.meta),
            "url": self.ctx.content.get_link(self.object_type, self.source_id),
        }
        data = self.kind.extend_data(self, data)
        return self._filter("data", data, self)

    def get_sync_payload(self, destination: int, method: str) -> SyncPayload:
        payload = SyncPayload(
            destination_node=destination,
            method=method,
            snapshot=self.get_data(),
            origin_node=self.ctx.nodes.current,
        )
        return self._filter("pre_process", payload, self)

    def sync_to(self, destination, method: str = SyncMethod.SYNC.value, depth: int = 0,
                ignore_source_detached: bool = False) -> Optional[int]:
        """
        Replicate this object to ``destination``.

        Args:
            destination: Destination node id
            method: 'sync' (update replicas) or 'create' (only create missing ones)
            depth: Dependency recursion depth of this call
            ignore_source_detached: Do not trust this source's record that the
                destination detached; the destination's own flag still applies

        Returns:
            Destination object id, or None if the destination is unknown, the
            replica was never created or the write was rejected
        """
        nodes = self.ctx.nodes
        if not nodes.exists(destination):
            logger.warning(f"{self}: destination node {destination} does not exist")
            return None
        destination = int(destination)
        if destination == self.source_node:
            logger.warning(f"{self}: refusing to sync onto its own node")
            return None
        method = SyncMethod(method).value

        self.destination_id = None
        with nodes.switch_to(self.source_node):
            payload = self.get_sync_payload(destination, method)
            method = payload.method

            if not ignore_source_detached and self.handler.source_is_detached(self.source_id, destination):
                forward_id = _as_int(self.handler.get_meta(self.source_id, self.keys.synced_to(destination)))
                self.destination_id = forward_id or None
                logger.debug(f"{self}: node {destination} detached, kept {forward_id}")
                return self.destination_id

            payload = self.do_dependencies(payload, depth)

            with nodes.switch_to(destination):
                object_id = self._write_destination(payload, method)

            if object_id is None:
                return self.destination_id

            self.update_source(destination, object_id, payload)
            return object_id

    def _write_destination(self, payload: SyncPayload, method: str) -> Optional[int]:
        """
        Steps 7-10 on the destination node.

        Returns:
            Written object id, or None when skipped or rejected (destination_id
            then holds the existing replica for a skip)
        """
        handler = self.handler
        keys = self.keys
        destination = payload.destination_node

        cur_id = self.object_exists(payload)

        src_canonical = _as_int(payload.first_meta(keys.src_site_canonical))
        src_current = _as_int(handler.get_meta(cur_id, keys.src_site)) if cur_id else 0
        dest_canonical = _as_int(handler.get_meta(cur_id, keys.src_site_canonical)) if cur_id else 0

        skip_create = method == SyncMethod.CREATE.value and bool(cur_id)
        skip_detached = bool(cur_id) and handler.destination_is_detached(cur_id)
        skip_canonical = src_canonical == destination
        skip_alt_source = (
            bool(src_current)
            and src_current != self.source_node
            and self.source_node != dest_canonical
        )

        if skip_alt_source and method == SyncMethod.SYNC.value:
            self.add_alternative_source(cur_id)

        if skip_create or skip_detached or skip_canonical or skip_alt_source:
            logger.debug(
                f"{self}: skipped write to node {destination} (existing={cur_id}, "
                f"create={skip_create}, detached={skip_detached}, "
                f"canonical={skip_canonical}, alternative={skip_alt_source})"
            )
            self.destination_id = cur_id or None
            return None

        payload = self._filter("pre_insert", payload, self)
        try:
            object_id = self.kind.insert_object(self, payload, cur_id)
        except (WriteRejectedError, ObjectNotFoundError) as e:
            logger.warning(f"{self}: write to node {destination} rejected: {e}")
            return None
        if not object_id:
            return None

        self.destination_id = object_id
        self.insert_meta(object_id, payload)
        self.insert_associations(object_id, payload)
        logger.debug(f"{self}: wrote {self.object_type} {object_id} on node {destination}")
        return object_id

    def object_exists(self, payload: SyncPayload) -> int:
        """
        Resolve the replica of this object on the active (destination) node.

        Returns:
            Existing replica id, or 0
        """
        keys = self.keys
        destination = payload.destination_node
        found = 0

        forward = _as_int(payload.first_meta(keys.synced_to(destination)))
        src_site = _as_int(payload.first_meta(keys.src_site))
        if forward:
            found = forward
        elif src_site and src_site == destination:
            # object originally came from the destination
            found = _as_int(payload.first_meta(keys.src_id))
        elif payload.first_meta(keys.src_id_for(destination)):
            found = _as_int(payload.first_meta(keys.src_id_for(destination)))

        canonical = self.ctx.canonical
        if not found and payload.first_meta(keys.src_id_canonical):
            found = _as_int(canonical.lookup(
                self.object_type,
                payload.first_meta(keys.src_id_canonical),
                payload.first_meta(keys.src_site_canonical),
            ))
        if not found:
            found = _as_int(canonical.lookup(self.object_type, self.source_id, payload.origin_node))

        if found and not self.ctx.content.exists(self.object_type, found):
            found = 0
        if not found:
            found = _as_int(self.kind.object_exists(self, payload))

        return _as_int(self._filter("object_exists", found, payload, self))

    def do_dependencies(self, payload: SyncPayload, depth: int = 0) -> SyncPayload:
        """
        Replicate dependencies with method 'create' and remap references.

        Above the configured depth no dependency is replicated and every
        reference is zeroed.
        """
        depth += 1
        enabled = depth <= self.ctx.config.max_dependency_depth
        enabled = self._filter("do_dependencies", enabled, depth, payload, self)

        synced: List[Syncable] = []
        if enabled:
            dependencies = self.kind.get_dependencies(self, payload)
            dependencies = self._filter("dependencies", dependencies, payload, self)
            for dependency in dependencies:
                syncable = self.ctx.registry.get_syncable(dependency)
                if syncable is None:
                    continue
                if syncable.sync_to(payload.destination_node, SyncMethod.CREATE.value, depth):
                    synced.append(syncable)
        else:
            logger.debug(f"{self}: dependency depth {depth} exceeded, references zeroed")

        payload.dependencies = synced
        payload = self.kind.map_dependencies(self, payload, synced)
        return self._filter("map_dependencies", payload, synced, self)

    def insert_meta(self, object_id: int, payload: SyncPayload) -> None:
        """
        Propagate snapshot metadata and record the replication relationship.

        Replication-internal keys are skipped. A key keeps the scalar shape
        when both the snapshot and the replica hold exactly one value.
        """
        handler = self.handler
        keys = self.keys

        ignored = self._filter("ignored_meta", keys.ignored_meta(), payload, self)
        method_saved = handler.get_meta(object_id, keys.import_method)

        for key, values in payload.meta.items():
            if key in self.kind.excluded_meta or any(fragment in key for fragment in ignored):
                continue
            values = values if isinstance(values, list) else [values]
            if len(values) == 1 and len(handler.get_meta(object_id, key, single=False)) == 1:
                handler.set_meta(object_id, key, values[0])
            else:
                handler.delete_meta(object_id, key)
                for value in values:
                    handler.add_meta(object_id, key, value)

        # a dependency created with 'create' never downgrades a synced replica
        if method_saved != SyncMethod.SYNC.value:
            handler.set_meta(object_id, keys.import_method, payload.method)

        if not handler.get_meta(object_id, keys.src_site_canonical):
            handler.set_meta(object_id, keys.src_site_canonical, self.source_node)
        if not handler.get_meta(object_id, keys.src_id_canonical):
            handler.set_meta(object_id, keys.src_id_canonical, self.source_id)
        if not handler.get_meta(object_id, keys.src_canonical_url) and payload.snapshot.get("url"):
            handler.set_meta(object_id, keys.src_canonical_url, payload.snapshot["url"])

        handler.set_meta(object_id, keys.src_site, self.source_node)
        handler.set_meta(object_id, keys.import_last_synced, int(time.time()))
        handler.set_meta(object_id, keys.src_id, self.source_id)
        handler.set_meta(object_id, keys.src_id_for(self.source_node), self.source_id)

        self._action("insert_meta", object_id, payload, self)

    def insert_associations(self, object_id: int, payload: SyncPayload) -> None:
        self.kind.insert_associations(self, object_id, payload)
        self._action("insert_associations", object_id, payload, self)

    def update_source(self, destination: int, object_id: int, payload: SyncPayload) -> None:
        """Record the forward pointer on the source object."""
        self.handler.set_meta(self.source_id, self.keys.synced_to(destination), object_id)
        self.handler.set_meta(self.source_id, self.keys.synced_to_time(destination), int(time.time()))
        self._action("post_sync_update_source", destination, object_id, payload, self)

    def add_alternative_source(self, cur_id: int) -> None:
        """Offer this origin as an alternative source of replica ``cur_id``."""
        alternatives = self.handler.get_alternative_sources(cur_id)
        alternatives.append({"site": self.source_node, "object": self.source_id, "time": int(time.time())})

        clean: List[Dict[str, Any]] = []
        for alternative in alternatives:
            if _as_int(alternative.get("site")) not in [_as_int(c.get("site")) for c in clean]:
                clean.append(alternative)

        self.handler.set_meta(cur_id, self.keys.src_alternative_sites, clean)
        logger.debug(f"{self}: recorded as alternative source of {self.object_type} {cur_id}")

    def switch_source(self, new_source_node) -> bool:
        """
        Make a recorded alternative the current source of this replica.

        The previous source is archived into the alternative list and one
        synchronous sync from the new source follows.

        Returns:
            False if ``new_source_node`` is not a recorded alternative
        """
        handler = self.handler
        keys = self.keys
        object_id = self.source_id
        new_source_node = _as_int(new_source_node)

        with self.ctx.nodes.switch_to(self.source_node):
            alternatives = handler.get_alternative_sources(object_id)
            found = None
            for alternative in alternatives:
                if _as_int(alternative.get("site")) == new_source_node:
                    found = alternative
            if found is None or not self.ctx.nodes.exists(new_source_node):
                return False

            old_source = {
                "site": handler.get_meta(object_id, keys.src_site),
                "object": handler.get_meta(object_id, keys.src_id),
                "time": handler.get_meta(object_id, keys.import_last_synced),
            }
            alternatives = [a for a in alternatives if a is not found]
            alternatives.append(old_source)

            handler.set_meta(object_id, keys.src_site, _as_int(found["site"]))
            handler.set_meta(object_id, keys.src_id, _as_int(found["object"]))
            handler.set_meta(object_id, keys.src_alternative_sites, alternatives)
            logger.info(f"{self}: switched source to node {new_source_node}")

            with self.ctx.nodes.switch_to(new_source_node):
                source = self.ctx.content.get(self.object_type, found["object"])
                syncable = self.ctx.registry.get_syncable(source) if source is not None else None
                if syncable is not None:
                    syncable.sync_to(self.source_node, SyncMethod.SYNC.value)
        return True
