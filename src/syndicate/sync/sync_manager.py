"""
SyncManager - outbound API of the syndication engine.

Wraps a SyncContext and its SyncRegistry behind the operations the CLI and
other callers use:

- status: is_synced, is_detached, is_syndicated, get_syncable_sites, ...
- detach state machine: detach, reattach, switch_source
- queue: session() for a unit of work, enqueue_sync, enqueue_delete,
  flush_queue, and a FlushScheduler that flushes periodically
- bulk runs: sync_by_query, resync_by_query, detach_by_query

Every public operation accepts an optional ``node_id``; when given the
operation runs with that node active and the previous node is restored on
return. Externally supplied ids are validated before any node switch.

Usage:
    from syndicate.sync import SyncManager

    manager = SyncManager.open(Path("~/.syndicate"))
    with manager.session():
        manager.set_syncable("document", 10, 2)
        manager.enqueue_sync("document", 10)

    manager.flush_queue()
"""

from contextlib import contextmanager
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Any, Dict, Iterable, Iterator, List, Optional
import logging

from ..errors import InvalidInputError, parse_object_id
from ..storage.models import ContentObject
from .context import SyncContext, build_context
from .handler import SyncHandler
from .payload import QueueAction, SyncMethod
from .queue import SyncSession
from .registry import SyncRegistry
from .report import (
    OutcomeStatus, SyncOutcome, SyncReport,
    REASON_DETACHED, REASON_NODE_MISSING, REASON_NOT_FOUND, REASON_NOT_SYNCABLE,
    REASON_NOT_SYNCED, REASON_REJECTED, REASON_SOURCE_NODE,
)

logger = logging.getLogger(__name__)

# Bulk runs drop local read caches every N objects
BULK_CACHE_CLEAR_EVERY = 20


class SyncManager:
    """
    Facade over the registry, handlers and queue of one SyncContext.

    Thread-safe: queue flushes are serialized per manager, and the queue
    locks serialize them across managers sharing a cache.
    """

    def __init__(self, ctx: SyncContext, registry: Optional[SyncRegistry] = None):
        """
        Args:
            ctx: Wired sync context
            registry: Registry to use (built from the default kinds when omitted)
        """
        self.ctx = ctx
        self.registry = registry or SyncRegistry(ctx)
        self.registry.register_hooks()
        self._flush_lock = Lock()
        self._scheduler: Optional["FlushScheduler"] = None
        logger.info(f"SyncManager ready for {', '.join(self.registry.object_types)}")

    @classmethod
    def open(cls, base_path: Path, **kwargs: Any) -> "SyncManager":
        """Build a context under ``base_path`` (see build_context) and a manager on it."""
        return cls(build_context(base_path, **kwargs))

    def close(self) -> None:
        self.stop_scheduler()
        self.registry.unregister_hooks()
        self.ctx.db.close()

    def __enter__(self) -> "SyncManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Internals

    def handler(self, object_type: str) -> SyncHandler:
        handler = self.registry.handler(object_type)
        if handler is None:
            raise InvalidInputError(
                f"Invalid object type: {object_type}. Must be one of: {self.registry.object_types}"
            )
        return handler

    @contextmanager
    def on_node(self, node_id=None) -> Iterator[int]:
        """Run a block on ``node_id`` (the active node when None)."""
        if node_id is None:
            yield self.ctx.nodes.current
            return
        with self.ctx.nodes.switch_to(parse_object_id(node_id)) as active:
            yield active

    def _get(self, object_type: str, object_id) -> Optional[ContentObject]:
        return self.ctx.content.get(object_type, object_id)

    def destination_nodes(self) -> List[int]:
        """Every node except the active one, through ``syndicate.destination_nodes``."""
        current = self.ctx.nodes.current
        nodes = [node.id for node in self.ctx.nodes.list() if node.id != current]
        return self.ctx.hooks.apply_filters("syndicate.destination_nodes", nodes, current)

    # Status

    def is_synced(self, object_type: str, object_id, node_id=None) -> bool:
        """Replica attached to a source and continuously synced."""
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            return handler.is_synced(object_id)

    def is_detached(self, object_type: str, object_id, node_id=None) -> bool:
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            return handler.destination_is_detached(object_id)

    def is_syndicated(self, object_type: str, object_id, node_id=None) -> bool:
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            return handler.is_syndicated(object_id)

    def is_synced_detached(self, object_type: str, object_id, node_id=None) -> bool:
        """Replica whose destination detached it."""
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            return handler.is_syndicated(object_id) and handler.destination_is_detached(object_id)

    def get_syncable_sites(self, object_type: str, object_id, node_id=None) -> Dict[int, bool]:
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            return handler.get_syncable_sites(object_id)

    def set_syncable(self, object_type: str, object_id, destination, is_syncable: bool = True,
                     node_id=None) -> bool:
        """
        Mark an object as (not) syncable to ``destination``.

        Returns:
            False if the object does not exist
        """
        handler = self.handler(object_type)
        object_id, destination = parse_object_id(object_id), parse_object_id(destination)
        with self.on_node(node_id):
            if self._get(object_type, object_id) is None:
                return False
            handler.set_is_syncable(destination, object_id, is_syncable)
            return True

    def is_object_syncable(self, object_type: str, object_id, destination, node_id=None) -> bool:
        handler = self.handler(object_type)
        object_id, destination = parse_object_id(object_id), parse_object_id(destination)
        with self.on_node(node_id):
            return handler.is_object_syncable(destination, object_id)

    def get_source_url(self, object_type: str, object_id, node_id=None) -> str:
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            return handler.get_source_url(object_id)

    def remove_syndication_meta(self, object_type: str, object_id, node_id=None) -> List[str]:
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            return handler.remove_syndication_meta(object_id)

    # Detach state machine

    def detach(self, object_type: str, object_id, node_id=None) -> bool:
        """
        Detach a replica on the active (destination) node.

        Returns:
            False if the object does not exist
        """
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id) as destination:
            if self._get(object_type, object_id) is None:
                return False
            handler.destination_set_is_detached(object_id, True)
            logger.info(f"Detached {object_type} {object_id} on node {destination}")
            return True

    def reattach(self, object_type: str, object_id, node_id=None) -> Optional[int]:
        """
        Reattach a replica and pull the latest content from its current source.

        Returns:
            Replica id after the sync, or None if the object, its source node
            or its source object is gone
        """
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        nodes = self.ctx.nodes
        with self.on_node(node_id) as destination:
            if self._get(object_type, object_id) is None:
                return None
            handler.destination_set_is_detached(object_id, False)

            src_site = handler.get_meta(object_id, handler.keys.src_site)
            src_id = handler.get_meta(object_id, handler.keys.src_id)
            if not src_site or not src_id or not nodes.exists(src_site):
                logger.warning(f"Reattached {object_type} {object_id} but its source is unreachable")
                return None

            with nodes.switch_to(int(src_site)):
                syncable = self.registry.get_syncable(self._get(object_type, src_id))
                if syncable is None:
                    return None
                result = syncable.sync_to(destination, SyncMethod.SYNC.value)

            logger.info(f"Reattached {object_type} {object_id} on node {destination} to node {src_site}")
            return result

    def switch_source(self, object_type: str, object_id, new_source_node, node_id=None) -> bool:
        """
        Make a recorded alternative the current source of a replica.

        Returns:
            False if the object does not exist or the node is not an alternative
        """
        self.handler(object_type)
        object_id, new_source_node = parse_object_id(object_id), parse_object_id(new_source_node)
        with self.on_node(node_id):
            syncable = self.registry.get_syncable(self._get(object_type, object_id))
            if syncable is None:
                return False
            return syncable.switch_source(new_source_node)

    # Queue

    @contextmanager
    def session(self) -> Iterator[SyncSession]:
        """
        Unit of work: buffer actions in memory, persist them once on exit.

        Nested sessions join the outer one.
        """
        if self.ctx.session is not None:
            yield self.ctx.session
            return

        session = SyncSession(self.ctx.nodes.current)
        self.ctx.session = session
        try:
            yield session
        finally:
            try:
                self.save_actions(session)
            finally:
                self.ctx.session = None

    def save_actions(self, session: SyncSession) -> None:
        """Persist every type buffered in ``session`` to the origin node's record."""
        with self.ctx.nodes.switch_to(session.origin_node):
            for object_type in session.object_types():
                handler = self.registry.handler(object_type)
                if handler is not None:
                    handler.save_actions()
        if not session.is_empty():
            logger.warning(
                f"Actions for {', '.join(session.object_types())} were not persisted, "
                f"queue locks were held"
            )

    def enqueue_sync(self, object_type: str, object_id, method: str = SyncMethod.SYNC.value,
                     node_id=None) -> bool:
        """
        Queue a sync of an object to its syncable sites.

        Returns:
            False if the object does not exist
        """
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        method = QueueAction(method).value
        with self.on_node(node_id):
            obj = self._get(object_type, object_id)
            if obj is None:
                return False
            handler.queue.enqueue(method, object_id, handler.kind.queue_args(obj))
            return True

    def enqueue_delete(self, object_type: str, object_id, node_id=None) -> bool:
        """Queue delete handling for an object that is about to be removed."""
        handler, object_id = self.handler(object_type), parse_object_id(object_id)
        with self.on_node(node_id):
            if self._get(object_type, object_id) is None:
                return False
            handler.delete_callback(object_id)
            return True

    def get_queued_actions(self, object_type: str, node_id=None) -> Dict[str, Dict[str, Any]]:
        handler = self.handler(object_type)
        with self.on_node(node_id):
            return handler.queue.get_saved_actions()

    def flush_queue(self, node_id=None, object_types: Optional[Iterable[str]] = None) -> Dict[int, Dict[str, int]]:
        """
        Replay the durable queues.

        Args:
            node_id: Only this node (every node when None)
            object_types: Only these types (every registered type when None)

        Returns:
            {node_id: {object_type: object ids processed}}
        """
        handlers = [self.handler(t) for t in object_types] if object_types else list(self.registry)
        node_ids = [parse_object_id(node_id)] if node_id is not None else [n.id for n in self.ctx.nodes.list()]

        results: Dict[int, Dict[str, int]] = {}
        with self._flush_lock:
            for node in node_ids:
                with self.ctx.nodes.switch_to(node):
                    results[node] = {h.name: h.execute_queued_actions() for h in handlers}
        return results

    # Scheduler

    def start_scheduler(self, interval: Optional[float] = None) -> "FlushScheduler":
        if self._scheduler is None or not self._scheduler.is_running:
            self._scheduler = FlushScheduler(self, interval or self.ctx.config.flush_interval)
            self._scheduler.start()
        return self._scheduler

    def stop_scheduler(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
            self._scheduler = None

    # Bulk runs

    def _clear_every(self, index: int) -> None:
        if index and index % BULK_CACHE_CLEAR_EVERY == 0:
            self.ctx.cache.clear_local()

    def sync_by_query(self, object_type: str, filters: Optional[Dict[str, Any]] = None,
                      destinations: Optional[Iterable[int]] = None,
                      method: str = SyncMethod.SYNC.value, force: bool = False,
                      node_id=None) -> SyncReport:
        """
        Sync every object matching ``filters`` to ``destinations`` now.

        Args:
            filters: Keyword arguments for ContentStore.query
            destinations: Node ids (every other node when None)
            method: 'sync' also marks the objects syncable to each destination
            force: Ignore this source's record that a destination detached
        """
        handler = self.handler(object_type)
        method = SyncMethod(method).value
        report = SyncReport(operation="sync")

        with self.on_node(node_id):
            targets = [parse_object_id(d) for d in destinations] if destinations else self.destination_nodes()
            for index, obj in enumerate(self.ctx.content.query(object_type, **(filters or {}))):
                self._clear_every(index)
                report.objects_processed += 1
                syncable = handler.get_syncable(obj)

                for destination in targets:
                    outcome = SyncOutcome(object_type, obj.id, destination, OutcomeStatus.SKIPPED)
                    if not self.ctx.nodes.exists(destination):
                        logger.warning(f"Node {destination} does not exist")
                        outcome.reason = REASON_NODE_MISSING
                    elif destination == self.ctx.nodes.current:
                        outcome.reason = REASON_SOURCE_NODE
                    elif not force and handler.source_is_detached(obj.id, destination):
                        logger.warning(f"{object_type} {obj.id} is detached on node {destination}")
                        outcome.reason = REASON_DETACHED
                    else:
                        destination_id = syncable.sync_to(destination, method, ignore_source_detached=force)
                        if destination_id:
                            if method == SyncMethod.SYNC.value:
                                handler.set_is_syncable(destination, obj.id, True)
                            outcome.status = OutcomeStatus.SYNCED
                            outcome.destination_id = destination_id
                        else:
                            outcome.status = OutcomeStatus.FAILED
                            outcome.reason = REASON_REJECTED
                    report.add(outcome)

        logger.info(f"sync_by_query {object_type}: {report.summary()}")
        return report

    def resync_by_query(self, object_type: str, filters: Optional[Dict[str, Any]] = None,
                        destinations: Optional[Iterable[int]] = None,
                        method: str = SyncMethod.SYNC.value, node_id=None) -> SyncReport:
        """
        Re-sync objects that are already configured as syncable.

        Only objects holding a syncable-sites map are considered. Each goes to
        the given destinations, or to every site it is enabled for.
        """
        handler = self.handler(object_type)
        method = SyncMethod(method).value
        report = SyncReport(operation="resync")

        with self.on_node(node_id):
            query = dict(filters or {}, meta_key=handler.keys.syncable_sites)
            requested = [parse_object_id(d) for d in destinations] if destinations else None

            for index, obj in enumerate(self.ctx.content.query(object_type, **query)):
                self._clear_every(index)
                report.objects_processed += 1
                sites = handler.get_syncable_sites(obj.id)
                targets = requested if requested is not None else [n for n, flag in sites.items() if flag]
                syncable = handler.get_syncable(obj)

                for destination in targets:
                    outcome = SyncOutcome(object_type, obj.id, destination, OutcomeStatus.SKIPPED)
                    if not sites.get(destination):
                        outcome.reason = REASON_NOT_SYNCABLE
                    elif not self.ctx.nodes.exists(destination):
                        outcome.reason = REASON_NODE_MISSING
                    elif destination == self.ctx.nodes.current:
                        outcome.reason = REASON_SOURCE_NODE
                    elif handler.source_is_detached(obj.id, destination):
                        outcome.reason = REASON_DETACHED
                    else:
                        destination_id = syncable.sync_to(destination, method)
                        if destination_id:
                            outcome.status = OutcomeStatus.SYNCED
                            outcome.destination_id = destination_id
                        else:
                            outcome.status = OutcomeStatus.FAILED
                            outcome.reason = REASON_REJECTED
                    report.add(outcome)

        logger.info(f"resync_by_query {object_type}: {report.summary()}")
        return report

    def detach_by_query(self, object_type: str, filters: Optional[Dict[str, Any]] = None,
                        node_ids: Optional[Iterable[int]] = None) -> SyncReport:
        """
        Detach every synced replica matching ``filters`` on each node.

        Args:
            node_ids: Destination nodes to run on (the active node when None)
        """
        handler = self.handler(object_type)
        report = SyncReport(operation="detach")
        targets = [parse_object_id(n) for n in node_ids] if node_ids else [self.ctx.nodes.current]

        for node in targets:
            if not self.ctx.nodes.exists(node):
                logger.warning(f"Node {node} does not exist")
                report.add(SyncOutcome(object_type, 0, node, OutcomeStatus.SKIPPED, reason=REASON_NODE_MISSING))
                continue

            with self.ctx.nodes.switch_to(node):
                for index, obj in enumerate(self.ctx.content.query(object_type, **(filters or {}))):
                    self._clear_every(index)
                    report.objects_processed += 1
                    outcome = SyncOutcome(object_type, obj.id, node, OutcomeStatus.SKIPPED)
                    if not handler.is_syndicated(obj.id):
                        outcome.reason = REASON_NOT_SYNCED
                    elif handler.destination_is_detached(obj.id):
                        outcome.reason = REASON_DETACHED
                    else:
                        handler.destination_set_is_detached(obj.id, True)
                        outcome.status = OutcomeStatus.DETACHED
                    report.add(outcome)

        logger.info(f"detach_by_query {object_type}: {report.summary()}")
        return report

    def sync_object(self, object_type: str, object_id, destinations: Optional[Iterable[int]] = None,
                    method: str = SyncMethod.SYNC.value, force: bool = False,
                    node_id=None) -> SyncReport:
        """sync_by_query for a single object, reporting a missing object as not found."""
        object_id = parse_object_id(object_id)
        with self.on_node(node_id) as node:
            if self._get(object_type, object_id) is None:
                report = SyncReport(operation="sync")
                report.add(SyncOutcome(object_type, object_id, node, OutcomeStatus.SKIPPED,
                                       reason=REASON_NOT_FOUND))
                return report
            return self.sync_by_query(object_type, {"ids": [object_id]}, destinations, method, force)


class FlushScheduler:
    """
    Background thread that flushes every queue on a fixed interval.

    Example:
        scheduler = FlushScheduler(manager, interval=300)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(self, manager: SyncManager, interval: float):
        self.manager = manager
        self.interval = interval
        self.runs = 0
        self._stop = Event()
        self._thread: Optional[Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="syndicate-flush", daemon=True)
        self._thread.start()
        logger.info(f"Flush scheduler started (every {self.interval}s)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Flush scheduler stopped")

    def run_once(self) -> Dict[int, Dict[str, int]]:
        try:
            return self.manager.flush_queue()
        except Exception as e:
            logger.error(f"Scheduled flush failed: {e}", exc_info=True)
            return {}
        finally:
            self.runs += 1

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()
