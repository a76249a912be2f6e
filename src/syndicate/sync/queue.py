"""
Action queue for deferred replication.

Pending actions are recorded per object type as
``{object_id: {action_kind: args}}``:

- During a unit of work (a ``SyncSession``) actions are buffered in memory
  and written to the durable record once, by ``persist()``, when the unit
  of work ends.
- Actions raised while a different node is active go straight to that
  node's durable record, since the buffer belongs to the session's node.
- ``flush()`` reads and clears the durable record, then replays every
  action through the type's SyncHandler.

Both durable operations run under a lock row in the shared database
(atomic insert with a bounded retry loop), so separate processes on the
same data directory exclude each other. ``persist`` and ``flush`` use
independent lock names; the merge and the read-and-clear each run in an
immediate database transaction.
A lock that cannot be acquired skips the operation; the record is left
intact for the next attempt.
"""

import copy
import time
import uuid
import logging
from typing import Any, Dict, Optional

from ..errors import LockTimeoutError
from .payload import QueueAction, SYNC_FAMILY

logger = logging.getLogger(__name__)

PERSIST_LOCK = "save_actions"
FLUSH_LOCK = "execute-queued-syncs"

Actions = Dict[str, Dict[str, Any]]


def coalesce(entry: Dict[str, Any], kind: str, args: Any) -> Dict[str, Any]:
    """
    Add ``kind`` to one object's action map.

    The same kind is removed first and re-appended, so the map keeps the
    order in which kinds were last requested. A sync-family kind also
    supersedes other sync-family kinds and any pending delete.
    """
    entry.pop(kind, None)
    if kind in SYNC_FAMILY:
        for other in list(entry):
            if other in SYNC_FAMILY or other == QueueAction.DELETE.value:
                del entry[other]
    entry[kind] = args
    return entry


def _merge_args(saved: Any, new: Any) -> Any:
    if isinstance(saved, dict) and isinstance(new, dict):
        merged = dict(saved)
        for key, value in new.items():
            merged[key] = _merge_args(saved.get(key), value) if key in saved else value
        return merged
    return new


def merge_actions(saved: Actions, new: Actions) -> Actions:
    """Merge buffered actions into a durable record, recursively per object."""
    merged = copy.deepcopy(saved)
    for object_id, kinds in new.items():
        entry = merged.setdefault(str(object_id), {})
        for kind, args in kinds.items():
            if kind in entry:
                args = _merge_args(entry[kind], args)
            coalesce(entry, kind, args)
    return merged


class QueueLock:
    """
    Advisory lock held in the shared database.

    Example:
        with QueueLock(ctx, "document", "save_actions"):
            ...
    """

    def __init__(self, ctx, object_type: str, name: str):
        self.ctx = ctx
        self.key = f"acquire-lock-{ctx.nodes.current}-{object_type}_{name}"
        self.owner = uuid.uuid4().hex

    def acquire(self) -> bool:
        config = self.ctx.config
        attempts = 0
        while not self.ctx.locks.add(self.key, self.owner, ttl=config.lock_ttl):
            attempts += 1
            if attempts >= config.lock_attempts:
                return False
            time.sleep(config.lock_retry_delay)
        return True

    def release(self) -> None:
        self.ctx.locks.delete(self.key, self.owner)

    def __enter__(self) -> "QueueLock":
        if not self.acquire():
            raise LockTimeoutError(f"Could not acquire {self.key}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class SyncSession:
    """
    In-memory action buffers of one unit of work.

    Attributes:
        origin_node: Node active when the unit of work started
    """

    def __init__(self, origin_node: int):
        self.origin_node = origin_node
        self._buffers: Dict[str, Actions] = {}

    def buffer(self, object_type: str) -> Actions:
        return self._buffers.setdefault(object_type, {})

    def pop(self, object_type: str) -> Actions:
        return self._buffers.pop(object_type, {})

    def restore(self, object_type: str, actions: Actions) -> None:
        """Put actions back after a failed persist."""
        buffer = self.buffer(object_type)
        self._buffers[object_type] = merge_actions(actions, buffer)

    def object_types(self):
        return [t for t, actions in self._buffers.items() if actions]

    def is_empty(self) -> bool:
        return not self.object_types()


class ActionQueue:
    """Buffered and durable pending actions of one object type."""

    def __init__(self, ctx, object_type: str):
        self.ctx = ctx
        self.object_type = object_type

    @property
    def option_name(self) -> str:
        return f"queued-actions-{self.object_type}"

    def enqueue(self, kind: str, object_id, args: Optional[Dict[str, Any]] = None) -> None:
        """
        Record a pending action for an object.

        No-op while ``syndicate.suspend_sync_actions`` filters to True.
        """
        kind = QueueAction(kind).value
        if self.ctx.hooks.apply_filters("syndicate.suspend_sync_actions", False, self.object_type):
            logger.debug(f"Sync actions suspended, dropped {kind} for {self.object_type} {object_id}")
            return

        object_id = str(object_id)
        args = args if args is not None else {}
        session = self.ctx.session

        if session is None or session.origin_node != self.ctx.nodes.current:
            self.persist({object_id: {kind: args}})
            return

        buffer = session.buffer(self.object_type)
        coalesce(buffer.setdefault(object_id, {}), kind, args)

    def get_saved_actions(self) -> Actions:
        saved = self.ctx.options.get(self.option_name, {})
        return saved if isinstance(saved, dict) else {}

    def clear_saved_actions(self) -> None:
        self.ctx.options.delete(self.option_name)

    def persist(self, actions: Optional[Actions] = None) -> bool:
        """
        Merge actions (the session buffer by default) into the durable record.

        Returns:
            True if a record was written
        """
        session = self.ctx.session
        from_session = actions is None
        if from_session:
            actions = session.pop(self.object_type) if session is not None else {}
        if not actions:
            return False

        try:
            with QueueLock(self.ctx, self.object_type, PERSIST_LOCK), self.ctx.db.transaction(immediate=True):
                merged = merge_actions(self.get_saved_actions(), actions)

                limit = self.ctx.hooks.apply_filters(
                    "syndicate.queued_actions_limit", self.ctx.config.queue_limit, self.object_type
                )
                if len(merged) > limit:
                    logger.warning(
                        f"Queued {self.object_type} actions over limit ({len(merged)} > {limit}), "
                        f"dropping oldest"
                    )
                    merged = dict(list(merged.items())[-limit:]) if limit > 0 else {}

                self.ctx.options.set(self.option_name, merged)
        except LockTimeoutError as e:
            logger.warning(f"Skipped persisting {self.object_type} actions: {e}")
            if from_session and session is not None:
                session.restore(self.object_type, actions)
            return False

        logger.debug(f"Persisted {len(actions)} {self.object_type} action(s) on node {self.ctx.nodes.current}")
        return True

    def flush(self, handler) -> int:
        """
        Replay and clear the durable record of the active node.

        Every object id is replayed in isolation: an exception is logged
        and the next object is processed.

        Returns:
            Number of object ids processed
        """
        lock = QueueLock(self.ctx, self.object_type, FLUSH_LOCK)
        if not lock.acquire():
            logger.warning(f"Skipped flushing {self.object_type} queue: could not acquire {lock.key}")
            return 0

        processed = 0
        try:
            with self.ctx.db.transaction(immediate=True):
                actions = self.get_saved_actions()
                self.clear_saved_actions()
            if not actions:
                return 0

            clear_every = max(1, self.ctx.config.cache_clear_every)
            for object_id, kinds in actions.items():
                if processed % clear_every == 0:
                    self.ctx.cache.clear_local()
                processed += 1

                for kind, args in kinds.items():
                    try:
                        if kind == QueueAction.DELETE.value:
                            handler.delete_from_queue(object_id, kind, args)
                        elif kind == QueueAction.DELETE_SYNCED.value:
                            handler.delete_synced_from_queue(object_id, kind, args)
                        else:
                            handler.insert_from_queue(object_id, kind, args)
                    except Exception as e:
                        logger.error(
                            f"Failed to replay {kind} for {self.object_type} {object_id}: {e}",
                            exc_info=True
                        )

            logger.info(f"Flushed {processed} {self.object_type} object(s) on node {self.ctx.nodes.current}")
            return processed
        finally:
            lock.release()
