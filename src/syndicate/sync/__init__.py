"""
Syndicate Sync Module - Cross-node content replication

Replicates documents, assets, terms and comments from the node they were
written on to the nodes they are marked syncable to.

Key Components:
    - SyncManager: Outbound API (status, detach, queue, bulk runs)
    - SyncRegistry: Object type -> SyncHandler dispatch and hook wiring
    - Syncable: Per-object replication state machine (sync_to)
    - ActionQueue: Buffered and durable pending actions per type
    - CanonicalIndex: (canonical id, canonical node) -> local replica lookup

Flow:
    content write -> <type>.<hook> -> SyncHandler.insert_callback
    -> ActionQueue (session buffer, persisted at end of the session)
    -> flush_queue -> Syncable.sync_to on every syncable site

Usage:
    from syndicate.sync import SyncManager

    manager = SyncManager.open(Path("~/.syndicate"))
    with manager.session():
        manager.set_syncable("document", 10, 2)
        manager.enqueue_sync("document", 10)
    manager.flush_queue()
"""

from .keys import MetaKeys
from .payload import SyncMethod, QueueAction, SyncPayload
from .context import SyncContext, build_context
from .canonical import CanonicalIndex
from .queue import ActionQueue, QueueLock, SyncSession, coalesce, merge_actions
from .engine import Syncable
from .handler import SyncHandler
from .kinds import SyncableKind, DocumentKind, AssetKind, TermKind, CommentKind, default_kinds
from .registry import SyncRegistry
from .report import SyncReport, SyncOutcome, OutcomeStatus
from .sync_manager import SyncManager, FlushScheduler

__all__ = [
    "MetaKeys",
    "SyncMethod",
    "QueueAction",
    "SyncPayload",
    "SyncContext",
    "build_context",
    "CanonicalIndex",
    "ActionQueue",
    "QueueLock",
    "SyncSession",
    "coalesce",
    "merge_actions",
    "Syncable",
    "SyncHandler",
    "SyncableKind",
    "DocumentKind",
    "AssetKind",
    "TermKind",
    "CommentKind",
    "default_kinds",
    "SyncRegistry",
    "SyncReport",
    "SyncOutcome",
    "OutcomeStatus",
    "SyncManager",
    "FlushScheduler",
]
