"""
Syndicate - cross-node content replication

Keeps replicas of documents, assets, taxonomy terms and comments loosely
consistent across the nodes of a multi-tenant content store, with
destination-side detach and arbitration between competing sources.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config import SyncConfig, get_base_path
from .errors import (
    SyndicateError,
    NodeNotFoundError,
    ObjectNotFoundError,
    LockTimeoutError,
    WriteRejectedError,
    InvalidInputError,
)
from .hooks import HookBus, get_hooks
from .cache import ObjectCache
from .sync import SyncManager, SyncRegistry, Syncable, build_context

__all__ = [
    "SyncConfig",
    "get_base_path",
    "SyndicateError",
    "NodeNotFoundError",
    "ObjectNotFoundError",
    "LockTimeoutError",
    "WriteRejectedError",
    "InvalidInputError",
    "HookBus",
    "get_hooks",
    "ObjectCache",
    "SyncManager",
    "SyncRegistry",
    "Syncable",
    "build_context",
]
