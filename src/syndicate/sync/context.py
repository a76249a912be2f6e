"""
SyncContext - the collaborators every sync component needs.

Built once per process by ``build_context()`` and passed to the queue,
handlers, engine and registry instead of module globals. The active
unit-of-work session is tracked per thread.
"""

import threading
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..cache import ObjectCache
from ..config import SyncConfig
from ..hooks import HookBus, get_hooks
from ..storage import (
    AssetDownloader, ContentStore, Database, LockStore, MetadataStore, NodeDirectory, OptionStore,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """Dependency container for the sync engine."""
    config: SyncConfig
    db: Database
    nodes: NodeDirectory
    content: ContentStore
    meta: MetadataStore
    options: OptionStore
    locks: LockStore
    cache: ObjectCache
    hooks: HookBus
    assets: Any
    canonical: Any = None
    registry: Any = None
    _local: threading.local = field(default_factory=threading.local, repr=False)

    @property
    def session(self):
        """Session of the unit of work running on this thread, if any."""
        return getattr(self._local, "session", None)

    @session.setter
    def session(self, value) -> None:
        self._local.session = value


def build_context(base_path: Path, config: Optional[SyncConfig] = None,
                  default_node: int = 1, assets: Any = None,
                  hooks: Optional[HookBus] = None,
                  cache: Optional[ObjectCache] = None) -> SyncContext:
    """
    Open the store under ``base_path`` and wire the adapters together.

    Args:
        base_path: Data directory (database, uploads, config.yaml)
        config: Settings (loaded from config.yaml when omitted)
        default_node: Node that is active when no context switch is in effect
        assets: Asset downloader (AssetDownloader when omitted)
        hooks: Shared hook bus (the global bus when omitted)
        cache: Shared object cache (new one when omitted)
    """
    base_path = Path(base_path)
    config = config or SyncConfig.load(base_path)
    hooks = hooks or get_hooks()
    cache = cache or ObjectCache()

    db = Database(base_path / config.db_filename)
    nodes = NodeDirectory(db, default_node=default_node)
    meta = MetadataStore(db, nodes, hooks)
    content = ContentStore(db, nodes, meta, hooks, cache)
    options = OptionStore(db, nodes)
    locks = LockStore(db)

    if assets is None:
        assets = AssetDownloader(base_path, timeout=config.asset_timeout)

    logger.debug(f"Built sync context at {base_path} (default node {default_node})")
    return SyncContext(
        config=config,
        db=db,
        nodes=nodes,
        content=content,
        meta=meta,
        options=options,
        locks=locks,
        cache=cache,
        hooks=hooks,
        assets=assets,
    )
