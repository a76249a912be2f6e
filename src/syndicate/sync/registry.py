"""
SyncRegistry - dispatch from object type to its handler.

The registry builds one SyncHandler per registered kind, creates the
canonical index for those types and attaches the handlers' callbacks to
the content store lifecycle actions:

    <type>.<sync hook>    -> handler.insert_callback
    <type>.<delete hook>  -> handler.delete_callback

The set of kinds passes through the ``syndicate.syncable_kinds`` filter, so
a plugin can add or remove types before hooks are wired.
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ..storage.models import ContentObject
from .canonical import CanonicalIndex
from .engine import Syncable
from .handler import SyncHandler
from .kinds import default_kinds

logger = logging.getLogger(__name__)


class SyncRegistry:
    """
    Kind and handler lookup for a SyncContext.

    Example:
        registry = SyncRegistry(ctx)
        registry.register_hooks()
        syncable = registry.get_syncable(ctx.content.get("document", 10))
        syncable.sync_to(2)
    """

    def __init__(self, ctx, kinds: Optional[Dict[str, object]] = None):
        self.ctx = ctx
        kinds = kinds if kinds is not None else default_kinds()
        self.kinds = ctx.hooks.apply_filters("syndicate.syncable_kinds", dict(kinds))
        self.handlers: Dict[str, SyncHandler] = {
            name: SyncHandler(ctx, kind) for name, kind in self.kinds.items()
        }
        self._registered: List[Tuple[str, Callable]] = []

        ctx.registry = self
        ctx.canonical = CanonicalIndex(ctx, object_types=list(self.kinds))

    def __iter__(self) -> Iterator[SyncHandler]:
        return iter(self.handlers.values())

    @property
    def object_types(self) -> List[str]:
        return list(self.handlers)

    def handler(self, object_type: str) -> Optional[SyncHandler]:
        return self.handlers.get(object_type)

    def get_syncable(self, obj: Optional[ContentObject]) -> Optional[Syncable]:
        """Syncable for an object of the active node, None for unregistered types."""
        if obj is None:
            return None
        handler = self.handler(obj.object_type)
        if handler is None:
            logger.debug(f"No syncable kind registered for {obj.object_type}")
            return None
        return handler.get_syncable(obj)

    def get_syncable_by_id(self, object_type: str, object_id) -> Optional[Syncable]:
        return self.get_syncable(self.ctx.content.get(object_type, object_id))

    def register_hooks(self) -> None:
        """Attach every handler to the lifecycle actions of its type."""
        if self._registered:
            return
        hooks = self.ctx.hooks
        for handler in self:
            for hook in handler.kind.sync_hooks:
                self._add(hooks, f"{handler.name}.{hook}", handler.insert_callback)
            for hook in handler.kind.delete_hooks:
                self._add(hooks, f"{handler.name}.{hook}", handler.delete_callback)
        logger.debug(f"Registered lifecycle hooks for {', '.join(self.object_types)}")

    def unregister_hooks(self) -> None:
        for name, callback in self._registered:
            self.ctx.hooks.remove_action(name, callback)
        self._registered = []

    def _add(self, hooks, name: str, callback: Callable) -> None:
        hooks.add_action(name, callback)
        self._registered.append((name, callback))
