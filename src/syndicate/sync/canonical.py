"""
CanonicalIndex - reverse lookup from a canonical source to a local replica.

Answers "is there already a replica of (canonical id, canonical node) on
the active node?" The set of local ids holding a canonical id is cached in
the shared cache (group ``canonical-lookup-<type>``, key
``<node>:<canonical id>``) and computed with a metadata scan on a miss.

Any add, update or delete of the canonical-id key drops the cache entries
for the old and new values. Updates and deletes register a one-shot hook
on the matching post-write notification so the entry is dropped only after
the row has changed.
"""

import logging
from typing import Any, Iterable, List, Optional

from ..storage.models import OBJECT_TYPES
from .keys import MetaKeys

logger = logging.getLogger(__name__)


def _absint(value: Any) -> int:
    try:
        return abs(int(value or 0))
    except (TypeError, ValueError):
        return 0


class CanonicalIndex:
    """Cache-backed canonical id lookups for every object type."""

    def __init__(self, ctx, object_types: Iterable[str] = OBJECT_TYPES):
        self.ctx = ctx
        self.keys = {t: MetaKeys(ctx.config.meta_prefix, t) for t in object_types}
        for object_type in self.keys:
            self._install_hooks(object_type)

    @staticmethod
    def cache_group(object_type: str) -> str:
        return f"canonical-lookup-{object_type}"

    def _cache_key(self, canonical_id: int, node_id: Optional[int] = None) -> str:
        node_id = self.ctx.nodes.current if node_id is None else node_id
        return f"{node_id}:{canonical_id}"

    def _candidates(self, object_type: str, canonical_id: int) -> List[int]:
        group = self.cache_group(object_type)
        key = self._cache_key(canonical_id)
        ids = self.ctx.cache.get(key, group=group)
        if not isinstance(ids, list):
            ids = self.ctx.meta.find_object_ids(
                object_type, self.keys[object_type].src_id_canonical, canonical_id
            )
            self.ctx.cache.set(key, ids, group=group)
        return ids

    def lookup(self, object_type: str, canonical_id, canonical_node) -> Optional[int]:
        """
        Find the local replica of a canonical object on the active node.

        Returns:
            Local object id, or None when no replica carries that canonical pair
        """
        canonical_id = _absint(canonical_id)
        canonical_node = _absint(canonical_node)
        if not canonical_id or not canonical_node:
            return None

        keys = self.keys[object_type]
        for object_id in self._candidates(object_type, canonical_id):
            site = _absint(self.ctx.meta.get(object_type, object_id, keys.src_site_canonical))
            if site == canonical_node:
                return object_id
        return None

    def invalidate(self, object_type: str, *canonical_ids, node_id: Optional[int] = None) -> None:
        group = self.cache_group(object_type)
        for canonical_id in canonical_ids:
            self.ctx.cache.delete(self._cache_key(_absint(canonical_id), node_id), group=group)

    def _install_hooks(self, object_type: str) -> None:
        hooks = self.ctx.hooks
        watched = self.keys[object_type].src_id_canonical

        def on_added(object_id, key, value):
            if key == watched:
                self.invalidate(object_type, value)

        def on_updating(object_id, key, value):
            if key != watched:
                return
            old_value = _absint(self.ctx.meta.get(object_type, object_id, key))
            new_value = _absint(value)
            if old_value == new_value:
                return
            self._after(f"meta.{object_type}.updated", object_id, key, object_type, old_value, new_value)

        def on_deleting(object_id, key, old_values):
            if key != watched:
                return
            self._after(f"meta.{object_type}.deleted", object_id, key, object_type, *old_values)

        hooks.add_action(f"meta.{object_type}.added", on_added)
        hooks.add_action(f"meta.{object_type}.updating", on_updating)
        hooks.add_action(f"meta.{object_type}.deleting", on_deleting)

    def _after(self, action: str, object_id: int, key: str, object_type: str, *canonical_ids) -> None:
        """Invalidate once, after the matching write has landed."""
        node_id = self.ctx.nodes.current
        hooks = self.ctx.hooks

        def once(written_id, written_key, *args):
            if written_id != object_id or written_key != key:
                return
            hooks.remove_action(action, once)
            self.invalidate(object_type, *canonical_ids, node_id=node_id)

        hooks.add_action(action, once)
