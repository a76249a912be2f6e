"""
Metadata key naming for replication relationships.

Type-scoped keys live on one side of a relationship only:

- ``<prefix>-<type>-syncable-sites``          source: {node_id: bool}
- ``<prefix>-<type>-is-detached``             destination: opted out
- ``<prefix>-<type>-is-detached-<node>``      source: believes <node> detached
- ``<prefix>-<type>-synced-to-<node>``        source: forward pointer
- ``<prefix>-<type>-synced-to-time-<node>``   source: last sync timestamp

Import keys are shared by every type and live on the destination:

- ``<prefix>-import-src-site`` / ``-import-src-id``                   current source
- ``<prefix>-import-src-site-canonical`` / ``-import-src-id-canonical`` canonical source
- ``<prefix>-import-src-canonical-url``
- ``<prefix>-import-src-alternative-sites``   [{site, object, time}]
- ``<prefix>-import-method``                  create | sync
- ``<prefix>-import-last-synced``
- ``<prefix>-import-src-id-<node>``           source id per origin node
"""

from typing import List


class MetaKeys:
    """Key builder for one object type."""

    def __init__(self, prefix: str, object_type: str):
        self.prefix = prefix
        self.object_type = object_type
        self._typed = f"{prefix}-{object_type}"

    @property
    def syncable_sites(self) -> str:
        return f"{self._typed}-syncable-sites"

    @property
    def is_detached(self) -> str:
        return f"{self._typed}-is-detached"

    def is_detached_for(self, node_id: int) -> str:
        return f"{self._typed}-is-detached-{int(node_id)}"

    def synced_to(self, node_id: int) -> str:
        return f"{self._typed}-synced-to-{int(node_id)}"

    def synced_to_time(self, node_id: int) -> str:
        return f"{self._typed}-synced-to-time-{int(node_id)}"

    @property
    def src_site(self) -> str:
        return f"{self.prefix}-import-src-site"

    @property
    def src_id(self) -> str:
        return f"{self.prefix}-import-src-id"

    @property
    def src_site_canonical(self) -> str:
        return f"{self.prefix}-import-src-site-canonical"

    @property
    def src_id_canonical(self) -> str:
        return f"{self.prefix}-import-src-id-canonical"

    @property
    def src_canonical_url(self) -> str:
        return f"{self.prefix}-import-src-canonical-url"

    @property
    def src_alternative_sites(self) -> str:
        return f"{self.prefix}-import-src-alternative-sites"

    @property
    def import_method(self) -> str:
        return f"{self.prefix}-import-method"

    @property
    def import_last_synced(self) -> str:
        return f"{self.prefix}-import-last-synced"

    def src_id_for(self, node_id: int) -> str:
        return f"{self.prefix}-import-src-id-{int(node_id)}"

    def ignored_meta(self) -> List[str]:
        """
        Key fragments never copied from a source snapshot to a replica.

        Matching is by substring, so ``is-detached`` also covers the
        per-node ``is-detached-<node>`` keys.
        """
        return [
            f"{self._typed}-import-ref-",
            f"{self._typed}-synced-to-",
            self.syncable_sites,
            self.is_detached,
            self.import_method,
            self.import_last_synced,
            self.src_alternative_sites,
        ]

    def is_replication_key(self, key: str) -> bool:
        """True for any key in the replication namespace."""
        return key.startswith(f"{self.prefix}-")
