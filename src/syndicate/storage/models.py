"""
Data models for the syndication store.

This module contains the dataclasses passed between the stores and the
sync engine: nodes and content objects.
"""

import copy
from datetime import datetime
from typing import Optional, Dict, Any
from dataclasses import dataclass, field


DOCUMENT = "document"
ASSET = "asset"
TERM = "term"
COMMENT = "comment"

OBJECT_TYPES = (DOCUMENT, ASSET, TERM, COMMENT)


@dataclass
class Node:
    """A storage node (site) of the platform."""
    id: int
    name: str
    url: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class ContentObject:
    """
    A content object as stored on one node.

    ``fields`` is an opaque snapshot. The engine only looks at a handful of
    well-known keys: ``parent`` (documents, assets, terms), ``taxonomy`` and
    ``name`` (terms), ``document_id`` (comments) and ``url`` (assets).
    """
    object_type: str
    id: int
    fields: Dict[str, Any] = field(default_factory=dict)
    node_id: Optional[int] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @property
    def parent(self) -> int:
        key = "document_id" if self.object_type == COMMENT else "parent"
        try:
            return int(self.fields.get(key) or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def name(self) -> Optional[str]:
        return self.fields.get("name") or self.fields.get("title")

    def copy(self) -> "ContentObject":
        """Deep copy, so snapshots can be rewritten without touching the original."""
        return ContentObject(
            object_type=self.object_type,
            id=self.id,
            fields=copy.deepcopy(self.fields),
            node_id=self.node_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "object_type": self.object_type,
            "id": self.id,
            "node_id": self.node_id,
            "fields": self.fields,
        }
