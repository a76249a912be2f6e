"""
Assets: binary files with metadata.

Assets have no dependencies. A new replica downloads its file from the
source URL; an update never touches the file. The parent association of an
asset is set by the document that uses it, so an existing destination
parent is kept when the incoming asset carries none.
"""

import logging
from typing import Any, Dict, List

from ...errors import WriteRejectedError
from ...storage.assets import AssetDownloadError
from ...storage.models import ContentObject, ASSET, DOCUMENT
from .base import SyncableKind

logger = logging.getLogger(__name__)


class AssetKind(SyncableKind):
    name = ASSET
    excluded_meta = ("_attached_file", "_attachment_metadata")

    def extend_data(self, syncable, data: Dict[str, Any]) -> Dict[str, Any]:
        data["url"] = syncable.obj.get("url") or data.get("url")
        return data

    def get_dependencies(self, syncable, payload) -> List[ContentObject]:
        return []

    def map_dependencies(self, syncable, payload, synced: List[Any]):
        self.remap_parent(payload, "parent", DOCUMENT, synced, enabled=False)
        return payload

    def insert_object(self, syncable, payload, existing_id: int) -> int:
        content = syncable.ctx.content
        fields = self.copy_fields(payload, skip=("slug", "file"))

        if existing_id:
            current = content.get(ASSET, existing_id)
            if current is not None and current.parent and not fields.get("parent"):
                fields.pop("parent", None)
            return content.update(ASSET, existing_id, fields)

        try:
            path = syncable.ctx.assets.fetch(payload.snapshot.get("url"), payload.destination_node)
        except AssetDownloadError as e:
            raise WriteRejectedError(str(e)) from e

        fields["file"] = str(path)
        return content.insert(ASSET, fields)
