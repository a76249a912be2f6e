from .database import Database
from .models import Node, ContentObject, DOCUMENT, ASSET, TERM, COMMENT, OBJECT_TYPES
from .nodes import NodeDirectory
from .meta import MetadataStore
from .options import OptionStore
from .locks import LockStore
from .content import ContentStore
from .assets import AssetDownloader, AssetDownloadError

__all__ = [
    "Database", "Node", "ContentObject", "DOCUMENT", "ASSET", "TERM", "COMMENT", "OBJECT_TYPES",
    "NodeDirectory", "MetadataStore", "OptionStore", "LockStore", "ContentStore",
    "AssetDownloader", "AssetDownloadError",
]
