from .base import SyncableKind
from .document import DocumentKind
from .asset import AssetKind
from .term import TermKind
from .comment import CommentKind


def default_kinds():
    """One instance of every built-in kind, keyed by object type."""
    kinds = [DocumentKind(), AssetKind(), TermKind(), CommentKind()]
    return {kind.name: kind for kind in kinds}


__all__ = ["SyncableKind", "DocumentKind", "AssetKind", "TermKind", "CommentKind", "default_kinds"]
