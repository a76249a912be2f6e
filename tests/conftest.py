"""Pytest fixtures for Syndicate tests"""
import pytest
from pathlib import Path


class FakeDownloader:
    """Records asset downloads and writes a small file instead of fetching."""

    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.calls = []
        self.fail = False

    def fetch(self, url, node_id):
        from syndicate.storage import AssetDownloadError

        self.calls.append((url, node_id))
        if self.fail:
            raise AssetDownloadError(f"Failed to download {url}")
        target = self.base_path / "uploads" / str(node_id) / Path(url).name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b"asset")
        return target


@pytest.fixture
def sync_config():
    """Config with a fast-failing lock so contention tests do not sleep."""
    from syndicate.config import SyncConfig
    return SyncConfig(lock_attempts=3, lock_retry_delay=0)


@pytest.fixture
def fake_downloader(tmp_path):
    return FakeDownloader(tmp_path / "syndicate")


@pytest.fixture
def ctx(tmp_path, sync_config, fake_downloader):
    """Sync context with three registered nodes (1 main, 2 news, 3 sport).

    Uses its own hook bus and cache so tests never share hooks.
    """
    from syndicate.cache import ObjectCache
    from syndicate.hooks import HookBus
    from syndicate.sync import build_context

    context = build_context(
        tmp_path / "syndicate",
        config=sync_config,
        assets=fake_downloader,
        hooks=HookBus(),
        cache=ObjectCache(),
    )
    context.nodes.add("main", url="https://main.example.com", node_id=1)
    context.nodes.add("news", url="https://news.example.com", node_id=2)
    context.nodes.add("sport", url="https://sport.example.com", node_id=3)
    yield context
    context.db.close()


@pytest.fixture
def manager(ctx):
    """SyncManager with lifecycle hooks registered."""
    from syndicate.sync import SyncManager

    sync_manager = SyncManager(ctx)
    yield sync_manager
    sync_manager.stop_scheduler()
    sync_manager.registry.unregister_hooks()


@pytest.fixture
def registry(manager):
    return manager.registry


@pytest.fixture
def create(ctx):
    """Insert an object on a node: create("document", node=1, title="A")."""
    def _create(object_type, node=1, **fields):
        with ctx.nodes.switch_to(node):
            return ctx.content.insert(object_type, fields)
    return _create


@pytest.fixture
def get(ctx):
    """Read an object from a node: get("document", 4, node=2)."""
    def _get(object_type, object_id, node=1):
        with ctx.nodes.switch_to(node):
            return ctx.content.get(object_type, object_id)
    return _get


@pytest.fixture
def meta(ctx):
    """Read one metadata value from a node: meta("document", 4, key, node=2)."""
    def _meta(object_type, object_id, key, node=1):
        with ctx.nodes.switch_to(node):
            return ctx.meta.get(object_type, object_id, key)
    return _meta


@pytest.fixture
def keys(ctx):
    """MetaKeys per object type."""
    from syndicate.storage.models import OBJECT_TYPES
    from syndicate.sync import MetaKeys
    return {t: MetaKeys(ctx.config.meta_prefix, t) for t in OBJECT_TYPES}


@pytest.fixture
def sync(ctx, registry):
    """Build a Syncable on a node and sync it: sync("document", 4, 2, node=1)."""
    def _sync(object_type, object_id, destination, node=1, method="sync", **kwargs):
        with ctx.nodes.switch_to(node):
            syncable = registry.get_syncable_by_id(object_type, object_id)
            return syncable.sync_to(destination, method, **kwargs)
    return _sync
