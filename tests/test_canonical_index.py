"""Tests for CanonicalIndex lookups and cache invalidation"""
import pytest


CANONICAL_ID = "syndicate-import-src-id-canonical"
CANONICAL_SITE = "syndicate-import-src-site-canonical"


@pytest.fixture
def index(ctx):
    from syndicate.sync.canonical import CanonicalIndex
    return CanonicalIndex(ctx)


def _mark_replica(ctx, object_id, canonical_id, canonical_site, object_type="document"):
    ctx.meta.set(object_type, object_id, CANONICAL_SITE, canonical_site)
    ctx.meta.set(object_type, object_id, CANONICAL_ID, canonical_id)


class TestCanonicalLookup:

    def test_finds_replica_on_active_node(self, ctx, index):
        with ctx.nodes.switch_to(2):
            _mark_replica(ctx, 5, 10, 1)
            assert index.lookup("document", 10, 1) == 5

        assert index.lookup("document", 10, 1) is None

    def test_site_must_match(self, ctx, index):
        _mark_replica(ctx, 5, 10, 3)

        assert index.lookup("document", 10, 1) is None
        assert index.lookup("document", 10, 3) == 5

    def test_types_are_independent(self, ctx, index):
        _mark_replica(ctx, 5, 10, 3, object_type="term")

        assert index.lookup("document", 10, 3) is None
        assert index.lookup("term", 10, 3) == 5

    def test_zero_and_garbage_inputs(self, index):
        assert index.lookup("document", 0, 1) is None
        assert index.lookup("document", 10, None) is None
        assert index.lookup("document", "abc", 1) is None

    def test_string_encoded_ids_match(self, ctx, index):
        _mark_replica(ctx, 6, "12", "2")

        assert index.lookup("document", 12, 2) == 6

    def test_negative_ids_are_normalized(self, ctx, index):
        _mark_replica(ctx, 7, 15, 2)

        assert index.lookup("document", -15, -2) == 7


class TestCanonicalCache:

    def test_miss_populates_cache(self, ctx, index):
        from syndicate.sync.canonical import CanonicalIndex

        _mark_replica(ctx, 5, 10, 3)
        index.lookup("document", 10, 3)

        assert ctx.cache.get("1:10", group=CanonicalIndex.cache_group("document")) == [5]

    def test_add_invalidates(self, ctx, index):
        assert index.lookup("document", 10, 3) is None

        _mark_replica(ctx, 5, 10, 3)

        assert index.lookup("document", 10, 3) == 5

    def test_update_invalidates_old_and_new(self, ctx, index):
        _mark_replica(ctx, 5, 10, 3)
        assert index.lookup("document", 10, 3) == 5
        assert index.lookup("document", 11, 3) is None

        ctx.meta.set("document", 5, CANONICAL_ID, 11)

        assert index.lookup("document", 10, 3) is None
        assert index.lookup("document", 11, 3) == 5

    def test_update_hook_is_one_shot(self, ctx, index):
        _mark_replica(ctx, 5, 10, 3)

        ctx.meta.set("document", 5, CANONICAL_ID, 11)

        assert not ctx.hooks.has_hooks("meta.document.updated")

    def test_unrelated_update_leaves_cache(self, ctx, index):
        from syndicate.sync.canonical import CanonicalIndex

        _mark_replica(ctx, 5, 10, 3)
        index.lookup("document", 10, 3)
        ctx.meta.set("document", 5, "title-color", "red")
        ctx.meta.set("document", 5, "title-color", "blue")

        assert ctx.cache.get("1:10", group=CanonicalIndex.cache_group("document")) == [5]
        assert not ctx.hooks.has_hooks("meta.document.updated")

    def test_delete_invalidates(self, ctx, index):
        _mark_replica(ctx, 5, 10, 3)
        assert index.lookup("document", 10, 3) == 5

        ctx.meta.delete("document", 5, CANONICAL_ID)

        assert index.lookup("document", 10, 3) is None
        assert not ctx.hooks.has_hooks("meta.document.deleted")

    def test_invalidation_is_per_node(self, ctx, index):
        from syndicate.sync.canonical import CanonicalIndex

        group = CanonicalIndex.cache_group("document")
        _mark_replica(ctx, 5, 10, 3)
        index.lookup("document", 10, 3)

        with ctx.nodes.switch_to(2):
            _mark_replica(ctx, 8, 10, 3)

        assert ctx.cache.get("1:10", group=group) == [5]
        with ctx.nodes.switch_to(2):
            assert index.lookup("document", 10, 3) == 8
