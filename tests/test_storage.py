"""Tests for the node-partitioned store: nodes, content, metadata, options

Uses the three-node ctx fixture from conftest.py.
"""
import pytest
from unittest.mock import Mock


class TestNodeDirectory:

    def test_list_and_get(self, ctx):
        nodes = ctx.nodes.list()
        assert [n.id for n in nodes] == [1, 2, 3]
        assert ctx.nodes.get(2).url == "https://news.example.com"
        assert ctx.nodes.get(99) is None

    def test_duplicate_node_rejected(self, ctx):
        from syndicate.errors import InvalidInputError

        with pytest.raises(InvalidInputError):
            ctx.nodes.add("again", node_id=2)

    def test_exists_tolerates_garbage(self, ctx):
        assert ctx.nodes.exists("3") is True
        assert ctx.nodes.exists(None) is False
        assert ctx.nodes.exists("x") is False

    def test_current_defaults_to_default_node(self, ctx):
        assert ctx.nodes.current == 1

    def test_switch_to_nests_and_restores(self, ctx):
        with ctx.nodes.switch_to(2):
            assert ctx.nodes.current == 2
            with ctx.nodes.switch_to(3):
                assert ctx.nodes.current == 3
            assert ctx.nodes.current == 2
        assert ctx.nodes.current == 1

    def test_switch_to_restores_on_error(self, ctx):
        with pytest.raises(RuntimeError):
            with ctx.nodes.switch_to(2):
                raise RuntimeError("boom")
        assert ctx.nodes.current == 1

    def test_switch_to_unknown_node(self, ctx):
        from syndicate.errors import NodeNotFoundError

        with pytest.raises(NodeNotFoundError):
            with ctx.nodes.switch_to(42):
                pass
        assert ctx.nodes.current == 1

    def test_active_node_is_per_thread(self, ctx):
        import threading

        seen = []
        with ctx.nodes.switch_to(2):
            thread = threading.Thread(target=lambda: seen.append(ctx.nodes.current))
            thread.start()
            thread.join()
        assert seen == [1]


class TestContentStore:

    def test_ids_are_per_node_and_type(self, create):
        assert create("document", title="A") == 1
        assert create("document", title="B") == 2
        assert create("document", node=2, title="C") == 1
        assert create("term", name="News", taxonomy="category") == 1

    def test_get_is_scoped_to_active_node(self, ctx, create, get):
        doc_id = create("document", title="Hello", status="publish")

        assert get("document", doc_id).get("title") == "Hello"
        assert get("document", doc_id, node=2) is None

    def test_get_returns_copies(self, ctx, create):
        doc_id = create("document", title="Original")
        obj = ctx.content.get("document", doc_id)
        obj.fields["title"] = "Changed"

        assert ctx.content.get("document", doc_id).get("title") == "Original"

    def test_update_merges_fields_and_fires_hooks(self, ctx, create):
        doc_id = create("document", title="A", status="draft", body="text")
        updated = Mock()
        status_changed = Mock()
        ctx.hooks.add_action("document.updated", updated)
        ctx.hooks.add_action("document.status_changed", status_changed)

        ctx.content.update("document", doc_id, {"status": "publish"})

        obj = ctx.content.get("document", doc_id)
        assert obj.get("body") == "text"
        assert obj.get("status") == "publish"
        updated.assert_called_once_with(doc_id)
        status_changed.assert_called_once_with(doc_id, "draft", "publish")

    def test_update_missing_object(self, ctx):
        from syndicate.errors import ObjectNotFoundError

        with pytest.raises(ObjectNotFoundError):
            ctx.content.update("document", 5, {"title": "x"})

    def test_invalid_type(self, ctx):
        from syndicate.errors import InvalidInputError

        with pytest.raises(InvalidInputError):
            ctx.content.insert("widget", {})

    def test_term_uniqueness_conflict_carries_existing_id(self, ctx, create):
        from syndicate.errors import WriteRejectedError

        existing = create("term", name="News", taxonomy="category")
        create("term", name="News", taxonomy="tag")

        with pytest.raises(WriteRejectedError) as exc_info:
            ctx.content.insert("term", {"name": "News", "taxonomy": "category"})
        assert exc_info.value.existing_id == existing

    def test_term_needs_name(self, ctx):
        from syndicate.errors import WriteRejectedError

        with pytest.raises(WriteRejectedError) as exc_info:
            ctx.content.insert("term", {"taxonomy": "category"})
        assert exc_info.value.existing_id is None

    def test_delete_fires_deleting_with_meta_present(self, ctx, create):
        doc_id = create("document", title="A")
        ctx.meta.set("document", doc_id, "color", "red")
        seen = []
        ctx.hooks.add_action(
            "document.deleting",
            lambda object_id: seen.append(ctx.meta.get("document", object_id, "color"))
        )

        assert ctx.content.delete("document", doc_id) is True
        assert seen == ["red"]
        assert ctx.content.get("document", doc_id) is None
        assert ctx.meta.get_all("document", doc_id) == {}
        assert ctx.content.delete("document", doc_id) is False

    def test_query_filters(self, ctx, create):
        create("document", title="A", status="publish", doc_type="post")
        create("document", title="B", status="draft", doc_type="post")
        create("document", title="C", status="publish", doc_type="page")

        assert [o.get("title") for o in ctx.content.query("document", status="publish")] == ["A", "C"]
        assert [o.id for o in ctx.content.query("document", subtype="post")] == [1, 2]
        assert [o.id for o in ctx.content.query("document", ids=[3, 1])] == [1, 3]
        assert [o.id for o in ctx.content.query("document", limit=1, offset=1)] == [2]
        assert ctx.content.query("document", ids=[]) == []

    def test_query_by_meta_key(self, ctx, create):
        create("document", title="A")
        second = create("document", title="B")
        ctx.meta.set("document", second, "syndicate-document-syncable-sites", {"2": True})

        found = ctx.content.query("document", meta_key="syndicate-document-syncable-sites")
        assert [o.id for o in found] == [second]

    def test_object_terms(self, ctx, create):
        doc_id = create("document", title="A")
        news = create("term", name="News", taxonomy="category")
        sport = create("term", name="Sport", taxonomy="category")
        tag = create("term", name="hot", taxonomy="tag")

        assigned = ctx.content.set_object_terms("document", doc_id, [news, tag, sport, 99], "category")

        assert assigned == [news, sport]
        assert [t.id for t in ctx.content.get_object_terms("document", doc_id)] == [news, sport]
        assert ctx.content.get_object_terms("document", doc_id, taxonomy="tag") == []

    def test_get_link_uses_node_url(self, ctx, create):
        doc_id = create("document", node=2, title="A")
        with ctx.nodes.switch_to(2):
            assert ctx.content.get_link("document", doc_id) == f"https://news.example.com/document/{doc_id}"
        assert ctx.content.get_link("document", 99) is None


class TestMetadataStore:

    def test_set_get_scalar(self, ctx):
        ctx.meta.set("document", 1, "color", "red")
        assert ctx.meta.get("document", 1, "color") == "red"
        assert ctx.meta.get("document", 1, "color", single=False) == ["red"]

    def test_values_keep_json_types(self, ctx):
        ctx.meta.set("document", 1, "sites", {"2": True})
        ctx.meta.set("document", 1, "count", 3)

        assert ctx.meta.get("document", 1, "sites") == {"2": True}
        assert ctx.meta.get("document", 1, "count") == 3

    def test_multi_value_and_set_collapses(self, ctx):
        ctx.meta.add("document", 1, "tag", "a")
        ctx.meta.add("document", 1, "tag", "b")
        assert ctx.meta.get("document", 1, "tag", single=False) == ["a", "b"]

        ctx.meta.set("document", 1, "tag", "c")
        assert ctx.meta.get("document", 1, "tag", single=False) == ["c"]

    def test_delete_single_value(self, ctx):
        ctx.meta.add("document", 1, "tag", "a")
        ctx.meta.add("document", 1, "tag", "b")

        assert ctx.meta.delete("document", 1, "tag", "a") is True
        assert ctx.meta.get("document", 1, "tag", single=False) == ["b"]
        assert ctx.meta.delete("document", 1, "missing") is False

    def test_meta_is_scoped_to_node(self, ctx):
        ctx.meta.set("document", 1, "color", "red")
        with ctx.nodes.switch_to(2):
            assert ctx.meta.get("document", 1, "color") is None

    def test_invalid_object_id(self, ctx):
        assert ctx.meta.set("document", 0, "color", "red") is False
        assert ctx.meta.get("document", None, "color") is None
        assert ctx.meta.get("document", "x", "color", single=False) == []

    def test_write_notifications(self, ctx):
        events = []
        for name in ("added", "updating", "updated", "deleting", "deleted"):
            ctx.hooks.add_action(
                f"meta.term.{name}",
                lambda object_id, key, value, name=name: events.append((name, object_id, key, value))
            )

        ctx.meta.set("term", 4, "k", 1)
        ctx.meta.set("term", 4, "k", 1)
        ctx.meta.set("term", 4, "k", 2)
        ctx.meta.delete("term", 4, "k")

        assert events == [
            ("added", 4, "k", 1),
            ("updating", 4, "k", 2),
            ("updated", 4, "k", 2),
            ("deleting", 4, "k", [2]),
            ("deleted", 4, "k", [2]),
        ]

    def test_find_object_ids_matches_numeric_strings(self, ctx):
        ctx.meta.set("document", 1, "ref", 10)
        ctx.meta.set("document", 2, "ref", "10")
        ctx.meta.set("document", 3, "ref", 11)

        assert ctx.meta.find_object_ids("document", "ref", 10) == [1, 2]
        assert ctx.meta.find_object_ids("document", "ref", "11") == [3]


class TestOptionStore:

    def test_roundtrip_and_scope(self, ctx):
        ctx.options.set("queued-actions-document", {"1": {"sync": {}}})

        assert ctx.options.get("queued-actions-document") == {"1": {"sync": {}}}
        with ctx.nodes.switch_to(2):
            assert ctx.options.get("queued-actions-document", {}) == {}

    def test_overwrite_and_delete(self, ctx):
        ctx.options.set("name", 1)
        ctx.options.set("name", 2)
        assert ctx.options.get("name") == 2

        assert ctx.options.delete("name") is True
        assert ctx.options.delete("name") is False
        assert ctx.options.get("name", "gone") == "gone"


class TestDatabase:

    def test_nested_transaction_rolls_back_outermost(self, tmp_path):
        from syndicate.storage import Database

        db = Database(tmp_path / "test.sqlite")
        try:
            with pytest.raises(RuntimeError):
                with db.transaction() as conn:
                    conn.execute("INSERT INTO nodes (id, name) VALUES (1, 'a')")
                    with db.transaction() as inner:
                        inner.execute("INSERT INTO nodes (id, name) VALUES (2, 'b')")
                    raise RuntimeError("abort")

            assert db.fetchall("SELECT id FROM nodes") == []
        finally:
            db.close()
