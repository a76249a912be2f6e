"""Tests for SyncManager: status helpers, bulk runs, sessions and the flush scheduler"""
import pytest
from unittest.mock import MagicMock, patch


class TestInputValidation:

    def test_unknown_type(self, manager):
        from syndicate.errors import InvalidInputError

        with pytest.raises(InvalidInputError):
            manager.is_synced("widget", 1)

    @pytest.mark.parametrize("bad_id", [0, -3, "abc", None])
    def test_bad_object_id(self, manager, bad_id):
        from syndicate.errors import InvalidInputError

        with pytest.raises(InvalidInputError):
            manager.detach("document", bad_id)

    def test_bad_node_id_does_not_switch(self, ctx, manager, create):
        from syndicate.errors import InvalidInputError

        doc_id = create("document", title="Hello")
        with pytest.raises(InvalidInputError):
            manager.is_synced("document", doc_id, node_id="two")
        assert ctx.nodes.current == 1

    def test_missing_node(self, manager, create):
        from syndicate.errors import NodeNotFoundError

        doc_id = create("document", title="Hello")
        with pytest.raises(NodeNotFoundError):
            manager.is_synced("document", doc_id, node_id=9)


class TestStatus:

    @pytest.fixture
    def replica(self, manager, create):
        doc_id = create("document", title="Hello")
        report = manager.sync_by_query("document", {"ids": [doc_id]}, [2])
        return doc_id, report.synced[0].destination_id

    def test_replica_status(self, manager, replica):
        doc_id, dest_id = replica

        assert manager.is_synced("document", dest_id, node_id=2) is True
        assert manager.is_syndicated("document", dest_id, node_id=2) is True
        assert manager.is_detached("document", dest_id, node_id=2) is False
        assert manager.is_synced_detached("document", dest_id, node_id=2) is False
        assert manager.get_source_url("document", dest_id, node_id=2) == \
            f"https://main.example.com/document/{doc_id}"

    def test_source_status(self, manager, replica):
        doc_id, dest_id = replica

        assert manager.is_syndicated("document", doc_id) is False
        assert manager.get_syncable_sites("document", doc_id) == {2: True}
        assert manager.is_object_syncable("document", doc_id, 2) is True
        assert manager.is_object_syncable("document", doc_id, 3) is False

    def test_detached_status(self, manager, replica):
        doc_id, dest_id = replica
        manager.detach("document", dest_id, node_id=2)

        assert manager.is_synced("document", dest_id, node_id=2) is False
        assert manager.is_synced_detached("document", dest_id, node_id=2) is True
        assert manager.is_object_syncable("document", doc_id, 2) is False

    def test_created_once_replica_is_not_synced(self, manager, create):
        doc_id = create("document", title="Hello")
        report = manager.sync_by_query("document", {"ids": [doc_id]}, [2], method="create")
        dest_id = report.synced[0].destination_id

        assert manager.is_syndicated("document", dest_id, node_id=2) is True
        assert manager.is_synced("document", dest_id, node_id=2) is False
        assert manager.get_syncable_sites("document", doc_id) == {}

    def test_remove_syndication_meta(self, ctx, manager, replica):
        doc_id, dest_id = replica
        with ctx.nodes.switch_to(2):
            ctx.meta.set("document", dest_id, "color", "red")

        removed = manager.remove_syndication_meta("document", dest_id, node_id=2)

        assert "syndicate-import-src-site" in removed
        assert manager.is_syndicated("document", dest_id, node_id=2) is False
        with ctx.nodes.switch_to(2):
            assert ctx.meta.get_all("document", dest_id) == {"color": ["red"]}

    def test_set_syncable(self, manager, create):
        doc_id = create("document", title="Hello")

        assert manager.set_syncable("document", doc_id, 2) is True
        assert manager.set_syncable("document", doc_id, 3, is_syncable=False) is True
        assert manager.get_syncable_sites("document", doc_id) == {2: True, 3: False}
        assert manager.set_syncable("document", 99, 2) is False

    def test_detach_and_reattach_missing_object(self, manager):
        assert manager.detach("document", 99, node_id=2) is False
        assert manager.reattach("document", 99, node_id=2) is None

    def test_reattach_with_missing_source(self, ctx, manager, replica):
        doc_id, dest_id = replica
        manager.detach("document", dest_id, node_id=2)
        ctx.content.delete("document", doc_id)

        assert manager.reattach("document", dest_id, node_id=2) is None
        assert manager.is_detached("document", dest_id, node_id=2) is False


class TestSyncByQuery:

    def test_syncs_matching_objects(self, manager, create):
        from syndicate.sync import OutcomeStatus

        create("document", title="A", status="publish")
        create("document", title="B", status="draft")
        create("document", title="C", status="publish")

        report = manager.sync_by_query("document", {"status": "publish"}, [2, 3])

        assert report.objects_processed == 2
        assert [(o.object_id, o.node_id, o.status) for o in report.outcomes] == [
            (1, 2, OutcomeStatus.SYNCED), (1, 3, OutcomeStatus.SYNCED),
            (3, 2, OutcomeStatus.SYNCED), (3, 3, OutcomeStatus.SYNCED),
        ]
        assert report.summary() == {"synced": 4, "detached": 0, "skipped": 0, "failed": 0, "objects": 2}

    def test_default_destinations_are_other_nodes(self, manager, create):
        create("document", title="A")

        report = manager.sync_by_query("document")

        assert [o.node_id for o in report.synced] == [2, 3]

    def test_destination_filter(self, ctx, manager, create):
        create("document", title="A")
        ctx.hooks.add_filter("syndicate.destination_nodes", lambda nodes, current: [n for n in nodes if n != 3])

        report = manager.sync_by_query("document")

        assert [o.node_id for o in report.synced] == [2]

    def test_missing_node_and_detached_are_skipped(self, manager, create):
        doc_id = create("document", title="A")
        first = manager.sync_by_query("document", None, [2])
        manager.detach("document", first.synced[0].destination_id, node_id=2)

        report = manager.sync_by_query("document", None, [2, 9])

        assert [(o.status.value, o.reason) for o in report.outcomes] == [
            ("skipped", "detached"), ("skipped", "node missing"),
        ]

    def test_source_node_is_skipped(self, ctx, manager, create, meta, keys):
        doc_id = create("document", title="A")

        report = manager.sync_by_query("document", None, [1, 2])

        assert [(o.node_id, o.status.value, o.reason) for o in report.outcomes] == [
            (1, "skipped", "source node"), (2, "synced", None),
        ]
        with ctx.nodes.switch_to(1):
            assert len(ctx.content.query("document")) == 1
        assert meta("document", doc_id, keys["document"].synced_to(1)) is None
        assert manager.get_syncable_sites("document", doc_id) == {2: True}

    def test_force_bypasses_source_record_only(self, ctx, manager, create, meta, keys):
        doc_id = create("document", title="A")
        first = manager.sync_by_query("document", None, [2])
        dest_id = first.synced[0].destination_id
        # source believes node 2 detached, the replica does not
        ctx.meta.set("document", doc_id, keys["document"].is_detached_for(2), True)
        ctx.content.update("document", doc_id, {"title": "Changed"})

        report = manager.sync_by_query("document", None, [2], force=True)

        assert report.synced[0].destination_id == dest_id
        with ctx.nodes.switch_to(2):
            assert ctx.content.get("document", dest_id).get("title") == "Changed"

    def test_rejected_write_is_failed(self, manager, create, fake_downloader):
        fake_downloader.fail = True
        create("asset", title="Logo", url="https://main.example.com/uploads/logo.png")

        report = manager.sync_by_query("asset", None, [2])

        assert report.failed[0].reason == "write rejected"

    def test_runs_on_given_node(self, manager, create):
        create("document", node=2, title="News only")

        report = manager.sync_by_query("document", None, [3], node_id=2)

        assert report.synced[0].object_id == 1
        assert manager.get_syncable_sites("document", 1, node_id=2) == {3: True}

    def test_sync_object_not_found(self, manager):
        report = manager.sync_object("document", 5, [2])

        assert report.skipped[0].reason == "not found"
        assert report.objects_processed == 0

    def test_sync_object(self, manager, create):
        create("document", title="A")
        doc_id = create("document", title="B")

        report = manager.sync_object("document", doc_id, [2])

        assert [o.object_id for o in report.synced] == [doc_id]
        assert "Synced document (2) to site 2, Destination id: 1" == report.synced[0].message


class TestResyncByQuery:

    def test_only_configured_objects_and_sites(self, manager, create):
        configured = create("document", title="A")
        create("document", title="B")
        manager.set_syncable("document", configured, 2)
        manager.set_syncable("document", configured, 3, is_syncable=False)

        report = manager.resync_by_query("document")

        assert report.objects_processed == 1
        assert [(o.object_id, o.node_id) for o in report.synced] == [(configured, 2)]

    def test_requested_destination_not_enabled(self, manager, create):
        doc_id = create("document", title="A")
        manager.set_syncable("document", doc_id, 2)

        report = manager.resync_by_query("document", None, [3])

        assert report.skipped[0].reason == "not syncable"


class TestDetachByQuery:

    def test_detaches_synced_replicas(self, manager, create):
        create("document", title="A")
        create("document", title="B")
        manager.sync_by_query("document", None, [2])
        create("document", node=2, title="Local")

        report = manager.detach_by_query("document", None, [2])

        assert [o.status.value for o in report.outcomes] == ["detached", "detached", "skipped"]
        assert report.skipped[0].reason == "not synced"

        again = manager.detach_by_query("document", None, [2])
        assert [o.reason for o in again.skipped] == ["detached", "detached", "not synced"]

    def test_missing_node(self, manager):
        report = manager.detach_by_query("document", None, [9])

        assert report.skipped[0].reason == "node missing"


class TestSessions:

    def test_session_persists_on_exit(self, ctx, manager, create):
        doc_id = create("document", title="A")
        manager.set_syncable("document", doc_id, 2)

        with manager.session():
            ctx.content.update("document", doc_id, {"title": "B"})
            ctx.content.update("document", doc_id, {"title": "C"})
            assert manager.get_queued_actions("document") == {}

        assert manager.get_queued_actions("document") == {str(doc_id): {"sync": {}}}
        assert ctx.session is None

    def test_nested_sessions_join(self, ctx, manager):
        with manager.session() as outer:
            with manager.session() as inner:
                assert inner is outer
            assert ctx.session is outer
        assert ctx.session is None

    def test_session_persists_to_origin_node(self, ctx, manager, create):
        doc_id = create("document", node=2, title="A")
        manager.set_syncable("document", doc_id, 3, node_id=2)

        with ctx.nodes.switch_to(2):
            with manager.session():
                ctx.content.update("document", doc_id, {"title": "B"})

        assert manager.get_queued_actions("document", node_id=2) == {str(doc_id): {"sync": {}}}

    def test_enqueue_sync_and_flush(self, ctx, manager, create, get):
        doc_id = create("document", title="A")
        manager.set_syncable("document", doc_id, 2)
        manager.set_syncable("document", doc_id, 3)

        assert manager.enqueue_sync("document", doc_id) is True
        results = manager.flush_queue()

        assert results[1]["document"] == 1
        assert get("document", 1, node=2).get("title") == "A"
        assert get("document", 1, node=3).get("title") == "A"

    def test_enqueue_missing_object(self, manager):
        assert manager.enqueue_sync("document", 4) is False
        assert manager.enqueue_delete("document", 4) is False

    def test_flush_skips_disabled_and_missing_sites(self, ctx, manager, create, get):
        doc_id = create("document", title="A")
        manager.set_syncable("document", doc_id, 2, is_syncable=False)
        manager.set_syncable("document", doc_id, 9)

        manager.enqueue_sync("document", doc_id)
        manager.flush_queue()

        assert get("document", 1, node=2) is None

    def test_status_change_queues_comment(self, ctx, manager, create):
        doc_id = create("document", title="A")
        comment_id = create("comment", document_id=doc_id, body="Hi", status="hold")
        manager.set_syncable("comment", comment_id, 2)

        ctx.content.set_status("comment", comment_id, "approved")

        assert manager.get_queued_actions("comment") == {str(comment_id): {"sync": {}}}

    def test_flush_selected_types(self, manager, create):
        doc_id = create("document", title="A")
        manager.set_syncable("document", doc_id, 2)
        manager.enqueue_sync("document", doc_id)

        results = manager.flush_queue(node_id=1, object_types=["term"])

        assert results == {1: {"term": 0}}
        assert manager.get_queued_actions("document") != {}


class TestFlushScheduler:

    def test_run_once_flushes(self, manager):
        from syndicate.sync import FlushScheduler

        scheduler = FlushScheduler(manager, interval=60)
        with patch.object(manager, "flush_queue", return_value={1: {"document": 0}}) as flush:
            assert scheduler.run_once() == {1: {"document": 0}}
        flush.assert_called_once_with()
        assert scheduler.runs == 1

    def test_run_once_survives_errors(self, manager):
        from syndicate.sync import FlushScheduler

        scheduler = FlushScheduler(manager, interval=60)
        with patch.object(manager, "flush_queue", side_effect=RuntimeError("db locked")):
            assert scheduler.run_once() == {}
        assert scheduler.runs == 1

    def test_start_and_stop(self, manager):
        scheduler = manager.start_scheduler(interval=60)

        assert scheduler.is_running
        assert manager.start_scheduler() is scheduler

        manager.stop_scheduler()
        assert not scheduler.is_running

    def test_thread_runs_periodically(self, manager):
        import time
        from syndicate.sync import FlushScheduler

        fake_manager = MagicMock()
        fake_manager.flush_queue.return_value = {}
        scheduler = FlushScheduler(fake_manager, interval=0.01)
        scheduler.start()
        deadline = time.time() + 2
        while scheduler.runs < 2 and time.time() < deadline:
            time.sleep(0.01)
        scheduler.stop()

        assert scheduler.runs >= 2


class TestLifecycle:

    def test_open_and_close(self, tmp_path):
        from syndicate.hooks import HookBus
        from syndicate.sync import SyncManager

        hooks = HookBus()
        with SyncManager.open(tmp_path, hooks=hooks) as manager:
            manager.ctx.nodes.add("main", node_id=1)
            assert hooks.has_hooks("document.updated")

        assert not hooks.has_hooks("document.updated")
        assert (tmp_path / "syndicate.sqlite").exists()

    def test_register_hooks_is_idempotent(self, ctx, manager):
        manager.registry.register_hooks()

        assert len(ctx.hooks._actions["document.updated"]) == 1

    def test_syncable_kinds_filter(self, ctx):
        from syndicate.sync import SyncRegistry

        ctx.hooks.add_filter(
            "syndicate.syncable_kinds",
            lambda kinds: {name: kind for name, kind in kinds.items() if name != "comment"}
        )
        registry = SyncRegistry(ctx)
        comment_id = ctx.content.insert("comment", {"body": "Hi"})

        assert registry.object_types == ["document", "asset", "term"]
        assert registry.get_syncable(ctx.content.get("comment", comment_id)) is None
        assert registry.get_syncable(None) is None
