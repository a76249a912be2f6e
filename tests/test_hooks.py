"""Unit Tests for HookBus

Tests: actions, filters, error isolation, removal during dispatch
"""
import threading
from unittest.mock import Mock


class TestHookBusActions:
    """Tests for actions (observers)."""

    def test_instantiation(self):
        """Can instantiate HookBus."""
        from syndicate.hooks import HookBus

        hooks = HookBus()
        assert hooks._actions == {}
        assert hooks._filters == {}

    def test_do_action_calls_observers_in_order(self):
        """Observers run in registration order with the action arguments."""
        from syndicate.hooks import HookBus

        hooks = HookBus()
        calls = []
        hooks.add_action('document.updated', lambda object_id: calls.append(('first', object_id)))
        hooks.add_action('document.updated', lambda object_id: calls.append(('second', object_id)))

        hooks.do_action('document.updated', 10)

        assert calls == [('first', 10), ('second', 10)]

    def test_do_action_without_observers_is_noop(self):
        """An action nobody observes does nothing."""
        from syndicate.hooks import HookBus

        HookBus().do_action('term.deleting', 1)

    def test_failing_observer_does_not_stop_others(self):
        """An exception in one observer is logged, later observers still run."""
        from syndicate.hooks import HookBus

        hooks = HookBus()
        bad = Mock(side_effect=RuntimeError("boom"))
        good = Mock()
        hooks.add_action('document.inserted', bad)
        hooks.add_action('document.inserted', good)

        hooks.do_action('document.inserted', 3)

        bad.assert_called_once_with(3)
        good.assert_called_once_with(3)

    def test_remove_action(self):
        """remove_action reports whether the observer was registered."""
        from syndicate.hooks import HookBus

        hooks = HookBus()
        callback = Mock()
        hooks.add_action('comment.deleted', callback)

        assert hooks.remove_action('comment.deleted', callback) is True
        assert hooks.remove_action('comment.deleted', callback) is False
        assert not hooks.has_hooks('comment.deleted')

        hooks.do_action('comment.deleted', 1)
        callback.assert_not_called()

    def test_observer_can_remove_itself_while_running(self):
        """A one-shot observer removing itself does not disturb the dispatch."""
        from syndicate.hooks import HookBus

        hooks = HookBus()
        seen = []

        def once(object_id):
            seen.append(object_id)
            hooks.remove_action('meta.term.updated', once)

        after = Mock()
        hooks.add_action('meta.term.updated', once)
        hooks.add_action('meta.term.updated', after)

        hooks.do_action('meta.term.updated', 1)
        hooks.do_action('meta.term.updated', 2)

        assert seen == [1]
        assert after.call_count == 2


class TestHookBusFilters:
    """Tests for filters (transforms)."""

    def test_apply_filters_without_filters_returns_value(self):
        from syndicate.hooks import HookBus

        assert HookBus().apply_filters('syncable.document.data', {'a': 1}) == {'a': 1}

    def test_filters_chain_in_order(self):
        """Each filter receives the previous result and the extra arguments."""
        from syndicate.hooks import HookBus

        hooks = HookBus()
        hooks.add_filter('syndicate.queued_actions_limit', lambda value, object_type: value * 2)
        hooks.add_filter('syndicate.queued_actions_limit',
                         lambda value, object_type: value + (1 if object_type == 'term' else 0))

        assert hooks.apply_filters('syndicate.queued_actions_limit', 5, 'term') == 11
        assert hooks.apply_filters('syndicate.queued_actions_limit', 5, 'document') == 10

    def test_failing_filter_passes_value_on(self):
        """A filter that raises is skipped and the value flows to the next one."""
        from syndicate.hooks import HookBus

        hooks = HookBus()

        def broken(value):
            raise ValueError("bad filter")

        hooks.add_filter('syncable.term.object_exists', broken)
        hooks.add_filter('syncable.term.object_exists', lambda value: value + 1)

        assert hooks.apply_filters('syncable.term.object_exists', 1) == 2

    def test_remove_filter_and_clear(self):
        from syndicate.hooks import HookBus

        hooks = HookBus()
        transform = Mock(return_value=7)
        hooks.add_filter('syncable.asset.pre_insert', transform)
        hooks.add_action('asset.deleted', Mock())

        assert hooks.remove_filter('syncable.asset.pre_insert', transform) is True
        assert hooks.apply_filters('syncable.asset.pre_insert', 1) == 1

        hooks.clear()
        assert not hooks.has_hooks('asset.deleted')


class TestHookBusThreadSafety:
    """Concurrent registration does not lose callbacks."""

    def test_concurrent_add_action(self):
        from syndicate.hooks import HookBus

        hooks = HookBus()

        def register():
            for _ in range(100):
                hooks.add_action('document.updated', lambda object_id: None)

        threads = [threading.Thread(target=register) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(hooks._actions['document.updated']) == 500


class TestGlobalHooks:
    """Tests for the process-wide hook bus."""

    def test_get_hooks_returns_singleton(self):
        from syndicate.hooks import get_hooks

        assert get_hooks() is get_hooks()

    def test_reset_hooks_replaces_bus(self):
        from syndicate.hooks import get_hooks, reset_hooks

        before = get_hooks()
        before.add_action('document.updated', Mock())
        reset_hooks()

        after = get_hooks()
        assert after is not before
        assert not after.has_hooks('document.updated')
