"""
HookBus for in-process actions and filters.

Every extensibility point of the syndication engine goes through a HookBus:
lifecycle notifications from the content store (``document.updated``),
metadata write notifications used by the canonical index, and the
``syncable.<type>.*`` filters the engine applies to payloads.

Usage:
    hooks = HookBus()

    # Observe an action
    hooks.add_action('document.updated', lambda object_id: print(object_id))

    # Transform a value
    hooks.add_filter('syncable.document.pre_process', rewrite_method)

    hooks.do_action('document.updated', 10)
    payload = hooks.apply_filters('syncable.document.pre_process', payload)
"""

from typing import Callable, Dict, List, Any
from threading import Lock
import logging

logger = logging.getLogger(__name__)


class HookBus:
    """
    Thread-safe registry of actions (observers) and filters (transforms).

    Supports:
    - add_action(name, callback) / do_action(name, *args)
    - add_filter(name, callback) / apply_filters(name, value, *args)
    - remove_action / remove_filter, including from inside a running callback

    Absence of a registered hook is a no-op: do_action does nothing and
    apply_filters returns the value unchanged.
    """

    def __init__(self):
        """Initialize empty registries with thread safety."""
        self._actions: Dict[str, List[Callable[..., Any]]] = {}
        self._filters: Dict[str, List[Callable[..., Any]]] = {}
        self._lock = Lock()

    def add_action(self, name: str, callback: Callable[..., Any]) -> None:
        """
        Register an observer for an action.

        Args:
            name: Action name (e.g., 'term.deleting')
            callback: Called with the action arguments, return value ignored
        """
        with self._lock:
            self._actions.setdefault(name, []).append(callback)
        logger.debug(f"Added action {name}: {getattr(callback, '__name__', 'lambda')}")

    def remove_action(self, name: str, callback: Callable[..., Any]) -> bool:
        """
        Remove an observer.

        Returns:
            True if callback was found and removed, False otherwise
        """
        return self._remove(self._actions, name, callback)

    def add_filter(self, name: str, callback: Callable[..., Any]) -> None:
        """
        Register a transform for a filter.

        Args:
            name: Filter name (e.g., 'syncable.term.object_exists')
            callback: Called with (value, *args), must return the new value
        """
        with self._lock:
            self._filters.setdefault(name, []).append(callback)
        logger.debug(f"Added filter {name}: {getattr(callback, '__name__', 'lambda')}")

    def remove_filter(self, name: str, callback: Callable[..., Any]) -> bool:
        """Remove a transform. Returns True if it was registered."""
        return self._remove(self._filters, name, callback)

    def do_action(self, name: str, *args: Any) -> None:
        """
        Notify every observer of an action.

        Errors in one observer are logged and do not stop the others.
        """
        with self._lock:
            callbacks = self._actions.get(name, []).copy()

        for callback in callbacks:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in action callback for {name}: {e}", exc_info=True)

    def apply_filters(self, name: str, value: Any, *args: Any) -> Any:
        """
        Pass a value through every registered transform in order.

        A transform that raises is skipped (logged) and the value it received
        is passed on unchanged.
        """
        with self._lock:
            callbacks = self._filters.get(name, []).copy()

        for callback in callbacks:
            try:
                value = callback(value, *args)
            except Exception as e:
                logger.error(f"Error in filter callback for {name}: {e}", exc_info=True)

        return value

    def has_hooks(self, name: str) -> bool:
        """Check whether any action or filter is registered under a name."""
        with self._lock:
            return bool(self._actions.get(name) or self._filters.get(name))

    def clear(self) -> None:
        """
        Clear all actions and filters.

        Useful for testing and cleanup.
        """
        with self._lock:
            self._actions.clear()
            self._filters.clear()
            logger.debug("Cleared all hooks")

    def _remove(self, registry: Dict[str, List[Callable[..., Any]]],
                name: str, callback: Callable[..., Any]) -> bool:
        with self._lock:
            callbacks = registry.get(name)
            if not callbacks:
                return False
            try:
                callbacks.remove(callback)
            except ValueError:
                return False
            if not callbacks:
                del registry[name]
            return True


# Global hook bus
# Plugins can register hooks before a context is built
_global_hooks = None


def get_hooks() -> HookBus:
    """
    Get or create the global HookBus instance.

    Returns:
        Global HookBus singleton
    """
    global _global_hooks
    if _global_hooks is None:
        _global_hooks = HookBus()
    return _global_hooks


def reset_hooks() -> None:
    """Replace the global hook bus with a fresh one (mainly for testing)."""
    global _global_hooks
    _global_hooks = HookBus()


__all__ = ['HookBus', 'get_hooks', 'reset_hooks']
