"""Shutdown hooks and SIGINT/SIGTERM handling.

Hooks run once, in reverse order of registration, which matches the
order resources are usually acquired in. They run on an interrupt or
termination signal, or when the stop function returned by
:func:`install_signal_handler` is called on the normal exit path.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable

CleanupHook = Callable[[], None]

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CleanupRegistry:
    """An ordered set of shutdown hooks that runs at most once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hooks: list[CleanupHook] = []
        self._ran = False

    def register(self, hook: CleanupHook) -> None:
        """Add ``hook`` to run at shutdown."""
        with self._lock:
            self._hooks.append(hook)

    def run(self) -> None:
        """Run every hook, last registered first. Later calls do nothing."""
        with self._lock:
            if self._ran:
                return
            self._ran = True
            hooks, self._hooks = self._hooks, []
        for hook in reversed(hooks):
            hook()

    def reset(self) -> None:
        """Forget all hooks and allow the registry to run again."""
        with self._lock:
            self._hooks = []
            self._ran = False


DEFAULT_REGISTRY = CleanupRegistry()


def register_cleanup(hook: CleanupHook) -> None:
    """Add ``hook`` to the process-wide registry."""
    DEFAULT_REGISTRY.register(hook)


def run_cleanup() -> None:
    """Run the process-wide registry's hooks, once."""
    DEFAULT_REGISTRY.run()


def install_signal_handler(
    registry: CleanupRegistry | None = None,
) -> tuple[threading.Event, Callable[[], None]]:
    """Run ``registry`` on SIGINT or SIGTERM and report it through an event.

    Returns ``(cancelled, stop)``. ``cancelled`` is set once a signal has
    arrived or ``stop`` has been called. ``stop`` restores the previous
    signal handlers, runs the cleanup hooks and sets ``cancelled``; it
    is safe to call more than once. Handlers can only be installed from
    the main thread; elsewhere only ``stop`` takes effect.
    """
    if registry is None:
        registry = DEFAULT_REGISTRY
    cancelled = threading.Event()

    def handle(signum: int, frame: object) -> None:
        registry.run()
        cancelled.set()

    previous: dict[int, object] = {}
    if threading.current_thread() is threading.main_thread():
        for sig in _SIGNALS:
            prior = signal.signal(sig, handle)
            previous[sig] = signal.SIG_DFL if prior is None else prior

    restored = threading.Lock()
    state = {"restored": False}

    def stop() -> None:
        with restored:
            if not state["restored"]:
                state["restored"] = True
                for sig, handler in previous.items():
                    signal.signal(sig, handler)
        registry.run()
        cancelled.set()

    return cancelled, stop