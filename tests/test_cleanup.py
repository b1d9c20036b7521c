import signal

import pytest

from schemaguard.cleanup import (
    DEFAULT_REGISTRY,
    CleanupRegistry,
    install_signal_handler,
    register_cleanup,
    run_cleanup,
)


@pytest.fixture
def default_registry():
    DEFAULT_REGISTRY.reset()
    yield DEFAULT_REGISTRY
    DEFAULT_REGISTRY.reset()


def test_hooks_run_in_lifo_order():
    registry = CleanupRegistry()
    order = []
    registry.register(lambda: order.append(1))
    registry.register(lambda: order.append(2))
    registry.register(lambda: order.append(3))
    registry.run()
    assert order == [3, 2, 1]


def test_run_is_idempotent():
    registry = CleanupRegistry()
    calls = []
    registry.register(lambda: calls.append(None))
    registry.run()
    registry.run()
    registry.run()
    assert len(calls) == 1


def test_reset_allows_running_again():
    registry = CleanupRegistry()
    calls = []
    registry.register(lambda: calls.append("first"))
    registry.run()
    registry.reset()
    registry.register(lambda: calls.append("second"))
    registry.run()
    assert calls == ["first", "second"]


def test_reset_discards_registered_hooks():
    registry = CleanupRegistry()
    calls = []
    registry.register(lambda: calls.append(None))
    registry.reset()
    registry.run()
    assert calls == []


def test_module_functions_use_default_registry(default_registry):
    order = []
    register_cleanup(lambda: order.append("a"))
    register_cleanup(lambda: order.append("b"))
    run_cleanup()
    run_cleanup()
    assert order == ["b", "a"]


def test_stop_runs_cleanup_and_cancels():
    registry = CleanupRegistry()
    called = []
    registry.register(lambda: called.append(True))
    cancelled, stop = install_signal_handler(registry)
    assert not cancelled.is_set()
    stop()
    assert called == [True]
    assert cancelled.is_set()
    stop()
    assert called == [True]


def test_stop_restores_previous_handlers():
    original_int = signal.getsignal(signal.SIGINT)
    original_term = signal.getsignal(signal.SIGTERM)
    registry = CleanupRegistry()
    called = []
    registry.register(lambda: called.append(True))
    cancelled, stop = install_signal_handler(registry)
    assert not cancelled.is_set()
    assert signal.getsignal(signal.SIGINT) != original_int
    assert signal.getsignal(signal.SIGTERM) != original_term
    stop()
    assert cancelled.is_set()
    assert called == [True]
    assert signal.getsignal(signal.SIGINT) == original_int
    assert signal.getsignal(signal.SIGTERM) == original_term


def test_signal_runs_cleanup_and_cancels():
    registry = CleanupRegistry()
    called = []
    registry.register(lambda: called.append(True))
    cancelled, stop = install_signal_handler(registry)
    try:
        signal.raise_signal(signal.SIGINT)
        assert cancelled.wait(5)
        assert called == [True]
    finally:
        stop()
    assert called == [True]


def test_stop_uses_default_registry(default_registry):
    called = []
    register_cleanup(lambda: called.append(True))
    cancelled, stop = install_signal_handler()
    stop()
    assert called == [True]
    assert cancelled.is_set()