import pytest

from imagecache.cache import BoundedCache, configure_cache, get_cache
from imagecache.managers.memory import MemoryPressureMonitor, MemoryPressureNotifier
from imagecache.runtime import CacheRuntime


@pytest.fixture
def notifier(app):
    return MemoryPressureNotifier()


def test_runtime_subscribes_and_unsubscribes(notifier):
    cache = BoundedCache()
    runtime = CacheRuntime(cache, notifier)

    runtime.start()
    runtime.start()
    assert notifier.subscriber_count == 1

    cache.put("a", b"A", 1)
    notifier.notify()
    assert cache.size() == 0

    runtime.shutdown()
    runtime.shutdown()
    assert notifier.subscriber_count == 0

    cache.put("b", b"B", 1)
    notifier.notify()
    assert cache.contains("b")


def test_runtime_context_manager_controls_monitor(notifier, dummy_timer):
    monitor = MemoryPressureMonitor(notifier, timer=dummy_timer, rss_reader=lambda: 0)
    cache = BoundedCache()

    with CacheRuntime(cache, notifier, monitor) as runtime:
        assert runtime.started
        assert dummy_timer.active
    assert not runtime.started
    assert not dummy_timer.active


def test_runtime_defaults_to_shared_cache(notifier):
    configure_cache(lambda: BoundedCache(count_limit=3))
    try:
        runtime = CacheRuntime(notifier=notifier)
        assert runtime.cache is get_cache()
        assert runtime.cache.count_limit == 3
    finally:
        configure_cache(BoundedCache)


def test_runtime_rejects_monitor_on_other_notifier(notifier, dummy_timer):
    other = MemoryPressureNotifier()
    monitor = MemoryPressureMonitor(other, timer=dummy_timer)
    with pytest.raises(ValueError):
        CacheRuntime(BoundedCache(), notifier, monitor)


def test_runtimes_are_isolated(notifier):
    first, second = BoundedCache(), BoundedCache()
    runtime = CacheRuntime(first, notifier)
    runtime.start()
    first.put("a", b"A", 1)
    second.put("a", b"A", 1)

    notifier.notify()

    assert not first.contains("a")
    assert second.contains("a")
    runtime.shutdown()
