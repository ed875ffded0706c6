from __future__ import annotations

import re

import pytest

from clinicerp.utils.cache_manager import CacheManager, all_cache_stats, registered_caches


class _FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return _FakeClock()


@pytest.fixture
def cache(clock):
    manager = CacheManager(max_size=3, ttl=5, name='test-cache', clock=clock, start_sweeper=False)
    yield manager
    manager.destroy()


def test_get_returns_value_until_ttl_expires(cache, clock):
    cache.set('a', {'v': 1})
    clock.advance(5)
    assert cache.get('a') == {'v': 1}

    clock.advance(0.1)
    assert cache.get('a') is None
    assert 'a' not in cache

    stats = cache.get_stats()
    assert stats.hits == 1
    assert stats.misses == 1


def test_stale_check_keeps_expired_entries(cache, clock):
    cache.set('a', 'value')
    assert cache.get_with_stale_check('a') == ('value', False)

    clock.advance(10)
    assert cache.get_with_stale_check('a') == ('value', True)
    assert 'a' in cache
    assert cache.get_with_stale_check('missing') is None


def test_set_at_capacity_evicts_least_recently_used(cache, clock):
    for key in ('a', 'b', 'c'):
        cache.set(key, key)
        clock.advance(1)

    cache.get('a')
    clock.advance(1)
    cache.set('d', 'd')

    assert 'b' not in cache
    assert all(key in cache for key in ('a', 'c', 'd'))
    assert len(cache) == 3
    assert cache.get_stats().evictions == 1


def test_overwriting_existing_key_does_not_evict(cache):
    for key in ('a', 'b', 'c'):
        cache.set(key, key)
    cache.set('a', 'again')

    assert len(cache) == 3
    assert cache.get('a') == 'again'
    assert cache.get_stats().evictions == 0


def test_delete_pattern_accepts_string_and_compiled(cache):
    cache.set('products:t1', 1)
    cache.set('products:t1:storages', 2)
    cache.set('products:t10', 3)

    assert cache.delete_pattern(r'^products:t1(:|$)') == 2
    assert 'products:t10' in cache
    assert cache.delete_pattern(re.compile('t10')) == 1
    assert len(cache) == 0


def test_cleanup_removes_only_expired(cache, clock):
    cache.set('old', 1)
    clock.advance(4)
    cache.set('new', 2)
    clock.advance(2)

    assert cache.cleanup() == 1
    assert 'old' not in cache
    assert 'new' in cache


def test_delete_and_clear(cache):
    cache.set('a', 1)
    assert cache.delete('a') is True
    assert cache.delete('a') is False

    cache.set('b', 2)
    cache.clear()
    assert len(cache) == 0


def test_stats_are_registered_by_name(cache):
    cache.set('a', 1)
    assert registered_caches()['test-cache'] is cache
    stats = all_cache_stats()['test-cache']
    assert stats['size'] == 1
    assert stats['max_size'] == 3
    assert stats['memory_estimate'] == '1.00 KB'


def test_destroy_unregisters(clock):
    manager = CacheManager(name='short-lived', clock=clock, start_sweeper=False)
    manager.set('a', 1)
    manager.destroy()
    assert 'short-lived' not in registered_caches()
    assert len(manager) == 0


def test_invalid_max_size_rejected():
    with pytest.raises(ValueError):
        CacheManager(max_size=0, start_sweeper=False)


def test_sweeper_thread_starts_and_stops(clock):
    manager = CacheManager(name='swept', cleanup_interval=30, clock=clock)
    try:
        assert manager._sweeper is not None
        assert manager._sweeper.daemon
    finally:
        manager.destroy()
    assert manager._sweeper is None
