from renogy_local.cache import CACHE_TTL_SECONDS, ResponseCache


def test_default_ttl_is_one_minute():
    assert CACHE_TTL_SECONDS == 60.0
    assert ResponseCache().ttl == 60.0


def test_get_within_ttl_returns_stored_value(clock):
    cache = ResponseCache(clock=clock)
    payload = [{'deviceId': '1'}]
    cache.set('k', payload)

    clock.advance(59)
    assert cache.get('k') is payload


def test_entry_at_exactly_ttl_is_still_fresh(clock):
    cache = ResponseCache(clock=clock)
    cache.set('k', {'a': 1})

    clock.advance(60)
    assert cache.get('k') == {'a': 1}


def test_expired_entry_is_absent_and_purged(clock):
    cache = ResponseCache(clock=clock)
    cache.set('k', {'a': 1})

    clock.advance(60.001)
    assert cache.get('k') is None
    assert 'k' not in cache
    assert len(cache) == 0
    assert cache.get('k') is None


def test_set_overwrites_and_restarts_ttl(clock):
    cache = ResponseCache(clock=clock)
    cache.set('k', 'old')
    clock.advance(50)
    cache.set('k', 'new')
    clock.advance(50)

    assert cache.get('k') == 'new'


def test_missing_key_is_absent():
    assert ResponseCache().get('nope') is None


def test_falsy_payload_is_a_hit(clock):
    cache = ResponseCache(clock=clock)
    cache.set('alarms', [])

    assert cache.get('alarms') == []
    assert 'alarms' in cache


def test_make_key_collides_for_same_params_in_any_order():
    a = ResponseCache.make_key('/device/data/history/1', {'year': 2025, 'month': 6})
    b = ResponseCache.make_key('/device/data/history/1', {'month': 6, 'year': 2025})
    assert a == b


def test_make_key_differs_for_different_params_or_paths():
    base = ResponseCache.make_key('/device/data/history/1', {'year': 2025, 'month': 6})
    assert ResponseCache.make_key('/device/data/history/1', {'year': 2025, 'month': 7}) != base
    assert ResponseCache.make_key('/device/data/history/2', {'year': 2025, 'month': 6}) != base
    assert ResponseCache.make_key('/device/list') == ResponseCache.make_key('/device/list', {})


def test_clear_removes_everything(clock):
    cache = ResponseCache(clock=clock)
    cache.set('a', 1)
    cache.set('b', 2)
    cache.clear()

    assert len(cache) == 0
