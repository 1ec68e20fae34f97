"""
Tests for common.cache module
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest
from common.cache import SessionCookies, TTLCache, build_caches
from common.config import load_settings


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestTTLCache:
    """Tests for expiry and storage"""

    def test_save_and_load(self):
        """Test that a saved payload is returned before it expires"""
        cache = TTLCache('pages', ttl=60, clock=FakeClock())
        cache.save('20250401', 'html')

        assert cache.load('20250401') == 'html'
        assert len(cache) == 1

    def test_expired_entry_is_a_miss(self):
        """Test that a read past the TTL is a miss"""
        clock = FakeClock()
        cache = TTLCache('pages', ttl=60, clock=clock)
        cache.save('k', 'v')

        clock.advance(61)

        assert cache.load('k') is None
        assert cache.load('k', default='missing') == 'missing'

    def test_len_counts_only_fresh_entries(self):
        clock = FakeClock()
        cache = TTLCache('pages', ttl=60, clock=clock)
        cache.save('old', 'v')
        clock.advance(40)
        cache.save('new', 'v')

        clock.advance(30)

        assert len(cache) == 1

    def test_read_does_not_extend_ttl(self):
        """Test that reading an entry doesn't refresh its timestamp"""
        clock = FakeClock()
        cache = TTLCache('pages', ttl=60, clock=clock)
        cache.save('k', 'v')

        clock.advance(40)
        assert cache.load('k') == 'v'
        clock.advance(40)

        assert cache.load('k') is None

    def test_none_payload_is_cached(self):
        """Test that a 'known absent' None result is stored like any payload"""
        cache = TTLCache('photos', ttl=60, clock=FakeClock())
        calls = []

        def fetch():
            calls.append(1)
            return None

        assert cache.get_or_fetch('20250401|lunch', fetch) is None
        assert cache.get_or_fetch('20250401|lunch', fetch) is None
        assert len(calls) == 1

    def test_invalidate_and_clear(self):
        cache = TTLCache('pages', ttl=60, clock=FakeClock())
        cache.save('a', 1)
        cache.save('b', 2)

        cache.invalidate('a')
        assert cache.load('a') is None
        assert cache.load('b') == 2

        cache.clear()
        assert len(cache) == 0


class TestGetOrFetch:
    """Tests for fetch de-duplication"""

    def test_hit_skips_fetch(self):
        """Test that a fresh entry is returned without calling fetch"""
        cache = TTLCache('pages', ttl=60, clock=FakeClock())
        cache.save('k', 'cached')

        def fetch():
            raise AssertionError("should not fetch")

        assert cache.get_or_fetch('k', fetch) == 'cached'

    def test_refetches_after_expiry(self):
        clock = FakeClock()
        cache = TTLCache('pages', ttl=60, clock=clock)
        values = iter(['first', 'second'])

        assert cache.get_or_fetch('k', lambda: next(values)) == 'first'
        clock.advance(61)
        assert cache.get_or_fetch('k', lambda: next(values)) == 'second'

    def test_failure_is_not_cached(self):
        """Test that a failed fetch is retried on the next call"""
        cache = TTLCache('pages', ttl=60, clock=FakeClock())
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return 'ok'

        with pytest.raises(RuntimeError):
            cache.get_or_fetch('k', flaky)

        assert not cache.is_in_flight('k')
        assert cache.load('k') is None
        assert cache.get_or_fetch('k', flaky) == 'ok'
        assert len(attempts) == 2

    def test_concurrent_callers_share_one_fetch(self):
        """Test that two simultaneous misses issue exactly one fetch"""
        cache = TTLCache('pages', ttl=60)
        calls = []
        started = threading.Event()

        def slow_fetch():
            calls.append(1)
            started.set()
            time.sleep(0.2)
            return {'html': '<p>석식</p>'}

        with ThreadPoolExecutor(max_workers=2) as executor:
            first = executor.submit(cache.get_or_fetch, '20250401', slow_fetch)
            started.wait(1)
            second = executor.submit(cache.get_or_fetch, '20250401', slow_fetch)
            results = [first.result(), second.result()]

        assert len(calls) == 1
        assert results[0] == results[1]
        assert results[0] is results[1]

    def test_concurrent_callers_share_failure(self):
        """Test that waiting callers see the owner's exception"""
        cache = TTLCache('pages', ttl=60)
        calls = []
        started = threading.Event()

        def failing_fetch():
            calls.append(1)
            started.set()
            time.sleep(0.2)
            raise ValueError("upstream down")

        with ThreadPoolExecutor(max_workers=2) as executor:
            first = executor.submit(cache.get_or_fetch, 'k', failing_fetch)
            started.wait(1)
            second = executor.submit(cache.get_or_fetch, 'k', failing_fetch)

            with pytest.raises(ValueError):
                first.result()
            with pytest.raises(ValueError):
                second.result()

        assert len(calls) == 1
        assert not cache.is_in_flight('k')


class TestSessionCookies:
    """Tests for the shared cookie slot"""

    def test_update_from_response(self):
        cookies = SessionCookies()
        response = SimpleNamespace(cookies=[SimpleNamespace(name='PHPSESSID', value='abc')])

        cookies.update_from_response(response)

        assert cookies.as_dict() == {'PHPSESSID': 'abc'}

    def test_last_writer_wins(self):
        cookies = SessionCookies()
        cookies.update({'sid': '1'})
        cookies.update_from_driver([{'name': 'sid', 'value': '2', 'domain': 'hafs.hs.kr'}])

        assert cookies.as_dict() == {'sid': '2'}

    def test_as_dict_is_a_copy(self):
        cookies = SessionCookies()
        cookies.update({'sid': '1'})
        snapshot = cookies.as_dict()
        snapshot['sid'] = 'changed'

        assert cookies.as_dict() == {'sid': '1'}


def test_build_caches_uses_configured_ttls():
    """Test that each cache class gets its own TTL"""
    settings = load_settings(env={})
    caches = build_caches(settings)

    assert set(caches) == {'day_pages', 'month_pages', 'menus', 'photos', 'images'}
    assert caches['day_pages'].ttl == settings['page_ttl']
    assert caches['menus'].ttl == settings['menu_ttl']
    assert caches['photos'].ttl == 30 * 60
