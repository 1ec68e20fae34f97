"""
In-memory caching utilities for all fetch paths
Time-boxed caches with in-flight request coalescing
"""

import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    fetched_at: float


class TTLCache:
    """
    Mapping from string keys to payloads that expire after ttl seconds

    Reads never extend an entry's lifetime. Failures are never stored.
    While a key is being fetched, other callers for the same key wait on the
    first caller's Future instead of issuing their own fetch.
    """

    def __init__(self, name: str, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Number of entries that have not expired"""
        with self._lock:
            return sum(1 for entry in self._entries.values() if self._is_fresh(entry))

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.fetched_at < self.ttl

    def load_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key if it hasn't expired"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not self._is_fresh(entry):
                del self._entries[key]
                return None
            return entry

    def load(self, key: str, default: Any = None) -> Any:
        entry = self.load_entry(key)
        return entry.payload if entry is not None else default

    def save(self, key: str, payload: Any):
        with self._lock:
            self._entries[key] = CacheEntry(payload, self.clock())

    def invalidate(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def get_or_fetch(self, key: str, fetch: Callable[[], Any]) -> Any:
        """
        Return the cached payload for key, fetching it at most once at a time

        Args:
            key: Cache key
            fetch: Zero-argument callable producing the payload

        Returns:
            Cached or freshly fetched payload

        Raises:
            Whatever fetch raised, for the owner and every waiting caller
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry):
                return entry.payload
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            return future.result()

        try:
            payload = fetch()
        except BaseException as e:
            with self._lock:
                self._in_flight.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            self._entries[key] = CacheEntry(payload, self.clock())
            self._in_flight.pop(key, None)
        future.set_result(payload)
        return payload


class SessionCookies:
    """Process-wide cookie slot shared by direct and browser fetches (last writer wins)"""

    def __init__(self):
        self._cookies: Dict[str, str] = {}
        self._lock = threading.Lock()

    def as_dict(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._cookies)

    def update(self, cookies: Dict[str, str]):
        if not cookies:
            return
        with self._lock:
            self._cookies.update(cookies)

    def update_from_response(self, response):
        """Capture cookies from a requests response"""
        self.update({cookie.name: cookie.value for cookie in response.cookies})

    def update_from_driver(self, driver_cookies):
        """Capture cookies from selenium's driver.get_cookies()"""
        self.update({c['name']: c['value'] for c in driver_cookies if 'name' in c and 'value' in c})

    def clear(self):
        with self._lock:
            self._cookies.clear()


def build_caches(settings: Dict, clock: Callable[[], float] = time.monotonic) -> Dict[str, TTLCache]:
    """
    Create the cache set used by the service

    Args:
        settings: Settings from common.config.load_settings()
        clock: Monotonic clock, injectable for tests

    Returns:
        Dictionary of caches keyed by cache class
    """
    return {
        'day_pages': TTLCache('day_pages', settings['page_ttl'], clock),
        'month_pages': TTLCache('month_pages', settings['page_ttl'], clock),
        'menus': TTLCache('menus', settings['menu_ttl'], clock),
        'photos': TTLCache('photos', settings['photo_ttl'], clock),
        'images': TTLCache('images', settings['image_ttl'], clock),
    }
