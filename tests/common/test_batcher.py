"""
Tests for common.batcher module
"""

import threading
import time

from common.batcher import map_with_concurrency


def test_results_keep_input_order():
    """Test that results line up with their items"""
    results = map_with_concurrency([3, 1, 2], 3, lambda n: n * 10)

    assert results == [30, 10, 20]


def test_failures_are_recorded_per_item():
    """Test that one failing item doesn't abort its siblings"""
    def mapper(day):
        if day == '20250402':
            raise RuntimeError("blocked")
        return day

    results = map_with_concurrency(['20250401', '20250402', '20250403'], 3, mapper)

    assert results[0] == '20250401'
    assert isinstance(results[1], RuntimeError)
    assert results[2] == '20250403'


def test_concurrency_limit_is_respected():
    """Test that no more than `limit` workers run at once"""
    lock = threading.Lock()
    state = {'running': 0, 'peak': 0}

    def mapper(item):
        with lock:
            state['running'] += 1
            state['peak'] = max(state['peak'], state['running'])
        time.sleep(0.05)
        with lock:
            state['running'] -= 1
        return item

    results = map_with_concurrency(list(range(7)), 3, mapper)

    assert results == list(range(7))
    assert state['peak'] <= 3


def test_empty_input():
    assert map_with_concurrency([], 3, lambda x: x) == []
