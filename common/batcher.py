"""
Bounded-concurrency batching
Keeps parallel requests to the school site small
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, TypeVar, Union

T = TypeVar('T')
R = TypeVar('R')


def map_with_concurrency(items: Sequence[T], limit: int,
                         mapper: Callable[[T], R]) -> List[Union[R, Exception]]:
    """
    Apply mapper to every item with at most `limit` running at once

    A failing item does not abort the others; its slot in the result list
    holds the exception instead of a value.

    Args:
        items: Work items
        limit: Maximum number of concurrent workers
        mapper: Function applied to each item

    Returns:
        Results in the same order as items
    """
    if not items:
        return []

    def run(item):
        try:
            return mapper(item)
        except Exception as e:
            return e

    workers = max(1, min(limit, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(run, items))
