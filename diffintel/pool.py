"""Bounded worker pool for I/O-bound per-file retrieval."""

from __future__ import annotations

import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def parallel_limit(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T], R],
) -> List[R]:
    """Run *worker* over *items* with at most *limit* calls in flight.

    Each pool thread claims the next unprocessed index from a shared
    counter and stores its result at that index, so the returned list
    follows the order of *items* regardless of completion order.  The
    first exception raised by *worker* stops further claims and is
    re-raised here.

    Raises:
        ValueError: if *limit* is smaller than 1
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    items = list(items)
    if not items:
        return []

    results: List[Optional[R]] = [None] * len(items)
    counter = itertools.count()
    claim_lock = threading.Lock()
    failed = threading.Event()

    def drain() -> None:
        while not failed.is_set():
            with claim_lock:
                index = next(counter)
            if index >= len(items):
                return
            try:
                results[index] = worker(items[index])
            except BaseException:
                failed.set()
                raise

    workers = min(limit, len(items))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="diffintel") as executor:
        futures = [executor.submit(drain) for _ in range(workers)]
    for future in futures:
        future.result()

    return results  # type: ignore[return-value]
