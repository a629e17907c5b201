"""Single-flight memo for immutable repository lookups."""

import threading
from concurrent.futures import Future
from typing import Callable, Dict, Hashable, Tuple, TypeVar

T = TypeVar("T")


class RequestCache:
    """Caches results of idempotent requests and deduplicates concurrent ones.

    The first caller for a key performs the fetch; every concurrent or later
    caller for that key receives the same result, or the same exception.
    Revisions never change, so entries never expire.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Future] = {}
        self.fetch_count = 0

    def get_or_fetch(self, key: Hashable, fetch: Callable[[], T]) -> T:
        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._entries[key] = future
                self.fetch_count += 1

        if owner:
            try:
                future.set_result(fetch())
            except BaseException as exc:
                future.set_exception(exc)
        return future.result()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def request_key(operation: str, *parts: Hashable) -> Tuple[Hashable, ...]:
    return (operation,) + parts
