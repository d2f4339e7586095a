# In-memory cache of composite quotes, keyed by route key.

import logging
import threading
from contextlib import contextmanager

from api_structures import CompositeQuote

logger = logging.getLogger(__name__)

DEFAULT_TTL_SEC = 30


class QuoteCache:
    """
    Maps a route key to the most recent CompositeQuote for that route.

    One lock guards the map and is held only for the dict access. Entries are
    never evicted: a stale entry stays until the next successful comparison
    for the same route overwrites it, so memory grows with the number of
    distinct routes seen by the process.
    """

    def __init__(self, ttl_sec: float = DEFAULT_TTL_SEC):
        self.ttl_sec = ttl_sec
        self._entries: dict[str, CompositeQuote] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[str, list] = {}

    def lookup(self, key: str) -> tuple[CompositeQuote | None, bool]:
        with self._lock:
            quote = self._entries.get(key)
        return quote, quote is not None

    def is_fresh(self, quote: CompositeQuote, now: float, ttl: float | None = None) -> bool:
        if ttl is None:
            ttl = self.ttl_sec
        return now - quote.timestamp <= ttl

    def store(self, key: str, quote: CompositeQuote) -> None:
        with self._lock:
            self._entries[key] = quote
        logger.debug(f"Stored quote for {key[:12]}")

    @contextmanager
    def key_lock(self, key: str):
        """
        Holds the lock that serializes refreshes of one route.

        The lock is dropped once no request holds or waits on it.
        """
        with self._lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
