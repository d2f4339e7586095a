"""Tests for route key derivation and the quote cache."""
import threading

from api_structures import CompositeQuote
from quote_cache import QuoteCache
from route_keys import derive_key


def test_derive_key_is_deterministic():
    first = derive_key("42.3601", "-71.0589", "42.3736", "-71.1097")
    second = derive_key("42.3601", "-71.0589", "42.3736", "-71.1097")
    assert first == second
    assert len(first) == 64
    int(first, 16)


def test_derive_key_depends_on_order_and_formatting():
    base = derive_key("42.3601", "-71.0589", "42.3736", "-71.1097")
    assert derive_key("42.3736", "-71.1097", "42.3601", "-71.0589") != base
    assert derive_key("42.36010", "-71.0589", "42.3736", "-71.1097") != base
    assert derive_key("42.0", "1", "2", "3") != derive_key("42", "1", "2", "3")


def test_derive_key_accepts_unparseable_strings():
    assert len(derive_key("north", "", "x", "y")) == 64


def test_lookup_miss():
    cache = QuoteCache()
    quote, found = cache.lookup("missing")
    assert quote is None
    assert found is False


def test_store_then_lookup():
    cache = QuoteCache()
    quote = CompositeQuote(timestamp=100.0, price_uber="$5")
    cache.store("k", quote)
    assert cache.lookup("k") == (quote, True)
    assert len(cache) == 1


def test_store_overwrites_existing_entry():
    cache = QuoteCache()
    cache.store("k", CompositeQuote(timestamp=100.0, price_uber="$5"))
    newer = CompositeQuote(timestamp=200.0, price_uber="$6")
    cache.store("k", newer)
    assert cache.lookup("k") == (newer, True)
    assert len(cache) == 1


def test_freshness_boundary():
    cache = QuoteCache(ttl_sec=30)
    quote = CompositeQuote(timestamp=1000.0)
    assert cache.is_fresh(quote, now=1029.0)
    assert cache.is_fresh(quote, now=1030.0)
    assert not cache.is_fresh(quote, now=1031.0)


def test_freshness_with_explicit_ttl():
    cache = QuoteCache(ttl_sec=30)
    quote = CompositeQuote(timestamp=1000.0)
    assert not cache.is_fresh(quote, now=1006.0, ttl=5)


def test_stale_entries_are_kept():
    cache = QuoteCache(ttl_sec=30)
    quote = CompositeQuote(timestamp=1000.0)
    cache.store("k", quote)
    assert not cache.is_fresh(quote, now=5000.0)
    assert cache.lookup("k") == (quote, True)


def test_key_lock_is_released_after_use():
    cache = QuoteCache()
    with cache.key_lock("a"):
        assert list(cache._key_locks) == ["a"]
    assert cache._key_locks == {}


def test_key_lock_is_released_after_error():
    cache = QuoteCache()
    try:
        with cache.key_lock("a"):
            raise RuntimeError("fan-out failed")
    except RuntimeError:
        pass
    assert cache._key_locks == {}


def test_key_lock_serializes_one_route():
    cache = QuoteCache()
    entered = threading.Event()
    release = threading.Event()
    order = []

    def holder():
        with cache.key_lock("a"):
            entered.set()
            release.wait(1)
            order.append("holder")

    def waiter():
        with cache.key_lock("a"):
            order.append("waiter")

    first = threading.Thread(target=holder)
    first.start()
    entered.wait(1)
    second = threading.Thread(target=waiter)
    second.start()
    with cache.key_lock("b"):
        pass
    release.set()
    first.join()
    second.join()
    assert order == ["holder", "waiter"]
    assert cache._key_locks == {}


def test_concurrent_stores_keep_every_key():
    cache = QuoteCache()

    def worker(n):
        for i in range(50):
            cache.store(f"{n}-{i}", CompositeQuote(timestamp=float(i)))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(cache) == 400
