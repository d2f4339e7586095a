"""Shared fakes for the comparison tests."""
import threading

import pytest

from api_adapters import ApiAdapter
from api_structures import Quote
from comp_aggregator import CompAggregator
from quote_cache import QuoteCache


class FakeClock:
    """A settable clock (Unix seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeAdapter(ApiAdapter):
    """Returns a canned Quote (or raises a canned error) and records calls."""

    def __init__(self, name: str, result=None, delay: float = 0.0):
        super().__init__()
        self.name = name
        self.result = result if result is not None else Quote.empty()
        self.delay = delay
        self.calls = []
        self._calls_lock = threading.Lock()

    def quote(self, pickup, dest):
        with self._calls_lock:
            self.calls.append((pickup, dest))
        if self.delay:
            threading.Event().wait(self.delay)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def uber():
    return FakeAdapter("Uber", Quote(price_range="$12 - $15", duration="4 mins"))


@pytest.fixture
def lyft():
    return FakeAdapter("Lyft", Quote(price_range="$11.50 - $14.00", duration="3 mins"))


@pytest.fixture
def transit():
    return FakeAdapter("Google Transit", Quote(price_range="$2.40", duration="27 mins (trip)"))


@pytest.fixture
def cache():
    return QuoteCache(ttl_sec=30)


@pytest.fixture
def aggregator(uber, lyft, transit, cache, clock):
    return CompAggregator(uber=uber, lyft=lyft, transit=transit, cache=cache, clock=clock)
