# Builds the ride-hail/transit comparison for a route, using the quote cache.

import logging
import math
import time

from api_adapters import ApiAdapter
from api_errors import InvalidInputError, UpstreamError
from api_structures import CompositeQuote, Coordinates, RouteRequest
from quote_cache import QuoteCache
from route_keys import derive_key

logger = logging.getLogger(__name__)


def parse_coordinate(field: str, value: str) -> float:
    """Parses one coordinate string, rejecting anything that is not a finite number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(field, value) from None
    if not math.isfinite(number):
        raise InvalidInputError(field, value)
    return number


class CompAggregator:
    """
    Answers comparison requests from the cache or by asking every provider.

    Providers are called one after another (Uber, Lyft, transit). The first
    UpstreamError aborts the request: no partial comparison is returned and
    nothing is cached. Concurrent misses for the same route are serialized
    on a per-route lock, so only one of them calls the providers; the others
    find the fresh entry once the lock is released.
    """

    def __init__(self, uber: ApiAdapter, lyft: ApiAdapter, transit: ApiAdapter,
                 cache: QuoteCache, clock=time.time):
        self.uber = uber
        self.lyft = lyft
        self.transit = transit
        self.cache = cache
        self.clock = clock

    def handle(self, request: RouteRequest) -> CompositeQuote:
        key = derive_key(request.pickup_lat, request.pickup_lon,
                         request.dest_lat, request.dest_lon)

        cached = self._fresh_entry(key, log_miss=True)
        if cached is not None:
            return cached

        pickup, dest = self._validate(request)

        with self.cache.key_lock(key):
            # Another request may have refreshed the route while we waited.
            cached = self._fresh_entry(key, log_miss=False)
            if cached is not None:
                return cached

            logger.debug(
                f"Handling comp from ({request.pickup_lat}, {request.pickup_lon}) "
                f"to ({request.dest_lat}, {request.dest_lon})")
            composite = self._fan_out(pickup, dest)
            self.cache.store(key, composite)
            logger.info("Stored response in cache")
            return composite

    def _fresh_entry(self, key: str, log_miss: bool) -> CompositeQuote | None:
        cached, found = self.cache.lookup(key)
        if not found:
            if log_miss:
                logger.info("Missed cache")
            return None
        now = self.clock()
        if self.cache.is_fresh(cached, now):
            logger.info("Sending cached response to client")
            return cached
        if log_miss:
            logger.info(f"Cache is too old ({now - cached.timestamp:.1f} sec ago)")
        return None

    def _validate(self, request: RouteRequest) -> tuple[Coordinates, Coordinates]:
        try:
            pickup = Coordinates(
                lat=parse_coordinate('pickupLat', request.pickup_lat),
                lon=parse_coordinate('pickupLon', request.pickup_lon))
            dest = Coordinates(
                lat=parse_coordinate('destLat', request.dest_lat),
                lon=parse_coordinate('destLon', request.dest_lon))
        except InvalidInputError as e:
            logger.error(f"Rejected request: {e}")
            raise
        return pickup, dest

    def _fan_out(self, pickup: Coordinates, dest: Coordinates) -> CompositeQuote:
        try:
            uber = self.uber.quote(pickup, dest)
            lyft = self.lyft.quote(pickup, dest)
            transit = self.transit.quote(pickup, dest)
        except UpstreamError as e:
            logger.error(f"Provider {e.provider} failed: {e.cause}")
            raise

        return CompositeQuote(
            timestamp=self.clock(),
            price_uber=uber.price_range,
            time_uber=uber.duration,
            price_lyft=lyft.price_range,
            time_lyft=lyft.duration,
            price_transit=transit.price_range,
            time_transit=transit.duration,
        )
