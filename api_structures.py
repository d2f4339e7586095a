# Defines the standardized, internal data structures for the application.

from dataclasses import dataclass


@dataclass
class RouteRequest:
    """The four raw coordinate strings of a comparison request."""
    pickup_lat: str
    pickup_lon: str
    dest_lat: str
    dest_lon: str

    @classmethod
    def from_payload(cls, payload: dict) -> "RouteRequest":
        """Builds a request from the decoded JSON body (camelCase wire names)."""
        return cls(
            pickup_lat=str(payload.get('pickupLat', '')),
            pickup_lon=str(payload.get('pickupLon', '')),
            dest_lat=str(payload.get('destLat', '')),
            dest_lon=str(payload.get('destLon', '')),
        )


@dataclass
class Coordinates:
    """A standardized representation of geographic coordinates."""
    lat: float
    lon: float


@dataclass
class Quote:
    """One provider's price range and duration. Empty strings mean unavailable."""
    price_range: str
    duration: str

    @classmethod
    def empty(cls) -> "Quote":
        return cls(price_range='', duration='')


@dataclass(frozen=True)
class CompositeQuote:
    """The merged comparison record that is cached and returned to callers."""
    timestamp: float
    price_uber: str = ''
    time_uber: str = ''
    price_lyft: str = ''
    time_lyft: str = ''
    price_transit: str = ''
    time_transit: str = ''

    def to_dict(self) -> dict:
        # Wire names are kept stable for existing clients.
        return {
            'Timestamp': int(self.timestamp),
            'PriceUber': self.price_uber,
            'TimeUber': self.time_uber,
            'PriceLyft': self.price_lyft,
            'TimeLyft': self.time_lyft,
            'PriceMBTA': self.price_transit,
            'TimeMBTA': self.time_transit,
        }
