# Contains the adapter classes for communicating with the ride-hail and transit APIs.

import logging
import os
import threading
import time
from abc import ABC, abstractmethod

import requests
from dotenv import load_dotenv
from oauthlib.oauth2 import BackendApplicationClient
from oauthlib.oauth2.rfc6749.errors import OAuth2Error, TokenExpiredError
from requests_oauthlib import OAuth2Session

from api_errors import UpstreamError
from api_structures import Coordinates, Quote

logger = logging.getLogger(__name__)

# --- API Configuration ---
# Keys are read from environment variables for security.
load_dotenv()
UBER_SERVER_TOKEN = os.getenv("UBER_SERVER_TOKEN")
LYFT_CLIENT_ID = os.getenv("LYFT_CLIENT_ID")
LYFT_CLIENT_SECRET = os.getenv("LYFT_CLIENT_SECRET")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
HTTP_TIMEOUT_SEC = 10.0


# --- Formatting ---

def format_price(low, high, cents: bool = False) -> str:
    """
    Renders a price range as "$low - $high", or "$low" when both ends match.
    Cent amounts are shown with two decimals, whole-currency amounts as integers.
    """
    if cents:
        low_str = f"{low / 100:.2f}"
        high_str = f"{high / 100:.2f}"
    else:
        low_str = str(int(low))
        high_str = str(int(high))
    if low_str == high_str:
        return f"${low_str}"
    return f"${low_str} - ${high_str}"


def format_duration(seconds) -> str:
    """Converts an estimate in seconds into 'N mins' (whole minutes, truncated)."""
    return f"{int(seconds) // 60} mins"


def format_transit_duration(seconds) -> str:
    """Converts the seconds until arrival into 'N mins (trip)'."""
    return f"{int(seconds / 60)} mins (trip)"


class ApiAdapter(ABC):
    """
    Abstract Base Class (blueprint) for all provider clients.
    Every adapter presents a single combined Quote or raises UpstreamError.
    """
    name = "provider"

    def __init__(self, timeout: float = HTTP_TIMEOUT_SEC):
        self.timeout = timeout
        self._session = None
        self._session_lock = threading.Lock()

    @abstractmethod
    def quote(self, pickup: Coordinates, dest: Coordinates) -> Quote:
        """Returns the price range and duration for a trip."""
        pass

    @property
    def session(self) -> requests.Session:
        """The shared HTTP client, created on first use and reused afterwards."""
        if self._session is None:
            with self._session_lock:
                if self._session is None:
                    logger.debug(f"[{self.name}] Creating HTTP session")
                    self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        return requests.Session()

    def _send(self, url: str, params: dict) -> requests.Response:
        return self.session.get(url, params=params, timeout=self.timeout)

    def _get_json(self, url: str, params: dict) -> dict:
        logger.debug(f"[{self.name}] GET {url} {params}")
        try:
            response = self._send(url, params)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise UpstreamError(self.name, e) from e
        except ValueError as e:
            raise UpstreamError(self.name, f"Invalid JSON from {url}: {e}") from e


class UberAdapter(ApiAdapter):
    """The adapter for the Uber estimates API."""
    name = "Uber"
    PRICE_URL = "https://api.uber.com/v1.2/estimates/price"
    TIME_URL = "https://api.uber.com/v1.2/estimates/time"

    def __init__(self, server_token: str | None = None, timeout: float = HTTP_TIMEOUT_SEC):
        super().__init__(timeout)
        self.server_token = server_token or UBER_SERVER_TOKEN
        if not self.server_token:
            raise ValueError(
                "FATAL ERROR: The UBER_SERVER_TOKEN environment variable is not set.")

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            'Authorization': f"Token {self.server_token}",
            'Accept-Language': 'en_US',
        })
        return session

    def quote(self, pickup: Coordinates, dest: Coordinates) -> Quote:
        data = self._get_json(self.PRICE_URL, {
            'start_latitude': pickup.lat,
            'start_longitude': pickup.lon,
            'end_latitude': dest.lat,
            'end_longitude': dest.lon,
        })
        try:
            prices = data['prices']
            if not prices:
                # No products on this route; the time lookup is skipped.
                logger.info("[Uber] No price estimates returned")
                return Quote.empty()
            # Metered products (e.g. TAXI) report null estimates.
            priced = [p for p in prices
                      if p.get('low_estimate') is not None and p.get('high_estimate') is not None]
            price_range = ''
            if priced:
                price_range = format_price(priced[0]['low_estimate'], priced[0]['high_estimate'])
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamError(self.name, f"Unexpected price response: {e!r}") from e
        logger.info("[Uber] Processing cost data")

        data = self._get_json(self.TIME_URL, {
            'start_latitude': pickup.lat,
            'start_longitude': pickup.lon,
        })
        try:
            times = data['times']
            duration = format_duration(times[0]['estimate']) if times else ''
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamError(self.name, f"Unexpected time response: {e!r}") from e
        logger.info("[Uber] Processing time data")
        return Quote(price_range=price_range, duration=duration)


class LyftAdapter(ApiAdapter):
    """The adapter for the Lyft public API (OAuth client credentials)."""
    name = "Lyft"
    TOKEN_URL = "https://api.lyft.com/oauth/token"
    COST_URL = "https://api.lyft.com/v1/cost"
    ETA_URL = "https://api.lyft.com/v1/eta"
    RIDE_TYPE = "lyft"

    def __init__(self, client_id: str | None = None, client_secret: str | None = None,
                 timeout: float = HTTP_TIMEOUT_SEC):
        super().__init__(timeout)
        self.client_id = client_id or LYFT_CLIENT_ID
        self.client_secret = client_secret or LYFT_CLIENT_SECRET
        if not self.client_id or not self.client_secret:
            raise ValueError(
                "FATAL ERROR: The LYFT_CLIENT_ID and LYFT_CLIENT_SECRET environment variables must be set.")
        self._token_lock = threading.Lock()

    def _create_session(self) -> OAuth2Session:
        session = OAuth2Session(
            client=BackendApplicationClient(client_id=self.client_id, scope=['public']))
        self._fetch_token(session)
        return session

    def _fetch_token(self, session: OAuth2Session) -> None:
        logger.debug("[Lyft] Fetching access token")
        try:
            session.fetch_token(
                token_url=self.TOKEN_URL,
                client_id=self.client_id,
                client_secret=self.client_secret,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamError(self.name, f"Token request failed: {e}") from e
        except (OAuth2Error, ValueError) as e:
            raise UpstreamError(self.name, f"Unexpected token response: {e!r}") from e

    def _send(self, url: str, params: dict) -> requests.Response:
        # Client-credential tokens carry no refresh token: fetch a new one
        # when the old one expires or is rejected, then retry once.
        session = self.session
        try:
            response = session.get(url, params=params, timeout=self.timeout)
        except TokenExpiredError:
            logger.info("[Lyft] Access token expired")
        else:
            if response.status_code != 401:
                return response
            logger.info("[Lyft] Access token rejected")
        with self._token_lock:
            self._fetch_token(session)
        return session.get(url, params=params, timeout=self.timeout)

    def quote(self, pickup: Coordinates, dest: Coordinates) -> Quote:
        price_range = ''
        data = self._get_json(self.COST_URL, {
            'start_lat': pickup.lat,
            'start_lng': pickup.lon,
            'end_lat': dest.lat,
            'end_lng': dest.lon,
            'ride_type': self.RIDE_TYPE,
        })
        try:
            estimates = data['cost_estimates']
            if estimates:
                logger.info("[Lyft] Processing cost data")
                price_range = format_price(
                    estimates[0]['estimated_cost_cents_min'],
                    estimates[0]['estimated_cost_cents_max'],
                    cents=True,
                )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamError(self.name, f"Unexpected cost response: {e!r}") from e

        duration = ''
        data = self._get_json(self.ETA_URL, {
            'lat': pickup.lat,
            'lng': pickup.lon,
        })
        try:
            etas = data['eta_estimates']
            if etas:
                logger.info("[Lyft] Processing time data")
                duration = format_duration(etas[0]['eta_seconds'])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamError(self.name, f"Unexpected ETA response: {e!r}") from e
        return Quote(price_range=price_range, duration=duration)


class GoogleTransitAdapter(ApiAdapter):
    """The adapter for the Google Maps Directions API in transit mode."""
    name = "Google Transit"
    DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"

    def __init__(self, api_key: str | None = None, timeout: float = HTTP_TIMEOUT_SEC,
                 clock=time.time):
        super().__init__(timeout)
        self.api_key = api_key or GOOGLE_API_KEY
        self.clock = clock
        if not self.api_key:
            raise ValueError(
                "FATAL ERROR: The GOOGLE_API_KEY environment variable is not set.")

    def quote(self, pickup: Coordinates, dest: Coordinates) -> Quote:
        data = self._get_json(self.DIRECTIONS_URL, {
            'origin': f"{pickup.lat}, {pickup.lon}",
            'destination': f"{dest.lat}, {dest.lon}",
            'mode': 'transit',
            'key': self.api_key,
        })
        status = data.get('status')
        if status == 'ZERO_RESULTS':
            logger.info("[Google Transit] No transit routes found")
            return Quote.empty()
        if status != 'OK':
            raise UpstreamError(
                self.name, f"Status {status}: {data.get('error_message', 'no details')}")

        try:
            routes = data.get('routes') or []
            logger.debug(f"[Google Transit] Found {len(routes)} transit routes")
            if not routes:
                return Quote.empty()
            chosen_route = routes[0]
            legs = chosen_route.get('legs') or []
            logger.debug(f"[Google Transit] Found {len(legs)} route legs")
            if not legs:
                return Quote.empty()

            price_range = ''
            fare = chosen_route.get('fare')
            if fare and 'value' in fare:
                price_range = f"${float(fare['value']):.2f}"

            duration = ''
            arrival = legs[-1].get('arrival_time')
            if arrival:
                travel_seconds = arrival['value'] - self.clock()
                logger.debug(f"[Google Transit] Last leg arrives in {travel_seconds:.0f} sec")
                duration = format_transit_duration(travel_seconds)
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(self.name, f"Unexpected directions response: {e!r}") from e
        logger.info("[Google Transit] Processing transit time data")
        return Quote(price_range=price_range, duration=duration)
