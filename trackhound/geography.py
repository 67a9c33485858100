"""
Locality resolution - turn a free-form carrier location into city, state and timezone

Carriers that report local wall-clock times without a zone (USPS, DHL,
Pitney Bowes) need the timezone of the scan location. The geocoder also fills
in a canonical city and a two-letter state.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, runtime_checkable

import httpx

from .errors import AuthenticationError, TransportError
from .models import Address
from .transport import request_json

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
TIMEZONE_URL = "https://maps.googleapis.com/maps/api/timezone/json"

DEFAULT_CONCURRENCY = 10
DEFAULT_CACHE_SIZE = 1024

US_STATES: Mapping[str, str] = MappingProxyType({
    "alabama": "AL", "alaska": "AK", "american samoa": "AS", "arizona": "AZ",
    "arkansas": "AR", "california": "CA", "colorado": "CO", "connecticut": "CT",
    "delaware": "DE", "district of columbia": "DC", "florida": "FL",
    "georgia": "GA", "guam": "GU", "hawaii": "HI", "idaho": "ID",
    "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN",
    "mississippi": "MS", "missouri": "MO", "montana": "MT", "nebraska": "NE",
    "nevada": "NV", "new hampshire": "NH", "new jersey": "NJ",
    "new mexico": "NM", "new york": "NY", "north carolina": "NC",
    "north dakota": "ND", "northern mariana islands": "MP", "ohio": "OH",
    "oklahoma": "OK", "oregon": "OR", "pennsylvania": "PA",
    "puerto rico": "PR", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT",
    "vermont": "VT", "virgin islands": "VI", "virginia": "VA",
    "washington": "WA", "west virginia": "WV", "wisconsin": "WI",
    "wyoming": "WY",
})

_STATE_CODES = frozenset(US_STATES.values())


def normalize_state(state: Optional[str]) -> Optional[str]:
    """Return the USPS two-letter code for a state name or code; other values pass through."""
    if not state:
        return None
    value = state.strip()
    if value.upper() in _STATE_CODES:
        return value.upper()
    return US_STATES.get(value.lower(), value)


def address_to_string(address: Address) -> str:
    """Render an address as "City, ST 12345, US", skipping missing parts."""
    value = ""

    if address.city:
        value += address.city.strip()

    if address.state:
        if value:
            value += ","
        value += f" {address.state.strip()}"

    if address.zip:
        value += f" {address.zip.strip()}"

    if address.country:
        if value:
            value += ","
        value += f" {address.country.strip()}"

    return value.strip()


@dataclass(frozen=True)
class Locality:
    city: Optional[str]
    state: Optional[str]
    timezone: Optional[str]


@runtime_checkable
class LocalityResolver(Protocol):
    """
    Resolve a free-form location ("Chicago IL 60601 US") into a Locality.

    Returns None when the location cannot be found. May raise
    TransportError; callers go through ``resolve_localities`` which
    contains the failure.
    """

    async def resolve(self, location: str) -> Optional[Locality]:
        ...


class NullLocalityResolver:
    """Resolver used when no geocoder is configured: nothing is ever found."""

    async def resolve(self, location: str) -> Optional[Locality]:
        return None


class GoogleGeocoder:
    """
    Google Geocoding + Time Zone API client.

    Flow:
    1. Forward geocode the location
    2. Reverse geocode the coordinates if city, state or zip is missing
    3. Look up the IANA timezone of the coordinates
    """

    provider = "Google Geocoder"

    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport
        self.cache_size = cache_size
        # LRU: least recently used location first
        self._cache: "OrderedDict[str, Optional[Locality]]" = OrderedDict()

    async def resolve(self, location: str) -> Optional[Locality]:
        if location in self._cache:
            self._cache.move_to_end(location)
            return self._cache[location]

        locality = await self._resolve(location)
        self._cache[location] = locality
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return locality

    async def _resolve(self, location: str) -> Optional[Locality]:
        results = await self._geocode({"address": location, "region": "us"})
        if not results:
            return None

        place = self._parse_result(results[0])
        if not (place["city"] and place["state"] and place["zip"]):
            reverse = await self._geocode({"latlng": f"{place['lat']},{place['lng']}"})
            if reverse:
                place = self._parse_result(reverse[0])

        timezone = await self._timezone(place["lat"], place["lng"])

        return Locality(
            city=place["city"],
            state=normalize_state(place["state"]),
            timezone=timezone,
        )

    async def _geocode(self, params: Dict[str, Any]) -> list:
        data = await request_json(
            "GET",
            GEOCODE_URL,
            provider=self.provider,
            params={**params, "key": self.api_key, "language": "en"},
            timeout=self.timeout,
            transport=self.transport,
        )
        self._check_status(data)
        return data.get("results") or []

    async def _timezone(self, lat: float, lng: float) -> Optional[str]:
        data = await request_json(
            "GET",
            TIMEZONE_URL,
            provider=self.provider,
            params={
                "location": f"{lat},{lng}",
                "timestamp": int(time.time()),
                "key": self.api_key,
            },
            timeout=self.timeout,
            transport=self.transport,
        )
        self._check_status(data)
        return data.get("timeZoneId")

    def _check_status(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise TransportError("Malformed geocoder response", provider=self.provider)

        status = data.get("status")
        if status in ("OK", "ZERO_RESULTS"):
            return
        if status == "REQUEST_DENIED":
            raise AuthenticationError(
                f"Geocoder request denied: {data.get('error_message', '')}",
                provider=self.provider,
            )
        raise TransportError(f"Geocoder error: {status}", provider=self.provider)

    @staticmethod
    def _parse_result(result: Dict[str, Any]) -> Dict[str, Any]:
        components: Dict[str, str] = {}
        for component in result.get("address_components", []):
            for kind in component.get("types", []):
                components.setdefault(kind, component.get("short_name") or component.get("long_name"))

        location = result.get("geometry", {}).get("location", {})
        return {
            "city": components.get("locality") or components.get("postal_town") or components.get("sublocality"),
            "state": components.get("administrative_area_level_1"),
            "zip": components.get("postal_code"),
            "lat": location.get("lat"),
            "lng": location.get("lng"),
        }


async def resolve_localities(
    resolver: LocalityResolver,
    locations: Iterable[Optional[str]],
    limit: int = DEFAULT_CONCURRENCY,
) -> Dict[str, Optional[Locality]]:
    """
    Resolve distinct non-empty locations concurrently.

    At most ``limit`` lookups run at once. A failed lookup is logged and maps
    to None; it never cancels the others.
    """
    distinct = list(dict.fromkeys(location for location in locations if location))
    if not distinct:
        return {}

    semaphore = asyncio.Semaphore(limit)

    async def resolve_one(location: str) -> Optional[Locality]:
        async with semaphore:
            return await resolver.resolve(location)

    results = await asyncio.gather(
        *[resolve_one(location) for location in distinct],
        return_exceptions=True,
    )

    localities: Dict[str, Optional[Locality]] = {}
    for location, result in zip(distinct, results):
        if isinstance(result, Exception):
            logger.warning(f"Locality lookup failed for {location!r}: {result}")
            localities[location] = None
        else:
            localities[location] = result
    return localities
