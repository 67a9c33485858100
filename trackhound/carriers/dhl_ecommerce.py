"""
DHL eCommerce Solutions carrier - Tracking API v4 with OAuth client credentials
"""

import logging
from typing import Any, Dict, List, Optional

from ..credentials import IssuedToken
from ..formats import DHL_ECOMMERCE
from ..geography import address_to_string
from ..models import Address, TrackOptions, TrackResult
from ..timezones import parse_instant, resolve_timezone
from .base import BaseNormalizer, OAuthCarrierClient, Scan

logger = logging.getLogger(__name__)


class DHLEcommerceClient(OAuthCarrierClient):
    """DHL eCommerce Solutions v4 client."""

    provider = "DHL eCommerce Solutions"
    DEFAULT_BASE_URL = "https://api.dhlecs.com"

    async def exchange_token(self) -> IssuedToken:
        return await self._client_credentials_token(
            f"{self.base_url}/auth/v4/accesstoken",
            basic_auth=True,
        )

    async def fetch(self, tracking_number: str) -> Any:
        return await self._authorized_json(
            "GET",
            f"{self.base_url}/tracking/v4/package/open",
            params={"trackingId": tracking_number},
            not_found=(404,),
        )


def _parse_location(event: Dict[str, Any]) -> Optional[Address]:
    """Best-effort split of "City, ST[, Country]"; None when the event has no location of its own."""
    location = str(event.get("location") or "").strip()
    if not location or str(event.get("postalCode")) == "0":
        return None

    tokens = [token.strip() for token in location.split(",")]
    return Address(
        city=tokens[0] or None,
        state=(tokens[1] or None) if len(tokens) > 1 else None,
        zip=event.get("postalCode"),
        country=event.get("country") or ((tokens[2] or None) if len(tokens) > 2 else None),
    )


class DHLEcommerceNormalizer(BaseNormalizer):
    carrier_name = "DHL eCommerce Solutions"
    carrier_tag = DHL_ECOMMERCE
    DELIVERED_CODES = frozenset({"600", "607"})
    SHIPPED_CODES = frozenset({"520", "526", "540", "580", "598"})

    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        result = self.new_result(tracking_number, raw)

        package = self._package(raw)
        if package is None:
            return result

        # Newest-first upstream; walk oldest-first so addresses carry forward
        events = list(reversed(package.get("events") or []))

        pickup = (package.get("pickupDetail") or {}).get("pickupAddress") or {}
        previous = Address(
            city=pickup.get("city"),
            state=pickup.get("state"),
            zip=pickup.get("postalCode"),
            country=pickup.get("country"),
        )

        addresses: List[Address] = []
        locations: List[str] = []
        for event in events:
            address = _parse_location(event)
            if address is None:
                address = previous
                locations.append(address_to_string(address))
            else:
                locations.append(str(event["location"]).strip())
                previous = address
            addresses.append(address)

        localities = await self.localities(locations)

        scans: List[Scan] = []
        for event, address, location in zip(events, addresses, locations):
            locality = localities.get(location)
            zone = resolve_timezone(event.get("timeZone"))
            event_id = event.get("primaryEventId")

            scans.append(Scan(
                timestamp=parse_instant(f"{event['date']}T{event['time']}", zone),
                code=str(event_id) if event_id is not None else None,
                description=event.get("primaryEventDescription"),
                details=event.get("secondaryEventDescription"),
                address=Address(
                    city=(locality.city if locality else None) or address.city,
                    state=(locality.state if locality else None) or address.state,
                    zip=address.zip,
                    country=address.country,
                ),
            ))

        return self.assemble(result, scans, options)

    def is_sufficient(self, result: TrackResult) -> bool:
        # DHL eCommerce often knows a package only as "label created" while
        # the DHL network already has scans for it
        if self._package(result.raw) is None or not result.events:
            return False
        if len(result.events) == 1 and result.shipped_at is None and result.delivered_at is None:
            return False
        return True

    @staticmethod
    def _package(raw: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(raw, dict):
            return None
        packages = raw.get("packages") or []
        return packages[0] if packages else None
