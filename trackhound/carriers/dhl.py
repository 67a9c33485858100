"""
DHL carrier - Shipment Tracking Unified API

Timestamps come without a zone; the zone is taken from the geocoded scan
location. Events that carry no address reuse the previous one, starting from
the shipment origin.
"""

import logging
from typing import Any, Dict, List, Optional

from ..formats import DHL
from ..models import Address, TrackOptions, TrackResult
from ..timezones import DEFAULT_TIMEZONE, parse_instant
from .base import BaseCarrierClient, BaseNormalizer, Scan

logger = logging.getLogger(__name__)


class DHLClient(BaseCarrierClient):
    """DHL unified tracking client (DHL-API-Key header)."""

    provider = "DHL"
    DEFAULT_BASE_URL = "https://api-eu.dhl.com"

    async def fetch(self, tracking_number: str) -> Any:
        return await self._request_json(
            "GET",
            f"{self.base_url}/track/shipments",
            headers={"DHL-API-Key": self.credentials.get("api_key", "")},
            params={"trackingNumber": tracking_number},
            not_found=(404,),
        )


def _location_string(address: Dict[str, Any]) -> str:
    parts = [address.get("addressLocality"), address.get("postalCode"), address.get("countryCode")]
    return " ".join(str(part) for part in parts if part).strip()


class DHLNormalizer(BaseNormalizer):
    carrier_name = "DHL"
    carrier_tag = DHL
    DELIVERED_CODES = frozenset({"DELIVERED"})
    SHIPPED_CODES = frozenset({
        "ARRIVAL DESTINATION DHL ECOMMERCE FACILITY",
        "DEPARTURE ORIGIN DHL ECOMMERCE FACILITY",
        "ARRIVED USPS SORT FACILITY",
        "ARRIVAL AT POST OFFICE",
        "OUT FOR DELIVERY",
        "PACKAGE RECEIVED AT DHL ECOMMERCE DISTRIBUTION CENTER",
        "PROCESSED THROUGH SORT FACILITY",
        "TENDERED TO DELIVERY SERVICE PROVIDER",
    })

    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        result = self.new_result(tracking_number, raw)

        shipment = self._shipment(raw)
        if shipment is None:
            return result

        # Newest-first upstream; walk oldest-first so addresses carry forward
        events = list(reversed(shipment.get("events") or []))

        previous: Dict[str, Any] = ((shipment.get("origin") or {}).get("address")) or {}
        addresses: List[Dict[str, Any]] = []
        for event in events:
            address = ((event.get("location") or {}).get("address")) or previous
            addresses.append(address)
            previous = address

        locations = [_location_string(address) for address in addresses]
        localities = await self.localities(locations)

        scans: List[Scan] = []
        for event, address, location in zip(events, addresses, locations):
            locality = localities.get(location)
            zone = (locality.timezone if locality else None) or DEFAULT_TIMEZONE
            description = event.get("description")

            scans.append(Scan(
                timestamp=parse_instant(event["timestamp"], zone),
                code=description.strip().upper() if description else None,
                description=description,
                details=event.get("remark"),
                address=Address(
                    city=locality.city if locality else None,
                    state=locality.state if locality else None,
                    zip=address.get("postalCode"),
                    country=address.get("countryCode"),
                ),
            ))

        return self.assemble(result, scans, options)

    @staticmethod
    def _shipment(raw: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(raw, dict):
            return None
        shipments = raw.get("shipments") or []
        return shipments[0] if shipments else None
