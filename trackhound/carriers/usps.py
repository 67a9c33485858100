"""
USPS carrier - Web Tools TrackV2 (XML)

USPS reports local wall-clock times without a zone, so every scan location is
geocoded for its timezone. The geocoded city/state also replace the raw ones.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from xml.parsers.expat import ExpatError

import xmltodict

from ..errors import AuthenticationError, TransportError
from ..formats import USPS
from ..geography import address_to_string
from ..models import Address, TrackOptions, TrackResult
from ..timezones import DEFAULT_TIMEZONE, localize
from .base import BaseCarrierClient, BaseNormalizer, Scan

logger = logging.getLogger(__name__)

# "could not locate the tracking information for your request"
NOT_FOUND_ERROR = "-2147219302"

DATE_FORMAT = "%B %d, %Y"
DATETIME_FORMAT = "%B %d, %Y %I:%M %p"


class USPSClient(BaseCarrierClient):
    """USPS Web Tools client; returns the TrackV2 response parsed with xmltodict."""

    provider = "USPS"
    DEFAULT_BASE_URL = "http://production.shippingapis.com/ShippingAPI.dll"

    def build_request(self, tracking_number: str) -> str:
        return xmltodict.unparse(
            {
                "TrackFieldRequest": {
                    "@USERID": self.credentials.get("user_id", ""),
                    "Revision": "1",
                    "ClientIp": self.credentials.get("client_ip", "127.0.0.1"),
                    "SourceId": self.credentials.get("source_id", "trackhound"),
                    "TrackID": {"@ID": tracking_number},
                }
            },
            full_document=False,
        )

    async def fetch(self, tracking_number: str) -> Any:
        text = await self._request_text(
            "GET",
            self.base_url,
            params={"API": "TrackV2", "XML": self.build_request(tracking_number)},
        )
        return self.parse(text)

    def parse(self, text: str) -> Dict[str, Any]:
        """
        Parse and validate a TrackV2 response.

        Raises:
            AuthenticationError: top-level <Error> (bad USERID)
            TransportError: malformed XML or a per-item error other than not-found
        """
        try:
            data = xmltodict.parse(text, force_list=("TrackInfo", "TrackDetail"))
        except ExpatError as e:
            raise TransportError(f"USPS returned malformed XML: {e}", provider=self.provider) from e

        if "Error" in data:
            error = data["Error"] or {}
            raise AuthenticationError(
                f"USPS error {error.get('Number')}: {error.get('Description')}",
                provider=self.provider,
            )

        infos = (data.get("TrackResponse") or {}).get("TrackInfo") or []
        if not infos:
            raise TransportError("USPS response has no TrackInfo", provider=self.provider)

        error = infos[0].get("Error")
        if error and error.get("Number") != NOT_FOUND_ERROR:
            raise TransportError(
                f"USPS error {error.get('Number')}: {error.get('Description')}",
                provider=self.provider,
            )

        return data


def _event_timestamp(detail: Dict[str, Any], zone: str) -> datetime:
    date = (detail.get("EventDate") or "").strip()
    time = (detail.get("EventTime") or "").strip()
    if time:
        return localize(f"{date} {time}", DATETIME_FORMAT, zone)
    return localize(date, DATE_FORMAT, zone)


class USPSNormalizer(BaseNormalizer):
    carrier_name = "USPS"
    carrier_tag = USPS
    DELIVERED_CODES = frozenset({"01"})
    SHIPPED_CODES = frozenset({"80", "81", "82", "OF"})
    CITY_DENYLIST = re.compile(r"distribution center", re.IGNORECASE)

    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        result = self.new_result(tracking_number, raw)
        info = self._track_info(raw)
        if info is None or info.get("Error"):
            return result

        details: List[Dict[str, Any]] = []
        if info.get("TrackSummary"):
            details.append(info["TrackSummary"])
        details.extend(info.get("TrackDetail") or [])

        addresses = [
            Address(
                city=self.strip_city(detail.get("EventCity")),
                state=detail.get("EventState"),
                zip=detail.get("EventZIPCode"),
                country=detail.get("EventCountry"),
            )
            for detail in details
        ]
        locations = [address_to_string(address) for address in addresses]
        localities = await self.localities(locations)

        scans: List[Scan] = []
        for detail, address, location in zip(details, addresses, locations):
            locality = localities.get(location)
            zone = DEFAULT_TIMEZONE
            if locality is not None:
                zone = locality.timezone or DEFAULT_TIMEZONE
                address.city = locality.city or address.city
                address.state = locality.state or address.state

            scans.append(Scan(
                timestamp=_event_timestamp(detail, zone),
                code=detail.get("EventCode"),
                description=detail.get("Event"),
                address=address,
            ))

        self.assemble(result, scans, options)
        if result.events:
            result.events[-1].details = info.get("StatusSummary")
        return result

    @staticmethod
    def _track_info(raw: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(raw, dict):
            return None
        infos = (raw.get("TrackResponse") or {}).get("TrackInfo") or []
        return infos[0] if infos else None
