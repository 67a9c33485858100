"""
FedEx carrier - Track API v1 with OAuth client credentials
"""

import logging
import re
from typing import Any, Dict, List, Optional

from ..credentials import IssuedToken
from ..errors import TransportError
from ..formats import FEDEX
from ..models import Address, DeliveryWindow, TrackOptions, TrackResult
from ..timezones import parse_instant
from .base import BaseNormalizer, OAuthCarrierClient, Scan

logger = logging.getLogger(__name__)

# Their timestamps are nonsensical, so these events are skipped
IGNORED_EVENT_TYPES = frozenset({"PU", "PX"})


class FedExClient(OAuthCarrierClient):
    """FedEx Track API client."""

    provider = "FedEx"
    DEFAULT_BASE_URL = "https://apis.fedex.com"

    async def exchange_token(self) -> IssuedToken:
        return await self._client_credentials_token(f"{self.base_url}/oauth/token")

    async def fetch(self, tracking_number: str) -> Any:
        body = await self._authorized_json(
            "POST",
            f"{self.base_url}/track/v1/trackingnumbers",
            json_body={
                "includeDetailedScans": True,
                "trackingInfo": [
                    {"trackingNumberInfo": {"trackingNumber": tracking_number}},
                ],
            },
            not_found=(404,),
        )

        alerts = ((body or {}).get("output") or {}).get("alerts") or []
        warnings = [alert for alert in alerts if alert.get("alertType") == "WARNING"]
        if warnings:
            raise TransportError(
                ", ".join(f"{w.get('code')}: {w.get('message')}" for w in warnings),
                provider=self.provider,
            )

        return body


class FedExNormalizer(BaseNormalizer):
    carrier_name = "FedEx"
    carrier_tag = FEDEX
    DELIVERED_CODES = frozenset({"DL"})
    SHIPPED_CODES = frozenset({"AR", "DP", "IT", "OD"})
    # "FEDEX SMARTPOST INDIANAPOLIS" -> "INDIANAPOLIS"
    CITY_DENYLIST = re.compile(r"fedex|smartpost", re.IGNORECASE)

    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        result = self.new_result(tracking_number, raw)

        track_result = self._track_result(raw)
        if track_result is None:
            return result

        error = track_result.get("error") or {}
        if "NOTFOUND" in str(error.get("code", "")).upper():
            logger.info(f"FedEx has no record of {tracking_number}")
            return result

        result.estimated_delivery = self._delivery_window(track_result)

        scans: List[Scan] = []
        for event in track_result.get("scanEvents") or []:
            event_type = event.get("eventType")
            if event_type in IGNORED_EVENT_TYPES:
                continue

            location = event.get("scanLocation") or {}
            scans.append(Scan(
                timestamp=parse_instant(event["date"]),
                code=event_type,
                description=event.get("eventDescription"),
                details=event.get("exceptionDescription"),
                address=Address(
                    city=self.strip_city(location.get("city")),
                    state=location.get("stateOrProvinceCode"),
                    zip=location.get("postalCode"),
                    country=location.get("countryCode"),
                ),
            ))

        return self.assemble(result, scans, options)

    @staticmethod
    def _track_result(raw: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(raw, dict):
            return None
        complete = (raw.get("output") or {}).get("completeTrackResults") or []
        if not complete:
            return None
        results = complete[0].get("trackResults") or []
        return results[0] if results else None

    @staticmethod
    def _delivery_window(track_result: Dict[str, Any]) -> Optional[DeliveryWindow]:
        for key in ("estimatedDeliveryTimeWindow", "standardTransitTimeWindow"):
            window = (track_result.get(key) or {}).get("window") or {}
            begins, ends = window.get("begins"), window.get("ends")
            if begins or ends:
                earliest = parse_instant(begins or ends)
                latest = parse_instant(ends or begins)
                return DeliveryWindow(earliest=earliest, latest=latest)
        return None
