"""
UPS carrier - Track API v1 with OAuth client credentials
"""

import logging
import uuid
from typing import Any, Dict, List

from ..credentials import IssuedToken
from ..formats import UPS
from ..models import Address, TrackOptions, TrackResult
from ..timezones import localize, parse_instant
from .base import BaseNormalizer, OAuthCarrierClient, Scan

logger = logging.getLogger(__name__)


class UPSClient(OAuthCarrierClient):
    """UPS Track API client."""

    provider = "UPS"
    DEFAULT_BASE_URL = "https://onlinetools.ups.com"

    async def exchange_token(self) -> IssuedToken:
        return await self._client_credentials_token(
            f"{self.base_url}/security/v1/oauth/token",
            basic_auth=True,
        )

    async def fetch(self, tracking_number: str) -> Any:
        return await self._authorized_json(
            "GET",
            f"{self.base_url}/api/track/v1/details/{tracking_number}",
            headers={
                "transId": uuid.uuid4().hex,
                "transactionSrc": "trackhound",
            },
            params={"locale": "en_US"},
            not_found=(404,),
        )


def _activity_timestamp(activity: Dict[str, Any]):
    """GMT date + time + offset when present, local date + time otherwise."""
    gmt_date = activity.get("gmtDate")
    gmt_time = activity.get("gmtTime")
    if gmt_date and gmt_time:
        offset = activity.get("gmtOffset") or "+00:00"
        return parse_instant(f"{gmt_date[:4]}-{gmt_date[4:6]}-{gmt_date[6:8]}T{gmt_time}{offset}")

    return localize(f"{activity['date']} {activity['time']}", "%Y%m%d %H%M%S", None)


class UPSNormalizer(BaseNormalizer):
    carrier_name = "UPS"
    carrier_tag = UPS
    DELIVERED_CODES = frozenset({"D"})
    SHIPPED_CODES = frozenset({"I"})

    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        result = self.new_result(tracking_number, raw)

        scans: List[Scan] = []
        for activity in self._activities(raw):
            status = activity.get("status") or {}
            address = (activity.get("location") or {}).get("address") or {}
            scans.append(Scan(
                timestamp=_activity_timestamp(activity),
                code=status.get("type"),
                description=status.get("description"),
                address=Address(
                    city=self.strip_city(address.get("city")),
                    state=address.get("stateProvince") or address.get("state"),
                    zip=address.get("postalCode"),
                    country=address.get("countryCode") or address.get("country"),
                ),
            ))

        return self.assemble(result, scans, options)

    def is_sufficient(self, result: TrackResult) -> bool:
        # UPS answers 200 with no activity, or a lone label scan, for numbers it hands to USPS
        if not result.events:
            return False
        if len(result.events) == 1 and result.shipped_at is None and result.delivered_at is None:
            return False
        return True

    @staticmethod
    def _activities(raw: Any) -> List[Dict[str, Any]]:
        if not isinstance(raw, dict):
            return []
        shipments = (raw.get("trackResponse") or {}).get("shipment") or []
        if not shipments:
            return []
        packages = shipments[0].get("package") or []
        if not packages:
            return []
        return packages[0].get("activity") or []
