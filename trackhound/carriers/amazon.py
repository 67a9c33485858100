"""
Amazon Logistics carrier - public tracker API, no credentials
"""

import json
import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from ..errors import TransportError
from ..formats import AMAZON
from ..models import Address, DeliveryWindow, TrackOptions, TrackResult
from ..timezones import parse_instant
from .base import BaseCarrierClient, BaseNormalizer, Scan

logger = logging.getLogger(__name__)

EVENT_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    "ArrivedAtDeliveryCenter": "Arrived at delivery center",
    "ArrivedAtSortCenter": "Arrived at sort center",
    "AttemptFail": "Delivery attempt failed",
    "CreationConfirmed": "Shipping label created",
    "Delivered": "Package delivered",
    "DeliveryAttempted": "Delivery attempted",
    "Departed": "Departed facility",
    "Exception": "Exception occurred",
    "Held": "Package held",
    "InTransit": "Package in transit",
    "InTransitToCustomer": "In transit to customer",
    "LabelCreated": "Shipping label created",
    "OutForDelivery": "Out for delivery",
    "OutForReturn": "Out for return",
    "PickupDone": "Package picked up",
    "Received": "Package received at facility",
    "Refused": "Package refused",
    "Returned": "Package returned",
    "ReturnReceived": "Return received",
    "Sorted": "Package sorted",
    "Transferred": "Package transferred",
    "Undeliverable": "Package undeliverable",
})

SUMMARY_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    "swa_rex_arrived_at_sort_center": "Arrived at sort center",
    "swa_rex_delivered": "Package delivered",
    "swa_rex_detail_arrived_at_delivery_Center": "Arrived at delivery center",
    "swa_rex_detail_attempted": "Delivery attempted",
    "swa_rex_detail_creation_confirmed": "Shipping label created",
    "swa_rex_detail_delivered": "Package delivered",
    "swa_rex_detail_departed": "Departed facility",
    "swa_rex_detail_exception": "Exception occurred",
    "swa_rex_detail_held": "Package held",
    "swa_rex_detail_in_transit": "Package in transit",
    "swa_rex_detail_pickedUp": "Package picked up",
    "swa_rex_detail_refused": "Package refused",
    "swa_rex_detail_returned": "Package returned",
    "swa_rex_detail_undeliverable": "Package undeliverable",
    "swa_rex_intransit": "Package in transit",
    "swa_rex_ofd": "Out for delivery",
    "swa_rex_shipping_label_created": "Shipping label created",
})


def describe_event(event_code: Optional[str], status_summary: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Human description from the summary's localized string id, else the event code."""
    string_id = (status_summary or {}).get("localisedStringId")
    if string_id:
        return SUMMARY_DESCRIPTIONS.get(string_id, string_id)
    if event_code is None:
        return None
    return EVENT_DESCRIPTIONS.get(event_code, event_code)


def _embedded_json(value: Any) -> Any:
    """Some tracker fields are JSON documents serialized into a string."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise TransportError(f"Amazon returned malformed embedded JSON: {e}", provider="Amazon") from e
    return value


class AmazonClient(BaseCarrierClient):
    provider = "Amazon"
    DEFAULT_BASE_URL = "https://track.amazon.com"

    async def fetch(self, tracking_number: str) -> Any:
        return await self._request_json(
            "GET",
            f"{self.base_url}/api/tracker/{tracking_number}",
            not_found=(404,),
        )


class AmazonNormalizer(BaseNormalizer):
    carrier_name = "Amazon"
    carrier_tag = AMAZON
    DELIVERED_CODES = frozenset({"Delivered"})
    SHIPPED_CODES = frozenset({"PickupDone", "Received", "InTransit", "Departed", "ArrivedAtSortCenter"})

    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        result = self.new_result(tracking_number, raw)
        if not isinstance(raw, dict):
            return result

        result.estimated_delivery = self._expected_delivery(raw.get("progressTracker"))

        scans: List[Scan] = []
        for event in self._event_history(raw.get("eventHistory")):
            code = event.get("eventCode")
            location = event.get("location") or {}
            scans.append(Scan(
                timestamp=parse_instant(event["eventTime"]),
                code=code,
                description=describe_event(code, event.get("statusSummary")),
                details=code,
                address=Address(
                    city=location.get("city"),
                    state=location.get("stateProvince"),
                    zip=location.get("postalCode"),
                    country=location.get("countryCode"),
                ),
            ))

        return self.assemble(result, scans, options)

    @staticmethod
    def _expected_delivery(progress_tracker: Any) -> Optional[DeliveryWindow]:
        tracker = _embedded_json(progress_tracker)
        if not isinstance(tracker, dict):
            return None

        expected = ((tracker.get("summary") or {}).get("metadata") or {}).get("expectedDeliveryDate")
        if isinstance(expected, dict):
            expected = expected.get("date")
        if not expected:
            return None

        instant = parse_instant(expected, "UTC")
        return DeliveryWindow(earliest=instant, latest=instant)

    @staticmethod
    def _event_history(event_history: Any) -> List[Dict[str, Any]]:
        history = _embedded_json(event_history)
        if not isinstance(history, dict):
            return []
        events = history.get("eventHistory")
        return events if isinstance(events, list) else []
