"""
GOFO Express carrier - public consignee tracking query
"""

import logging
from typing import Any, Dict, List, Optional

from ..formats import GOFO
from ..models import Address, TrackOptions, TrackResult
from ..timezones import parse_instant, resolve_timezone
from .base import BaseCarrierClient, BaseNormalizer, Scan

logger = logging.getLogger(__name__)


class GOFOClient(BaseCarrierClient):
    provider = "GOFO"
    DEFAULT_BASE_URL = "https://www.gofoexpress.com"

    async def fetch(self, tracking_number: str) -> Any:
        return await self._request_json(
            "POST",
            f"{self.base_url}/cnee-api/consignee/track/query",
            json_body={"numberList": [tracking_number]},
        )


class GOFONormalizer(BaseNormalizer):
    carrier_name = "GOFO"
    carrier_tag = GOFO
    DELIVERED_CODES = frozenset({"205"})
    SHIPPED_CODES = frozenset({"200", "201", "202", "203", "208", "412"})

    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        result = self.new_result(tracking_number, raw)

        shipment = self._shipment(raw)
        if shipment is None:
            return result

        scans: List[Scan] = []
        for event in shipment.get("trackEventList") or []:
            code = event.get("processCode")
            code = str(code) if code is not None else None
            scans.append(Scan(
                # Offsets and epoch values are absolute; naive values are local
                timestamp=parse_instant(event["processDate"], resolve_timezone(event.get("timeZone"))),
                code=code,
                description=event.get("processContent"),
                details=code,
                address=Address(
                    city=event.get("processCity"),
                    state=event.get("processProvince"),
                    zip=event.get("processPostCode"),
                ),
            ))

        return self.assemble(result, scans, options)

    @staticmethod
    def _shipment(raw: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(raw, dict):
            return None
        success = (raw.get("data") or {}).get("success") or []
        return success[0] if success else None
