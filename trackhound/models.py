"""
trackhound Models - Canonical shipment timeline types

Every normalizer produces these types regardless of the shape of the carrier
payload it started from.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .classifier import normalize_tracking_number

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class TrackingNumber:
    """A raw tracking number and its normalized form (no whitespace, uppercase)."""
    raw: str
    normalized: str

    @classmethod
    def parse(cls, raw: str) -> "TrackingNumber":
        return cls(raw=raw, normalized=normalize_tracking_number(raw))

    def __str__(self) -> str:
        return self.normalized


@dataclass
class Address:
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "country": self.country,
        }


@dataclass
class ShipmentEvent:
    """
    A single scan in the shipment timeline.

    ``timestamp`` is always an aware datetime in UTC, never a local time.
    """
    timestamp: datetime
    description: str
    details: Optional[str] = None
    address: Address = field(default_factory=Address)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _isoformat(self.timestamp),
            "description": self.description,
            "details": self.details,
            "address": self.address.to_dict(),
        }


@dataclass
class DeliveryWindow:
    earliest: datetime
    latest: datetime

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"earliest": _isoformat(self.earliest), "latest": _isoformat(self.latest)}


@dataclass
class TrackResult:
    """
    Canonical tracking result.

    Attributes:
        carrier: Display name of the provider that actually answered
        events: Events ordered oldest-first
        shipped_at: First "entered carrier network" event (or delivered_at)
        delivered_at: Most recent "delivered" event
        estimated_delivery: Carrier-supplied delivery window, if any
        url: Public tracking page
        raw: Unmodified upstream payload
    """
    carrier: str
    events: List[ShipmentEvent] = field(default_factory=list)
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    estimated_delivery: Optional[DeliveryWindow] = None
    url: Optional[str] = None
    raw: Any = None

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "carrier": self.carrier,
            "events": [event.to_dict() for event in self.events],
            "shipped_at": _isoformat(self.shipped_at),
            "delivered_at": _isoformat(self.delivered_at),
            "estimated_delivery": (
                self.estimated_delivery.to_dict() if self.estimated_delivery else None
            ),
            "url": self.url,
        }
        if include_raw:
            data["raw"] = self.raw
        return data


@dataclass(frozen=True)
class TrackOptions:
    """Per-call options. Events before ``min_date`` are dropped (tracking-number reuse)."""
    min_date: datetime = EPOCH

    @classmethod
    def create(cls, min_date: Optional[datetime] = None) -> "TrackOptions":
        if min_date is None:
            return cls()
        return cls(min_date=as_utc(min_date))
