"""
Timezone resolution for carrier-local timestamps

Carriers report scans as local wall-clock times with either a timezone
abbreviation ("CT", "PDT") or nothing at all. These helpers turn them into
absolute UTC instants.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"

# Generic zone databases list abbreviations against many zones ("EST" under
# America/Chicago, "MST" under America/Boise) and know nothing of "CT"/"PT",
# so the US abbreviations carriers emit are pinned here.
US_ABBREVIATIONS: Mapping[str, str] = MappingProxyType({
    "ET": "America/New_York",
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "CT": "America/Chicago",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "MT": "America/Denver",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "PT": "America/Los_Angeles",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
    "AKST": "America/Anchorage",
    "AKDT": "America/Anchorage",
    # Hawaii does not observe DST; the Aleutian part of the zone does
    "HST": "Pacific/Honolulu",
    "HDT": "America/Adak",
})

# Instants used to sample each zone's standard and daylight abbreviations
_SAMPLE_INSTANTS = (
    datetime(2024, 1, 15, 12, tzinfo=timezone.utc),
    datetime(2024, 7, 15, 12, tzinfo=timezone.utc),
)


@lru_cache(maxsize=1)
def _zone_names() -> Tuple[str, ...]:
    return tuple(sorted(available_timezones()))


def is_timezone_name(name: str) -> bool:
    """Return True if ``name`` is a known IANA zone name."""
    return name in _zone_names()


@lru_cache(maxsize=256)
def _search_abbreviation(abbreviation: str) -> Optional[str]:
    """Best effort: the first zone (alphabetically) using the abbreviation."""
    for name in _zone_names():
        try:
            zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            continue
        for instant in _SAMPLE_INSTANTS:
            if instant.astimezone(zone).tzname() == abbreviation:
                return name
    return None


def resolve_timezone(abbreviation_or_name: Optional[str]) -> str:
    """
    Map a timezone abbreviation or name onto an IANA zone name.

    Args:
        abbreviation_or_name: e.g. "CT", "PDT", "America/Chicago"

    Returns:
        IANA zone name; America/New_York when nothing resolves
    """
    if not abbreviation_or_name:
        return DEFAULT_TIMEZONE

    value = abbreviation_or_name.strip()
    key = value.upper()
    # Checked first: tzdata also ships fixed-offset "EST", "MST" and "HST" zones
    if key in US_ABBREVIATIONS:
        return US_ABBREVIATIONS[key]

    if is_timezone_name(value):
        return value

    found = _search_abbreviation(key)
    if found:
        logger.debug(f"Resolved timezone abbreviation {key} to {found} by search")
        return found

    logger.debug(f"Unknown timezone {value!r}, defaulting to {DEFAULT_TIMEZONE}")
    return DEFAULT_TIMEZONE


def _zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, using {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def localize(value: str, fmt: str, zone_name: Optional[str]) -> datetime:
    """
    Parse a naive local timestamp with ``fmt`` and convert it to UTC.

    Raises:
        ValueError: the value does not match ``fmt``
    """
    naive = datetime.strptime(value.strip(), fmt)
    return naive.replace(tzinfo=_zone(zone_name)).astimezone(timezone.utc)


def parse_instant(
    value: Union[str, int, float, datetime],
    zone_name: Optional[str] = None,
) -> datetime:
    """
    Parse a carrier timestamp into an aware UTC datetime.

    An explicit offset always wins; naive values are taken as local time in
    ``zone_name`` (default America/New_York). Numbers are epoch milliseconds.

    Raises:
        ValueError: the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        parsed = date_parser.isoparse(text)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_zone(zone_name))
    return parsed.astimezone(timezone.utc)
