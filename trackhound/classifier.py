"""
Carrier detection based on tracking number format and check digits
"""

import re
from typing import List, Optional
from urllib.parse import quote

from .formats import CARRIER_FORMATS, GUESS_ORDER, canonical_carrier

_WHITESPACE = re.compile(r"\s+")


def normalize_tracking_number(tracking_number: str) -> str:
    """
    Normalize tracking number (remove whitespace, uppercase).

    Args:
        tracking_number: Raw tracking number

    Returns:
        Normalized tracking number
    """
    return _WHITESPACE.sub("", tracking_number or "").upper()


def identify(carrier: str, tracking_number: str) -> bool:
    """
    Check whether a tracking number plausibly belongs to a carrier.

    Pure and total: unknown carriers and malformed numbers yield False.

    Args:
        carrier: Carrier tag or alias (case-insensitive)
        tracking_number: Raw tracking number

    Returns:
        True if any of the carrier's formats matches and verifies
    """
    tag = canonical_carrier(carrier)
    if tag is None:
        return False

    number = normalize_tracking_number(tracking_number)
    if not number:
        return False

    return any(fmt.matches(number) for fmt in CARRIER_FORMATS[tag])


def identify_all(tracking_number: str) -> List[str]:
    """Return every carrier tag whose formats accept the number, in guess order."""
    return [carrier for carrier in GUESS_ORDER if identify(carrier, tracking_number)]


def guess_carrier(tracking_number: str) -> Optional[str]:
    """
    Detect carrier from tracking number format.

    Args:
        tracking_number: The tracking number to analyze

    Returns:
        Carrier tag or None if unknown
    """
    for carrier in GUESS_ORDER:
        if identify(carrier, tracking_number):
            return carrier
    return None


def get_tracking_url(carrier: str, tracking_number: str) -> Optional[str]:
    """
    Get the public tracking page for a carrier.

    Args:
        carrier: Carrier tag or alias
        tracking_number: Tracking number

    Returns:
        Tracking URL or None
    """
    number = quote(normalize_tracking_number(tracking_number), safe="")

    urls = {
        'amazon': f'https://track.amazon.com/tracking/{number}',
        'dhl': f'https://www.dhl.com/us-en/home/tracking.html?tracking-id={number}&submit=1',
        'dhl-ecommerce': f'https://webtrack.dhlecs.com/orders?trackingNumber={number}',
        'fedex': f'https://www.fedex.com/apps/fedextrack/?tracknumbers={number}',
        'gofo': f'https://www.gofoexpress.com/tracking.html?searchID={number}',
        'newgistics': f'https://tools.usps.com/go/TrackConfirmAction?qtc_tLabels1={number}',
        'ups': f'https://www.ups.com/track?tracknum={number}',
        'ups-mail-innovations': f'https://www.ups.com/track?tracknum={number}',
        'usps': f'https://tools.usps.com/go/TrackConfirmAction?tLabels={number}',
    }

    return urls.get(canonical_carrier(carrier) or "")
