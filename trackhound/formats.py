"""
Carrier tracking-number formats

Static, carrier-authored lookup data: for each carrier tag, an ordered tuple of
``CarrierFormat`` entries. A number belongs to a carrier when any entry's
pattern fully matches the normalized number and its checksum (if any) passes.

Formats overlap between carriers on purpose (IMpb numbers are shared by USPS,
DHL and UPS Mail Innovations); the orchestrator's chain order disambiguates.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Pattern, Tuple, Union

from .checksum import ups_check_digit, verify

# ---------------------------------------------------------------------------
# Carrier tags
# ---------------------------------------------------------------------------

AMAZON = "amazon"
DHL = "dhl"
DHL_ECOMMERCE = "dhl-ecommerce"
FEDEX = "fedex"
GOFO = "gofo"
NEWGISTICS = "newgistics"
UPS = "ups"
UPS_MAIL_INNOVATIONS = "ups-mail-innovations"
USPS = "usps"

CARRIER_ALIASES: Mapping[str, str] = MappingProxyType({
    "amazon": AMAZON,
    "amazon logistics": AMAZON,
    "dhl": DHL,
    "dhl-ecommerce": DHL_ECOMMERCE,
    "dhl ecommerce": DHL_ECOMMERCE,
    "dhl ecommerce solutions": DHL_ECOMMERCE,
    "dhlecommercesolutions": DHL_ECOMMERCE,
    "fedex": FEDEX,
    "gofo": GOFO,
    "newgistics": NEWGISTICS,
    "pitney bowes": NEWGISTICS,
    "pitneybowes": NEWGISTICS,
    "ups": UPS,
    "ups-mail-innovations": UPS_MAIL_INNOVATIONS,
    "ups mail innovations": UPS_MAIL_INNOVATIONS,
    "usps": USPS,
})


def canonical_carrier(carrier: Optional[str]) -> Optional[str]:
    """Map a user-supplied carrier name (any case, spaces or dashes) onto a tag."""
    if not carrier:
        return None
    key = re.sub(r"[\s_]+", " ", carrier.strip().lower())
    if key in CARRIER_ALIASES:
        return CARRIER_ALIASES[key]
    return CARRIER_ALIASES.get(key.replace(" ", "-"))


# ---------------------------------------------------------------------------
# Checksum rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Weighted:
    """
    Weighted mod-10/mod-11 rule.

    ``extract`` strips a non-printed prefix (group 1 is the payload) and
    ``prefix`` prepends implied digits; both happen before verification.
    """
    weights: Tuple[int, ...]
    modulus: int
    extract: Optional[Pattern[str]] = None
    prefix: str = ""

    def __call__(self, number: str) -> bool:
        payload = number
        if self.extract is not None:
            match = self.extract.fullmatch(number)
            if not match:
                return False
            payload = match.group(1)
        return verify(self.prefix + payload, self.weights, self.modulus)


@dataclass(frozen=True)
class AnyOf:
    """Composite rule for ambiguous encodings: passes if any interpretation passes."""
    rules: Tuple["ChecksumRule", ...]

    def __call__(self, number: str) -> bool:
        return any(rule(number) for rule in self.rules)


@dataclass(frozen=True)
class UpsCheckDigit:
    def __call__(self, number: str) -> bool:
        return ups_check_digit(number)


ChecksumRule = Union[Weighted, AnyOf, UpsCheckDigit]


@dataclass(frozen=True)
class CarrierFormat:
    name: str
    pattern: Pattern[str]
    checksum: Optional[ChecksumRule] = None

    def matches(self, number: str) -> bool:
        if not self.pattern.fullmatch(number):
            return False
        if self.checksum is None:
            return True
        return self.checksum(number)


def _format(name: str, pattern: str, checksum: Optional[ChecksumRule] = None) -> CarrierFormat:
    return CarrierFormat(name=name, pattern=re.compile(pattern), checksum=checksum)


MOD10_31 = (3, 1)
MOD10_13 = (1, 3)
MOD11_317 = (3, 1, 7)

# IMpb numbers scanned from a barcode carry "420" + destination ZIP (5 or 9 digits)
ROUTING_PREFIX = r"(?:420(?:\d{9}|\d{5}))"

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_FEDEX = (
    _format("smartpost-6129", r"6129\d{16}"),
    _format("smartpost-7489", r"7489\d{16}"),
    _format("smartpost-926129", r"926129\d{16}"),
    _format("smartpost-927489", r"927489\d{16}"),
    _format("ground-02", r"02\d{18}", Weighted(MOD10_31, 10, prefix="91")),
    _format(
        "ground-96",
        r"96\d{20}",
        AnyOf((
            Weighted(MOD11_317, 11),
            Weighted(MOD10_13, 10, extract=re.compile(r"\d{7}(\d{15})")),
        )),
    ),
    _format("door-tag", r"DT\d{12}", Weighted(MOD11_317, 11, extract=re.compile(r"DT(\d{12})"))),
    _format("express", r"\d{12}", Weighted(MOD11_317, 11)),
    _format("ground", r"\d{15}", Weighted(MOD10_13, 10)),
    _format(
        "ground-sscc",
        r"\d{20}",
        AnyOf((
            Weighted(MOD11_317, 11),
            Weighted(MOD10_31, 10, prefix="92"),
        )),
    ),
)

_UPS = (
    _format("1z", r"1Z[0-9A-Z]{16}", UpsCheckDigit()),
    _format("freight", r"[HTJKFWMQA]\d{10}"),
)

_UPS_MAIL_INNOVATIONS = (
    _format("upu-s10", r"[A-Z]{2}\d{9}[A-Z]{2}"),
    _format("impb-926129", r"926129\d{16}"),
    _format("impb-927489", r"927489\d{16}"),
    _format("impb-20", r"\d{20}", Weighted(MOD10_31, 10)),
    _format("impb-22", r"9[1-6]\d{20}", Weighted(MOD10_31, 10)),
    _format("impb-26", r"\d{26}", Weighted(MOD10_31, 10)),
    _format(
        "impb-routed-30",
        r"420\d{27}",
        Weighted(MOD10_31, 10, extract=re.compile(r"420\d{5}(\d{22})")),
    ),
    _format(
        "impb-routed-34",
        r"420\d{31}",
        AnyOf((
            Weighted(MOD10_31, 10, extract=re.compile(r"420\d{9}(\d{22})")),
            Weighted(MOD10_31, 10, extract=re.compile(r"420\d{5}(\d{26})")),
        )),
    ),
)

_USPS_PAYLOAD = r"((?:94001|92055|94073|93033|92701|92088|92021)\d{17})"

_USPS = (
    _format(
        "impb",
        ROUTING_PREFIX + "?" + _USPS_PAYLOAD,
        Weighted(MOD10_31, 10, extract=re.compile(ROUTING_PREFIX + "?" + _USPS_PAYLOAD)),
    ),
)

# 109124 is the 6-digit mailer ID of DHL eCommerce Solutions; a "93" IMpb
# carries a 6-digit mailer ID. The last four digits are optional.
_DHL_ECOMMERCE_PAYLOAD = r"(93\d{3}109124\d{11}(?:\d{4})?)"

_DHL_ECOMMERCE = (
    _format(
        "impb-mailer-109124",
        ROUTING_PREFIX + "?" + _DHL_ECOMMERCE_PAYLOAD,
        Weighted(MOD10_31, 10, extract=re.compile(ROUTING_PREFIX + "?" + _DHL_ECOMMERCE_PAYLOAD)),
    ),
)

_DHL = (
    _format("impb-94748", r"\d*94748\d{17}"),
    _format("impb-93612", r"\d*93612\d{17}"),
) + _DHL_ECOMMERCE

_NEWGISTICS = (
    _format(
        "ground",
        r"420\d{5}92748927\d{18}",
        Weighted(MOD10_31, 10, extract=re.compile(r"420\d{5}(\d{26})")),
    ),
    _format("imb-flats", r"\d{31}"),
)

_AMAZON = (
    _format("shipping", r"TB[A-CM]\d{12}"),
)

_GOFO = (
    _format("cr", r"CR\d{12}"),
)

CARRIER_FORMATS: Mapping[str, Tuple[CarrierFormat, ...]] = MappingProxyType({
    AMAZON: _AMAZON,
    DHL: _DHL,
    DHL_ECOMMERCE: _DHL_ECOMMERCE,
    FEDEX: _FEDEX,
    GOFO: _GOFO,
    NEWGISTICS: _NEWGISTICS,
    UPS: _UPS,
    UPS_MAIL_INNOVATIONS: _UPS_MAIL_INNOVATIONS,
    USPS: _USPS,
})

# Order used to guess a carrier when none is declared.
GUESS_ORDER: Tuple[str, ...] = (
    FEDEX,
    UPS,
    USPS,
    DHL_ECOMMERCE,
    DHL,
    AMAZON,
    GOFO,
    UPS_MAIL_INNOVATIONS,
    NEWGISTICS,
)
