"""
trackhound - Shipment tracking across carriers

Classifies tracking numbers, fetches carrier timelines and normalizes them
into one event model, falling back across providers where carriers hand
shipments to each other.
"""

from .classifier import get_tracking_url, guess_carrier, identify, identify_all, normalize_tracking_number
from .config import CarrierConfig, ConfigLoader, GeocoderConfig, TrackerConfig, TrackerSettings
from .credentials import CredentialCache, IssuedToken
from .errors import (
    AuthenticationError,
    ConfigurationError,
    TrackingError,
    TrackingNumberMissingError,
    TransportError,
    UnknownCarrierError,
    UnsupportedCarrierError,
)
from .geography import GoogleGeocoder, Locality, LocalityResolver, NullLocalityResolver
from .models import Address, DeliveryWindow, ShipmentEvent, TrackingNumber, TrackOptions, TrackResult
from .orchestrator import DEFAULT_CHAINS, ChainLink, FallbackOrchestrator
from .retry import RetryPolicy
from .timezones import resolve_timezone
from .tracker import Tracker

__version__ = "0.1.0"

__all__ = [
    # Entry point
    "Tracker",
    # Classification
    "identify",
    "identify_all",
    "guess_carrier",
    "get_tracking_url",
    "normalize_tracking_number",
    # Models
    "Address",
    "DeliveryWindow",
    "ShipmentEvent",
    "TrackingNumber",
    "TrackOptions",
    "TrackResult",
    # Orchestration
    "ChainLink",
    "DEFAULT_CHAINS",
    "FallbackOrchestrator",
    "RetryPolicy",
    # Collaborators
    "CredentialCache",
    "IssuedToken",
    "GoogleGeocoder",
    "Locality",
    "LocalityResolver",
    "NullLocalityResolver",
    "resolve_timezone",
    # Config
    "CarrierConfig",
    "ConfigLoader",
    "GeocoderConfig",
    "TrackerConfig",
    "TrackerSettings",
    # Errors
    "TrackingError",
    "TrackingNumberMissingError",
    "UnknownCarrierError",
    "UnsupportedCarrierError",
    "ConfigurationError",
    "TransportError",
    "AuthenticationError",
]
