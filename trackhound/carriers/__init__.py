"""
Carriers - Per-carrier API clients and payload normalizers
"""

from .base import BaseCarrierClient, BaseNormalizer, OAuthCarrierClient, Scan
from .factory import CarrierFactory, missing_credentials

__all__ = [
    "BaseCarrierClient",
    "BaseNormalizer",
    "OAuthCarrierClient",
    "Scan",
    "CarrierFactory",
    "missing_credentials",
]
