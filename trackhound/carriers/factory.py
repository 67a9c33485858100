"""
Carrier Factory - Create normalizers for configured carriers

Maps each carrier tag to its client and normalizer classes, and refuses to
build carriers that are disabled or missing credentials.
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Type

import httpx

from ..config import CarrierConfig
from ..credentials import CredentialCache
from ..formats import AMAZON, DHL, DHL_ECOMMERCE, FEDEX, GOFO, NEWGISTICS, UPS, USPS
from ..geography import DEFAULT_CONCURRENCY, LocalityResolver
from .amazon import AmazonClient, AmazonNormalizer
from .base import BaseCarrierClient, BaseNormalizer, OAuthCarrierClient
from .dhl import DHLClient, DHLNormalizer
from .dhl_ecommerce import DHLEcommerceClient, DHLEcommerceNormalizer
from .fedex import FedExClient, FedExNormalizer
from .gofo import GOFOClient, GOFONormalizer
from .pitney_bowes import PitneyBowesClient, PitneyBowesNormalizer
from .ups import UPSClient, UPSNormalizer
from .usps import USPSClient, USPSNormalizer

logger = logging.getLogger(__name__)

_OAUTH = ("client_id", "client_secret")

REQUIRED_CREDENTIALS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    AMAZON: (),
    DHL: ("api_key",),
    DHL_ECOMMERCE: _OAUTH,
    FEDEX: _OAUTH,
    GOFO: (),
    NEWGISTICS: _OAUTH,
    UPS: _OAUTH,
    USPS: ("user_id",),
})


def missing_credentials(config: CarrierConfig) -> List[str]:
    """Names of required credential keys that are absent or empty."""
    required = REQUIRED_CREDENTIALS.get(config.name, ())
    return [key for key in required if not config.credentials.get(key)]


class CarrierFactory:
    """Factory for creating carrier normalizer instances."""

    _carriers: Dict[str, Tuple[Type[BaseCarrierClient], Type[BaseNormalizer]]] = {}

    @classmethod
    def register_carrier(
        cls,
        carrier: str,
        client_class: Type[BaseCarrierClient],
        normalizer_class: Type[BaseNormalizer],
    ) -> None:
        """
        Register a carrier implementation.

        Args:
            carrier: Carrier tag (e.g., "fedex", "dhl-ecommerce")
            client_class: Must inherit from BaseCarrierClient
            normalizer_class: Must inherit from BaseNormalizer
        """
        if not issubclass(client_class, BaseCarrierClient):
            raise TypeError(f"{client_class} must inherit from BaseCarrierClient")
        if not issubclass(normalizer_class, BaseNormalizer):
            raise TypeError(f"{normalizer_class} must inherit from BaseNormalizer")

        cls._carriers[carrier] = (client_class, normalizer_class)
        logger.debug(f"Registered carrier: {carrier}")

    @classmethod
    def create_normalizer(
        cls,
        config: CarrierConfig,
        resolver: Optional[LocalityResolver] = None,
        credential_cache: Optional[CredentialCache] = None,
        geocode_concurrency: int = DEFAULT_CONCURRENCY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> Optional[BaseNormalizer]:
        """
        Create the normalizer (and its client) for a carrier configuration.

        Returns:
            Normalizer instance, or None if the carrier is disabled, unknown
            or missing credentials
        """
        if not config.enabled:
            logger.info(f"Carrier {config.name} is disabled")
            return None

        classes = cls._carriers.get(config.name)
        if classes is None:
            logger.error(f"Unsupported carrier: {config.name}")
            logger.info(f"Available carriers: {list(cls._carriers.keys())}")
            return None

        missing = missing_credentials(config)
        if missing:
            logger.warning(f"Carrier {config.name} missing credentials: {', '.join(missing)}")
            return None

        client_class, normalizer_class = classes
        kwargs = {
            "credentials": config.credentials,
            "base_url": config.base_url,
            "timeout": config.timeout,
            "transport": transport,
        }
        if issubclass(client_class, OAuthCarrierClient):
            kwargs["credential_cache"] = credential_cache

        client = client_class(**kwargs)
        return normalizer_class(client, resolver=resolver, geocode_concurrency=geocode_concurrency)

    @classmethod
    def get_supported_carriers(cls) -> List[str]:
        return list(cls._carriers.keys())


def _register_carriers():
    """Register the built-in carriers."""
    CarrierFactory.register_carrier(AMAZON, AmazonClient, AmazonNormalizer)
    CarrierFactory.register_carrier(DHL, DHLClient, DHLNormalizer)
    CarrierFactory.register_carrier(DHL_ECOMMERCE, DHLEcommerceClient, DHLEcommerceNormalizer)
    CarrierFactory.register_carrier(FEDEX, FedExClient, FedExNormalizer)
    CarrierFactory.register_carrier(GOFO, GOFOClient, GOFONormalizer)
    CarrierFactory.register_carrier(NEWGISTICS, PitneyBowesClient, PitneyBowesNormalizer)
    CarrierFactory.register_carrier(UPS, UPSClient, UPSNormalizer)
    CarrierFactory.register_carrier(USPS, USPSClient, USPSNormalizer)


_register_carriers()
