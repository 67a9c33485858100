"""
Tracker - Library entry point

    tracker = Tracker(TrackerConfig.load())
    result = await tracker.track("1Z9756W90308462106")
    print(result.carrier, result.delivered_at)
"""

import logging
from datetime import datetime
from typing import Dict, Mapping, Optional

import httpx

from .carriers.base import BaseNormalizer
from .carriers.factory import CarrierFactory
from .classifier import guess_carrier
from .config import TrackerConfig
from .credentials import CredentialCache
from .errors import TrackingNumberMissingError
from .geography import GoogleGeocoder, LocalityResolver, NullLocalityResolver
from .models import TrackingNumber, TrackOptions, TrackResult
from .orchestrator import FallbackChain, FallbackOrchestrator
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class Tracker:
    """
    Track shipments across every configured carrier.

    Args:
        config: Carrier credentials and settings (default: from environment)
        resolver: Locality resolver; built from config.geocoder when omitted
        credential_cache: Token cache; a private one honouring
            settings.credential_margin when omitted
        normalizers: Pre-built providers keyed by provider name (bypasses
            the factory, mainly for tests)
        chains: Override of the default fallback chains
        transport: httpx transport passed to every client
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        resolver: Optional[LocalityResolver] = None,
        credential_cache: Optional[CredentialCache] = None,
        normalizers: Optional[Mapping[str, BaseNormalizer]] = None,
        chains: Optional[Mapping[str, FallbackChain]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or TrackerConfig.from_env()
        settings = self.config.settings

        self.resolver = resolver or self._build_resolver(transport)
        self.credential_cache = credential_cache or CredentialCache(safety_margin=settings.credential_margin)

        if normalizers is None:
            normalizers = self._build_normalizers(transport)

        self.orchestrator = FallbackOrchestrator(
            normalizers,
            chains=chains,
            retry_policy=RetryPolicy(
                max_retries=settings.max_retries,
                retry_delay=settings.retry_delay,
                attempt_timeout=settings.attempt_timeout,
            ),
        )
        logger.info(f"Tracker ready with providers: {sorted(self.orchestrator.normalizers)}")

    def _build_resolver(self, transport: Optional[httpx.AsyncBaseTransport]) -> LocalityResolver:
        geocoder = self.config.geocoder
        if geocoder is None or not geocoder.enabled:
            return NullLocalityResolver()

        api_key = geocoder.resolve_api_key()
        if not api_key:
            logger.warning("Geocoder configured without an API key; local times default to America/New_York")
            return NullLocalityResolver()

        return GoogleGeocoder(api_key, timeout=geocoder.timeout, transport=transport)

    def _build_normalizers(self, transport: Optional[httpx.AsyncBaseTransport]) -> Dict[str, BaseNormalizer]:
        normalizers: Dict[str, BaseNormalizer] = {}
        for carrier in self.config.get_enabled_carriers():
            normalizer = CarrierFactory.create_normalizer(
                carrier,
                resolver=self.resolver,
                credential_cache=self.credential_cache,
                geocode_concurrency=self.config.settings.geocode_concurrency,
                transport=transport,
            )
            if normalizer is not None:
                normalizers[carrier.name] = normalizer
        return normalizers

    @staticmethod
    def guess_carrier(tracking_number: str) -> Optional[str]:
        """Guess the carrier tag of a tracking number, or None."""
        return guess_carrier(tracking_number)

    async def track(
        self,
        tracking_number: str,
        carrier: Optional[str] = None,
        min_date: Optional[datetime] = None,
    ) -> TrackResult:
        """
        Track a shipment.

        Args:
            tracking_number: Raw tracking number (whitespace and case are ignored)
            carrier: Carrier tag or alias; guessed when omitted
            min_date: Drop events before this instant (reused tracking numbers)

        Raises:
            TrackingNumberMissingError: empty tracking number
            UnknownCarrierError: no carrier given and none guessed
            UnsupportedCarrierError: carrier without a configured provider
            TransportError: every eligible provider failed
        """
        number = TrackingNumber.parse(tracking_number or "")
        if not number.normalized:
            raise TrackingNumberMissingError()

        return await self.orchestrator.track(
            number.normalized,
            carrier=carrier,
            options=TrackOptions.create(min_date),
        )
