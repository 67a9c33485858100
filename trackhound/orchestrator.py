"""
Fallback Orchestrator - Try providers in order until one gives a usable answer

A declared carrier maps to a chain of providers. Each link may require that
the number also classifies as a given carrier before it is tried (e.g. UPS
numbers only fall back to USPS when they are valid USPS numbers).

Two layers of recovery:
- inner: bounded retries of one provider on transport errors (retry.py)
- outer: the next eligible provider on transport/auth errors or an
  insufficient result
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from .carriers.base import BaseNormalizer
from .classifier import guess_carrier, identify
from .errors import TransportError, UnknownCarrierError, UnsupportedCarrierError
from .formats import (
    AMAZON,
    DHL,
    DHL_ECOMMERCE,
    FEDEX,
    GOFO,
    NEWGISTICS,
    UPS,
    UPS_MAIL_INNOVATIONS,
    USPS,
    canonical_carrier,
)
from .models import TrackOptions, TrackResult
from .retry import RetryPolicy, call_with_retries

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Chains
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChainLink:
    """One provider in a fallback chain."""
    provider: str                       # normalizer key, e.g. "usps"
    classify_as: Optional[str] = None   # carrier tag the number must match; None = always eligible


FallbackChain = Tuple[ChainLink, ...]

DEFAULT_CHAINS: Mapping[str, FallbackChain] = MappingProxyType({
    FEDEX: (ChainLink(FEDEX),),
    UPS: (ChainLink(UPS), ChainLink(USPS, classify_as=USPS)),
    UPS_MAIL_INNOVATIONS: (ChainLink(UPS), ChainLink(USPS, classify_as=UPS_MAIL_INNOVATIONS)),
    USPS: (ChainLink(USPS),),
    DHL: (
        ChainLink(DHL_ECOMMERCE, classify_as=DHL_ECOMMERCE),
        ChainLink(DHL),
        ChainLink(USPS, classify_as=USPS),
    ),
    DHL_ECOMMERCE: (ChainLink(DHL_ECOMMERCE), ChainLink(DHL)),
    NEWGISTICS: (ChainLink(NEWGISTICS),),
    AMAZON: (ChainLink(AMAZON),),
    GOFO: (ChainLink(GOFO),),
})


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class FallbackOrchestrator:
    """
    Route a tracking request through a carrier's fallback chain.

    Args:
        normalizers: Configured providers keyed by provider name
        chains: Carrier tag -> fallback chain (default: DEFAULT_CHAINS)
        retry_policy: Inner retry policy applied to every provider call
    """

    def __init__(
        self,
        normalizers: Mapping[str, BaseNormalizer],
        chains: Optional[Mapping[str, FallbackChain]] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.normalizers = dict(normalizers)
        self.chains = chains if chains is not None else DEFAULT_CHAINS
        self.retry_policy = retry_policy or RetryPolicy()

    def select(self, tracking_number: str, carrier: Optional[str] = None) -> Tuple[str, List[ChainLink]]:
        """
        Resolve the carrier and the configured links of its chain.

        Raises:
            UnknownCarrierError: no carrier given and none guessed
            UnsupportedCarrierError: no chain, or no configured provider in it
        """
        if carrier:
            tag = canonical_carrier(carrier)
            if tag is None:
                raise UnsupportedCarrierError(carrier.lower())
        else:
            tag = guess_carrier(tracking_number)
            if tag is None:
                raise UnknownCarrierError()
            logger.debug(f"Guessed carrier {tag} for {tracking_number}")

        chain = self.chains.get(tag)
        if chain is None:
            raise UnsupportedCarrierError(tag)

        links = [link for link in chain if link.provider in self.normalizers]
        if not links:
            raise UnsupportedCarrierError(tag, "is not configured")

        return tag, links

    async def track(
        self,
        tracking_number: str,
        carrier: Optional[str] = None,
        options: Optional[TrackOptions] = None,
    ) -> TrackResult:
        """
        Track a normalized tracking number.

        Returns the first sufficient result. When every eligible provider
        fails, the last error is raised; when they merely under-report, the
        last insufficient result is returned.
        """
        options = options or TrackOptions()
        tag, links = self.select(tracking_number, carrier)

        last_error: Optional[TransportError] = None
        last_result: Optional[TrackResult] = None
        attempted = 0

        for link in links:
            if link.classify_as is not None and not identify(link.classify_as, tracking_number):
                logger.debug(f"[{tag}] skipping {link.provider}: number is not a valid {link.classify_as} number")
                continue

            attempted += 1
            normalizer = self.normalizers[link.provider]

            try:
                result = await call_with_retries(
                    lambda: normalizer.track(tracking_number, options),
                    policy=self.retry_policy,
                    name=link.provider,
                )
            except TransportError as e:
                # AuthenticationError is a TransportError: never retried, but falls through
                logger.warning(f"[{tag}] provider {link.provider} failed: {e}")
                last_error = e
                last_result = None
                continue

            if normalizer.is_sufficient(result):
                if attempted > 1:
                    logger.info(f"[{tag}] answered by fallback provider {link.provider}")
                return result

            logger.warning(f"[{tag}] provider {link.provider} returned an insufficient result")
            last_result = result
            last_error = None

        if last_error is not None:
            raise last_error
        if last_result is not None:
            return last_result

        raise UnsupportedCarrierError(tag, "has no provider for this tracking number")
