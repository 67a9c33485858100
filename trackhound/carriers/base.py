"""
Base Carrier - Abstract interfaces for carrier clients and normalizers

Each carrier is split in two:
- a client that talks to the carrier API and returns the raw payload
- a normalizer that turns that payload into a canonical TrackResult

Clients receive their credentials dict directly; they never read configuration.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Pattern

import httpx

from ..classifier import get_tracking_url
from ..credentials import CredentialCache, IssuedToken, get_default_cache
from ..errors import AuthenticationError, TransportError
from ..geography import (
    DEFAULT_CONCURRENCY,
    Locality,
    LocalityResolver,
    NullLocalityResolver,
    resolve_localities,
)
from ..models import Address, ShipmentEvent, TrackOptions, TrackResult
from ..transport import DEFAULT_TIMEOUT, request_json, request_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

class BaseCarrierClient(ABC):
    """
    Abstract base class for carrier API clients.

    All clients must implement:
    - fetch(): return the raw payload for a tracking number, or None when the
      carrier answers "not found"
    """

    provider: str = ""
    DEFAULT_BASE_URL: str = ""

    def __init__(
        self,
        credentials: Optional[Dict[str, Any]] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            credentials: Carrier-specific keys (api_key, client_id, ...)
            base_url: Override of the production endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.credentials = credentials or {}
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    async def fetch(self, tracking_number: str) -> Any:
        """Fetch the raw tracking payload."""
        pass

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        return await request_json(
            method,
            url,
            provider=self.provider,
            timeout=self.timeout,
            transport=self.transport,
            **kwargs,
        )

    async def _request_text(self, method: str, url: str, **kwargs) -> Optional[str]:
        return await request_text(
            method,
            url,
            provider=self.provider,
            timeout=self.timeout,
            transport=self.transport,
            **kwargs,
        )


class OAuthCarrierClient(BaseCarrierClient):
    """
    Client for carriers that issue client-credentials access tokens.

    Tokens are shared through a CredentialCache keyed by provider and client id,
    and dropped from it when the carrier rejects them.
    """

    def __init__(
        self,
        credentials: Optional[Dict[str, Any]] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        credential_cache: Optional[CredentialCache] = None,
    ):
        super().__init__(credentials, base_url, timeout, transport)
        self.credential_cache = credential_cache or get_default_cache()

    @property
    def client_id(self) -> str:
        return self.credentials.get("client_id") or self.credentials.get("api_key") or ""

    @property
    def client_secret(self) -> str:
        return self.credentials.get("client_secret") or self.credentials.get("secret_key") or ""

    @property
    def cache_key(self) -> str:
        return f"{self.provider}:{self.client_id}"

    @abstractmethod
    async def exchange_token(self) -> IssuedToken:
        """Obtain a fresh access token from the carrier."""
        pass

    async def access_token(self) -> str:
        return await self.credential_cache.get_or_fetch(self.cache_key, self.exchange_token)

    async def _authorized_json(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> Any:
        token = await self.access_token()
        try:
            return await self._request_json(
                method,
                url,
                headers={**(headers or {}), "Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except AuthenticationError:
            self.credential_cache.invalidate(self.cache_key)
            raise

    async def _client_credentials_token(self, url: str, basic_auth: bool = False) -> IssuedToken:
        """POST a client_credentials grant and parse the standard token response."""
        if not self.client_id or not self.client_secret:
            raise AuthenticationError(f"{self.provider} credentials not configured", provider=self.provider)

        data: Dict[str, str] = {"grant_type": "client_credentials"}
        auth = None
        if basic_auth:
            auth = httpx.BasicAuth(self.client_id, self.client_secret)
        else:
            data["client_id"] = self.client_id
            data["client_secret"] = self.client_secret

        body = await self._request_json("POST", url, data=data, auth=auth)
        if not isinstance(body, dict) or not body.get("access_token"):
            raise AuthenticationError(f"{self.provider} did not issue an access token", provider=self.provider)

        try:
            expires_in = float(body.get("expires_in", 3600))
        except (TypeError, ValueError) as e:
            raise TransportError(f"{self.provider} returned a malformed token expiry", provider=self.provider) from e

        return IssuedToken(value=body["access_token"], expires_in=expires_in)


# ---------------------------------------------------------------------------
# Normalizers
# ---------------------------------------------------------------------------

@dataclass
class Scan:
    """An event as read from a carrier payload, before canonical assembly."""
    timestamp: datetime
    code: Optional[str]
    description: Optional[str]
    details: Optional[str] = None
    address: Address = field(default_factory=Address)


class BaseNormalizer(ABC):
    """
    Abstract base class for carrier normalizers.

    Subclasses set:
    - carrier_name: display name reported in TrackResult.carrier
    - carrier_tag: classifier tag, used for the public tracking URL
    - SHIPPED_CODES / DELIVERED_CODES: exact-match event codes
    - CITY_DENYLIST: words removed from city names

    and implement normalize().
    """

    carrier_name: str = ""
    carrier_tag: str = ""
    SHIPPED_CODES: FrozenSet[str] = frozenset()
    DELIVERED_CODES: FrozenSet[str] = frozenset()
    CITY_DENYLIST: Optional[Pattern[str]] = None

    def __init__(
        self,
        client: BaseCarrierClient,
        resolver: Optional[LocalityResolver] = None,
        geocode_concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.client = client
        self.resolver = resolver or NullLocalityResolver()
        self.geocode_concurrency = geocode_concurrency

    async def track(self, tracking_number: str, options: Optional[TrackOptions] = None) -> TrackResult:
        """Fetch the carrier payload and normalize it."""
        options = options or TrackOptions()
        raw = await self.client.fetch(tracking_number)
        try:
            return await self.normalize(tracking_number, raw, options)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise TransportError(
                f"{self.carrier_name} returned a malformed payload: {e}",
                provider=self.carrier_name,
            ) from e

    @abstractmethod
    async def normalize(self, tracking_number: str, raw: Any, options: TrackOptions) -> TrackResult:
        """Convert a raw payload (None means not found) into a TrackResult."""
        pass

    def is_sufficient(self, result: TrackResult) -> bool:
        """Whether the result is complete enough to stop the fallback chain."""
        return True

    # ===== Common helper methods =====

    def new_result(self, tracking_number: str, raw: Any) -> TrackResult:
        return TrackResult(
            carrier=self.carrier_name,
            raw=raw,
            url=get_tracking_url(self.carrier_tag, tracking_number),
        )

    def strip_city(self, city: Optional[Any]) -> Optional[str]:
        """Remove denylisted words from a city; empty results become None."""
        if city is None:
            return None
        value = str(city)
        if self.CITY_DENYLIST is not None:
            value = self.CITY_DENYLIST.sub("", value)
        value = re.sub(r"\s{2,}", " ", value).strip()
        return value or None

    async def localities(self, locations: Iterable[Optional[str]]) -> Dict[str, Optional[Locality]]:
        return await resolve_localities(self.resolver, locations, limit=self.geocode_concurrency)

    def assemble(self, result: TrackResult, scans: List[Scan], options: TrackOptions) -> TrackResult:
        """
        Fill events, shipped_at and delivered_at from scans.

        Scans before options.min_date are dropped first. Events are ordered
        oldest-first (stable). A scan without a description falls back to its
        code and is dropped when it has neither.
        """
        kept: List[Scan] = []
        for scan in scans:
            if scan.timestamp < options.min_date:
                continue
            scan.description = (scan.description or "").strip() or (scan.code or "").strip()
            if not scan.description:
                logger.debug(f"[{self.carrier_name}] dropping event without description or code")
                continue
            kept.append(scan)

        kept.sort(key=lambda scan: scan.timestamp)

        delivered = [scan.timestamp for scan in kept if scan.code in self.DELIVERED_CODES]
        shipped = [scan.timestamp for scan in kept if scan.code in self.SHIPPED_CODES]

        result.delivered_at = delivered[-1] if delivered else None
        result.shipped_at = shipped[0] if shipped else result.delivered_at

        result.events = [
            ShipmentEvent(
                timestamp=scan.timestamp,
                description=scan.description,
                details=scan.details or None,
                address=scan.address,
            )
            for scan in kept
        ]
        return result
