"""
Credential Cache - short-lived OAuth access tokens keyed per carrier account

The only shared mutable state in trackhound. Entries expire ``safety_margin``
seconds before the issuer's stated expiry and are evicted lazily on read.
Concurrent misses on the same key trigger a single fetch.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_MARGIN = 100.0


@dataclass(frozen=True)
class IssuedToken:
    """Token as returned by a carrier's token endpoint."""
    value: str
    expires_in: float


@dataclass(frozen=True)
class CachedToken:
    key: str
    value: str
    expires_at: float


class CredentialCache:
    """
    In-process token cache.

    Args:
        safety_margin: Seconds subtracted from ``expires_in`` when storing
        clock: Time source returning seconds (injectable for tests)
    """

    def __init__(
        self,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        self.safety_margin = safety_margin
        self._clock = clock
        self._entries: Dict[str, CachedToken] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> Optional[str]:
        """Return the cached value if still valid, evicting it otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def put(self, key: str, token: IssuedToken) -> CachedToken:
        entry = CachedToken(
            key=key,
            value=token.value,
            expires_at=self._clock() + token.expires_in - self.safety_margin,
        )
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> None:
        """Drop an entry, e.g. after the carrier rejected it."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[IssuedToken]],
    ) -> str:
        """
        Return a valid token for ``key``, calling ``fetch`` on a miss.

        Errors from ``fetch`` propagate and nothing is cached.
        """
        value = self.get(key)
        if value is not None:
            return value

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another coroutine may have filled the entry while we waited
            value = self.get(key)
            if value is not None:
                return value

            token = await fetch()
            self.put(key, token)
            logger.info(f"Fetched access token for {key.split(':', 1)[0]} (expires in {token.expires_in}s)")
            return token.value


_default_cache = CredentialCache()


def get_default_cache() -> CredentialCache:
    """Process-wide cache shared by every carrier client unless one is injected."""
    return _default_cache
