"""Tests for trackhound.credentials"""

import asyncio

import pytest

from trackhound.credentials import CredentialCache, IssuedToken, get_default_cache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class CountingFetch:
    def __init__(self, expires_in=3600, delay=0.0, error=None):
        self.expires_in = expires_in
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return IssuedToken(value=f"token-{self.calls}", expires_in=self.expires_in)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CredentialCache(safety_margin=100, clock=clock)


class TestGetPut:

    def test_miss(self, cache):
        assert cache.get("fedex:id") is None

    def test_put_applies_safety_margin(self, cache, clock):
        entry = cache.put("fedex:id", IssuedToken("abc", 3600))
        assert entry.expires_at == clock.now + 3500

    def test_valid_until_margin(self, cache, clock):
        cache.put("fedex:id", IssuedToken("abc", 3600))

        clock.now += 3499
        assert cache.get("fedex:id") == "abc"

        clock.now += 1
        assert cache.get("fedex:id") is None

    def test_invalidate(self, cache):
        cache.put("fedex:id", IssuedToken("abc", 3600))
        cache.invalidate("fedex:id")
        assert cache.get("fedex:id") is None

    def test_invalidate_missing_key(self, cache):
        cache.invalidate("nothing")

    def test_clear(self, cache):
        cache.put("a", IssuedToken("1", 3600))
        cache.put("b", IssuedToken("2", 3600))
        cache.clear()
        assert cache.get("a") is None
        assert cache.get("b") is None


class TestGetOrFetch:

    @pytest.mark.asyncio
    async def test_fetches_once(self, cache):
        fetch = CountingFetch()

        assert await cache.get_or_fetch("ups:id", fetch) == "token-1"
        assert await cache.get_or_fetch("ups:id", fetch) == "token-1"
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_refetches_after_expiry(self, cache, clock):
        fetch = CountingFetch()

        await cache.get_or_fetch("ups:id", fetch)
        clock.now += 3500

        assert await cache.get_or_fetch("ups:id", fetch) == "token-2"
        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_short_lived_token_never_cached(self, cache):
        fetch = CountingFetch(expires_in=50)

        await cache.get_or_fetch("ups:id", fetch)
        await cache.get_or_fetch("ups:id", fetch)

        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_coalesce(self, cache):
        fetch = CountingFetch(delay=0.01)

        values = await asyncio.gather(*[cache.get_or_fetch("ups:id", fetch) for _ in range(5)])

        assert values == ["token-1"] * 5
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, cache):
        fetch = CountingFetch()

        await cache.get_or_fetch("ups:one", fetch)
        await cache.get_or_fetch("ups:two", fetch)

        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_fetch_error_not_cached(self, cache):
        failing = CountingFetch(error=RuntimeError("token endpoint down"))

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("ups:id", failing)

        assert cache.get("ups:id") is None
        assert await cache.get_or_fetch("ups:id", CountingFetch()) == "token-1"

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, cache):
        fetch = CountingFetch()

        await cache.get_or_fetch("ups:id", fetch)
        cache.invalidate("ups:id")

        assert await cache.get_or_fetch("ups:id", fetch) == "token-2"


class TestDefaultCache:

    def test_shared_instance(self):
        assert get_default_cache() is get_default_cache()
