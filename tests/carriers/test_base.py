"""Tests for trackhound.carriers.base: shared assembly rules and OAuth token handling"""

import re
from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from trackhound.carriers.base import BaseNormalizer, OAuthCarrierClient, Scan
from trackhound.credentials import IssuedToken
from trackhound.errors import AuthenticationError, TransportError
from trackhound.models import Address, TrackOptions


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


# ── Minimal normalizer: raw payload is a list of scan dicts ──


class ListNormalizer(BaseNormalizer):
    carrier_name = "Demo"
    carrier_tag = "fedex"
    SHIPPED_CODES = frozenset({"S"})
    DELIVERED_CODES = frozenset({"D"})
    CITY_DENYLIST = re.compile(r"hub", re.IGNORECASE)

    async def normalize(self, tracking_number, raw, options):
        result = self.new_result(tracking_number, raw)
        scans = [
            Scan(
                timestamp=item["at"],
                code=item.get("code"),
                description=item.get("description"),
                address=Address(city=self.strip_city(item.get("city"))),
            )
            for item in raw or []
        ]
        return self.assemble(result, scans, options)


@pytest.fixture
def normalizer(make_normalizer):
    return make_normalizer(ListNormalizer)


class TestAssemble:

    @pytest.mark.asyncio
    async def test_events_oldest_first(self, normalizer):
        raw = [
            {"at": utc(2024, 1, 3), "code": "D", "description": "Delivered"},
            {"at": utc(2024, 1, 1), "code": "X", "description": "Label"},
            {"at": utc(2024, 1, 2), "code": "S", "description": "Shipped"},
        ]
        result = await normalizer.normalize("771613423732", raw, TrackOptions())

        assert [event.description for event in result.events] == ["Label", "Shipped", "Delivered"]
        assert result.shipped_at == utc(2024, 1, 2)
        assert result.delivered_at == utc(2024, 1, 3)

    @pytest.mark.asyncio
    async def test_stable_order_for_equal_timestamps(self, normalizer):
        raw = [
            {"at": utc(2024, 1, 1), "code": "X", "description": "first"},
            {"at": utc(2024, 1, 1), "code": "X", "description": "second"},
        ]
        result = await normalizer.normalize("771613423732", raw, TrackOptions())
        assert [event.description for event in result.events] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_first_shipped_and_last_delivered(self, normalizer):
        raw = [
            {"at": utc(2024, 1, 2), "code": "S", "description": "Shipped"},
            {"at": utc(2024, 1, 3), "code": "S", "description": "Shipped again"},
            {"at": utc(2024, 1, 4), "code": "D", "description": "Delivered"},
            {"at": utc(2024, 1, 5), "code": "D", "description": "Delivered again"},
        ]
        result = await normalizer.normalize("771613423732", raw, TrackOptions())

        assert result.shipped_at == utc(2024, 1, 2)
        assert result.delivered_at == utc(2024, 1, 5)

    @pytest.mark.asyncio
    async def test_shipped_defaults_to_delivered(self, normalizer):
        raw = [{"at": utc(2024, 1, 4), "code": "D", "description": "Delivered"}]
        result = await normalizer.normalize("771613423732", raw, TrackOptions())
        assert result.shipped_at == result.delivered_at == utc(2024, 1, 4)

    @pytest.mark.asyncio
    async def test_no_milestones(self, normalizer):
        raw = [{"at": utc(2024, 1, 1), "code": "X", "description": "Label"}]
        result = await normalizer.normalize("771613423732", raw, TrackOptions())
        assert result.shipped_at is None
        assert result.delivered_at is None

    @pytest.mark.asyncio
    async def test_min_date_filters_before_milestones(self, normalizer):
        raw = [
            {"at": utc(2023, 6, 1), "code": "S", "description": "Old shipment"},
            {"at": utc(2023, 6, 2), "code": "D", "description": "Old delivery"},
            {"at": utc(2024, 1, 2), "code": "X", "description": "Label"},
        ]
        options = TrackOptions.create(utc(2024, 1, 1))
        result = await normalizer.normalize("771613423732", raw, options)

        assert [event.description for event in result.events] == ["Label"]
        assert result.shipped_at is None
        assert result.delivered_at is None

    @pytest.mark.asyncio
    async def test_min_date_is_inclusive(self, normalizer):
        raw = [{"at": utc(2024, 1, 1), "code": "X", "description": "Label"}]
        result = await normalizer.normalize("771613423732", raw, TrackOptions.create(utc(2024, 1, 1)))
        assert len(result.events) == 1

    @pytest.mark.asyncio
    async def test_naive_min_date_taken_as_utc(self, normalizer):
        raw = [{"at": utc(2024, 1, 1, 12), "code": "X", "description": "Label"}]
        result = await normalizer.normalize("771613423732", raw, TrackOptions.create(datetime(2024, 1, 1, 13)))
        assert result.events == []

    @pytest.mark.asyncio
    async def test_description_falls_back_to_code(self, normalizer):
        raw = [
            {"at": utc(2024, 1, 1), "code": "X", "description": "  "},
            {"at": utc(2024, 1, 2), "code": None, "description": None},
        ]
        result = await normalizer.normalize("771613423732", raw, TrackOptions())
        assert [event.description for event in result.events] == ["X"]

    @pytest.mark.asyncio
    async def test_city_denylist(self, normalizer):
        raw = [
            {"at": utc(2024, 1, 1), "code": "X", "description": "a", "city": "CHICAGO HUB"},
            {"at": utc(2024, 1, 2), "code": "X", "description": "b", "city": "HUB"},
        ]
        result = await normalizer.normalize("771613423732", raw, TrackOptions())
        assert [event.address.city for event in result.events] == ["CHICAGO", None]

    @pytest.mark.asyncio
    async def test_new_result(self, normalizer):
        result = await normalizer.normalize("771613423732", None, TrackOptions())
        assert result.carrier == "Demo"
        assert result.events == []
        assert result.raw is None
        assert result.url.endswith("771613423732")


class TestTrack:

    @pytest.mark.asyncio
    async def test_fetches_and_normalizes(self, make_normalizer):
        raw = [{"at": utc(2024, 1, 1), "code": "D", "description": "Delivered"}]
        normalizer = make_normalizer(ListNormalizer, payload=raw)

        result = await normalizer.track("771613423732")

        assert normalizer.client.calls == ["771613423732"]
        assert result.raw is raw
        assert result.delivered_at == utc(2024, 1, 1)

    @pytest.mark.asyncio
    async def test_malformed_payload_is_transport_error(self, make_normalizer):
        normalizer = make_normalizer(ListNormalizer, payload=[{"code": "D"}])
        with pytest.raises(TransportError, match="malformed payload"):
            await normalizer.track("771613423732")

    @pytest.mark.asyncio
    async def test_client_errors_propagate(self, make_normalizer):
        normalizer = make_normalizer(ListNormalizer, error=AuthenticationError("denied", status_code=401))
        with pytest.raises(AuthenticationError):
            await normalizer.track("771613423732")

    @pytest.mark.asyncio
    async def test_sufficient_by_default(self, normalizer):
        result = await normalizer.normalize("771613423732", None, TrackOptions())
        assert normalizer.is_sufficient(result) is True


# ── OAuth client ──


class DemoOAuthClient(OAuthCarrierClient):
    provider = "Demo"
    DEFAULT_BASE_URL = "https://demo.example"
    basic_auth = False

    async def exchange_token(self) -> IssuedToken:
        return await self._client_credentials_token(f"{self.base_url}/token", basic_auth=self.basic_auth)

    async def fetch(self, tracking_number):
        return await self._authorized_json("GET", f"{self.base_url}/track/{tracking_number}", not_found=(404,))


class TokenBackend:
    """Issues "token-N" from /token; /track answers with the bearer it saw."""

    def __init__(self, token_body=None, reject=False):
        self.token_body = token_body
        self.reject = reject
        self.token_requests = []
        self.track_requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/token":
            self.token_requests.append(request)
            body = self.token_body or {"access_token": f"token-{len(self.token_requests)}", "expires_in": 3600}
            return httpx.Response(200, json=body)

        self.track_requests.append(request)
        if self.reject:
            return httpx.Response(401, json={"error": "invalid_token"})
        return httpx.Response(200, json={"authorization": request.headers["Authorization"]})


def _client(backend, credential_cache, credentials=None, basic_auth=False):
    client = DemoOAuthClient(
        credentials=credentials if credentials is not None else {"client_id": "id", "client_secret": "secret"},
        transport=httpx.MockTransport(backend),
        credential_cache=credential_cache,
    )
    client.basic_auth = basic_auth
    return client


class TestOAuthCarrierClient:

    @pytest.mark.asyncio
    async def test_bearer_token(self, credential_cache):
        backend = TokenBackend()
        body = await _client(backend, credential_cache).fetch("123")
        assert body == {"authorization": "Bearer token-1"}

    @pytest.mark.asyncio
    async def test_form_credentials(self, credential_cache):
        backend = TokenBackend()
        await _client(backend, credential_cache).fetch("123")

        form = parse_qs(backend.token_requests[0].content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["client_id"] == ["id"]
        assert form["client_secret"] == ["secret"]

    @pytest.mark.asyncio
    async def test_basic_auth_credentials(self, credential_cache):
        backend = TokenBackend()
        await _client(backend, credential_cache, basic_auth=True).fetch("123")

        request = backend.token_requests[0]
        assert request.headers["Authorization"].startswith("Basic ")
        assert "client_secret" not in parse_qs(request.content.decode())

    @pytest.mark.asyncio
    async def test_token_reused(self, credential_cache):
        backend = TokenBackend()
        client = _client(backend, credential_cache)

        await client.fetch("123")
        await client.fetch("456")

        assert len(backend.token_requests) == 1
        assert len(backend.track_requests) == 2

    @pytest.mark.asyncio
    async def test_rejected_token_is_invalidated(self, credential_cache):
        backend = TokenBackend(reject=True)
        client = _client(backend, credential_cache)

        with pytest.raises(AuthenticationError):
            await client.fetch("123")
        assert credential_cache.get(client.cache_key) is None

        backend.reject = False
        assert await client.fetch("123") == {"authorization": "Bearer token-2"}

    @pytest.mark.asyncio
    async def test_missing_credentials(self, credential_cache):
        backend = TokenBackend()
        with pytest.raises(AuthenticationError, match="not configured"):
            await _client(backend, credential_cache, credentials={}).fetch("123")
        assert backend.token_requests == []

    @pytest.mark.asyncio
    async def test_no_access_token(self, credential_cache):
        backend = TokenBackend(token_body={"error": "unauthorized_client"})
        with pytest.raises(AuthenticationError, match="did not issue"):
            await _client(backend, credential_cache).fetch("123")

    @pytest.mark.asyncio
    async def test_malformed_expiry(self, credential_cache):
        backend = TokenBackend(token_body={"access_token": "abc", "expires_in": "soon"})
        with pytest.raises(TransportError, match="expiry"):
            await _client(backend, credential_cache).fetch("123")

    def test_api_key_aliases(self, credential_cache):
        client = _client(TokenBackend(), credential_cache, credentials={"api_key": "k", "secret_key": "s"})
        assert client.client_id == "k"
        assert client.client_secret == "s"
        assert client.cache_key == "Demo:k"
