"""Shared fixtures: stub carrier client, dict-backed locality resolver."""

from typing import Any, Dict, Optional

import pytest

from trackhound.carriers.base import BaseCarrierClient
from trackhound.credentials import CredentialCache
from trackhound.geography import Locality


class StubClient(BaseCarrierClient):
    """Returns a canned payload (or raises) instead of calling a carrier."""

    provider = "Stub"

    def __init__(self, payload: Any = None, error: Optional[Exception] = None):
        super().__init__()
        self.payload = payload
        self.error = error
        self.calls = []

    async def fetch(self, tracking_number: str) -> Any:
        self.calls.append(tracking_number)
        if self.error is not None:
            raise self.error
        return self.payload


class DictResolver:
    """LocalityResolver backed by a dict; listed locations raise instead."""

    def __init__(self, localities: Optional[Dict[str, Locality]] = None, failing=()):
        self.localities = localities or {}
        self.failing = set(failing)
        self.calls = []

    async def resolve(self, location: str) -> Optional[Locality]:
        self.calls.append(location)
        if location in self.failing:
            raise RuntimeError(f"lookup failed for {location}")
        return self.localities.get(location)


@pytest.fixture
def stub_client():
    return StubClient


@pytest.fixture
def resolver():
    return DictResolver()


@pytest.fixture
def make_normalizer():
    """Build a normalizer around a StubClient: make_normalizer(FedExNormalizer, payload=..., localities=...)."""

    def _make(normalizer_class, payload=None, error=None, localities=None, failing=()):
        return normalizer_class(
            StubClient(payload=payload, error=error),
            resolver=DictResolver(localities, failing),
        )

    return _make


@pytest.fixture
def credential_cache():
    return CredentialCache()
