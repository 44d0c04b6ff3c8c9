"""Shared fixtures: a scripted item gateway behind httpx.MockTransport and
a file-backed cache store under tmp_path."""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from app.clients.catalog_client import CatalogClient
from app.clients.http_client import HTTPClient
from app.core.context import CredentialContext
from app.services.cache_store import ItemCacheStore
from app.services.lookup_service import ItemLookupService

TEST_GTIN = "5711724072697"


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def tick(self) -> int:
        self.now += 1
        return self.now


class FakeGateway:
    """In-memory stand-in for the item gateway.

    Items are registered under each identifier value they can be found
    by; every request is recorded so tests can count remote calls.
    """

    def __init__(self) -> None:
        self.items: Dict[str, Dict[str, Any]] = {}
        self.prices: Dict[str, List[Dict[str, Any]]] = {}
        self.price_status: Optional[int] = None
        self.search_payload: Any = {"searchableItems": [], "totalCount": 0}
        self.quick_payload: Any = []
        self.advanced_payload: Any = {"results": [], "totalCount": 0}
        self.requests: List[httpx.Request] = []
        self.lookup_fields: Tuple[str, ...] = ("gtin", "sku", "externalItemNo")

    def add_item(self, item: Dict[str, Any], *keys: str, prices: Optional[List[Dict[str, Any]]] = None) -> None:
        for key in keys:
            self.items[key] = item
            if prices is not None:
                self.prices[key] = prices

    def calls(self, endpoint: str) -> List[Tuple[str, Dict[str, Any]]]:
        """Requests whose path ends with ``endpoint`` as (method, body) pairs."""
        found = []
        for request in self.requests:
            if request.url.path.endswith(endpoint):
                body = json.loads(request.content) if request.content else {}
                found.append((request.method, body))
        return found

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/gateway/Items/GetItemsByItemIdentifiers"):
            body = json.loads(request.content)
            found = []
            for identifier in body["itemIdentifiers"]:
                for field in self.lookup_fields:
                    value = identifier.get(field)
                    if value and value in self.items:
                        found.append(self.items[value])
                        break
            return httpx.Response(200, json={"items": found})
        if path.endswith("/gateway/Items/GetOrdinaryPrices"):
            if self.price_status is not None:
                return httpx.Response(self.price_status, text="pricing unavailable")
            identifier = json.loads(request.content)["itemIdentifier"]
            key = identifier.get("gtin") or identifier.get("sku")
            return httpx.Response(200, json={"prices": self.prices.get(key, [])})
        if path.endswith("/gateway/ItemSearch/items"):
            return httpx.Response(200, json=self.search_payload)
        if path.endswith("/gateway/ItemSearch"):
            return httpx.Response(200, json=self.quick_payload)
        if path.endswith("/gateway/Search/items"):
            return httpx.Response(200, json=self.advanced_payload)
        return httpx.Response(404, text="no such endpoint")


def nok(amount: float) -> List[Dict[str, Any]]:
    return [{"salesPrice": {"amount": amount, "currencyCode": "NOK"}}]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def http_client(gateway):
    client = HTTPClient(transport=httpx.MockTransport(gateway.handler))
    yield client
    await client.close()


@pytest.fixture
def catalog(http_client) -> CatalogClient:
    return CatalogClient(http_client, deployment_mode="proxy")


@pytest_asyncio.fixture
async def cache_store(tmp_path, clock):
    store = ItemCacheStore(str(tmp_path / "items.sqlite3"), ttl_seconds=3600, max_items=100, clock=clock)
    await store.init()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def service(cache_store, catalog):
    catalog.configure("test-token", "test")
    return ItemLookupService(cache_store, catalog, CredentialContext())
