"""
clients/catalog_client.py
-------------------------

REST client for the remote item catalog and pricing gateway.

The client must be configured with a credential and an environment
before use; any call issued earlier fails fast with
:class:`ConfigurationError` and no network attempt. Item details and
prices are separate requests so that a pricing outage is never
mistaken for a missing item. Failures are classified as transport
(no response), protocol (non-2xx, status and body kept) or malformed
(unexpected body, mapped to an empty result).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from app.clients.http_client import HTTPClient
from app.core.auth import build_auth_headers, get_base_url, normalize_environment
from app.core.config import get_settings
from app.core.errors import (
    ConfigurationError,
    InvalidRequestError,
    ItemLookupError,
    NotFoundError,
    ProtocolError,
)
from app.logging_config import logger
from app.schemas.catalog import (
    AdvancedSearchRequest,
    GetItemsByIdentifiersRequest,
    ItemSearchResult,
    ItemStorePriceRequest,
    SearchableItem,
)
from app.schemas.items import ItemIdentifier, ItemLookupResult, ItemPrice, ItemRecord, StoreIdentifier
from app.services import mapping

ITEMS_BY_IDENTIFIERS = "/gateway/Items/GetItemsByItemIdentifiers"
ORDINARY_PRICES = "/gateway/Items/GetOrdinaryPrices"
QUICK_SEARCH = "/gateway/ItemSearch"
TEXT_SEARCH = "/gateway/ItemSearch/items"
ADVANCED_SEARCH = "/gateway/Search/items"

# Probe code used by test_connection; a miss still proves the gateway answers.
PROBE_GTIN = "1234567890123"


class CatalogClient:
    def __init__(self, http_client: HTTPClient, *, deployment_mode: Optional[str] = None,
                 user_id: Optional[str] = None) -> None:
        settings = get_settings()
        self.http_client = http_client
        self.deployment_mode = deployment_mode or settings.deployment_mode
        self.user_id = user_id or settings.catalog_user_id
        self._credential: Optional[str] = None
        self.environment: Optional[str] = None
        self.base_url: Optional[str] = None

    # --------------------------
    # configuration
    # --------------------------
    def configure(self, credential: str, environment: Optional[str] = None) -> None:
        """Select the environment endpoint and store the credential.

        :raises ConfigurationError: on an unknown environment
        """
        env = normalize_environment(environment or get_settings().default_environment)
        self.base_url = get_base_url(env, self.deployment_mode)
        self.environment = env
        self._credential = credential
        logger.info(json.dumps({
            "event": "catalog_configured",
            "environment": env,
            "deployment_mode": self.deployment_mode,
            "base_url": self.base_url,
            "has_credential": bool(credential),
        }))

    def is_configured(self) -> bool:
        return bool(self._credential and self.base_url)

    def get_config(self) -> Dict[str, Any]:
        """Configuration summary; the credential is never included."""
        return {
            "environment": self.environment,
            "deployment_mode": self.deployment_mode,
            "base_url": self.base_url,
            "has_credential": bool(self._credential),
        }

    def _headers(self) -> Dict[str, str]:
        return build_auth_headers(self._credential or "", self.deployment_mode, self.user_id)

    async def _request(self, method: str, endpoint: str, *, params: Optional[Dict[str, Any]] = None,
                       body: Any = None) -> Any:
        if not self.is_configured():
            raise ConfigurationError(
                "Item Service not configured. Please provide bearer token and environment."
            )
        url = f"{self.base_url}{endpoint}"
        response = await self.http_client.request(method, url, headers=self._headers(), params=params, json=body)
        if not response.is_success:
            logger.error(f"Item Service API error {response.status_code} for {method} {endpoint}")
            raise ProtocolError(response.status_code, response.text)
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Item Service returned a non-JSON body for {method} {endpoint}")
            return None

    # --------------------------
    # items and prices
    # --------------------------
    async def get_items_by_identifiers(self, identifiers: List[ItemIdentifier]) -> List[ItemRecord]:
        """Fetch items for several identifiers in one batched request.

        :raises InvalidRequestError: if no identifier is given
        """
        if not identifiers:
            raise InvalidRequestError("No item identifiers provided")
        request = GetItemsByIdentifiersRequest(item_identifiers=identifiers)
        payload = await self._request("POST", ITEMS_BY_IDENTIFIERS, body=request.to_wire())
        return mapping.parse_items(payload)

    async def get_prices(self, identifier: ItemIdentifier, store: StoreIdentifier) -> List[ItemPrice]:
        """Fetch ordinary prices of one item in one store."""
        request = ItemStorePriceRequest(item_identifier=identifier, store_identifier=store)
        payload = await self._request("POST", ORDINARY_PRICES, body=request.to_wire())
        return mapping.parse_prices(payload)

    async def get_item_with_prices(self, identifier: ItemIdentifier, store: StoreIdentifier) -> ItemLookupResult:
        """Look an item up, then price it independently.

        A pricing failure leaves ``prices`` unset and fills
        ``price_error``; the item is still returned.

        :raises NotFoundError: if the catalog returns no item
        """
        items = await self.get_items_by_identifiers([identifier])
        if not items:
            raise NotFoundError("Item not found")
        item = items[0]
        prices, price_error = await self._price_softly(identifier, store)
        return ItemLookupResult(item=item, prices=prices, source="api", price_error=price_error)

    async def get_multiple_items_with_prices(self, identifiers: List[ItemIdentifier],
                                             store: StoreIdentifier) -> List[ItemLookupResult]:
        items = await self.get_items_by_identifiers(identifiers)
        results: List[ItemLookupResult] = []
        for item in items:
            if item.identifier is None or not item.identifier.has_any():
                results.append(ItemLookupResult(item=item, source="api",
                                                price_error="Item has no identifier for price lookup"))
                continue
            prices, price_error = await self._price_softly(item.identifier, store)
            results.append(ItemLookupResult(item=item, prices=prices, source="api", price_error=price_error))
        return results

    async def _price_softly(self, identifier: ItemIdentifier,
                            store: StoreIdentifier) -> Tuple[Optional[List[ItemPrice]], Optional[str]]:
        try:
            return await self.get_prices(identifier, store), None
        except ItemLookupError as exc:
            logger.warning(f"Item found but price lookup failed: {exc}")
            return None, f"Item found but price lookup failed: {exc}"

    # --------------------------
    # search
    # --------------------------
    async def search_items(self, query: str, *, top: Optional[int] = None, skip: Optional[int] = None,
                           supplier_no: Optional[str] = None) -> List[SearchableItem]:
        """Quick search used for suggestions."""
        params = self._search_params(query, top if top is not None else get_settings().basic_search_top, skip)
        if supplier_no:
            params["supplierNo"] = supplier_no
        payload = await self._request("GET", QUICK_SEARCH, params=params)
        return mapping.parse_quick_search(payload)

    async def search_text(self, query: str, *, top: Optional[int] = None, skip: Optional[int] = None,
                          store_number: Optional[int] = None) -> Tuple[List[SearchableItem], int]:
        """Basic full-text search: fast, without pricing or stock."""
        params = self._search_params(query, top if top is not None else get_settings().detailed_search_top, skip)
        if store_number is not None:
            params["storeNo"] = store_number
        payload = await self._request("GET", TEXT_SEARCH, params=params)
        return mapping.parse_detailed_search(payload)

    async def advanced_search(self, request: AdvancedSearchRequest) -> ItemSearchResult:
        """Filtered search with facet counts; slower than :meth:`search_text`."""
        if not request.full_text_query.strip():
            raise InvalidRequestError("Search query cannot be empty")
        payload = await self._request("POST", ADVANCED_SEARCH, body=request.to_wire())
        return mapping.parse_advanced_search(payload)

    @staticmethod
    def _search_params(query: str, top: int, skip: Optional[int]) -> Dict[str, Any]:
        if not (query or "").strip():
            raise InvalidRequestError("Search query cannot be empty")
        params: Dict[str, Any] = {"query": query.strip(), "top": top}
        if skip is not None:
            params["skip"] = skip
        return params

    # --------------------------
    # diagnostics
    # --------------------------
    async def test_connection(self) -> Tuple[bool, str]:
        if not self.is_configured():
            return False, "Item Service not configured. Please provide bearer token and environment."
        try:
            await self.get_items_by_identifiers([ItemIdentifier(gtin=PROBE_GTIN)])
        except ProtocolError as exc:
            if exc.status_code == 404:
                return True, (f"Item Service connection successful! Environment: {self.environment} "
                              "(test item not found, but API is accessible)")
            return False, f"Item Service connection failed: {exc}"
        except ItemLookupError as exc:
            return False, f"Item Service connection failed: {exc}"
        return True, f"Item Service connection successful! Environment: {self.environment}"
