"""
services/lookup_service.py
--------------------------

Single entry point for item lookups at the till.

``ItemLookupService`` combines the persistent item cache with the
remote catalog client: a lookup is answered from the cache when
possible and fetched (then cached) otherwise; a search walks a
short-circuiting chain of cache search, direct identifier lookup and
remote text search. Every public coroutine returns a structured
response; failures raised by the lower layers are converted here into
``success=False`` results carrying an ``error_kind`` so callers can
tell "not found" apart from a network problem.

Instances are built once in the application lifespan and injected
into the routes; nothing here is a module-level singleton.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from app.clients.catalog_client import CatalogClient
from app.core.config import get_settings
from app.core.context import CredentialContext
from app.core.errors import (
    ConfigurationError,
    InvalidRequestError,
    ItemLookupError,
    NotFoundError,
    NotInitializedError,
    ProtocolError,
)
from app.logging_config import logger
from app.schemas.catalog import AdvancedSearchRequest
from app.schemas.items import (
    CacheMetadata,
    ItemIdentifier,
    ItemLookupResult,
    ItemRecord,
    ItemsResponse,
    LookupOptions,
    LookupResponse,
    SearchOptions,
    SearchResponse,
    StoreIdentifier,
    SuggestionsResponse,
)
from app.services import mapping
from app.services.cache_store import ItemCacheStore
from app.utils.identifiers import parse_search_term

R = TypeVar("R", LookupResponse, ItemsResponse, SearchResponse, SuggestionsResponse)

MIN_QUICK_SEARCH_LENGTH = 2
SELF_TEST_GTIN = "TEST123456789"


def _same_item(requested: ItemIdentifier, returned: Optional[ItemIdentifier]) -> bool:
    if returned is None:
        return False
    for field in ("gtin", "sku", "external_item_no", "product_id"):
        value = getattr(requested, field)
        if value is not None and value == getattr(returned, field):
            return True
    return False


class ItemLookupService:
    """Cache-first item lookup and product search.

    :param cache: the persistent item cache
    :param catalog: the remote catalog client
    :param credentials: optional store of a previously supplied credential,
        used to configure the catalog lazily
    """

    def __init__(self, cache: ItemCacheStore, catalog: CatalogClient,
                 credentials: Optional[CredentialContext] = None) -> None:
        self.cache = cache
        self.catalog = catalog
        self.credentials = credentials

    # --------------------------
    # lifecycle
    # --------------------------
    async def init(self) -> None:
        await self.cache.init()
        logger.info(json.dumps({"event": "lookup_service_initialized"}))

    def configure(self, credential: str, environment: Optional[str] = None) -> None:
        """Configure the catalog client and remember the credential.

        :raises ConfigurationError: on an unknown environment
        """
        self.catalog.configure(credential, environment)
        if self.credentials is not None:
            self.credentials.set(credential, self.catalog.environment)

    def is_ready(self) -> bool:
        return self.cache.is_initialized and self.catalog.is_configured()

    def _ensure_ready(self) -> None:
        if not self.cache.is_initialized:
            raise NotInitializedError("Item lookup service not initialized")
        if self.catalog.is_configured():
            return
        stored = self.credentials.get() if self.credentials is not None else None
        if stored is None:
            raise ConfigurationError("Item Service not configured. Please provide bearer token and environment.")
        logger.info(json.dumps({"event": "lazy_configure", "environment": stored.environment}))
        self.catalog.configure(stored.credential, stored.environment)

    @staticmethod
    def _failure(response_type: Type[R], exc: Exception) -> R:
        if isinstance(exc, ItemLookupError):
            logger.warning(json.dumps({"event": "lookup_failed", "kind": exc.kind, "error": str(exc)}))
            return response_type(success=False, error=str(exc), error_kind=exc.kind)
        logger.error(f"Unexpected error during item lookup: {exc}", exc_info=True)
        return response_type(success=False, error=str(exc) or type(exc).__name__, error_kind="error")

    # --------------------------
    # lookups
    # --------------------------
    async def get_item(self, identifier: ItemIdentifier, options: Optional[LookupOptions] = None) -> LookupResponse:
        """Look one item up, cache first.

        A price lookup failure still yields ``success=True`` with the item
        and ``result.price_error`` set.
        """
        try:
            self._ensure_ready()
            result = await self._get_item(identifier, options or LookupOptions())
        except Exception as exc:
            return self._failure(LookupResponse, exc)
        return LookupResponse(success=True, result=result)

    async def _get_item(self, identifier: ItemIdentifier, options: LookupOptions) -> ItemLookupResult:
        if not identifier.has_any():
            raise InvalidRequestError("Item identifier is empty")
        store_number = options.store_number

        if options.include_cache and not options.force_refresh:
            entry = await self.cache.get(identifier, store_number)
            if entry is not None:
                return ItemLookupResult(item=entry.item, prices=entry.prices, source="cache")

        result = await self.catalog.get_item_with_prices(identifier, StoreIdentifier(store_number=store_number))
        if options.include_cache:
            await self.cache.put(result.item, result.prices, store_number, identifier=identifier)
        return result

    async def get_item_by_code(self, code: str, options: Optional[LookupOptions] = None) -> LookupResponse:
        """Resolve a code that may be a SKU or a barcode.

        The code is tried as a SKU first and only retried as a GTIN when
        that fails.
        """
        code = (code or "").strip()
        if not code:
            return self._failure(LookupResponse, InvalidRequestError("Item code is empty"))
        response = await self.get_item(ItemIdentifier(sku=code), options)
        if response.success or response.error_kind == "not_configured":
            return response
        logger.info(json.dumps({"event": "sku_lookup_failed_trying_gtin", "code": code}))
        return await self.get_item(ItemIdentifier(gtin=code), options)

    async def get_items(self, identifiers: List[ItemIdentifier],
                        options: Optional[LookupOptions] = None) -> ItemsResponse:
        """Look several items up with one batched remote request for the misses."""
        try:
            self._ensure_ready()
            results = await self._get_items(identifiers, options or LookupOptions())
        except Exception as exc:
            return self._failure(ItemsResponse, exc)
        return ItemsResponse(success=True, results=results)

    async def _get_items(self, identifiers: List[ItemIdentifier], options: LookupOptions) -> List[ItemLookupResult]:
        identifiers = [i for i in identifiers if i.has_any()]
        if not identifiers:
            raise InvalidRequestError("No item identifiers provided")
        store_number = options.store_number

        results: List[ItemLookupResult] = []
        misses: List[ItemIdentifier] = []
        for identifier in identifiers:
            entry = None
            if options.include_cache and not options.force_refresh:
                entry = await self.cache.get(identifier, store_number)
            if entry is None:
                misses.append(identifier)
            else:
                results.append(ItemLookupResult(item=entry.item, prices=entry.prices, source="cache"))

        if not misses:
            return results

        fetched = await self.catalog.get_multiple_items_with_prices(misses, StoreIdentifier(store_number=store_number))
        for result in fetched:
            if options.include_cache:
                requested = next((i for i in misses if _same_item(i, result.item.identifier)), None)
                await self.cache.put(result.item, result.prices, store_number, identifier=requested)
            results.append(result)
        return results

    # --------------------------
    # search
    # --------------------------
    async def search_products(self, query: str, options: Optional[SearchOptions] = None) -> SearchResponse:
        """Search the cache, then try the term as an identifier, then search remotely.

        Remote search results are never written to the cache.
        """
        try:
            self._ensure_ready()
            return await self._search_products(query, options or SearchOptions())
        except Exception as exc:
            return self._failure(SearchResponse, exc)

    async def _search_products(self, query: str, options: SearchOptions) -> SearchResponse:
        term = (query or "").strip()
        if not term:
            raise InvalidRequestError("Search query cannot be empty")
        max_results = options.max_results or get_settings().search_max_results

        cached = await self.cache.search_by_text(term, options.store_number)
        if cached:
            logger.info(json.dumps({"event": "search_cache_hit", "query": term, "count": len(cached)}))
            items = [mapping.from_cached(entry) for entry in cached[:max_results]]
            return SearchResponse(success=True, items=items, total_count=len(cached))

        identifier = parse_search_term(term)
        if identifier is not None:
            try:
                result = await self._get_item(identifier, LookupOptions(store_number=options.store_number))
            except (NotFoundError, ProtocolError) as exc:
                logger.info(json.dumps({"event": "search_identifier_miss", "query": term, "error": str(exc)}))
            else:
                return SearchResponse(success=True, items=[mapping.from_lookup(result)], total_count=1)

        if options.wants_advanced():
            request = AdvancedSearchRequest(
                full_text_query=term,
                top=max_results,
                is_in_stock=options.in_stock,
                store_no=options.store_number,
                effective_price_from=options.price_from,
                effective_price_to=options.price_to,
                is_in_promotion=options.in_promotion,
                department_numbers=options.department_numbers,
                brand_codes=options.brand_codes,
            )
            found = await self.catalog.advanced_search(request)
            items = [mapping.from_advanced(row) for row in found.results]
            return SearchResponse(success=True, items=items, total_count=found.total_count, facets=found.facets)

        rows, total = await self.catalog.search_text(term, top=max_results, store_number=options.store_number)
        items = [mapping.from_searchable(row) for row in rows]
        return SearchResponse(success=True, items=items, total_count=total)

    async def quick_search(self, query: str, max_results: int = 10) -> SuggestionsResponse:
        """Autocomplete suggestions; terms shorter than two characters yield none."""
        term = (query or "").strip()
        if len(term) < MIN_QUICK_SEARCH_LENGTH:
            return SuggestionsResponse(success=True)
        try:
            self._ensure_ready()
            rows = await self.catalog.search_items(term, top=max_results)
        except Exception as exc:
            return self._failure(SuggestionsResponse, exc)
        return SuggestionsResponse(success=True, suggestions=[mapping.to_suggestion(r) for r in rows[:max_results]])

    # --------------------------
    # maintenance
    # --------------------------
    async def get_cache_stats(self) -> CacheMetadata:
        """:raises NotInitializedError: if :meth:`init` has not run"""
        if not self.cache.is_initialized:
            raise NotInitializedError("Item lookup service not initialized")
        return await self.cache.stats()

    async def clear_cache(self) -> None:
        """:raises NotInitializedError: if :meth:`init` has not run"""
        if not self.cache.is_initialized:
            raise NotInitializedError("Item lookup service not initialized")
        await self.cache.clear()

    async def run_expiry_sweep(self, interval_seconds: float) -> None:
        """Periodically purge expired entries until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = await self.cache.purge_expired()
            if removed:
                logger.info(json.dumps({"event": "expiry_sweep", "removed": removed}))

    async def test_service(self) -> Dict[str, Any]:
        """Probe the catalog and run a put/get/remove round trip on the cache."""
        try:
            self._ensure_ready()
        except ItemLookupError as exc:
            return {"success": False, "message": str(exc), "api_connected": False, "cache_working": False}

        api_connected, api_message = await self.catalog.test_connection()
        cache_working, cache_message = await self._test_cache()
        return {
            "success": api_connected and cache_working,
            "message": f"{api_message}; {cache_message}",
            "api_connected": api_connected,
            "cache_working": cache_working,
        }

    async def _test_cache(self) -> Tuple[bool, str]:
        identifier = ItemIdentifier(gtin=SELF_TEST_GTIN)
        probe = ItemRecord(identifier=identifier, item_text="Cache self-test item")
        await self.cache.put(probe, [], None, identifier=identifier)
        entry = await self.cache.get(identifier)
        await self.cache.remove(identifier)
        if entry is None or entry.item.item_text != probe.item_text:
            return False, "Cache test failed"
        return True, "Cache is working"

    def get_status(self) -> Dict[str, Any]:
        config = self.catalog.get_config()
        return {
            "initialized": self.cache.is_initialized,
            "api_configured": self.catalog.is_configured(),
            "environment": config["environment"],
            "deployment_mode": config["deployment_mode"],
            "ready": self.is_ready(),
        }
