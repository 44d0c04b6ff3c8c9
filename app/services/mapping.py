"""
services/mapping.py
-------------------

Pure functions translating gateway payloads into internal types.

Parsing never raises: a payload that does not match the expected
shape is logged and treated as an empty result, because an
unexpected response body is not a reason to fail a checkout. The
projection helpers turn items from every origin (cache, direct
lookup, remote search) into :class:`SearchResultItem` rows tagged with
their provenance.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from app.logging_config import logger
from app.schemas.catalog import (
    SCHEMA_VERSION,
    AdvancedSearchItem,
    GetItemsByIdentifiersResult,
    ItemSearchResult,
    ItemStorePricesResponse,
    SearchableItem,
    SearchItemsWithDetails,
)
from app.schemas.items import (
    CachedEntry,
    ItemIdentifier,
    ItemLookupResult,
    ItemPrice,
    ItemRecord,
    Money,
    SearchResultItem,
    SearchSource,
    Suggestion,
    first_price_amount,
)


def _malformed(endpoint: str, detail: Any) -> None:
    logger.warning(json.dumps({
        "event": "malformed_response",
        "schema": SCHEMA_VERSION,
        "endpoint": endpoint,
        "detail": str(detail)[:300],
    }))


# =======================
# Payload parsing
# =======================

def parse_items(payload: Any) -> List[ItemRecord]:
    try:
        return GetItemsByIdentifiersResult.model_validate(payload).items
    except ValidationError as exc:
        _malformed("GetItemsByItemIdentifiers", exc)
        return []


def parse_prices(payload: Any) -> List[ItemPrice]:
    try:
        return ItemStorePricesResponse.model_validate(payload).prices
    except ValidationError as exc:
        _malformed("GetOrdinaryPrices", exc)
        return []


def parse_quick_search(payload: Any) -> List[SearchableItem]:
    if not isinstance(payload, list):
        _malformed("ItemSearch", f"expected a list, got {type(payload).__name__}")
        return []
    items: List[SearchableItem] = []
    for row in payload:
        try:
            items.append(SearchableItem.model_validate(row))
        except ValidationError as exc:
            _malformed("ItemSearch", exc)
    return items


def parse_detailed_search(payload: Any) -> Tuple[List[SearchableItem], int]:
    try:
        parsed = SearchItemsWithDetails.model_validate(payload)
    except ValidationError as exc:
        _malformed("ItemSearch/items", exc)
        return [], 0
    return parsed.searchable_items, parsed.total_count


def parse_advanced_search(payload: Any) -> ItemSearchResult:
    try:
        return ItemSearchResult.model_validate(payload)
    except ValidationError as exc:
        _malformed("Search/items", exc)
        return ItemSearchResult()


# =======================
# Projections
# =======================

def _amount(money: Optional[Money]) -> Optional[float]:
    return money.amount if money is not None else None


def from_searchable(item: SearchableItem) -> SearchResultItem:
    """Basic search carries no pricing or stock."""
    return SearchResultItem(
        identifier=ItemIdentifier(gtin=item.gtin) if item.gtin else None,
        item_text=item.item_text,
        brand_name=item.brand_name,
        model_no=item.model_no,
        gtin=item.gtin,
        color_text=item.color_text,
        size_text=item.size_text,
        source="search",
    )


def from_advanced(item: AdvancedSearchItem) -> SearchResultItem:
    current_price = _amount(item.current_ordinary_price)
    if current_price is None:
        current_price = _amount(item.current_effective_price)
    in_stock: Optional[bool] = None
    if item.available_in_store is not None or item.current_stock_quantity_available is not None:
        in_stock = bool(item.available_in_store) and (item.current_stock_quantity_available or 0) > 0
    return SearchResultItem(
        identifier=item.identifier,
        item_text=item.item_text,
        brand_name=item.brand_name,
        model_no=item.model_no,
        gtin=item.identifier.gtin if item.identifier else None,
        color_text=item.color.text if item.color else None,
        size_text=item.size.text if item.size else None,
        current_price=current_price,
        promotion_price=_amount(item.current_promotion_price),
        in_stock=in_stock,
        thumbnail_url=item.thumbnail_url,
        source="search",
    )


def _from_record(item: ItemRecord, prices: Optional[List[ItemPrice]], source: SearchSource) -> SearchResultItem:
    identifier = item.identifier
    return SearchResultItem(
        identifier=identifier,
        item_text=item.item_text,
        brand_name=item.brand.text if item.brand else None,
        model_no=item.model_no,
        gtin=identifier.gtin if identifier else None,
        current_price=first_price_amount(prices),
        source=source,
    )


def from_cached(entry: CachedEntry) -> SearchResultItem:
    return _from_record(entry.item, entry.prices, "cache")


def from_lookup(result: ItemLookupResult) -> SearchResultItem:
    return _from_record(result.item, result.prices, result.source)


def to_suggestion(item: SearchableItem) -> Suggestion:
    return Suggestion(
        gtin=item.gtin,
        item_text=item.item_text,
        brand_name=item.brand_name,
        model_no=item.model_no,
    )

