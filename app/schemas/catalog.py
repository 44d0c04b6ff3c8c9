"""
schemas/catalog.py
------------------

Wire schemas of the item gateway responses and requests. There is one
explicit model per endpoint. Basic text search returns flat text
fields (``itemText``, ``brandName``, ``colorText``, ``sizeText``);
advanced search returns nested ``color.text`` / ``size.text`` and
money objects. Mapping into the internal types lives in
:mod:`app.services.mapping`.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import ConfigDict, Field

from app.schemas.items import (
    FacetResults,
    ItemIdentifier,
    ItemPrice,
    ItemRecord,
    Money,
    StoreIdentifier,
    WireModel,
)

SCHEMA_VERSION = "item-gateway-v1"


class GetItemsByIdentifiersRequest(WireModel):
    item_identifiers: List[ItemIdentifier]


class GetItemsByIdentifiersResult(WireModel):
    model_config = ConfigDict(extra="allow")

    items: List[ItemRecord] = Field(default_factory=list)


class ItemStorePriceRequest(WireModel):
    item_identifier: ItemIdentifier
    store_identifier: StoreIdentifier


class ItemStorePricesResponse(WireModel):
    model_config = ConfigDict(extra="allow")

    prices: List[ItemPrice] = Field(default_factory=list)


class SearchableItem(WireModel):
    """Flat item row returned by ``/gateway/ItemSearch``."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    item_text: Optional[str] = None
    brand_name: Optional[str] = None
    color_text: Optional[str] = None
    size_text: Optional[str] = None
    external_item_number: Optional[str] = None
    model_no: Optional[str] = None
    gtin: Optional[str] = None
    supplier_name: Optional[str] = None


class SearchItemsWithDetails(WireModel):
    model_config = ConfigDict(extra="allow")

    searchable_items: List[SearchableItem] = Field(default_factory=list)
    total_count: int = 0


class TextField(WireModel):
    model_config = ConfigDict(extra="allow")

    text: Optional[str] = None


class AdvancedSearchItem(WireModel):
    """Nested item row returned by ``/gateway/Search/items``."""

    model_config = ConfigDict(extra="allow")

    identifier: Optional[ItemIdentifier] = None
    model_no: Optional[str] = None
    color: Optional[TextField] = None
    size: Optional[TextField] = None
    item_text: Optional[str] = None
    brand_name: Optional[str] = None
    department_name: Optional[str] = None
    current_ordinary_price: Optional[Money] = None
    current_promotion_price: Optional[Money] = None
    current_effective_price: Optional[Money] = None
    available_in_store: Optional[bool] = None
    current_stock_quantity_available: Optional[float] = None
    thumbnail_url: Optional[str] = None


class ItemSearchResult(WireModel):
    model_config = ConfigDict(extra="allow")

    results: List[AdvancedSearchItem] = Field(default_factory=list)
    total_count: int = 0
    facets: Optional[FacetResults] = None


class AdvancedSearchRequest(WireModel):
    full_text_query: str
    top: int
    full_text_query_language_code: Optional[str] = None
    is_in_stock: Optional[bool] = None
    store_no: Optional[int] = None
    effective_price_from: Optional[float] = None
    effective_price_to: Optional[float] = None
    is_in_promotion: Optional[bool] = None
    department_numbers: Optional[List[str]] = None
    brand_codes: Optional[List[str]] = None
