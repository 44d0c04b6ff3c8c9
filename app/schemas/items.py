"""
schemas/items.py
----------------

Models representing items, prices and lookup results. Only the fields
the lookup logic branches on are typed (identifiers, display text,
price amounts); every other catalog attribute is kept untouched in
the model's extra fields so a payload round-trips through the cache
without loss. Field names are snake_case in Python and camelCase on
the wire.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with the catalog (camelCase aliases)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ItemIdentifier(WireModel):
    sku: Optional[str] = None
    gtin: Optional[str] = None
    external_item_no: Optional[str] = None
    product_id: Optional[str] = None

    @field_validator("sku", "gtin", "external_item_no", "product_id", mode="before")
    @classmethod
    def blank_is_absent(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    def has_any(self) -> bool:
        return any((self.sku, self.gtin, self.external_item_no, self.product_id))


class StoreIdentifier(WireModel):
    store_number: Optional[int] = None


class Money(WireModel):
    model_config = ConfigDict(extra="allow")

    amount: Optional[float] = None
    currency_code: Optional[str] = None


class Brand(WireModel):
    model_config = ConfigDict(extra="allow")

    text: Optional[str] = None


class ItemRecord(WireModel):
    """Catalog item. Unknown attributes are preserved as extras."""

    model_config = ConfigDict(extra="allow")

    identifier: Optional[ItemIdentifier] = None
    item_text: Optional[str] = None
    brand: Optional[Brand] = None
    item_status: Optional[str] = None
    model_no: Optional[str] = None


class ItemPrice(WireModel):
    model_config = ConfigDict(extra="allow")

    item_identifier: Optional[ItemIdentifier] = None
    sales_price: Optional[Money] = None
    net_price: Optional[Money] = None
    recommended_retail_price: Optional[Money] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    status: Optional[str] = None

    def effective_money(self) -> Optional[Money]:
        for money in (self.sales_price, self.net_price, self.recommended_retail_price):
            if money is not None and money.amount is not None:
                return money
        return None

    def effective_amount(self) -> Optional[float]:
        money = self.effective_money()
        return money.amount if money else None


def first_price_amount(prices: Optional[List[ItemPrice]]) -> Optional[float]:
    """Return the first usable amount in a price list, if any."""
    for price in prices or []:
        amount = price.effective_amount()
        if amount is not None:
            return amount
    return None


class CachedEntry(BaseModel):
    """A cached lookup. Timestamps are epoch milliseconds."""

    key: str
    item: ItemRecord
    prices: Optional[List[ItemPrice]] = None
    store_number: Optional[int] = None
    last_updated: int
    last_accessed: int

    @model_validator(mode="after")
    def accessed_not_before_updated(self) -> "CachedEntry":
        if self.last_accessed < self.last_updated:
            self.last_accessed = self.last_updated
        return self


class CacheMetadata(BaseModel):
    total_items: int = 0
    oldest_entry_timestamp: int = 0
    newest_entry_timestamp: int = 0
    last_cleanup_timestamp: int = 0


Source = Literal["cache", "api"]
SearchSource = Literal["cache", "api", "search"]


class ItemLookupResult(BaseModel):
    item: ItemRecord
    prices: Optional[List[ItemPrice]] = None
    source: Source
    price_error: Optional[str] = None


class FacetResult(WireModel):
    code: Optional[str] = None
    name: Optional[str] = None
    count: int = 0


class HierarchicalFacetResult(FacetResult):
    child_facets: Optional[List["HierarchicalFacetResult"]] = None


class FacetResults(WireModel):
    departments: Optional[List[HierarchicalFacetResult]] = None
    brands: Optional[List[FacetResult]] = None


class SearchResultItem(BaseModel):
    identifier: Optional[ItemIdentifier] = None
    item_text: Optional[str] = None
    brand_name: Optional[str] = None
    model_no: Optional[str] = None
    gtin: Optional[str] = None
    color_text: Optional[str] = None
    size_text: Optional[str] = None
    current_price: Optional[float] = None
    promotion_price: Optional[float] = None
    in_stock: Optional[bool] = None
    thumbnail_url: Optional[str] = None
    source: SearchSource


class Suggestion(BaseModel):
    gtin: Optional[str] = None
    item_text: Optional[str] = None
    brand_name: Optional[str] = None
    model_no: Optional[str] = None


# =======================
# Options
# =======================

class LookupOptions(BaseModel):
    store_number: Optional[int] = None
    force_refresh: bool = False
    include_cache: bool = True


class SearchOptions(BaseModel):
    max_results: Optional[int] = Field(default=None, ge=1)
    use_advanced_search: bool = False
    store_number: Optional[int] = None
    in_stock: Optional[bool] = None
    in_promotion: Optional[bool] = None
    price_from: Optional[float] = None
    price_to: Optional[float] = None
    department_numbers: Optional[List[str]] = None
    brand_codes: Optional[List[str]] = None

    def wants_advanced(self) -> bool:
        if self.use_advanced_search:
            return True
        filters = (self.in_stock, self.in_promotion, self.price_from, self.price_to,
                   self.department_numbers, self.brand_codes)
        return any(f is not None for f in filters)


# =======================
# Structured responses
# =======================

ErrorKind = Literal["not_configured", "not_found", "transport", "protocol", "invalid_request", "error"]


class LookupResponse(BaseModel):
    success: bool
    result: Optional[ItemLookupResult] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class ItemsResponse(BaseModel):
    success: bool
    results: List[ItemLookupResult] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class SearchResponse(BaseModel):
    success: bool
    items: List[SearchResultItem] = Field(default_factory=list)
    total_count: int = 0
    facets: Optional[FacetResults] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


class SuggestionsResponse(BaseModel):
    success: bool
    suggestions: List[Suggestion] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
