from app.schemas.items import CachedEntry, ItemLookupResult, ItemPrice, ItemRecord
from app.services import mapping
from app.utils.identifiers import parse_search_term


def test_basic_search_item_is_flat():
    items, total = mapping.parse_detailed_search({
        "searchableItems": [{
            "id": "1",
            "itemText": "Oxford shirt",
            "brandName": "Acme",
            "colorText": "Blue",
            "sizeText": "M",
            "gtin": "7000000000001",
            "modelNo": "OX-1",
        }],
        "totalCount": 7,
    })
    row = mapping.from_searchable(items[0])

    assert total == 7
    assert row.source == "search"
    assert row.gtin == "7000000000001"
    assert row.identifier.gtin == "7000000000001"
    assert (row.color_text, row.size_text, row.brand_name) == ("Blue", "M", "Acme")
    assert row.current_price is None


def test_advanced_search_item_is_nested():
    result = mapping.parse_advanced_search({
        "results": [{
            "identifier": {"gtin": "7000000000002", "sku": "OX-2"},
            "itemText": "Oxford shirt",
            "color": {"text": "White"},
            "size": {"text": "L"},
            "currentOrdinaryPrice": {"amount": 499.0, "currencyCode": "NOK"},
            "currentPromotionPrice": {"amount": 399.0},
            "availableInStore": True,
            "currentStockQuantityAvailable": 3,
        }],
        "totalCount": 1,
        "facets": {"departments": [{"code": "10", "count": 1, "childFacets": [{"code": "11", "count": 1}]}]},
    })
    row = mapping.from_advanced(result.results[0])

    assert row.source == "search"
    assert row.identifier.sku == "OX-2"
    assert (row.color_text, row.size_text) == ("White", "L")
    assert row.current_price == 499.0
    assert row.promotion_price == 399.0
    assert row.in_stock is True
    assert result.facets.departments[0].child_facets[0].code == "11"


def test_advanced_item_falls_back_to_effective_price_and_reports_no_stock():
    result = mapping.parse_advanced_search({"results": [{
        "itemText": "Socks",
        "currentEffectivePrice": {"amount": 49.0},
        "availableInStore": True,
        "currentStockQuantityAvailable": 0,
    }]})
    row = mapping.from_advanced(result.results[0])
    assert row.current_price == 49.0
    assert row.in_stock is False


def test_advanced_item_without_stock_fields_has_unknown_stock():
    result = mapping.parse_advanced_search({"results": [{"itemText": "Socks"}]})
    assert mapping.from_advanced(result.results[0]).in_stock is None


def test_quick_search_requires_a_list_and_skips_bad_rows():
    assert mapping.parse_quick_search({"items": []}) == []
    rows = mapping.parse_quick_search([{"itemText": "Shirt", "gtin": "7000000000003"}, "garbage"])
    assert [mapping.to_suggestion(r).item_text for r in rows] == ["Shirt"]


def test_malformed_payloads_map_to_empty_results():
    assert mapping.parse_items(None) == []
    assert mapping.parse_prices({"prices": [1, 2]}) == []
    assert mapping.parse_detailed_search("oops") == ([], 0)
    assert mapping.parse_advanced_search([]).results == []


def test_cached_and_looked_up_items_carry_their_source():
    item = ItemRecord.model_validate({"identifier": {"gtin": "7000000000004"}, "itemText": "Cap",
                                      "brand": {"text": "Acme"}})
    prices = [ItemPrice.model_validate({"netPrice": {"amount": 80.0}})]
    entry = CachedEntry(key="gtin:7000000000004", item=item, prices=prices, last_updated=1, last_accessed=1)

    cached = mapping.from_cached(entry)
    assert cached.source == "cache"
    assert cached.brand_name == "Acme"
    assert cached.current_price == 80.0

    fetched = mapping.from_lookup(ItemLookupResult(item=item, source="api"))
    assert fetched.source == "api"
    assert fetched.current_price is None


def test_search_term_classification():
    assert parse_search_term("123456789").gtin == "123456789"
    assert parse_search_term("1234567").sku == "1234567"
    assert parse_search_term("AB-12").sku == "AB-12"
    assert parse_search_term("ab") is None
    assert parse_search_term("blue shirt") is None
