import httpx
import pytest

from app.clients.catalog_client import CatalogClient
from app.clients.http_client import HTTPClient
from app.core.errors import ConfigurationError, InvalidRequestError, NotFoundError, ProtocolError, TransportError
from app.schemas.catalog import AdvancedSearchRequest
from app.schemas.items import ItemIdentifier, StoreIdentifier

from .conftest import TEST_GTIN, nok


@pytest.fixture
def configured(catalog):
    catalog.configure("test-token", "test")
    return catalog


@pytest.mark.asyncio
async def test_unconfigured_client_never_touches_network(catalog, gateway):
    assert not catalog.is_configured()
    with pytest.raises(ConfigurationError):
        await catalog.get_items_by_identifiers([ItemIdentifier(gtin=TEST_GTIN)])
    assert gateway.requests == []


def test_unknown_environment_is_rejected(catalog):
    with pytest.raises(ConfigurationError):
        catalog.configure("token", "staging")
    assert not catalog.is_configured()


def test_config_summary_hides_credential(configured):
    config = configured.get_config()
    assert config["environment"] == "test"
    assert config["base_url"].endswith("/api/itemservice-test")
    assert config["has_credential"] is True
    assert "test-token" not in str(config)


@pytest.mark.asyncio
async def test_empty_identifier_list_is_rejected_without_request(configured, gateway):
    with pytest.raises(InvalidRequestError):
        await configured.get_items_by_identifiers([])
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_batched_lookup_sends_camel_case_identifiers(configured, gateway):
    gateway.add_item({"identifier": {"gtin": TEST_GTIN}, "itemText": "Test Product"}, TEST_GTIN)
    items = await configured.get_items_by_identifiers([ItemIdentifier(gtin=TEST_GTIN, external_item_no="")])

    assert [i.item_text for i in items] == ["Test Product"]
    (method, body), = gateway.calls("/gateway/Items/GetItemsByItemIdentifiers")
    assert method == "POST"
    assert body == {"itemIdentifiers": [{"gtin": TEST_GTIN}]}


@pytest.mark.asyncio
async def test_price_lookup_is_store_scoped(configured, gateway):
    gateway.prices[TEST_GTIN] = nok(29.99)
    prices = await configured.get_prices(ItemIdentifier(gtin=TEST_GTIN), StoreIdentifier(store_number=1000))

    assert prices[0].effective_amount() == 29.99
    (_, body), = gateway.calls("/gateway/Items/GetOrdinaryPrices")
    assert body == {"itemIdentifier": {"gtin": TEST_GTIN}, "storeIdentifier": {"storeNumber": 1000}}


@pytest.mark.asyncio
async def test_non_2xx_becomes_protocol_error_with_status_and_body():
    def handler(request):
        return httpx.Response(500, text="gateway exploded")

    http_client = HTTPClient(transport=httpx.MockTransport(handler))
    client = CatalogClient(http_client, deployment_mode="proxy")
    client.configure("token", "dev")
    try:
        with pytest.raises(ProtocolError) as excinfo:
            await client.get_items_by_identifiers([ItemIdentifier(gtin=TEST_GTIN)])
    finally:
        await http_client.close()
    assert excinfo.value.status_code == 500
    assert str(excinfo.value) == "API error 500: gateway exploded"


@pytest.mark.asyncio
async def test_connection_failure_becomes_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    http_client = HTTPClient(transport=httpx.MockTransport(handler))
    client = CatalogClient(http_client, deployment_mode="proxy")
    client.configure("token", "dev")
    try:
        with pytest.raises(TransportError):
            await client.get_prices(ItemIdentifier(gtin=TEST_GTIN), StoreIdentifier())
    finally:
        await http_client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"unexpected": True}, {"items": "nope"}, ["not", "a", "dict"]])
async def test_malformed_item_response_is_empty(payload):
    http_client = HTTPClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)))
    client = CatalogClient(http_client, deployment_mode="proxy")
    client.configure("token", "dev")
    try:
        assert await client.get_items_by_identifiers([ItemIdentifier(gtin=TEST_GTIN)]) == []
    finally:
        await http_client.close()


@pytest.mark.asyncio
async def test_non_json_body_is_empty():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    http_client = HTTPClient(transport=httpx.MockTransport(handler))
    client = CatalogClient(http_client, deployment_mode="proxy")
    client.configure("token", "dev")
    try:
        assert await client.get_prices(ItemIdentifier(gtin=TEST_GTIN), StoreIdentifier()) == []
    finally:
        await http_client.close()


@pytest.mark.asyncio
async def test_item_with_prices_keeps_item_when_pricing_fails(configured, gateway):
    gateway.add_item({"identifier": {"gtin": TEST_GTIN}, "itemText": "Test Product"}, TEST_GTIN)
    gateway.price_status = 503

    result = await configured.get_item_with_prices(ItemIdentifier(gtin=TEST_GTIN), StoreIdentifier(store_number=1))
    assert result.item.item_text == "Test Product"
    assert result.prices is None
    assert "503" in result.price_error


@pytest.mark.asyncio
async def test_item_with_prices_not_found(configured):
    with pytest.raises(NotFoundError):
        await configured.get_item_with_prices(ItemIdentifier(gtin=TEST_GTIN), StoreIdentifier())


@pytest.mark.asyncio
async def test_multiple_items_flag_items_without_identifier(configured, gateway):
    gateway.add_item({"identifier": {"gtin": TEST_GTIN}, "itemText": "Priced"}, TEST_GTIN, prices=nok(10))
    gateway.add_item({"itemText": "Anonymous"}, "SKU-ANON")

    results = await configured.get_multiple_items_with_prices(
        [ItemIdentifier(gtin=TEST_GTIN), ItemIdentifier(sku="SKU-ANON")], StoreIdentifier()
    )
    by_text = {r.item.item_text: r for r in results}
    assert by_text["Priced"].prices[0].effective_amount() == 10
    assert by_text["Anonymous"].price_error == "Item has no identifier for price lookup"
    assert len(gateway.calls("/gateway/Items/GetOrdinaryPrices")) == 1


@pytest.mark.asyncio
async def test_search_text_sends_query_and_default_top(configured, gateway):
    gateway.search_payload = {"searchableItems": [{"itemText": "Blue shirt", "gtin": "7000000000001"}],
                              "totalCount": 42}
    items, total = await configured.search_text("  shirt ")

    assert total == 42
    assert items[0].item_text == "Blue shirt"
    request = gateway.requests[-1]
    assert request.url.params["query"] == "shirt"
    assert request.url.params["top"] == "50"


@pytest.mark.asyncio
async def test_quick_search_uses_basic_top_and_supplier(configured, gateway):
    gateway.quick_payload = [{"itemText": "Shirt"}]
    items = await configured.search_items("shirt", supplier_no="77")

    assert len(items) == 1
    params = gateway.requests[-1].url.params
    assert params["top"] == "100"
    assert params["supplierNo"] == "77"


@pytest.mark.asyncio
async def test_blank_queries_are_rejected_without_request(configured, gateway):
    with pytest.raises(InvalidRequestError):
        await configured.search_text(" ")
    with pytest.raises(InvalidRequestError):
        await configured.search_items("")
    with pytest.raises(InvalidRequestError):
        await configured.advanced_search(AdvancedSearchRequest(full_text_query="  ", top=10))
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_advanced_search_posts_only_set_filters(configured, gateway):
    gateway.advanced_payload = {"results": [], "totalCount": 0, "facets": {"brands": [{"code": "B1", "count": 3}]}}
    result = await configured.advanced_search(
        AdvancedSearchRequest(full_text_query="shirt", top=20, is_in_stock=True, store_no=1000)
    )

    assert result.facets.brands[0].count == 3
    (_, body), = gateway.calls("/gateway/Search/items")
    assert body == {"fullTextQuery": "shirt", "top": 20, "isInStock": True, "storeNo": 1000}


@pytest.mark.asyncio
async def test_connection_probe(configured, gateway):
    ok, message = await configured.test_connection()
    assert ok
    assert "successful" in message
    (_, body), = gateway.calls("/gateway/Items/GetItemsByItemIdentifiers")
    assert body == {"itemIdentifiers": [{"gtin": "1234567890123"}]}


@pytest.mark.asyncio
async def test_connection_probe_unconfigured(catalog):
    ok, message = await catalog.test_connection()
    assert not ok
    assert "not configured" in message
