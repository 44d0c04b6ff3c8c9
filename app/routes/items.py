"""
routes/items.py
---------------

API routes for item lookup and product search. The routes delegate to
the shared :class:`ItemLookupService` held on the application state
and translate its structured failures into HTTP status codes so the
till can tell a missing product (404) from an unreachable catalog
(502) or a terminal that still needs credentials (503).
"""

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from app.core.errors import ItemLookupError
from app.logging_config import log_call, logger
from app.schemas.items import (
    CacheMetadata,
    ItemIdentifier,
    ItemsResponse,
    LookupOptions,
    LookupResponse,
    SearchOptions,
    SearchResponse,
    SuggestionsResponse,
)
from app.services.lookup_service import ItemLookupService

router = APIRouter(prefix="/items", tags=["items"])

ERROR_STATUS = {
    "not_configured": 503,
    "not_found": 404,
    "transport": 502,
    "protocol": 502,
    "invalid_request": 422,
}


class ConfigureRequest(BaseModel):
    credential: str = Field(min_length=1)
    environment: Optional[str] = None


class LookupRequest(BaseModel):
    identifier: ItemIdentifier
    options: LookupOptions = Field(default_factory=LookupOptions)


class BatchLookupRequest(BaseModel):
    identifiers: List[ItemIdentifier]
    options: LookupOptions = Field(default_factory=LookupOptions)


def get_lookup_service(request: Request) -> ItemLookupService:
    """Dependency to retrieve the shared lookup service from the application state."""
    return request.app.state.lookup_service


def _raise_for_failure(response) -> None:
    if response.success:
        return
    status = ERROR_STATUS.get(response.error_kind, 500)
    raise HTTPException(status_code=status, detail={"error": response.error, "error_kind": response.error_kind})


@router.post("/configure")
def configure(data: ConfigureRequest, service: ItemLookupService = Depends(get_lookup_service)):
    logger.info(json.dumps({"event": "configure_request", "environment": data.environment}))
    try:
        service.configure(data.credential, data.environment)
    except ItemLookupError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return service.get_status()


@router.get("/status")
def status(service: ItemLookupService = Depends(get_lookup_service)):
    return service.get_status()


@router.get("/test")
@log_call
async def test_service(service: ItemLookupService = Depends(get_lookup_service)):
    return await service.test_service()


@router.post("/lookup", response_model=LookupResponse)
@log_call
async def lookup(data: LookupRequest, service: ItemLookupService = Depends(get_lookup_service)):
    response = await service.get_item(data.identifier, data.options)
    _raise_for_failure(response)
    return response


@router.get("/code/{code}", response_model=LookupResponse)
@log_call
async def lookup_by_code(
    code: str,
    store_number: Optional[int] = Query(default=None),
    force_refresh: bool = Query(default=False),
    service: ItemLookupService = Depends(get_lookup_service),
):
    options = LookupOptions(store_number=store_number, force_refresh=force_refresh)
    response = await service.get_item_by_code(code, options)
    _raise_for_failure(response)
    return response


@router.post("/batch", response_model=ItemsResponse)
@log_call
async def lookup_batch(data: BatchLookupRequest, service: ItemLookupService = Depends(get_lookup_service)):
    response = await service.get_items(data.identifiers, data.options)
    _raise_for_failure(response)
    return response


@router.get("/search", response_model=SearchResponse)
@log_call
async def search(
    q: str = Query(..., min_length=1),
    max_results: Optional[int] = Query(default=None, ge=1),
    store_number: Optional[int] = Query(default=None),
    advanced: bool = Query(default=False),
    in_stock: Optional[bool] = Query(default=None),
    in_promotion: Optional[bool] = Query(default=None),
    price_from: Optional[float] = Query(default=None),
    price_to: Optional[float] = Query(default=None),
    department: Optional[List[str]] = Query(default=None),
    brand: Optional[List[str]] = Query(default=None),
    service: ItemLookupService = Depends(get_lookup_service),
):
    options = SearchOptions(
        max_results=max_results,
        use_advanced_search=advanced,
        store_number=store_number,
        in_stock=in_stock,
        in_promotion=in_promotion,
        price_from=price_from,
        price_to=price_to,
        department_numbers=department,
        brand_codes=brand,
    )
    response = await service.search_products(q, options)
    _raise_for_failure(response)
    return response


@router.get("/suggest", response_model=SuggestionsResponse)
async def suggest(
    q: str = Query(default=""),
    max_results: int = Query(default=10, ge=1, le=50),
    service: ItemLookupService = Depends(get_lookup_service),
):
    response = await service.quick_search(q, max_results)
    _raise_for_failure(response)
    return response


@router.get("/cache/stats", response_model=CacheMetadata)
async def cache_stats(service: ItemLookupService = Depends(get_lookup_service)):
    try:
        return await service.get_cache_stats()
    except ItemLookupError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.delete("/cache")
async def clear_cache(service: ItemLookupService = Depends(get_lookup_service)):
    try:
        await service.clear_cache()
    except ItemLookupError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    logger.info(json.dumps({"event": "cache_cleared_by_request"}))
    return {"success": True}
