"""
utils/cache.py
---------------

Cache key and expiry helpers for the item cache. A cache key is built
from whichever identifier fields are present plus the optional store
number, in a fixed order, so the same lookup always lands on the same
row. Entries carry their write time; an entry is stale once it is
older than the TTL no matter how recently it was read.
"""

from __future__ import annotations

import time
from typing import Optional

from app.schemas.items import ItemIdentifier


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def build_cache_key(identifier: ItemIdentifier, store_number: Optional[int] = None) -> str:
    """Build the primary key for an identifier and optional store scope.

    >>> build_cache_key(ItemIdentifier(gtin="5711724072697"), 1000)
    'gtin:5711724072697|store:1000'
    """
    parts = []
    if identifier.gtin:
        parts.append(f"gtin:{identifier.gtin}")
    if identifier.sku:
        parts.append(f"sku:{identifier.sku}")
    if identifier.external_item_no:
        parts.append(f"ext:{identifier.external_item_no}")
    if identifier.product_id:
        parts.append(f"pid:{identifier.product_id}")
    if store_number is not None:
        parts.append(f"store:{store_number}")
    return "|".join(parts)


def is_expired(last_updated_ms: int, ttl_seconds: int, now: Optional[int] = None) -> bool:
    """True once ``now - last_updated`` exceeds the TTL."""
    current = now if now is not None else now_ms()
    return current - last_updated_ms > ttl_seconds * 1000
