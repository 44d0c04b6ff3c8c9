"""
utils/identifiers.py
--------------------

Heuristics for deciding whether free text typed or scanned at the till
is a product code, and which identifier field it should be tried as.
"""

from __future__ import annotations

import re
from typing import Optional

from app.schemas.items import ItemIdentifier

_DIGITS = re.compile(r"^\d+$")
_CODE_TOKEN = re.compile(r"^[A-Za-z0-9_-]+$")

MIN_GTIN_LENGTH = 8
MIN_SKU_LENGTH = 3


def looks_like_gtin(term: str) -> bool:
    return bool(_DIGITS.match(term)) and len(term) >= MIN_GTIN_LENGTH


def looks_like_sku(term: str) -> bool:
    return bool(_CODE_TOKEN.match(term)) and len(term) >= MIN_SKU_LENGTH


def parse_search_term(term: str) -> Optional[ItemIdentifier]:
    """Turn an identifier-shaped term into an :class:`ItemIdentifier`.

    Long all-digit terms are barcodes; other code tokens are SKUs.
    Returns ``None`` for anything that does not look like a code.
    """
    term = (term or "").strip()
    if looks_like_gtin(term):
        return ItemIdentifier(gtin=term)
    if looks_like_sku(term):
        return ItemIdentifier(sku=term)
    return None
