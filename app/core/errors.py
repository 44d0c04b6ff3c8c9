"""
core/errors.py
--------------

Exception taxonomy for item lookups.

Core layers (the catalog client and the lookup helpers) raise these
exceptions; the lookup service catches them at its public boundary and
turns them into structured ``{success: False, error, error_kind}``
results so consumers can tell a missing product apart from a network
problem. Storage errors never appear here: the cache store degrades
them to a miss.
"""

from __future__ import annotations

from typing import Optional


class ItemLookupError(Exception):
    """Base class for all lookup failures."""

    kind = "error"


class ConfigurationError(ItemLookupError):
    """The catalog client was used before ``configure`` or with bad settings."""

    kind = "not_configured"


class NotInitializedError(ConfigurationError):
    """The lookup service is missing its cache or its configured client."""


class NotFoundError(ItemLookupError):
    """The catalog answered successfully but returned no matching item."""

    kind = "not_found"


class TransportError(ItemLookupError):
    """No response was received from the catalog."""

    kind = "transport"


class ProtocolError(ItemLookupError):
    """The catalog answered with a non-2xx status."""

    kind = "protocol"

    def __init__(self, status_code: int, body: Optional[str] = None) -> None:
        self.status_code = status_code
        self.body = body or ""
        super().__init__(f"API error {status_code}: {self.body[:200]}")


class InvalidRequestError(ItemLookupError):
    """The request was rejected locally (empty identifier list, blank query)."""

    kind = "invalid_request"
