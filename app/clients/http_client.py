"""
clients/http_client.py
----------------------

Asynchronous HTTP client wrapper with connection pooling and timeouts.
This client should only be instantiated once per process and shared
across services via dependency injection or the FastAPI lifespan
event. It uses the ``httpx`` library under the hood and honours the
global settings defined in :mod:`app.core.config`.

Every call performs exactly one attempt. Retrying is a decision left
to the caller, so a failed lookup surfaces immediately instead of
being multiplied behind the consumer's back. Errors raised before any
response exists are converted into :class:`TransportError`; responses
of any status are returned untouched for the caller to classify.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from app.core.config import get_settings
from app.core.errors import TransportError
from app.logging_config import log_http_request, logger


class HTTPClient:
    """Async HTTP client shared by all outbound catalog calls.

    Instances should be created in the FastAPI lifespan event and passed
    to clients via dependency injection. A custom ``transport`` may be
    supplied, which is how tests plug in :class:`httpx.MockTransport`.
    """

    def __init__(self, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.http_timeout
        # HTTPX AsyncClient uses connection pooling
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            transport=transport,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=10),
        )

    async def close(self) -> None:
        """Close the underlying HTTPX client and release resources."""
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Perform a single HTTP request.

        :raises TransportError: if no response was received (connect
            failure, timeout, protocol breakage)
        """
        method_upper = method.upper()
        start_time = time.monotonic()
        log_http_request(method_upper, url, headers=headers, params=params, json_body=json)
        try:
            response = await self._client.request(method_upper, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as exc:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(f"{method_upper} {url} failed after {duration_ms:.0f} ms: {exc!r}")
            raise TransportError(f"Request failed: {exc}") from exc
        duration_ms = (time.monotonic() - start_time) * 1000
        log_http_request(method_upper, url, headers=headers, params=params, json_body=json,
                         status=response.status_code, duration_ms=duration_ms)
        return response
