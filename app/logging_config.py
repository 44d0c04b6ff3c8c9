"""
logging_config.py
------------------

This module defines a shared logging configuration and utilities for
structured logging throughout the item lookup service.  It uses
Python's built‑in ``logging`` module rather than ``print`` so that
log output can be captured by standard logging handlers or external
systems.  Messages are serialised as JSON to make them easier to parse
downstream.

To use this module, import ``logger`` and call its methods instead
of ``logging.info`` directly.  The ``log_call`` decorator can be
applied to functions and coroutines to record entry and exit points at
the DEBUG level without leaking sensitive information such as catalog
credentials.
"""

from __future__ import annotations

import inspect
import json
import logging
import sys
from functools import wraps
from typing import Any, Callable, Dict

# -----------------------------------------------------------------------------
# Configure global logging
# -----------------------------------------------------------------------------

# Set up the root logger once.  We direct log output to stdout and format
# messages with a timestamp, log level and the raw message.  The message
# itself should be a JSON string so downstream consumers can parse it easily.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("itemlookup")

_SENSITIVE_KEYWORDS = ("token", "password", "secret", "credential", "authorization")


def _sanitize(obj: Any) -> Any:
    """Recursively sanitise objects for logging.

    Dictionaries will have keys containing 'token', 'password',
    'secret', 'credential' or 'authorization' removed.  Lists and tuples
    are processed element‑wise.  Pydantic models are dumped first.

    Parameters
    ----------
    obj : Any
        Arbitrary Python object to sanitise.

    Returns
    -------
    Any
        A sanitised representation of the input suitable for JSON serialisation.
    """
    if isinstance(obj, (bytes, bytearray)):
        return f"<binary {len(obj)} bytes>"
    if isinstance(obj, dict):
        clean: Dict[str, Any] = {}
        for k, v in obj.items():
            if any(keyword in str(k).lower() for keyword in _SENSITIVE_KEYWORDS):
                continue
            clean[k] = _sanitize(v)
        return clean
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if hasattr(obj, "model_dump"):
        try:
            return _sanitize(obj.model_dump(mode="json"))
        except (TypeError, ValueError):
            return str(obj)
    try:
        return json.loads(json.dumps(obj))
    except (TypeError, ValueError):
        return str(obj)


def _log_start(func: Callable[..., Any], args: Any, kwargs: Any) -> None:
    logger.debug(json.dumps({
        "event": "call_start",
        "function": func.__name__,
        "args": _sanitize(args),
        "kwargs": _sanitize(kwargs),
    }))


def _log_end(func: Callable[..., Any], result: Any) -> None:
    logger.debug(json.dumps({
        "event": "call_end",
        "function": func.__name__,
        "result": _sanitize(result),
    }))


def log_call(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to log entry and exit of functions and coroutines.

    This decorator logs a DEBUG level message before a function is executed
    and another after it returns.  The messages include the function name
    and a sanitised snapshot of the arguments and return value.  Sensitive
    information is stripped via the ``_sanitize`` helper.  Coroutine
    functions are awaited so the logged result is the real return value.

    Examples
    --------

    >>> @log_call
    ... async def lookup(code):
    ...     return code
    """

    if inspect.iscoroutinefunction(func):
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            if logger.isEnabledFor(logging.DEBUG):
                _log_start(func, args, kwargs)
            result = await func(*args, **kwargs)
            if logger.isEnabledFor(logging.DEBUG):
                _log_end(func, result)
            return result

        return async_wrapper

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if logger.isEnabledFor(logging.DEBUG):
            _log_start(func, args, kwargs)
        result = func(*args, **kwargs)
        if logger.isEnabledFor(logging.DEBUG):
            _log_end(func, result)
        return result

    return wrapper


def log_http_request(method: str, url: str, *, headers: Dict[str, Any] | None = None,
                     params: Dict[str, Any] | None = None, json_body: Any = None,
                     status: int | None = None, duration_ms: float | None = None) -> None:
    """Log an outbound HTTP request at DEBUG level.

    This helper centralises HTTP request logging so that credentials are
    automatically removed from headers and only high‑level information
    (method, URL, status and duration) is recorded.  It is invoked by
    the HTTP client wrapper before and after performing requests.

    Parameters
    ----------
    method : str
        The HTTP method (GET, POST, etc.)
    url : str
        The URL being requested.
    headers : dict, optional
        Request headers.  Credential headers are removed.
    params : dict, optional
        Query parameters for GET requests.
    json_body : Any, optional
        JSON payload for non‑GET requests.
    status : int, optional
        Response status code (log end only).
    duration_ms : float, optional
        Time taken in milliseconds (log end only).
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return
    data: Dict[str, Any] = {
        "event": "http_request",
        "method": method,
        "url": url,
    }
    if headers is not None:
        data["headers"] = {k: v for k, v in headers.items()
                           if k.lower() not in {"authorization", "x-item-authorization"}}
    if params:
        data["params"] = params
    if json_body:
        data["json"] = _sanitize(json_body)
    if status is not None:
        data["status"] = status
    if duration_ms is not None:
        data["duration_ms"] = round(duration_ms, 2)
    logger.debug(json.dumps(data))
