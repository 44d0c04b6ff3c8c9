"""
core/auth.py
-------------

Utility functions for building authenticated requests to the item
catalog.

These helpers centralise construction of the base URLs and HTTP
headers required to call the item gateway. They encapsulate knowledge
about environment‑specific domains and about how the credential must
travel in each deployment mode, and ensure that the credential is not
inadvertently logged elsewhere in the application. Use these
functions in clients when making requests.
"""

from __future__ import annotations

from typing import Dict, Optional

from app.core.config import get_settings
from app.core.errors import ConfigurationError

# Direct upstream origins, used when the client sits behind the edge.
EDGE_ORIGINS: Dict[str, str] = {
    "dev": "https://itemservice.egretail-dev.cloud/api",
    "test": "https://itemservice.egretail-test.cloud/api",
    "prod": "https://itemservice.egretail.cloud/api",
}

# Header that survives the production edge; the edge rewrites Authorization.
EDGE_AUTH_HEADER = "X-Item-Authorization"

SENSITIVE_HEADERS = frozenset({"authorization", EDGE_AUTH_HEADER.lower()})


def normalize_environment(environment: str) -> str:
    """Return the canonical environment name.

    :param environment: environment name such as ``dev``, ``test`` or ``prod``
    :raises ConfigurationError: if the environment is not supported
    """
    env = (environment or "").lower().strip()
    if env not in EDGE_ORIGINS:
        raise ConfigurationError(f"Unknown catalog environment: '{environment}'")
    return env


def get_base_url(environment: str, deployment_mode: Optional[str] = None) -> str:
    """Return the catalog base URL for an environment.

    The returned URL does not include a trailing slash. Behind the local
    reverse proxy every environment is routed through a same‑origin
    path; behind the edge the upstream origin is called directly.

    :param environment: ``dev``, ``test`` or ``prod``
    :param deployment_mode: ``proxy`` or ``edge``; defaults to the settings
    :raises ConfigurationError: if the environment or mode is invalid
    :return: the base API URL
    """
    settings = get_settings()
    env = normalize_environment(environment)
    mode = deployment_mode or settings.deployment_mode
    if mode == "proxy":
        return f"{settings.proxy_base_url.rstrip('/')}/api/itemservice-{env}"
    if mode == "edge":
        return EDGE_ORIGINS[env]
    raise ConfigurationError(f"Unknown deployment mode: '{deployment_mode}'")


def build_auth_headers(credential: str, deployment_mode: Optional[str] = None,
                       user_id: Optional[str] = None) -> Dict[str, str]:
    """Create a dictionary of HTTP headers required for an authenticated call.

    Behind the reverse proxy the credential is a standard bearer token.
    The production edge strips or rewrites a standard ``Authorization``
    header before forwarding, so in ``edge`` mode the very same bearer
    value is sent under ``X-Item-Authorization`` instead and no
    ``Authorization`` header is produced. The choice depends on the
    deployment mode only, never on the catalog environment.

    :param credential: the bearer token for the item gateway
    :param deployment_mode: ``proxy`` or ``edge``; defaults to the settings
    :param user_id: value of the ``lrs-userid`` header; defaults to the settings
    :return: a dictionary of headers suitable for use with httpx
    """
    settings = get_settings()
    mode = deployment_mode or settings.deployment_mode
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "lrs-userid": user_id or settings.catalog_user_id,
    }
    if not credential:
        return headers
    if mode == "edge":
        headers[EDGE_AUTH_HEADER] = f"Bearer {credential}"
    elif mode == "proxy":
        headers["Authorization"] = f"Bearer {credential}"
    else:
        raise ConfigurationError(f"Unknown deployment mode: '{deployment_mode}'")
    return headers
