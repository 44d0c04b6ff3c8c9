"""
core/config.py
----------------

Application configuration module.

Defines strongly‑typed settings loaded from the environment using
``pydantic-settings``. These settings control the HTTP transport, the
catalog endpoint selection and the sizing of the local item cache.
Having a central place for configuration makes it easier to adjust
behaviour without touching the lookup logic. The values provided here
are sensible defaults but can be overridden via environment variables
at deployment time.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DeploymentMode = Literal["proxy", "edge"]
Environment = Literal["dev", "test", "prod"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The settings structure is flat and uses environment variables
    prefixed with ``ITEMLOOKUP_``.  For example, to run behind the
    production edge you can set ``ITEMLOOKUP_DEPLOYMENT_MODE=edge``.

    See :class:`pydantic_settings.BaseSettings` for details on how
    environment variables are mapped onto fields.
    """

    # HTTP client settings
    http_timeout: float = Field(10.0, gt=0, description="Hard timeout for HTTP requests in seconds.")

    # Catalog endpoint selection
    deployment_mode: DeploymentMode = Field(
        "proxy",
        description="'proxy' when requests go through the same-origin reverse proxy, 'edge' behind the production CDN.",
    )
    proxy_base_url: str = Field("http://localhost:7071", description="Origin of the local reverse proxy.")
    default_environment: Environment = Field("test", description="Catalog environment used when none is given.")
    catalog_user_id: str = Field("ZGV2ZWxvcGVy", description="Value sent in the lrs-userid header.")

    # Item cache
    cache_db_path: str = Field("item_cache.sqlite3", description="SQLite file backing the item cache.")
    cache_ttl_seconds: int = Field(24 * 60 * 60, ge=1, description="Age after which a cached entry is stale.")
    cache_max_items: int = Field(10000, ge=1, description="Entry count above which cleanup runs.")
    cache_retain_ratio: float = Field(0.8, gt=0, le=1, description="Fraction of the maximum kept after cleanup.")
    cache_sweep_interval_seconds: float = Field(
        0, ge=0, description="Period of the background expiry sweep; 0 keeps expiry lazy (read-time only)."
    )

    # Search defaults
    basic_search_top: int = Field(100, ge=1, description="Default page size for quick search.")
    detailed_search_top: int = Field(50, ge=1, description="Default page size for detailed text search.")
    search_max_results: int = Field(20, ge=1, description="Default maximum results for product search.")

    model_config = SettingsConfigDict(env_prefix="ITEMLOOKUP_", env_file=None, case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached instance of the application settings.

    Using a cache prevents expensive environment parsing on every call.
    The returned object is immutable and safe to share across threads.
    """
    return Settings()
