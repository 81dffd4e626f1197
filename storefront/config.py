"""Runtime settings read from the environment (and ``.env``)."""

from __future__ import annotations

import logging
import os
import pathlib
from dataclasses import dataclass

from dotenv import load_dotenv

from storefront.catalog.cache import CACHE_PATH, CacheStore, CatalogCache, JsonFileStore, MemoryStore, SqlStore
from storefront.db.session import create_engine_from_env


@dataclass(slots=True)
class Settings:
    max_page_size: int = 48
    default_page_size: int = 20
    upstream_limit: int = 200
    scan_limit: int = 1000
    max_retries: int = 2
    retry_base_delay: float = 1.0
    retry_jitter: float = 0.0
    listing_cache_ttl: float = 300.0
    category_cache_ttl: float = 24 * 60 * 60.0
    cache_backend: str = "memory"
    cache_path: pathlib.Path = CACHE_PATH
    cache_max_keys: int | None = 500
    log_level: str = "INFO"


def load_settings() -> Settings:
    load_dotenv()
    max_keys = int(os.environ.get("CACHE_MAX_KEYS", 500))
    return Settings(
        max_page_size=int(os.environ.get("MAX_PAGE_SIZE", 48)),
        default_page_size=int(os.environ.get("DEFAULT_PAGE_SIZE", 20)),
        upstream_limit=int(os.environ.get("UPSTREAM_LIMIT", 200)),
        scan_limit=int(os.environ.get("SCAN_LIMIT", 1000)),
        max_retries=int(os.environ.get("MAX_RETRIES", 2)),
        retry_base_delay=float(os.environ.get("RETRY_BASE_DELAY", 1.0)),
        retry_jitter=float(os.environ.get("RETRY_JITTER", 0.0)),
        listing_cache_ttl=float(os.environ.get("LISTING_CACHE_TTL", 300)),
        category_cache_ttl=float(os.environ.get("CATEGORY_CACHE_TTL", 24 * 60 * 60)),
        cache_backend=os.environ.get("CACHE_BACKEND", "memory"),
        cache_path=pathlib.Path(os.environ.get("CACHE_PATH", str(CACHE_PATH))),
        cache_max_keys=max_keys if max_keys > 0 else None,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_cache(settings: Settings) -> CatalogCache:
    store: CacheStore
    if settings.cache_backend == "file":
        store = JsonFileStore(settings.cache_path)
    elif settings.cache_backend == "sql":
        store = SqlStore(create_engine_from_env())
    elif settings.cache_backend == "memory":
        store = MemoryStore()
    else:
        raise ValueError(f"Unknown CACHE_BACKEND {settings.cache_backend!r}")
    return CatalogCache(store, max_keys=settings.cache_max_keys)
