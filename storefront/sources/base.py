"""Shared plumbing for upstream catalog clients."""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any

import httpx

from storefront.catalog.models import Source
from storefront.sources.models import (
    CategoryRecord,
    ProductRecord,
    SourceConfig,
    SourceListing,
    SourceQuery,
)

logger = logging.getLogger(__name__)

USER_AGENT = "StorefrontCatalog/1.0"


class SourceAdapter(abc.ABC):
    """One upstream catalog. Stateless apart from its HTTP session."""

    source: Source

    def __init__(self, config: SourceConfig, *, session: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._session = session or httpx.AsyncClient(
            timeout=config.timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        self._semaphore = asyncio.Semaphore(config.concurrency)

    @property
    def timeout(self) -> float:
        return self.config.timeout

    @property
    def categories_timeout(self) -> float:
        return self.config.categories_timeout

    async def close(self) -> None:
        await self._session.aclose()

    @abc.abstractmethod
    async def list_products(self, query: SourceQuery) -> SourceListing: ...

    @abc.abstractmethod
    async def get_by_id(self, raw_id: str) -> ProductRecord | None: ...

    @abc.abstractmethod
    async def list_categories(self) -> list[CategoryRecord]: ...

    def is_secondary_key(self, raw_id: str) -> bool:
        """Whether ``raw_id`` may be a non-primary key that needs a listing scan."""
        return False

    def matches_secondary_key(self, record: ProductRecord, key: str) -> bool:
        return False

    def scan_on_miss(self, raw_id: str) -> bool:
        """Whether a failed direct lookup should fall back to scanning the listing."""
        return self.is_secondary_key(raw_id)

    async def _get_json(self, path: str, *, params: Any = None, headers: dict[str, str] | None = None) -> Any:
        url = f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"
        async with self._semaphore:
            response = await self._session.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()
