"""Unified catalog over every configured source.

Listings fan out to the sources concurrently, normalize, filter, merge and
re-paginate locally. A failing source degrades the result instead of failing
it; only when no source answers and nothing is cached does the caller see
``AggregationUnavailable``.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import TypeVar

from storefront.catalog.cache import CacheEntry, CatalogCache, categories_key, listing_key
from storefront.catalog.errors import AggregationUnavailable, ProductNotFound
from storefront.catalog.identity import decode_composite_id
from storefront.catalog.models import (
    SOURCE_ORDER,
    Category,
    CategoryRef,
    Product,
    Source,
    UnifiedFilters,
    UnifiedPage,
)
from storefront.catalog.normalize import normalize_category, normalize_product
from storefront.config import Settings
from storefront.sources.base import SourceAdapter
from storefront.sources.models import SourceListing, SourceQuery
from storefront.utils.dates import format_timestamp
from storefront.utils.retry import Err, FetchErrorKind, FetchResult, resilient_call

logger = logging.getLogger(__name__)

T = TypeVar("T")


def paginate(items: Sequence[Product], page: int, page_size: int) -> UnifiedPage:
    total_count = len(items)
    total_pages = max(1, math.ceil(total_count / page_size))
    served = min(max(1, page), total_pages)
    start = (served - 1) * page_size
    return UnifiedPage(
        items=list(items[start : start + page_size]),
        total_count=total_count,
        total_pages=total_pages,
        page=served,
        page_size=page_size,
    )


def filter_products(
    products: Sequence[Product],
    filters: UnifiedFilters,
    refs: frozenset[CategoryRef],
) -> list[Product]:
    """Category (OR across ``refs``), then name search, then minimum stock."""
    selected = list(products)
    if filters.category_ids:
        selected = [p for p in selected if p.in_any_category(refs)]
    if filters.search:
        needle = filters.search.casefold()
        selected = [p for p in selected if needle in p.name.casefold()]
    if filters.min_stock is not None:
        selected = [p for p in selected if p.stock_total >= filters.min_stock]
    return selected


def sort_by_price(products: list[Product], order: str) -> list[Product]:
    # Stable: equal prices keep merge order. Unpriced products always go last.
    priced = [p for p in products if p.price is not None]
    unpriced = [p for p in products if p.price is None]
    priced.sort(key=lambda p: p.price, reverse=order == "desc")
    return priced + unpriced


def _decode_page(entry: CacheEntry | None) -> UnifiedPage | None:
    # An unreadable entry counts as a miss.
    if entry is None:
        return None
    try:
        return UnifiedPage.from_dict(entry.value)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.warning("Discarding unreadable cache entry %s: %s", entry.key, exc)
        return None


def _is_client_error(outcome: Err) -> bool:
    code = outcome.error.status_code
    return outcome.error.kind is FetchErrorKind.HTTP_STATUS and code is not None and 400 <= code < 500


class Aggregator:
    def __init__(
        self,
        adapters: Mapping[Source, SourceAdapter],
        cache: CatalogCache | None = None,
        settings: Settings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.adapters = dict(adapters)
        self.cache = cache or CatalogCache()
        self.settings = settings or Settings()
        self._sleep = sleep

    async def close(self) -> None:
        for adapter in self.adapters.values():
            await adapter.close()

    async def list_products(self, filters: UnifiedFilters, *, bypass_cache: bool = False) -> UnifiedPage:
        filters = filters.clamped(self.settings.max_page_size)
        key = listing_key(filters)
        if not bypass_cache:
            cached = _decode_page(self.cache.get_fresh(key, self.settings.listing_cache_ttl))
            if cached is not None:
                return cached

        try:
            page = await self._aggregate(filters)
        except AggregationUnavailable:
            if bypass_cache:
                raise
            entry = self.cache.get(key)
            stale = _decode_page(entry)
            if stale is None:
                logger.error("No source answered and nothing cached for %s", key)
                raise
            logger.warning(
                "Serving stale listing %s written at %s", key, format_timestamp(entry.written_at)
            )
            stale.stale = True
            return stale

        # A half catalog is served but not remembered.
        if not bypass_cache and not page.degraded_sources:
            self.cache.set(key, page.to_dict())
        return page

    async def _aggregate(self, filters: UnifiedFilters) -> UnifiedPage:
        legs: list[tuple[Source, SourceAdapter, frozenset[CategoryRef]]] = []
        failures: dict[str, str] = {}
        for source in filters.queried_sources():
            adapter = self.adapters.get(source)
            if adapter is None:
                failures[source.value] = "source not configured"
                continue
            refs = filters.refs_for(source)
            if filters.category_ids and not refs:
                # Every requested category belongs to another source.
                continue
            legs.append((source, adapter, refs))

        outcomes = await asyncio.gather(
            *(self._fetch_listing(adapter, filters, refs) for _, adapter, refs in legs)
        )

        merged: list[Product] = []
        degraded: list[Source] = []
        answered = 0
        for (source, _, refs), outcome in zip(legs, outcomes):
            if isinstance(outcome, Err):
                failures[source.value] = str(outcome.error)
                degraded.append(source)
                continue
            answered += 1
            products = [normalize_product(record) for record in outcome.value.records]
            merged.extend(filter_products(products, filters, refs))

        # Category scoping may skip every source; that is an empty page, not a failure.
        if failures and not answered:
            raise AggregationUnavailable(failures)
        if degraded:
            logger.warning(
                "Serving partial catalog without %s: %s",
                ", ".join(s.value for s in degraded),
                failures,
            )

        if filters.price_order:
            merged = sort_by_price(merged, filters.price_order)
        page = paginate(merged, filters.page, filters.page_size)
        page.degraded_sources = tuple(degraded)
        return page

    async def _fetch_listing(
        self,
        adapter: SourceAdapter,
        filters: UnifiedFilters,
        refs: frozenset[CategoryRef],
    ) -> FetchResult[SourceListing]:
        query = SourceQuery(
            limit=self.settings.upstream_limit,
            category_ids=tuple(sorted(ref.id for ref in refs)),
            search=filters.search,
            price_order=filters.price_order,
            min_stock=filters.min_stock,
        )
        return await self._call(
            lambda: adapter.list_products(query),
            timeout=adapter.timeout,
            label=f"{adapter.source.value} products",
        )

    async def get_product_by_id(self, composite_id: str) -> Product:
        composite = decode_composite_id(composite_id)
        adapter = self.adapters.get(composite.source)
        if adapter is None:
            raise ProductNotFound(composite_id)
        raw_id = composite.raw_id

        direct = await self._call(
            lambda: adapter.get_by_id(raw_id),
            timeout=adapter.timeout,
            label=f"{adapter.source.value} product {raw_id}",
        )
        if not isinstance(direct, Err) and direct.value is not None:
            return normalize_product(direct.value)

        if adapter.scan_on_miss(raw_id):
            # Match the listing on the primary id first, then on the secondary key.
            logger.info("Scanning %s listing for product %s", adapter.source.value, raw_id)
            scan = await self._call(
                lambda: adapter.list_products(SourceQuery(limit=self.settings.scan_limit)),
                timeout=adapter.timeout,
                label=f"{adapter.source.value} scan",
            )
            if isinstance(scan, Err):
                raise AggregationUnavailable({composite.source.value: str(scan.error)})
            records = scan.value.records
            match = next((record for record in records if record.id == raw_id), None)
            if match is None:
                match = next((record for record in records if adapter.matches_secondary_key(record, raw_id)), None)
            if match is not None:
                return normalize_product(match)
            raise ProductNotFound(composite_id)

        if isinstance(direct, Err) and not _is_client_error(direct):
            raise AggregationUnavailable({composite.source.value: str(direct.error)})
        raise ProductNotFound(composite_id)

    async def list_categories(self, *, bypass_cache: bool = False) -> list[Category]:
        sources = [source for source in SOURCE_ORDER if source in self.adapters]
        per_source = await asyncio.gather(
            *(self._categories_for(self.adapters[source], bypass_cache) for source in sources)
        )
        seen: set[tuple[Source, str]] = set()
        categories: list[Category] = []
        for batch in per_source:
            for category in batch:
                if (category.source, category.id) in seen:
                    continue
                seen.add((category.source, category.id))
                categories.append(category)
        logger.info("Returning %s categories", len(categories))
        return categories

    async def _categories_for(self, adapter: SourceAdapter, bypass_cache: bool) -> list[Category]:
        key = categories_key(adapter.source)
        if not bypass_cache:
            entry = self.cache.get_fresh(key, self.settings.category_cache_ttl)
            if entry is not None:
                return [Category.from_dict(item) for item in entry.value]

        outcome = await self._call(
            adapter.list_categories,
            timeout=adapter.categories_timeout,
            label=f"{adapter.source.value} categories",
        )
        if isinstance(outcome, Err):
            stale = None if bypass_cache else self.cache.get(key)
            if stale is not None:
                logger.warning("Using stale %s categories after %s", adapter.source.value, outcome.error)
                return [Category.from_dict(item) for item in stale.value]
            logger.warning("Omitting %s categories: %s", adapter.source.value, outcome.error)
            return []

        categories = [normalize_category(record) for record in outcome.value]
        logger.info("Fetched %s %s categories", len(categories), adapter.source.value)
        if not bypass_cache:
            self.cache.set(key, [c.to_dict() for c in categories])
        return categories

    async def _call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        timeout: float,
        label: str,
    ) -> FetchResult[T]:
        return await resilient_call(
            operation,
            max_retries=self.settings.max_retries,
            timeout=timeout,
            base_delay=self.settings.retry_base_delay,
            jitter=self.settings.retry_jitter,
            label=label,
            sleep=self._sleep,
        )
