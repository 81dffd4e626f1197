"""Pre-fill the catalog cache with categories and the first listing pages.

Only useful with a persistent backend (CACHE_BACKEND=file or sql).
"""

from __future__ import annotations

import argparse
import asyncio

from storefront.catalog import Aggregator, AggregationUnavailable, UnifiedFilters
from storefront.config import build_cache, configure_logging, load_settings
from storefront.sources import build_adapters, load_source_configs


async def warm(pages: int) -> None:
    settings = load_settings()
    configure_logging(settings)
    aggregator = Aggregator(build_adapters(load_source_configs()), build_cache(settings), settings)
    try:
        categories = await aggregator.list_categories()
        print(f"Cached {len(categories)} categories")
        for page in range(1, pages + 1):
            filters = UnifiedFilters(page=page, page_size=settings.default_page_size)
            try:
                result = await aggregator.list_products(filters, bypass_cache=False)
            except AggregationUnavailable as exc:
                print(f"Page {page} unavailable: {exc}")
                break
            print(f"Cached page {result.page}/{result.total_pages} ({len(result.items)} products)")
            if result.page >= result.total_pages:
                break
    finally:
        await aggregator.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--pages", type=int, default=3)
    args = parser.parse_args()
    asyncio.run(warm(args.pages))


if __name__ == "__main__":
    main()
