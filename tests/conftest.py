import asyncio
from typing import Any

import httpx
import pytest
from sqlalchemy import create_engine

from storefront.catalog.aggregator import Aggregator
from storefront.catalog.cache import CatalogCache, MemoryStore
from storefront.catalog.models import Source
from storefront.config import Settings
from storefront.sources.base import SourceAdapter
from storefront.sources.models import (
    CdoCategoryRecord,
    CdoProductRecord,
    SourceConfig,
    SourceListing,
    SourceQuery,
    ZecatFamilyRecord,
    ZecatProductRecord,
)


def zecat_product(product_id, name="Zecat product", families=(), stock=None, variants=None, price=None):
    return ZecatProductRecord.from_payload(
        {
            "id": product_id,
            "name": name,
            "description": f"{name} description",
            "price": price,
            "currency": "ARS",
            "families": [{"id": f, "title": f"Family {f}"} for f in families],
            "images": [{"image_url": f"https://img.zecat.com/{product_id}.jpg"}],
            "products": variants or [],
            "stock": stock,
        }
    )


def cdo_product(product_id, name="CDO product", categories=(), code=None, variants=None):
    return CdoProductRecord.from_payload(
        {
            "id": product_id,
            "code": code,
            "name": name,
            "description": f"{name} description",
            "categories": [{"id": c, "name": f"Category {c}"} for c in categories],
            "variants": variants or [],
        }
    )


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter(SourceAdapter):
    """In-memory adapter; ``fail`` makes every call raise a network error."""

    def __init__(self, source: Source, products=(), categories=(), *, fail: bool = False) -> None:
        self.source = source
        self.config = SourceConfig(source=source, base_url=f"https://{source.value}.test", timeout=1.0, categories_timeout=1.0)
        self.products = list(products)
        self.categories = list(categories)
        self.fail = fail
        self.detail: dict[str, Any] = {}
        self.queries: list[SourceQuery] = []
        self.calls = 0
        self.closed = False

    def _maybe_fail(self) -> None:
        self.calls += 1
        if self.fail:
            raise httpx.ConnectError(f"{self.source.value} is down")

    async def list_products(self, query: SourceQuery) -> SourceListing:
        self.queries.append(query)
        self._maybe_fail()
        await asyncio.sleep(0)
        return SourceListing(records=self.products[: query.limit], total_pages=1, total_count=len(self.products))

    async def get_by_id(self, raw_id: str):
        self._maybe_fail()
        return self.detail.get(raw_id)

    async def list_categories(self):
        self._maybe_fail()
        return self.categories

    def is_secondary_key(self, raw_id: str) -> bool:
        return self.source is Source.CDO and not raw_id.isdigit()

    def matches_secondary_key(self, record, key: str) -> bool:
        return getattr(record, "code", None) == key

    def scan_on_miss(self, raw_id: str) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(clock):
    return CatalogCache(MemoryStore(), clock=clock)


@pytest.fixture()
def settings():
    return Settings(max_page_size=48, upstream_limit=200, scan_limit=1000, max_retries=1, retry_base_delay=0.0)


@pytest.fixture()
def zecat():
    return FakeAdapter(
        Source.ZECAT,
        [zecat_product(str(i), name=f"Zecat Mug {i}", families=["1"] if i % 2 else ["2"]) for i in range(1, 11)],
        [ZecatFamilyRecord(id="1", title="Drinkware"), ZecatFamilyRecord(id="2", title="Writing")],
    )


@pytest.fixture()
def cdo():
    return FakeAdapter(
        Source.CDO,
        [cdo_product(str(i), name=f"CDO Pen {i}", categories=["1"], code=f"PEN-{i}") for i in range(1, 6)],
        [CdoCategoryRecord(id="1", name="Bolígrafos"), CdoCategoryRecord(id="9", name="Tecnología")],
    )


@pytest.fixture()
def aggregator(zecat, cdo, cache, settings):
    return Aggregator({Source.ZECAT: zecat, Source.CDO: cdo}, cache, settings, sleep=no_sleep)


@pytest.fixture()
def engine():
    engine = create_engine("sqlite:///:memory:", future=True)
    yield engine
    engine.dispose()
