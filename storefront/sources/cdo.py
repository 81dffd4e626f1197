"""CDO Promocionales API client."""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from storefront.catalog.models import Source
from storefront.sources.base import SourceAdapter
from storefront.sources.models import (
    CdoCategoryRecord,
    CdoProductRecord,
    ProductRecord,
    SourceConfig,
    SourceListing,
    SourceQuery,
)
from storefront.utils.retry import MalformedPayload

logger = logging.getLogger(__name__)

# CDO has no category endpoint; categories come from a product sample.
CATEGORY_SAMPLE_SIZE = 50


class CdoClient(SourceAdapter):
    source = Source.CDO

    def __init__(self, config: SourceConfig, *, session: httpx.AsyncClient | None = None) -> None:
        super().__init__(config, session=session)
        self._auth = {"auth_token": config.token or ""}

    async def list_products(self, query: SourceQuery) -> SourceListing:
        data = await self._get_json("products", params={**self._auth, **build_params(query)})
        records = _parse_products(data)
        logger.info("Fetched %s CDO products", len(records))
        total_pages = None
        if isinstance(data, dict):
            total_pages = data.get("total_pages")
        return SourceListing(
            records=records,
            total_pages=total_pages or max(1, math.ceil(len(records) / max(query.limit, 1))),
            total_count=None,
        )

    async def get_by_id(self, raw_id: str) -> CdoProductRecord | None:
        try:
            data = await self._get_json(f"products/{raw_id}", params=self._auth)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        if isinstance(data, list):
            data = next((item for item in data if isinstance(item, dict) and str(item.get("id")) == raw_id), None)
            if data is None:
                return None
        return CdoProductRecord.from_payload(data)

    async def list_categories(self) -> list[CdoCategoryRecord]:
        data = await self._get_json("products", params={**self._auth, "page_size": CATEGORY_SAMPLE_SIZE})
        if not isinstance(data, list):
            raise MalformedPayload("CDO products response is not an array")
        seen: dict[str, CdoCategoryRecord] = {}
        for product in data[:CATEGORY_SAMPLE_SIZE]:
            if not isinstance(product, dict):
                continue
            for category in product.get("categories") or []:
                record = CdoCategoryRecord.from_payload(category)
                seen.setdefault(record.id, record)
        return list(seen.values())

    def is_secondary_key(self, raw_id: str) -> bool:
        # Numeric ids go to the detail endpoint; anything else is a product code.
        return not raw_id.isdigit()

    def matches_secondary_key(self, record: ProductRecord, key: str) -> bool:
        return isinstance(record, CdoProductRecord) and record.code == key

    def scan_on_miss(self, raw_id: str) -> bool:
        # products/{id} 404s for some numeric ids too; the listing resolves both.
        return True


def build_params(query: SourceQuery) -> dict[str, Any]:
    params: dict[str, Any] = {"page_size": query.limit, "page_number": query.page}
    # Upstream takes a single category_id. With several we fetch unfiltered and
    # let the aggregator filter locally, otherwise the other categories are lost.
    if len(query.category_ids) == 1:
        params["category_id"] = query.category_ids[0]
    if query.search:
        params["search"] = query.search
    return params


def _parse_products(data: Any) -> list[CdoProductRecord]:
    if isinstance(data, dict) and isinstance(data.get("products"), list):
        items = data["products"]
    elif isinstance(data, list):
        items = data
    else:
        raise MalformedPayload("CDO products response is not an array")
    return [CdoProductRecord.from_payload(item) for item in items]
