"""Zecat generic-product API client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from storefront.catalog.models import Source
from storefront.sources.base import SourceAdapter
from storefront.sources.models import (
    SourceConfig,
    SourceListing,
    SourceQuery,
    ZecatFamilyRecord,
    ZecatProductRecord,
)
from storefront.utils.retry import MalformedPayload

logger = logging.getLogger(__name__)


class ZecatClient(SourceAdapter):
    source = Source.ZECAT

    def __init__(self, config: SourceConfig, *, session: httpx.AsyncClient | None = None) -> None:
        super().__init__(config, session=session)
        self._headers = {"Authorization": f"Bearer {config.token or ''}"}

    async def list_products(self, query: SourceQuery) -> SourceListing:
        data = await self._get_json("generic_product", params=build_params(query), headers=self._headers)
        if not isinstance(data, dict) or not isinstance(data.get("generic_products"), list):
            raise MalformedPayload("Zecat listing has no generic_products array")
        records = [ZecatProductRecord.from_payload(item) for item in data["generic_products"]]
        logger.info("Fetched %s Zecat products", len(records))
        return SourceListing(
            records=records,
            total_pages=_optional_int(data.get("total_pages")),
            total_count=_optional_int(data.get("count")),
        )

    async def get_by_id(self, raw_id: str) -> ZecatProductRecord | None:
        try:
            data = await self._get_json(f"generic_product/{raw_id}", headers=self._headers)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        payload = _unwrap_product(data, raw_id)
        if payload is None:
            raise MalformedPayload(f"Zecat product {raw_id} missing from response")
        return ZecatProductRecord.from_payload(payload)

    def scan_on_miss(self, raw_id: str) -> bool:
        # The detail endpoint misses products that the listing still returns.
        return True

    async def list_categories(self) -> list[ZecatFamilyRecord]:
        data = await self._get_json("family/", headers=self._headers)
        if not isinstance(data, dict) or not isinstance(data.get("families"), list):
            raise MalformedPayload("Zecat families response has no families array")
        return [ZecatFamilyRecord.from_payload(item) for item in data["families"]]


def build_params(query: SourceQuery) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = [("page", str(query.page)), ("limit", str(query.limit))]
    if query.min_stock:
        params.append(("stock", str(query.min_stock)))
    if query.search:
        params.append(("name", query.search))
    if query.price_order:
        params.append(("order[price]", query.price_order))
    for family_id in query.category_ids:
        params.append(("families[]", family_id))
    return params


def _unwrap_product(data: Any, raw_id: str) -> dict[str, Any] | None:
    # The detail endpoint answers either with the product itself or nested
    # under "generic_product" (an object, or a list to search).
    if not isinstance(data, dict):
        return None
    if str(data.get("id")) == raw_id:
        return data
    nested = data.get("generic_product")
    if isinstance(nested, dict):
        return nested
    if isinstance(nested, list):
        for item in nested:
            if isinstance(item, dict) and str(item.get("id")) == raw_id:
                return item
    return None


def _optional_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
