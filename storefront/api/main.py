"""FastAPI application exposing the unified catalog."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from storefront.catalog import (
    Aggregator,
    AggregationUnavailable,
    InvalidIdentifier,
    ProductNotFound,
    Source,
    UnifiedFilters,
)
from storefront.config import build_cache, configure_logging, load_settings
from storefront.sources import build_adapters, load_source_configs

logger = logging.getLogger(__name__)

_aggregator: Aggregator | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    if _aggregator is not None:
        await _aggregator.close()


app = FastAPI(title="Storefront Catalog API", lifespan=lifespan)


class CategoriesResponse(BaseModel):
    categories: list[dict[str, Any]]


def get_aggregator() -> Aggregator:
    global _aggregator
    if _aggregator is None:
        settings = load_settings()
        configure_logging(settings)
        adapters = build_adapters(load_source_configs())
        _aggregator = Aggregator(adapters, build_cache(settings), settings)
    return _aggregator


@app.exception_handler(AggregationUnavailable)
async def unavailable_handler(request: Request, exc: AggregationUnavailable) -> JSONResponse:
    logger.error("Catalog unavailable for %s: %s", request.url.path, exc)
    return JSONResponse({"detail": "Catalog temporarily unavailable"}, status_code=503)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/products")
async def list_products(
    page: int = 1,
    page_size: int | None = None,
    category: list[str] | None = Query(None),
    search: str | None = None,
    source: Source | None = None,
    order: str | None = Query(None, pattern="^(asc|desc)$"),
    min_stock: int | None = Query(None, ge=0),
    nocache: bool = False,
    aggregator: Aggregator = Depends(get_aggregator),
) -> dict[str, Any]:
    filters = UnifiedFilters.build(
        page=page,
        page_size=page_size if page_size is not None else aggregator.settings.default_page_size,
        categories=category or (),
        search=search,
        source=source,
        price_order=order,
        min_stock=min_stock,
    )
    result = await aggregator.list_products(filters, bypass_cache=nocache)
    return result.to_dict()


@app.get("/products/{composite_id}")
async def get_product(composite_id: str, aggregator: Aggregator = Depends(get_aggregator)) -> dict[str, Any]:
    try:
        product = await aggregator.get_product_by_id(composite_id)
    except InvalidIdentifier as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProductNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return product.to_dict()


@app.get("/categories", response_model=CategoriesResponse)
async def list_categories(
    nocache: bool = False,
    aggregator: Aggregator = Depends(get_aggregator),
) -> CategoriesResponse:
    categories = await aggregator.list_categories(bypass_cache=nocache)
    return CategoriesResponse(categories=[c.to_dict() for c in categories])
