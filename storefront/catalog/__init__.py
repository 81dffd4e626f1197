"""Unified catalog: models, identity codec, cache and aggregator."""

from __future__ import annotations

from storefront.catalog.aggregator import Aggregator
from storefront.catalog.cache import CatalogCache
from storefront.catalog.errors import AggregationUnavailable, CatalogError, InvalidIdentifier, ProductNotFound
from storefront.catalog.identity import decode_composite_id, encode_composite_id
from storefront.catalog.models import Category, CategoryRef, Product, Source, UnifiedFilters, UnifiedPage

__all__ = [
    "Aggregator",
    "AggregationUnavailable",
    "CatalogCache",
    "CatalogError",
    "Category",
    "CategoryRef",
    "InvalidIdentifier",
    "Product",
    "ProductNotFound",
    "Source",
    "UnifiedFilters",
    "UnifiedPage",
    "decode_composite_id",
    "encode_composite_id",
]
