"""Translate source-native records into the unified product and category shape."""

from __future__ import annotations

from typing import Any, Iterable

from storefront.catalog.models import Category, Product, Source
from storefront.sources.models import (
    CategoryRecord,
    CdoCategoryRecord,
    CdoProductRecord,
    ProductRecord,
    ZecatFamilyRecord,
    ZecatProductRecord,
)


def normalize_product(record: ProductRecord) -> Product:
    if isinstance(record, ZecatProductRecord):
        return _from_zecat(record)
    if isinstance(record, CdoProductRecord):
        return _from_cdo(record)
    raise TypeError(f"Unsupported product record: {type(record).__name__}")


def normalize_category(record: CategoryRecord) -> Category:
    if isinstance(record, ZecatFamilyRecord):
        return Category(id=record.id, source=Source.ZECAT, label=record.title or record.description or record.id)
    if isinstance(record, CdoCategoryRecord):
        return Category(id=record.id, source=Source.CDO, label=record.name or record.id)
    raise TypeError(f"Unsupported category record: {type(record).__name__}")


def _from_zecat(record: ZecatProductRecord) -> Product:
    categories = _unique_categories(
        Category(id=str(family["id"]), source=Source.ZECAT, label=str(family.get("title") or family.get("description") or ""))
        for family in record.families
        if family.get("id") not in (None, "")
    )
    images = _unique(str(image["image_url"]) for image in record.images if image.get("image_url"))
    if record.variants:
        stock_total = sum(_non_negative(variant.get("stock")) for variant in record.variants)
    else:
        stock_total = _non_negative(record.stock)
    return Product(
        id=record.id,
        source=Source.ZECAT,
        name=record.name,
        description=record.description,
        images=images,
        categories=categories,
        stock_total=stock_total,
        variants=tuple(record.variants),
        price=record.price,
        currency=record.currency,
    )


def _from_cdo(record: CdoProductRecord) -> Product:
    categories = _unique_categories(
        Category(id=str(category["id"]), source=Source.CDO, label=str(category.get("name") or ""))
        for category in record.categories
        if category.get("id") not in (None, "")
    )
    images = _unique(
        url
        for variant in record.variants
        for url in (_picture_url(variant.get("picture")), _picture_url(variant.get("detail_picture")))
        if url
    )
    prices = [p for p in (_to_float(variant.get("net_price")) for variant in record.variants) if p is not None]
    return Product(
        id=record.id,
        source=Source.CDO,
        name=record.name,
        description=record.description,
        images=images,
        categories=categories,
        stock_total=sum(_non_negative(variant.get("stock_available")) for variant in record.variants),
        variants=tuple(record.variants),
        price=min(prices) if prices else None,
        code=record.code,
    )


def _picture_url(picture: Any) -> str | None:
    if not isinstance(picture, dict):
        return None
    return picture.get("original") or picture.get("medium") or picture.get("small")


def _non_negative(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def _unique_categories(categories: Iterable[Category]) -> tuple[Category, ...]:
    seen: dict[tuple[Source, str], Category] = {}
    for category in categories:
        seen.setdefault((category.source, category.id), category)
    return tuple(seen.values())
