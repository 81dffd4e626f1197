"""Unified catalog models shared by every source."""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping

SEPARATOR = "_"


class Source(str, enum.Enum):
    ZECAT = "zecat"
    CDO = "cdo"


SOURCE_ORDER: tuple[Source, ...] = (Source.ZECAT, Source.CDO)


@dataclass(slots=True, frozen=True)
class Category:
    id: str
    source: Source
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "source": self.source.value, "label": self.label}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Category:
        return cls(id=str(data["id"]), source=Source(data["source"]), label=data.get("label", ""))


@dataclass(slots=True)
class Product:
    id: str
    source: Source
    name: str
    description: str | None = None
    images: tuple[str, ...] = ()
    categories: tuple[Category, ...] = ()
    stock_total: int = 0
    variants: tuple[dict[str, Any], ...] = ()
    price: float | None = None
    currency: str | None = None
    code: str | None = None

    @property
    def composite_id(self) -> str:
        return f"{self.source.value}{SEPARATOR}{self.id}"

    def in_any_category(self, refs: Iterable[CategoryRef]) -> bool:
        return any(ref.matches(category) for ref in refs for category in self.categories)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "composite_id": self.composite_id,
            "source": self.source.value,
            "name": self.name,
            "description": self.description,
            "images": list(self.images),
            "categories": [c.to_dict() for c in self.categories],
            "stock_total": self.stock_total,
            "variants": list(self.variants),
            "price": self.price,
            "currency": self.currency,
            "code": self.code,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Product:
        return cls(
            id=str(data["id"]),
            source=Source(data["source"]),
            name=data.get("name", ""),
            description=data.get("description"),
            images=tuple(data.get("images") or ()),
            categories=tuple(Category.from_dict(c) for c in data.get("categories") or ()),
            stock_total=int(data.get("stock_total") or 0),
            variants=tuple(data.get("variants") or ()),
            price=data.get("price"),
            currency=data.get("currency"),
            code=data.get("code"),
        )


@dataclass(slots=True, frozen=True)
class CategoryRef:
    """A category filter entry; ``source=None`` means "this id, in whichever source is queried"."""

    id: str
    source: Source | None = None

    @classmethod
    def parse(cls, value: str | int) -> CategoryRef:
        text = str(value).strip()
        prefix, sep, rest = text.partition(SEPARATOR)
        if sep and rest and prefix in {s.value for s in Source}:
            return cls(id=rest, source=Source(prefix))
        return cls(id=text)

    def applies_to(self, source: Source) -> bool:
        return self.source is None or self.source is source

    def matches(self, category: Category) -> bool:
        return self.applies_to(category.source) and self.id == category.id

    def __str__(self) -> str:
        if self.source is None:
            return self.id
        return f"{self.source.value}{SEPARATOR}{self.id}"


@dataclass(slots=True, frozen=True)
class UnifiedFilters:
    page: int = 1
    page_size: int = 20
    category_ids: frozenset[CategoryRef] = frozenset()
    search: str | None = None
    source_restriction: Source | None = None
    price_order: str | None = None
    min_stock: int | None = None

    def __post_init__(self) -> None:
        if self.price_order not in (None, "asc", "desc"):
            raise ValueError(f"Invalid price order: {self.price_order}")

    @classmethod
    def build(
        cls,
        *,
        page: int = 1,
        page_size: int = 20,
        categories: Iterable[str | int] = (),
        search: str | None = None,
        source: Source | str | None = None,
        price_order: str | None = None,
        min_stock: int | None = None,
    ) -> UnifiedFilters:
        return cls(
            page=page,
            page_size=page_size,
            category_ids=frozenset(CategoryRef.parse(c) for c in categories),
            search=(search or "").strip() or None,
            source_restriction=Source(source) if source else None,
            price_order=price_order,
            min_stock=min_stock,
        )

    def clamped(self, max_page_size: int) -> UnifiedFilters:
        page_size = min(max(1, self.page_size), max_page_size)
        return replace(self, page_size=page_size, page=max(1, self.page))

    def queried_sources(self) -> tuple[Source, ...]:
        if self.source_restriction is not None:
            return (self.source_restriction,)
        return SOURCE_ORDER

    def refs_for(self, source: Source) -> frozenset[CategoryRef]:
        return frozenset(ref for ref in self.category_ids if ref.applies_to(source))

    def cache_key(self) -> str:
        canonical = {
            "page": self.page,
            "page_size": self.page_size,
            "categories": sorted(str(ref) for ref in self.category_ids),
            "search": (self.search or "").lower(),
            "source": self.source_restriction.value if self.source_restriction else None,
            "price_order": self.price_order,
            "min_stock": self.min_stock,
        }
        digest = hashlib.sha256(json.dumps(canonical, sort_keys=True).encode("utf-8"))
        return digest.hexdigest()[:32]


@dataclass(slots=True)
class UnifiedPage:
    items: list[Product]
    total_count: int
    total_pages: int
    page: int
    page_size: int
    degraded_sources: tuple[Source, ...] = ()
    stale: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [p.to_dict() for p in self.items],
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "page": self.page,
            "page_size": self.page_size,
            "degraded_sources": [s.value for s in self.degraded_sources],
            "stale": self.stale,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UnifiedPage:
        return cls(
            items=[Product.from_dict(p) for p in data.get("items", [])],
            total_count=int(data["total_count"]),
            total_pages=int(data["total_pages"]),
            page=int(data["page"]),
            page_size=int(data["page_size"]),
            degraded_sources=tuple(Source(s) for s in data.get("degraded_sources", [])),
            stale=bool(data.get("stale", False)),
        )


@dataclass(slots=True)
class CompositeId:
    source: Source
    raw_id: str

    def __str__(self) -> str:
        return f"{self.source.value}{SEPARATOR}{self.raw_id}"

