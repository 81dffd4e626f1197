"""Source-native record shapes and adapter query types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Sequence, Union

from storefront.catalog.models import Source
from storefront.utils.retry import MalformedPayload


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise MalformedPayload(f"{what} is not an object: {type(data).__name__}")
    return data


def _require_id(data: Mapping[str, Any], what: str) -> str:
    value = data.get("id")
    if value in (None, ""):
        raise MalformedPayload(f"{what} has no id")
    return str(value)


def _list_of_mappings(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [dict(item) for item in value if isinstance(item, Mapping)]


@dataclass(slots=True)
class ZecatProductRecord:
    source: ClassVar[Source] = Source.ZECAT

    id: str
    name: str
    description: str | None
    price: float | None
    currency: str | None
    families: list[dict[str, Any]]
    images: list[dict[str, Any]]
    variants: list[dict[str, Any]]
    stock: int | None
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> ZecatProductRecord:
        data = _require_mapping(data, "Zecat product")
        price = data.get("price")
        return cls(
            id=_require_id(data, "Zecat product"),
            name=str(data.get("name") or ""),
            description=data.get("description"),
            price=float(price) if price not in (None, "") else None,
            currency=data.get("currency"),
            families=_list_of_mappings(data.get("families")),
            images=_list_of_mappings(data.get("images")),
            variants=_list_of_mappings(data.get("products")),
            stock=data.get("stock") if isinstance(data.get("stock"), int) else None,
            raw=data,
        )


@dataclass(slots=True)
class CdoProductRecord:
    source: ClassVar[Source] = Source.CDO

    id: str
    code: str | None
    name: str
    description: str | None
    categories: list[dict[str, Any]]
    variants: list[dict[str, Any]]
    raw: Mapping[str, Any] = field(repr=False, default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> CdoProductRecord:
        data = _require_mapping(data, "CDO product")
        code = data.get("code")
        return cls(
            id=_require_id(data, "CDO product"),
            code=str(code) if code not in (None, "") else None,
            name=str(data.get("name") or ""),
            description=data.get("description"),
            categories=_list_of_mappings(data.get("categories")),
            variants=_list_of_mappings(data.get("variants")),
            raw=data,
        )


@dataclass(slots=True)
class ZecatFamilyRecord:
    source: ClassVar[Source] = Source.ZECAT

    id: str
    title: str
    description: str | None = None
    icon_url: str | None = None

    @classmethod
    def from_payload(cls, data: Any) -> ZecatFamilyRecord:
        data = _require_mapping(data, "Zecat family")
        return cls(
            id=_require_id(data, "Zecat family"),
            title=str(data.get("title") or ""),
            description=data.get("description"),
            icon_url=data.get("icon_url"),
        )


@dataclass(slots=True)
class CdoCategoryRecord:
    source: ClassVar[Source] = Source.CDO

    id: str
    name: str

    @classmethod
    def from_payload(cls, data: Any) -> CdoCategoryRecord:
        data = _require_mapping(data, "CDO category")
        return cls(id=_require_id(data, "CDO category"), name=str(data.get("name") or ""))


ProductRecord = Union[ZecatProductRecord, CdoProductRecord]
CategoryRecord = Union[ZecatFamilyRecord, CdoCategoryRecord]


@dataclass(slots=True, frozen=True)
class SourceQuery:
    """Source-agnostic request an adapter translates into its own query string."""

    limit: int
    page: int = 1
    category_ids: tuple[str, ...] = ()
    search: str | None = None
    price_order: str | None = None
    min_stock: int | None = None


@dataclass(slots=True)
class SourceListing:
    records: Sequence[ProductRecord]
    total_pages: int | None = None
    total_count: int | None = None


@dataclass(slots=True)
class SourceConfig:
    source: Source
    base_url: str
    timeout: float = 10.0
    categories_timeout: float = 5.0
    concurrency: int = 4
    token_env: str | None = None
    token: str | None = None
