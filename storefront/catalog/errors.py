"""Catalog-level errors surfaced to callers.

Per-source upstream failures are not exceptions here; they travel as
``storefront.utils.retry.FetchError`` values and are absorbed by the aggregator.
"""

from __future__ import annotations


class CatalogError(RuntimeError):
    pass


class InvalidIdentifier(CatalogError, ValueError):
    def __init__(self, value: str, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid product id {value!r}: {reason}")


class ProductNotFound(CatalogError):
    def __init__(self, composite_id: str) -> None:
        self.composite_id = composite_id
        super().__init__(f"Product {composite_id} not found")


class AggregationUnavailable(CatalogError):
    """Every queried source failed and no cached data could stand in."""

    def __init__(self, reasons: dict[str, str] | None = None) -> None:
        self.reasons = reasons or {}
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.reasons.items())
        super().__init__(f"Catalog unavailable ({detail})" if detail else "Catalog unavailable")
