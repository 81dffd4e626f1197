"""Composite product ids: ``<source>_<raw id>``, e.g. ``zecat_123`` or ``cdo_AB-12``."""

from __future__ import annotations

from storefront.catalog.errors import InvalidIdentifier
from storefront.catalog.models import SEPARATOR, CompositeId, Source

_SOURCE_VALUES = {source.value: source for source in Source}


def encode_composite_id(source: Source | str, raw_id: str | int) -> str:
    source_value = source.value if isinstance(source, Source) else str(source)
    if source_value not in _SOURCE_VALUES:
        raise InvalidIdentifier(f"{source_value}{SEPARATOR}{raw_id}", "unknown source")
    raw = str(raw_id)
    if not raw:
        raise InvalidIdentifier(f"{source_value}{SEPARATOR}", "empty raw id")
    return f"{source_value}{SEPARATOR}{raw}"


def decode_composite_id(value: str) -> CompositeId:
    # Split on the first separator only; raw ids may contain it.
    prefix, sep, raw_id = value.partition(SEPARATOR)
    if not sep:
        raise InvalidIdentifier(value, f"missing {SEPARATOR!r} separator")
    source = _SOURCE_VALUES.get(prefix)
    if source is None:
        raise InvalidIdentifier(value, f"unknown source {prefix!r}")
    if not raw_id:
        raise InvalidIdentifier(value, "empty raw id")
    return CompositeId(source=source, raw_id=raw_id)
