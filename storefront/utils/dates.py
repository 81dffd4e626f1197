"""Clock helpers."""

from __future__ import annotations

import pendulum


def utc_now() -> pendulum.DateTime:
    return pendulum.now("UTC")


def utc_timestamp() -> float:
    """Wall-clock seconds since the epoch."""
    return utc_now().timestamp()


def format_timestamp(value: float) -> str:
    return pendulum.from_timestamp(value, tz="UTC").to_iso8601_string()
