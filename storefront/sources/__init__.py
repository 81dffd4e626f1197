"""Upstream catalog sources."""

from __future__ import annotations

import os
import pathlib

import httpx
import yaml

from storefront.catalog.models import Source
from storefront.sources.base import SourceAdapter
from storefront.sources.cdo import CdoClient
from storefront.sources.models import SourceConfig
from storefront.sources.zecat import ZecatClient

SOURCES_PATH = pathlib.Path(__file__).with_name("sources.yml")

ADAPTER_TYPES: dict[Source, type[SourceAdapter]] = {
    Source.ZECAT: ZecatClient,
    Source.CDO: CdoClient,
}


def load_source_configs(path: pathlib.Path | str | None = None) -> list[SourceConfig]:
    config_path = pathlib.Path(path or os.environ.get("SOURCES_PATH") or SOURCES_PATH)
    data = yaml.safe_load(config_path.read_text()) or []
    configs = []
    for item in data:
        item = dict(item)
        item["source"] = Source(item["source"])
        config = SourceConfig(**item)
        if config.token is None and config.token_env:
            config.token = os.environ.get(config.token_env)
        configs.append(config)
    return configs


def build_adapters(
    configs: list[SourceConfig],
    *,
    session: httpx.AsyncClient | None = None,
) -> dict[Source, SourceAdapter]:
    return {config.source: ADAPTER_TYPES[config.source](config, session=session) for config in configs}
