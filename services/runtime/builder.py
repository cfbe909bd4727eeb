"""Helpers for constructing a fully wired acquisition engine."""

from __future__ import annotations

import logging

from app.config import AppConfig, get_app_config
from services.runtime.catalog import ReleaseCatalogClient
from services.runtime.engine import AcquisitionEngine, ProgressFactory
from services.runtime.filesystem import FileSystemGateway
from services.runtime.http import ContentFetcher


_LOGGER = logging.getLogger(__name__)


def build_acquisition_engine(
    config: AppConfig | None = None,
    *,
    progress_factory: ProgressFactory | None = None,
) -> AcquisitionEngine:
    """Construct an :class:`AcquisitionEngine` from ``config``.

    The cached application configuration is used when ``config`` is omitted.
    """

    config = config or get_app_config()
    fetcher = ContentFetcher(
        connect_timeout=config.http.connect_timeout,
        read_timeout=config.http.read_timeout,
    )
    catalog = ReleaseCatalogClient(
        fetcher,
        base_url=config.catalog.base_url,
        vendor=config.catalog.vendor,
    )
    _LOGGER.debug(
        "Using release catalog %s (vendor=%s)",
        config.catalog.base_url,
        config.catalog.vendor.value,
    )
    return AcquisitionEngine(
        catalog,
        fetcher,
        FileSystemGateway(),
        progress_factory=progress_factory,
        chunk_size=config.http.chunk_size,
        page_size=config.catalog.page_size,
        vendor=config.catalog.vendor,
    )


__all__ = ["build_acquisition_engine"]
