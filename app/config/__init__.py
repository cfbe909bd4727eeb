"""Runtime-fetcher configuration loaded from JSON resources."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

from services.runtime.constants import (
    CATALOG_BASE_URL,
    CATALOG_URL_ENV,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    DOWNLOAD_CHUNK_SIZE,
    INSTALL_ROOT_ENV,
    RELEASE_NAMES_PAGE_SIZE,
)
from services.runtime.models import Vendor

_CONFIG_RESOURCE = "app.json"
_DEFAULT_INSTALL_ROOT = "~/.m2/java"
_APP_CONFIG_CACHE: AppConfig | None = None


@dataclass(frozen=True)
class CatalogConfig:
    """Where and how the release catalog is queried."""

    base_url: str
    vendor: Vendor
    page_size: int


@dataclass(frozen=True)
class HttpConfig:
    """Timeouts (seconds) and buffer size for outbound requests."""

    connect_timeout: float
    read_timeout: float
    chunk_size: int


@dataclass(frozen=True)
class InstallConfig:
    install_root: Path


@dataclass(frozen=True)
class AppConfig:
    """Structured configuration values for runtime acquisition."""

    catalog: CatalogConfig
    http: HttpConfig
    install: InstallConfig


def get_app_config() -> AppConfig:
    """Return the cached configuration."""

    global _APP_CONFIG_CACHE
    if _APP_CONFIG_CACHE is None:
        _APP_CONFIG_CACHE = load_app_config()
    return _APP_CONFIG_CACHE


def reset_app_config_cache() -> None:
    """Reset the cached configuration for subsequent reloads."""

    global _APP_CONFIG_CACHE
    _APP_CONFIG_CACHE = None


def load_app_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from ``path`` or the bundled JSON resource.

    ``RUNTIME_FETCHER_INSTALL_ROOT`` and ``RUNTIME_FETCHER_CATALOG_URL`` take
    precedence over values read from the file.
    """

    data = _read_config_data(path)
    catalog = _parse_catalog_section(_section(data, "catalog"))
    http = _parse_http_section(_section(data, "http"))
    install = _parse_install_section(_section(data, "install"))

    catalog_override = os.environ.get(CATALOG_URL_ENV, "").strip()
    if catalog_override:
        catalog = CatalogConfig(
            base_url=catalog_override.rstrip("/"),
            vendor=catalog.vendor,
            page_size=catalog.page_size,
        )
    root_override = os.environ.get(INSTALL_ROOT_ENV, "").strip()
    if root_override:
        install = InstallConfig(install_root=Path(root_override).expanduser())

    return AppConfig(catalog=catalog, http=http, install=install)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any] | None:
    section = data.get(name) if isinstance(data, Mapping) else None
    return section if isinstance(section, Mapping) else None


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_catalog_section(section: Mapping[str, Any] | None) -> CatalogConfig:
    if section is None:
        section = {}
    base_url = section.get("base_url")
    if not isinstance(base_url, str) or not base_url.strip().startswith(("http://", "https://")):
        base_url = CATALOG_BASE_URL
    vendor_value = section.get("vendor")
    try:
        vendor = Vendor(str(vendor_value).strip().lower()) if vendor_value else Vendor.ADOPT_OPENJDK
    except ValueError:
        vendor = Vendor.ADOPT_OPENJDK
    page_size = _coerce_positive_int(section.get("page_size"), default=RELEASE_NAMES_PAGE_SIZE)
    return CatalogConfig(base_url=base_url.strip().rstrip("/"), vendor=vendor, page_size=page_size)


def _parse_http_section(section: Mapping[str, Any] | None) -> HttpConfig:
    if section is None:
        return HttpConfig(
            connect_timeout=DEFAULT_CONNECT_TIMEOUT,
            read_timeout=DEFAULT_READ_TIMEOUT,
            chunk_size=DOWNLOAD_CHUNK_SIZE,
        )
    return HttpConfig(
        connect_timeout=_coerce_positive_float(
            section.get("connect_timeout_seconds"), default=DEFAULT_CONNECT_TIMEOUT
        ),
        read_timeout=_coerce_positive_float(
            section.get("read_timeout_seconds"), default=DEFAULT_READ_TIMEOUT
        ),
        chunk_size=_coerce_positive_int(section.get("chunk_size"), default=DOWNLOAD_CHUNK_SIZE),
    )


def _parse_install_section(section: Mapping[str, Any] | None) -> InstallConfig:
    raw = section.get("root") if section is not None else None
    if not isinstance(raw, str) or not raw.strip():
        raw = _DEFAULT_INSTALL_ROOT
    return InstallConfig(install_root=Path(raw.strip()).expanduser())


def _coerce_positive_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        if isinstance(value, (int, float)):
            candidate = int(value)
        elif isinstance(value, str):
            candidate = int(float(value))
        else:
            return default
    except (ValueError, OverflowError):
        return default
    if candidate <= 0:
        return default
    return candidate


def _coerce_positive_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if not isfinite(candidate) or candidate <= 0:
        return default
    return candidate


__all__ = [
    "AppConfig",
    "CatalogConfig",
    "HttpConfig",
    "InstallConfig",
    "get_app_config",
    "load_app_config",
    "reset_app_config_cache",
]
