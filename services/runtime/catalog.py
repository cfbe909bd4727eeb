"""Client for the AdoptOpenJDK release catalog API."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib.parse import quote

from services.runtime.constants import (
    CATALOG_BASE_URL,
    CATALOG_PROJECT,
    FEATURE_RELEASES_PATH,
    JSON_HEADERS,
    RELEASE_BY_NAME_PATH,
    RELEASE_NAMES_PATH,
)
from services.runtime.models import (
    CatalogResponseError,
    ImageKind,
    JvmImpl,
    ReleaseDescriptor,
    ReleaseNotFoundError,
    ReleaseType,
    Vendor,
)


_LOGGER = logging.getLogger(__name__)

__all__ = ["Fetcher", "ReleaseCatalogClient", "decode_release"]


class Fetcher(Protocol):
    """Protocol describing the HTTP collaborator used by the catalog client."""

    def get(self, url: str, query_params=None, headers=None):
        """Return a readable binary stream for ``url``."""


class ReleaseCatalogClient:
    """Query release metadata and release names from the catalog."""

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        base_url: str = CATALOG_BASE_URL,
        vendor: Vendor = Vendor.ADOPT_OPENJDK,
        jvm_impl: JvmImpl = JvmImpl.HOTSPOT,
    ) -> None:
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._vendor = vendor
        self._jvm_impl = jvm_impl

    def latest_for_version(
        self,
        major_version: int,
        architecture: str,
        os_name: str,
        image_kind: ImageKind,
    ) -> ReleaseDescriptor:
        """Return the newest GA release for ``major_version``."""

        url = self._base_url + FEATURE_RELEASES_PATH.format(
            major_version=major_version,
            release_type=ReleaseType.GENERAL_AVAILABILITY.value,
        )
        params = {
            "project": CATALOG_PROJECT,
            "sort_method": "DATE",
            "sort_order": "DESC",
            "page": "0",
            "page_size": "1",
            "jvm_impl": self._jvm_impl.value,
            "image_type": image_kind.value,
            "vendor": self._vendor.value,
            "architecture": architecture,
            "os": os_name,
        }
        payload = self._request_json(url, params)
        if not isinstance(payload, list):
            raise CatalogResponseError(f"Expected a list of releases from {url}")
        if not payload:
            raise ReleaseNotFoundError(
                f"No GA {image_kind.value} release found for java {major_version} "
                f"os {os_name} arch {architecture}"
            )
        return decode_release(payload[0])

    def by_exact_name(
        self,
        release_name: str,
        architecture: str,
        os_name: str,
        image_kind: ImageKind,
    ) -> ReleaseDescriptor:
        url = self._base_url + RELEASE_BY_NAME_PATH.format(
            vendor=self._vendor.value,
            release_name=quote(release_name, safe="+"),
        )
        params = {
            "project": CATALOG_PROJECT,
            "jvm_impl": self._jvm_impl.value,
            "image_type": image_kind.value,
            "architecture": architecture,
            "os": os_name,
        }
        return decode_release(self._request_json(url, params))

    def list_names(
        self,
        release_type: ReleaseType,
        vendor: Vendor,
        version: str | None = None,
        *,
        page: int = 0,
        page_size: int = 20,
    ) -> list[str]:
        """Return one page of release names, newest first.

        ``version`` is an optional version range such as ``[1.0,2.0)``.
        """

        params = {
            "sort_method": "DEFAULT",
            "sort_order": "DESC",
            "page": str(page),
            "page_size": str(page_size),
            "release_type": release_type.value,
            "vendor": vendor.value,
        }
        if version is not None:
            params["version"] = version
        url = self._base_url + RELEASE_NAMES_PATH
        payload = self._request_json(url, params)
        releases = payload.get("releases") if isinstance(payload, dict) else None
        if not isinstance(releases, list):
            raise CatalogResponseError(f"Release names response from {url} has no releases list")
        return [str(name) for name in releases]

    def _request_json(self, url: str, params: dict[str, str]) -> Any:
        _LOGGER.debug("Querying release catalog %s with %s", url, params)
        with self._fetcher.get(url, params, dict(JSON_HEADERS)) as response:
            raw = response.read()
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CatalogResponseError(f"Invalid JSON returned by {url}: {exc}") from exc


def decode_release(document: Any) -> ReleaseDescriptor:
    """Build a :class:`ReleaseDescriptor` from one catalog release document."""

    if not isinstance(document, dict):
        raise CatalogResponseError("Release document is not a JSON object")
    binaries = document.get("binaries")
    if not isinstance(binaries, list) or not binaries or not isinstance(binaries[0], dict):
        raise CatalogResponseError(
            f"Release {document.get('release_name')!r} does not list any binaries"
        )
    package = binaries[0].get("package")
    if not isinstance(package, dict):
        raise CatalogResponseError(
            f"Release {document.get('release_name')!r} binary has no package"
        )

    size = package.get("size")
    if isinstance(size, bool) or not isinstance(size, int):
        raise CatalogResponseError(f"Package size is not an integer: {size!r}")

    return ReleaseDescriptor(
        release_name=_require_text(document, "release_name"),
        package_name=_require_text(package, "name"),
        download_url=_require_text(package, "link"),
        sha256=_require_text(package, "checksum"),
        size_bytes=size,
        timestamp=_require_text(document, "timestamp"),
    )


def _require_text(section: dict, key: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise CatalogResponseError(f"Catalog response field {key!r} is missing")
    return value.strip()
