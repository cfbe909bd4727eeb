"""Resolve, download, verify and install runtime distributions."""

from __future__ import annotations

import http.client
import logging
import time
from pathlib import Path
from typing import BinaryIO, Callable

from services.runtime.archive import extract_archive
from services.runtime.catalog import Fetcher, ReleaseCatalogClient
from services.runtime.constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOADS_DIRNAME,
    KNOWN_ARCHITECTURES,
    KNOWN_OPERATING_SYSTEMS,
    RELEASE_NAMES_PAGE_SIZE,
)
from services.runtime.filesystem import FileSystemGateway
from services.runtime.hashing import verify_sha256
from services.runtime.install_naming import (
    format_install_name,
    matches_install_name,
    parse_install_timestamp,
    release_name_from_install,
    temporary_name,
)
from services.runtime.installation_checks import BinaryPresenceCheck, InstallCheck, find_runtime_home
from services.runtime.models import (
    AcquisitionRequest,
    CleanupWarning,
    CorruptInstallError,
    FetchError,
    HttpStatusError,
    ImageKind,
    InstallationError,
    InstallationResult,
    InvalidRequestError,
    ReleaseDescriptor,
    ReleaseType,
    ResolvedRequest,
    Vendor,
)
from services.runtime.progress import ProgressCallback
from services.runtime.versioning import is_release_newer, parse_major_version


_LOGGER = logging.getLogger(__name__)

__all__ = ["AcquisitionEngine", "copy_with_progress", "resolve_request"]

ProgressFactory = Callable[[int, str], ProgressCallback]
Extractor = Callable[[Path, Path], None]


def resolve_request(request: AcquisitionRequest) -> ResolvedRequest:
    """Validate ``request`` and return its normalised, immutable form."""

    architecture = (request.architecture or "").strip()
    os_name = (request.os or "").strip()
    if not architecture:
        raise InvalidRequestError("An architecture (eg. x64) must be provided")
    if not os_name:
        raise InvalidRequestError("An operating system (eg. linux) must be provided")

    image_kind = _coerce_image_kind(request.image_kind)

    exact_release_name = (request.exact_release_name or "").strip() or None
    if exact_release_name is not None:
        major_version = parse_major_version(exact_release_name)
    else:
        major_version = request.major_version
        if isinstance(major_version, bool) or not isinstance(major_version, int) or major_version <= 0:
            raise InvalidRequestError(
                "Either java version (eg. 16) or full java release name "
                "(eg. jdk-16.0.1+9) must be provided"
            )

    if os_name not in KNOWN_OPERATING_SYSTEMS:
        _LOGGER.warning("Unknown operating system %r, the catalog may not publish it", os_name)
    if architecture not in KNOWN_ARCHITECTURES:
        _LOGGER.warning("Unknown architecture %r, the catalog may not publish it", architecture)

    return ResolvedRequest(
        architecture=architecture,
        os=os_name,
        image_kind=image_kind,
        major_version=major_version,
        exact_release_name=exact_release_name,
        force_latest_check=bool(request.force_latest_check),
        prune_other_versions=bool(request.prune_other_versions),
        install_root=Path(request.install_root).expanduser().absolute(),
    )


def _coerce_image_kind(value: ImageKind | str | None) -> ImageKind:
    if isinstance(value, ImageKind):
        return value
    if isinstance(value, str):
        try:
            return ImageKind(value.strip().lower())
        except ValueError:
            pass
    raise InvalidRequestError(f"Invalid image kind {value!r}, must be either jdk or jre")


def copy_with_progress(
    source: BinaryIO,
    target: BinaryIO,
    chunk_size: int,
    progress: ProgressCallback | None = None,
) -> int:
    """Copy ``source`` into ``target`` chunk by chunk, reporting each chunk."""

    transferred = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            return transferred
        target.write(chunk)
        transferred += len(chunk)
        if progress is not None:
            progress(len(chunk))


class AcquisitionEngine:
    """Make a requested runtime available below the install root.

    Local installs are reused whenever possible; otherwise the release is
    looked up in the catalog, downloaded, checked against its SHA-256 digest
    and unpacked into a directory named after the release and its timestamp.
    """

    def __init__(
        self,
        catalog: ReleaseCatalogClient,
        fetcher: Fetcher,
        filesystem: FileSystemGateway | None = None,
        *,
        install_check: InstallCheck | None = None,
        extractor: Extractor = extract_archive,
        progress_factory: ProgressFactory | None = None,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
        page_size: int = RELEASE_NAMES_PAGE_SIZE,
        vendor: Vendor = Vendor.ADOPT_OPENJDK,
    ) -> None:
        self._catalog = catalog
        self._fetcher = fetcher
        self._fs = filesystem or FileSystemGateway()
        self._install_check = install_check or BinaryPresenceCheck(self._fs)
        self._extractor = extractor
        self._progress_factory = progress_factory
        self._chunk_size = chunk_size
        self._page_size = page_size
        self._vendor = vendor

    def list_all_release_names(
        self,
        release_type: ReleaseType = ReleaseType.GENERAL_AVAILABILITY,
        version: str | None = None,
    ) -> list[str]:
        """Return every release name published by the catalog, newest first."""

        names: list[str] = []
        page = 0
        while True:
            try:
                batch = self._catalog.list_names(
                    release_type,
                    self._vendor,
                    version,
                    page=page,
                    page_size=self._page_size,
                )
            except HttpStatusError as exc:
                if exc.status_code == 404:
                    _LOGGER.debug("Release names page %s is out of range", page)
                    break
                raise
            names.extend(batch)
            if len(batch) < self._page_size:
                break
            page += 1
        _LOGGER.info("Catalog lists %s release names", len(names))
        return names

    def acquire(
        self,
        request: AcquisitionRequest,
        *,
        progress: ProgressCallback | None = None,
    ) -> InstallationResult:
        """Return the install directory and runtime home for ``request``."""

        start = time.monotonic()
        resolved = resolve_request(request)
        self._fs.make_directories(resolved.kind_root)
        warnings: list[CleanupWarning] = []

        install_path = self._find_local(resolved)
        if install_path is None:
            install_path = self._install_from_catalog(resolved, progress, warnings)

        if resolved.prune_other_versions:
            warnings.extend(self._prune_other_versions(resolved, install_path))

        runtime_home = find_runtime_home(self._fs, install_path, resolved.os)
        if runtime_home is None:
            raise CorruptInstallError(
                f"No runtime home found in {install_path}, the installation is corrupt"
            )

        _LOGGER.info(
            "%s HOME is %s, took %.0f ms",
            resolved.image_kind.value,
            runtime_home,
            (time.monotonic() - start) * 1000,
        )
        return InstallationResult(install_path, runtime_home, tuple(warnings))

    def _find_local(self, resolved: ResolvedRequest) -> Path | None:
        if resolved.exact_release_name is None and resolved.force_latest_check:
            return None

        candidate = self._latest_local_install(resolved, resolved.exact_release_name)
        if candidate is None:
            return None
        if not self._install_check.is_valid_install(candidate, resolved.os):
            _LOGGER.info("Ignoring invalid local install %s", candidate)
            return None
        _LOGGER.info("Found existing %s: %s", resolved.describe(), candidate)
        return candidate

    def _latest_local_install(
        self, resolved: ResolvedRequest, release_name: str | None
    ) -> Path | None:
        folder = resolved.version_arch_folder
        if not self._fs.exists(folder):
            return None

        latest: Path | None = None
        latest_timestamp = None
        for entry in self._fs.iter_directory(folder):
            if not matches_install_name(entry.name, resolved.os_arch, release_name):
                continue
            timestamp = parse_install_timestamp(entry.name)
            if timestamp is None:
                continue
            if latest_timestamp is None or timestamp > latest_timestamp:
                latest, latest_timestamp = entry, timestamp
        return latest

    def _install_from_catalog(
        self,
        resolved: ResolvedRequest,
        progress: ProgressCallback | None,
        warnings: list[CleanupWarning],
    ) -> Path:
        release = self._lookup_release(resolved)
        _LOGGER.info("Java release is %s", release)
        install_path = resolved.version_arch_folder / format_install_name(release, resolved.os_arch)

        if resolved.force_latest_check:
            self._log_newer_release(resolved, release)
            if self._install_check.is_valid_install(install_path, resolved.os):
                _LOGGER.info("Latest %s is already installed: %s", resolved.describe(), install_path)
                return install_path

        downloads_folder = resolved.kind_root / DOWNLOADS_DIRNAME
        self._fs.make_directories(downloads_folder)
        archive_path = downloads_folder / Path(release.package_name).name
        temporary_folder = install_path.parent / temporary_name(install_path.name)

        try:
            _LOGGER.info("Downloading %s ...", resolved.describe())
            self._download(release, archive_path, progress)

            with self._fs.open_for_read(archive_path) as archive:
                verify_sha256(archive, release.sha256, archive_path.name)
            _LOGGER.info("Checksum is valid for %s", resolved.describe())

            self._extract_and_place(archive_path, temporary_folder, install_path, warnings)
            _LOGGER.info("Installation done for %s", resolved.describe())
        finally:
            warnings.extend(self._fs.delete_file(archive_path))

        return install_path

    def _lookup_release(self, resolved: ResolvedRequest) -> ReleaseDescriptor:
        if resolved.exact_release_name is not None:
            return self._catalog.by_exact_name(
                resolved.exact_release_name,
                resolved.architecture,
                resolved.os,
                resolved.image_kind,
            )
        return self._catalog.latest_for_version(
            resolved.major_version,
            resolved.architecture,
            resolved.os,
            resolved.image_kind,
        )

    def _log_newer_release(self, resolved: ResolvedRequest, release: ReleaseDescriptor) -> None:
        current = self._latest_local_install(resolved, None)
        if current is None:
            return
        current_name = release_name_from_install(current.name)
        if is_release_newer(current_name, release.release_name):
            _LOGGER.info(
                "Newer %s release %s available, installed is %s",
                resolved.image_kind.value,
                release.release_name,
                current_name,
            )

    def _download(
        self,
        release: ReleaseDescriptor,
        archive_path: Path,
        progress: ProgressCallback | None,
    ) -> None:
        start = time.monotonic()
        if progress is None and self._progress_factory is not None:
            progress = self._progress_factory(
                release.size_bytes, f"Downloading {release.package_name}"
            )
        with self._fetcher.get(release.download_url, {}, {}) as source:
            try:
                with self._fs.open_for_write(archive_path) as target:
                    transferred = copy_with_progress(source, target, self._chunk_size, progress)
            except (OSError, http.client.HTTPException) as exc:
                raise FetchError(
                    f"Download of {release.download_url} to {archive_path} failed: {exc}"
                ) from exc
        _LOGGER.info(
            "Successfully downloaded %s (%s bytes) in %.0f ms to %s",
            release.package_name,
            transferred,
            (time.monotonic() - start) * 1000,
            archive_path,
        )

    def _extract_and_place(
        self,
        archive_path: Path,
        temporary_folder: Path,
        install_path: Path,
        warnings: list[CleanupWarning],
    ) -> None:
        if self._fs.exists(temporary_folder):
            warnings.extend(self._fs.delete_recursively(temporary_folder))
        try:
            _LOGGER.info("Extracting compressed archive %s", archive_path.name)
            self._extractor(archive_path, temporary_folder)
            self._move_into_place(temporary_folder, install_path, warnings)
        finally:
            warnings.extend(self._fs.delete_recursively(temporary_folder))

    def _move_into_place(
        self,
        temporary_folder: Path,
        install_path: Path,
        warnings: list[CleanupWarning],
    ) -> None:
        try:
            if self._fs.exists(install_path):
                warnings.extend(self._fs.delete_recursively(install_path))
            self._fs.make_directories(install_path)
            for entry in self._fs.list_directory(temporary_folder):
                self._fs.move(entry, install_path / entry.name)
        except Exception as exc:
            _LOGGER.error("Installation into %s failed, rolling back", install_path)
            warnings.extend(self._fs.delete_recursively(install_path))
            if isinstance(exc, OSError):
                raise InstallationError(f"Unable to install into {install_path}: {exc}") from exc
            raise

    def _prune_other_versions(
        self, resolved: ResolvedRequest, install_path: Path
    ) -> list[CleanupWarning]:
        _LOGGER.info(
            "Pruning enabled, cleaning %s folders other than %s ...",
            resolved.image_kind.value,
            install_path,
        )
        warnings: list[CleanupWarning] = []
        for sibling in self._fs.list_directory(install_path.parent):
            if sibling.name == install_path.name:
                continue
            _LOGGER.info("Deleting other %s %s ...", resolved.image_kind.value, sibling)
            warnings.extend(self._fs.delete_recursively(sibling))
        return warnings
