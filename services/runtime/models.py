"""Data models and errors used by the runtime acquisition service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ImageKind(str, Enum):
    """Distribution flavour published by the release catalog."""

    JDK = "jdk"
    JRE = "jre"

    def __str__(self) -> str:
        return self.value


class ReleaseType(str, Enum):
    GENERAL_AVAILABILITY = "ga"
    EARLY_ACCESS = "ea"


class JvmImpl(str, Enum):
    HOTSPOT = "hotspot"
    OPENJ9 = "openj9"


class Vendor(str, Enum):
    ADOPT_OPENJDK = "adoptopenjdk"
    OPENJDK = "openjdk"


def _default_install_root() -> Path:
    return Path.home() / ".m2" / "java"


@dataclass(frozen=True)
class AcquisitionRequest:
    """Describe which runtime build the caller needs on disk.

    ``exact_release_name`` takes precedence over ``major_version`` when both
    are supplied; the major version is then derived from the release name.
    """

    architecture: str
    os: str
    image_kind: ImageKind = ImageKind.JRE
    major_version: int | None = None
    exact_release_name: str | None = None
    force_latest_check: bool = False
    prune_other_versions: bool = True
    install_root: Path = field(default_factory=_default_install_root)


@dataclass(frozen=True)
class ResolvedRequest:
    """Validated view of an :class:`AcquisitionRequest`."""

    architecture: str
    os: str
    image_kind: ImageKind
    major_version: int
    exact_release_name: str | None
    force_latest_check: bool
    prune_other_versions: bool
    install_root: Path

    @property
    def os_arch(self) -> str:
        return f"{self.os}_{self.architecture}"

    @property
    def kind_root(self) -> Path:
        return self.install_root / self.image_kind.value

    @property
    def version_arch_folder(self) -> Path:
        return self.kind_root / str(self.major_version) / self.os_arch

    def describe(self) -> str:
        return (
            f"{self.image_kind.value} {self.exact_release_name or self.major_version} "
            f"os {self.os} arch {self.architecture}"
        )


@dataclass(frozen=True)
class ReleaseDescriptor:
    """Metadata describing one downloadable release package."""

    release_name: str
    package_name: str
    download_url: str
    sha256: str
    size_bytes: int
    timestamp: str


@dataclass(frozen=True)
class CleanupWarning:
    """A best-effort deletion that did not complete."""

    path: Path
    message: str


@dataclass(frozen=True)
class InstallationResult:
    """Location of an installed runtime."""

    install_path: Path
    runtime_home: Path
    cleanup_warnings: tuple[CleanupWarning, ...] = field(default=(), compare=False)


class RuntimeFetchError(RuntimeError):
    """Raised when a runtime cannot be resolved, downloaded or installed."""


class InvalidRequestError(RuntimeFetchError):
    """Raised when an acquisition request is malformed or underspecified."""


class FetchError(RuntimeFetchError):
    """Raised when a remote resource cannot be reached."""


class HttpStatusError(FetchError):
    """Raised for any non-2xx HTTP response."""

    def __init__(self, status_code: int, url: str, body: str) -> None:
        super().__init__(f"Error {status_code} for Http request {url} : {body}")
        self.status_code = status_code
        self.url = url
        self.body = body


class CatalogResponseError(RuntimeFetchError):
    """Raised when a catalog response does not have the expected shape."""


class ReleaseNotFoundError(CatalogResponseError):
    """Raised when the catalog returns no release for a query."""


class IntegrityError(RuntimeFetchError):
    """Raised when a downloaded archive does not match its published digest."""


class UnsupportedFormatError(RuntimeFetchError):
    """Raised for archive types the extractor cannot handle."""


class ArchiveError(RuntimeFetchError):
    """Raised when an archive cannot be read or unpacked."""


class PathTraversalError(ArchiveError):
    """Raised when an archive entry would be written outside its destination."""


class InstallationError(RuntimeFetchError):
    """Raised when an extracted runtime cannot be moved into its install directory."""


class CorruptInstallError(RuntimeFetchError):
    """Raised when an install directory does not contain a runtime home."""


__all__ = [
    "AcquisitionRequest",
    "ArchiveError",
    "CatalogResponseError",
    "CleanupWarning",
    "CorruptInstallError",
    "FetchError",
    "HttpStatusError",
    "ImageKind",
    "InstallationError",
    "InstallationResult",
    "IntegrityError",
    "InvalidRequestError",
    "JvmImpl",
    "PathTraversalError",
    "ReleaseDescriptor",
    "ReleaseNotFoundError",
    "ReleaseType",
    "ResolvedRequest",
    "RuntimeFetchError",
    "UnsupportedFormatError",
    "Vendor",
]
