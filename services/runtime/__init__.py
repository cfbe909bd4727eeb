"""Public API for the runtime acquisition package."""

from __future__ import annotations

from services.runtime.catalog import ReleaseCatalogClient, decode_release
from services.runtime.constants import (
    CATALOG_BASE_URL,
    CATALOG_URL_ENV,
    INSTALL_ROOT_ENV,
    KNOWN_ARCHITECTURES,
    KNOWN_OPERATING_SYSTEMS,
)
from services.runtime.engine import AcquisitionEngine, resolve_request
from services.runtime.filesystem import FileSystemGateway
from services.runtime.http import ContentFetcher
from services.runtime.installation_checks import BinaryPresenceCheck, InstallCheck
from services.runtime.models import (
    AcquisitionRequest,
    ArchiveError,
    CatalogResponseError,
    CleanupWarning,
    CorruptInstallError,
    FetchError,
    HttpStatusError,
    ImageKind,
    InstallationError,
    InstallationResult,
    IntegrityError,
    InvalidRequestError,
    JvmImpl,
    PathTraversalError,
    ReleaseDescriptor,
    ReleaseNotFoundError,
    ReleaseType,
    ResolvedRequest,
    RuntimeFetchError,
    UnsupportedFormatError,
    Vendor,
)
from services.runtime.progress import LoggingProgressReporter, ProgressBarPrinter

__all__ = [
    "CATALOG_BASE_URL",
    "CATALOG_URL_ENV",
    "INSTALL_ROOT_ENV",
    "KNOWN_ARCHITECTURES",
    "KNOWN_OPERATING_SYSTEMS",
    "AcquisitionEngine",
    "AcquisitionRequest",
    "ArchiveError",
    "BinaryPresenceCheck",
    "CatalogResponseError",
    "CleanupWarning",
    "ContentFetcher",
    "CorruptInstallError",
    "FetchError",
    "FileSystemGateway",
    "HttpStatusError",
    "ImageKind",
    "InstallCheck",
    "InstallationError",
    "InstallationResult",
    "IntegrityError",
    "InvalidRequestError",
    "JvmImpl",
    "LoggingProgressReporter",
    "PathTraversalError",
    "ProgressBarPrinter",
    "ReleaseCatalogClient",
    "ReleaseDescriptor",
    "ReleaseNotFoundError",
    "ReleaseType",
    "ResolvedRequest",
    "RuntimeFetchError",
    "UnsupportedFormatError",
    "Vendor",
    "decode_release",
    "resolve_request",
]
