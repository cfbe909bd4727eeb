"""Constants shared across the runtime acquisition modules."""

from __future__ import annotations

CATALOG_BASE_URL = "https://api.adoptopenjdk.net/v3"
FEATURE_RELEASES_PATH = "/assets/feature_releases/{major_version}/{release_type}"
RELEASE_BY_NAME_PATH = "/assets/release_name/{vendor}/{release_name}"
RELEASE_NAMES_PATH = "/info/release_names"

CATALOG_PROJECT = "jdk"
JSON_HEADERS = {"accept": "application/json"}
RELEASE_NAMES_PAGE_SIZE = 20

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 60.0
DOWNLOAD_CHUNK_SIZE = 8192
HASH_BLOCK_SIZE = 65536

NAME_SEPARATOR = "--"
TEMPORARY_SUFFIX = "_temporary"
DOWNLOADS_DIRNAME = "downloads"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S%z"

MAC_OS = "mac"
MAC_HOME_SUFFIX = ("Contents", "Home")
RUNTIME_EXECUTABLE_MARKER = "java"

ZIP_SUFFIX = ".zip"
TAR_GZ_SUFFIX = ".tar.gz"

KNOWN_OPERATING_SYSTEMS = (
    "linux",
    "windows",
    "mac",
    "solaris",
    "aix",
    "alpine-linux",
)
KNOWN_ARCHITECTURES = (
    "x64",
    "x32",
    "ppc64",
    "ppc64le",
    "s390x",
    "aarch64",
    "arm",
    "sparcv9",
    "riscv64",
)

INSTALL_ROOT_ENV = "RUNTIME_FETCHER_INSTALL_ROOT"
CATALOG_URL_ENV = "RUNTIME_FETCHER_CATALOG_URL"
