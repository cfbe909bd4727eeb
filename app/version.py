from __future__ import annotations

"""Project version helpers."""

from functools import lru_cache
import os
from importlib import metadata, resources

_FALLBACK_VERSION = "0.0.0-dev"
_DISTRIBUTION_NAME = "runtime-fetcher"
_VERSION_ENV = "RUNTIME_FETCHER_VERSION"


def _read_version_file() -> str | None:
    try:
        text = resources.files(__package__).joinpath("VERSION").read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError):
        return None
    version = text.strip()
    return version or None


def _version_from_env() -> str | None:
    env_version = os.environ.get(_VERSION_ENV)
    if not env_version:
        return None
    return _normalize(env_version)


def _version_from_metadata() -> str | None:
    try:
        return _normalize(metadata.version(_DISTRIBUTION_NAME))
    except metadata.PackageNotFoundError:
        return None


def _normalize(raw_version: str) -> str:
    version = raw_version.strip()
    if version.startswith("v"):
        version = version[1:]
    return version


@lru_cache(maxsize=1)
def get_app_version() -> str:
    """Return the runtime-fetcher version.

    The order of precedence is:
    1. The ``RUNTIME_FETCHER_VERSION`` environment variable.
    2. The ``VERSION`` file shipped next to this module.
    3. Metadata of the installed ``runtime-fetcher`` distribution.
    4. A fallback development version string.
    """

    for resolver in (_version_from_env, _read_version_file, _version_from_metadata):
        version = resolver()
        if version:
            return version
    return _FALLBACK_VERSION


__all__ = ["get_app_version"]
