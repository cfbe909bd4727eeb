"""Formatting and parsing of install-directory names.

An installed runtime lives in a directory named::

    <release name>--<timestamp, ':' replaced by '-'>--<os>_<arch>

The embedded timestamp is the only ordering used to decide which local install
is the most recent one, so every reader and writer of that convention goes
through this module.
"""

from __future__ import annotations

import datetime
import logging

from services.runtime.constants import NAME_SEPARATOR, TEMPORARY_SUFFIX, TIMESTAMP_FORMAT
from services.runtime.models import ReleaseDescriptor

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "format_install_name",
    "install_name_suffix",
    "matches_install_name",
    "parse_install_timestamp",
    "release_name_from_install",
    "temporary_name",
    "timestamp_segment",
]


def install_name_suffix(os_arch: str) -> str:
    return f"{NAME_SEPARATOR}{os_arch}"


def timestamp_segment(timestamp: str) -> str:
    """Return ``timestamp`` in the form used inside directory names."""

    return timestamp.replace(":", "-")


def format_install_name(release: ReleaseDescriptor, os_arch: str) -> str:
    return NAME_SEPARATOR.join(
        (release.release_name, timestamp_segment(release.timestamp), os_arch)
    )


def temporary_name(install_name: str) -> str:
    return f"{install_name}{TEMPORARY_SUFFIX}"


def matches_install_name(
    name: str, os_arch: str, release_name: str | None = None
) -> bool:
    """Return ``True`` when ``name`` looks like an install of ``os_arch``.

    When ``release_name`` is given the directory must also belong to exactly
    that release.
    """

    if not name.endswith(install_name_suffix(os_arch)):
        return False
    if release_name is not None:
        return name.startswith(f"{release_name}{NAME_SEPARATOR}")
    return True


def parse_install_timestamp(name: str) -> datetime.datetime | None:
    """Return the timestamp embedded in an install-directory ``name``.

    Names without two separators or with a timestamp that does not follow
    :data:`TIMESTAMP_FORMAT` yield ``None``.
    """

    first = name.find(NAME_SEPARATOR)
    last = name.rfind(NAME_SEPARATOR)
    if first < 0 or last <= first:
        return None
    segment = name[first + len(NAME_SEPARATOR):last]
    try:
        return datetime.datetime.strptime(segment, TIMESTAMP_FORMAT)
    except ValueError:
        _LOGGER.debug("Ignoring install directory with unparsable timestamp: %s", name)
        return None


def release_name_from_install(name: str) -> str:
    """Return the release-name segment of an install-directory ``name``."""

    return name.split(NAME_SEPARATOR, 1)[0]
