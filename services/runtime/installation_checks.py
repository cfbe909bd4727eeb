"""Locate the runtime home of an install and decide whether it is usable."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from services.runtime.constants import MAC_HOME_SUFFIX, MAC_OS, RUNTIME_EXECUTABLE_MARKER
from services.runtime.filesystem import FileSystemGateway

_LOGGER = logging.getLogger(__name__)

__all__ = ["BinaryPresenceCheck", "InstallCheck", "find_runtime_home"]


def find_runtime_home(
    filesystem: FileSystemGateway, install_path: Path, os_name: str
) -> Path | None:
    """Return the directory holding ``bin/`` for the install at ``install_path``.

    This is the first subdirectory of the install; macOS packages nest the
    home one level deeper under ``Contents/Home``.
    """

    if not filesystem.exists(install_path):
        return None
    for entry in filesystem.list_directory(install_path):
        if filesystem.is_directory(entry):
            if os_name.lower() == MAC_OS:
                return entry.joinpath(*MAC_HOME_SUFFIX)
            return entry
    return None


class InstallCheck(Protocol):
    """Protocol deciding whether an install directory can be reused."""

    def is_valid_install(self, install_path: Path, os_name: str) -> bool:
        """Return ``True`` when ``install_path`` holds a usable runtime."""


class BinaryPresenceCheck:
    """Heuristic check: ``bin/`` exists and holds a ``java``-named entry.

    Nothing is executed; a truncated binary would still pass.
    """

    def __init__(
        self,
        filesystem: FileSystemGateway,
        *,
        executable_marker: str = RUNTIME_EXECUTABLE_MARKER,
    ) -> None:
        self._filesystem = filesystem
        self._marker = executable_marker

    def is_valid_install(self, install_path: Path, os_name: str) -> bool:
        home = find_runtime_home(self._filesystem, install_path, os_name)
        if home is None:
            return False
        bin_folder = home / "bin"
        if not self._filesystem.is_directory(bin_folder):
            _LOGGER.debug("Install %s has no bin folder at %s", install_path, bin_folder)
            return False
        return any(
            self._marker in entry.name
            for entry in self._filesystem.list_directory(bin_folder)
        )
