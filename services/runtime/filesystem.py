"""Filesystem primitives used by the acquisition engine.

The engine never touches the disk directly; it goes through
:class:`FileSystemGateway` so its behaviour can be exercised against a
recording or failing gateway in tests.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path
from typing import BinaryIO, Iterator

from services.runtime.models import CleanupWarning

_LOGGER = logging.getLogger(__name__)

__all__ = ["FileSystemGateway"]


class FileSystemGateway:
    """Thin pass-through wrapper around :mod:`pathlib` and :mod:`shutil`."""

    def move(self, source: Path, target: Path) -> None:
        shutil.move(str(source), str(target))

    def list_directory(self, folder: Path) -> list[Path]:
        return sorted(folder.iterdir(), key=lambda path: path.name)

    def iter_directory(self, folder: Path) -> Iterator[Path]:
        """Yield the entries of ``folder`` lazily, in no particular order."""

        with os.scandir(folder) as entries:
            for entry in entries:
                yield folder / entry.name

    def open_for_write(self, path: Path) -> BinaryIO:
        return path.open("wb")

    def open_for_read(self, path: Path) -> BinaryIO:
        return path.open("rb")

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_directory(self, path: Path) -> bool:
        return path.is_dir()

    def make_directories(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def delete_file(self, path: Path) -> list[CleanupWarning]:
        """Remove ``path`` if present, reporting failures instead of raising."""

        try:
            path.unlink()
        except FileNotFoundError:
            return []
        except OSError as exc:
            _LOGGER.error("Unable to delete %s: %s", path, exc)
            return [CleanupWarning(path, str(exc))]
        return []

    def delete_recursively(self, path: Path) -> list[CleanupWarning]:
        """Remove ``path`` and everything below it, depth first.

        Read-only files are made writable before removal. A failing entry is
        logged and recorded while the walk carries on with the remaining ones.
        """

        warnings: list[CleanupWarning] = []
        if not path.is_symlink() and not path.exists():
            return warnings
        if path.is_symlink() or not path.is_dir():
            return self._delete_entry(path, warnings)

        for current, dirnames, filenames in os.walk(path, topdown=False):
            current_path = Path(current)
            for name in filenames:
                self._delete_entry(current_path / name, warnings)
            for name in dirnames:
                child = current_path / name
                if child.is_symlink():
                    self._delete_entry(child, warnings)
                else:
                    self._remove_directory(child, warnings)
        self._remove_directory(path, warnings)
        return warnings

    def _delete_entry(
        self, path: Path, warnings: list[CleanupWarning]
    ) -> list[CleanupWarning]:
        try:
            if not path.is_symlink():
                _make_writable(path)
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            _LOGGER.error("Unable to delete %s: %s", path, exc)
            warnings.append(CleanupWarning(path, str(exc)))
        return warnings

    def _remove_directory(self, path: Path, warnings: list[CleanupWarning]) -> None:
        try:
            path.rmdir()
        except FileNotFoundError:
            pass
        except OSError as exc:
            _LOGGER.error("Unable to delete directory %s: %s", path, exc)
            warnings.append(CleanupWarning(path, str(exc)))


def _make_writable(path: Path) -> None:
    mode = path.stat().st_mode
    if not mode & stat.S_IWUSR:
        path.chmod(mode | stat.S_IWUSR)
