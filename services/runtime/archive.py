"""Archive extraction helpers for downloaded runtime packages."""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import zipfile
from pathlib import Path, PurePosixPath

from services.runtime.constants import TAR_GZ_SUFFIX, ZIP_SUFFIX
from services.runtime.models import ArchiveError, PathTraversalError, UnsupportedFormatError


_LOGGER = logging.getLogger(__name__)

__all__ = ["extract_archive", "extract_tar_gz", "extract_zip", "resolve_entry_path"]

_PERMISSION_MASK = 0o777


def extract_archive(archive_path: Path, target_dir: Path) -> None:
    """Unpack ``archive_path`` into ``target_dir`` based on its file suffix."""

    name = archive_path.name.lower()
    if name.endswith(ZIP_SUFFIX):
        _LOGGER.info("Extracting .zip archive %s", archive_path)
        extract_zip(archive_path, target_dir)
    elif name.endswith(TAR_GZ_SUFFIX):
        _LOGGER.info("Extracting .tar.gz archive %s", archive_path)
        extract_tar_gz(archive_path, target_dir)
    else:
        raise UnsupportedFormatError(
            f"Invalid archive {archive_path}, extension must be either .zip or .tar.gz"
        )


def resolve_entry_path(root: Path, name: str) -> Path:
    """Return where entry ``name`` lands below ``root``.

    ``root`` must already be resolved. Raises :class:`PathTraversalError` for
    absolute names and for names that normalise to a location outside ``root``.
    """

    normalised = name.replace("\\", "/")
    if normalised.startswith("/") or PurePosixPath(normalised).is_absolute() or (
        len(normalised) > 1 and normalised[1] == ":"
    ):
        raise PathTraversalError(f"Bad archive entry (absolute path): {name}")
    destination = (root / normalised).resolve()
    try:
        destination.relative_to(root)
    except ValueError:
        raise PathTraversalError(f"Bad archive entry (outside destination): {name}") from None
    return destination


def extract_zip(archive_path: Path, target_dir: Path) -> None:
    target_dir.mkdir(parents=True, exist_ok=True)
    root = target_dir.resolve()
    processed_entries = 0
    total_bytes = 0
    try:
        with zipfile.ZipFile(archive_path) as archive:
            for member in archive.infolist():
                name = member.filename
                if not name:
                    continue
                processed_entries += 1
                destination = resolve_entry_path(root, name)
                if member.is_dir():
                    destination.mkdir(parents=True, exist_ok=True)
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(member) as source, destination.open("wb") as target:
                    shutil.copyfileobj(source, target)
                _restore_mode(destination, member.external_attr >> 16)
                total_bytes += member.file_size
                _LOGGER.debug("Extracted archive member %s to %s", name, destination)
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Failed to extract archive {archive_path}: {exc}") from exc

    _LOGGER.info(
        "Extracted %s entries totalling %s bytes", processed_entries, total_bytes
    )


def extract_tar_gz(archive_path: Path, target_dir: Path) -> None:
    if not archive_path.exists():
        raise ArchiveError(f"Archive does not exist: {archive_path}")
    target_dir.mkdir(parents=True, exist_ok=True)
    root = target_dir.resolve()
    processed_entries = 0
    total_bytes = 0
    try:
        with tarfile.open(archive_path, "r:gz") as archive:
            for member in archive:
                name = member.name
                if not name or name in {".", "./"}:
                    continue
                processed_entries += 1
                destination = resolve_entry_path(root, name)
                if member.isdir():
                    destination.mkdir(parents=True, exist_ok=True)
                    continue
                if member.issym():
                    _extract_symlink(root, destination, member)
                    continue
                if member.islnk():
                    _extract_hardlink(root, destination, member)
                    continue
                if not member.isfile():
                    _LOGGER.debug("Skipping special archive member %s", name)
                    continue
                source = archive.extractfile(member)
                if source is None:
                    continue
                destination.parent.mkdir(parents=True, exist_ok=True)
                _unlink_existing(destination)
                with source, destination.open("wb") as target:
                    shutil.copyfileobj(source, target)
                _restore_mode(destination, member.mode)
                total_bytes += member.size
                _LOGGER.debug("Extracted archive member %s to %s", name, destination)
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveError(f"Failed to extract archive {archive_path}: {exc}") from exc

    _LOGGER.info(
        "Extracted %s entries totalling %s bytes", processed_entries, total_bytes
    )


def _extract_symlink(root: Path, destination: Path, member: tarfile.TarInfo) -> None:
    link_target = member.linkname.replace("\\", "/")
    if link_target.startswith("/"):
        raise PathTraversalError(f"Bad archive entry (absolute link): {member.name}")
    resolved_target = (destination.parent / link_target).resolve()
    try:
        resolved_target.relative_to(root)
    except ValueError:
        raise PathTraversalError(f"Bad archive entry (link outside destination): {member.name}") from None
    destination.parent.mkdir(parents=True, exist_ok=True)
    _unlink_existing(destination)
    os.symlink(link_target, destination)
    _LOGGER.debug("Created symlink %s -> %s", destination, link_target)


def _extract_hardlink(root: Path, destination: Path, member: tarfile.TarInfo) -> None:
    source = resolve_entry_path(root, member.linkname)
    if not source.is_file():
        _LOGGER.debug("Skipping hard link %s to missing member %s", member.name, member.linkname)
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    _unlink_existing(destination)
    shutil.copy2(source, destination)


def _unlink_existing(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()


def _restore_mode(path: Path, mode: int) -> None:
    permissions = mode & _PERMISSION_MASK
    if not permissions or os.name == "nt":
        return
    try:
        path.chmod(permissions | 0o200)
    except OSError:
        _LOGGER.debug("Unable to restore permissions on %s", path, exc_info=True)
