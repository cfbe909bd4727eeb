"""Hashing helpers for archive verification."""

from __future__ import annotations

import hashlib
from typing import BinaryIO

from services.runtime.constants import HASH_BLOCK_SIZE
from services.runtime.models import IntegrityError


def calculate_sha256(source: BinaryIO) -> str:
    digest = hashlib.sha256()
    for chunk in iter(lambda: source.read(HASH_BLOCK_SIZE), b""):
        digest.update(chunk)
    return digest.hexdigest()


def verify_sha256(source: BinaryIO, expected: str, name: str) -> str:
    """Raise :class:`IntegrityError` unless ``source`` hashes to ``expected``.

    ``name`` identifies the archive in the error message.
    """

    actual = calculate_sha256(source)
    if actual.lower() != expected.strip().lower():
        raise IntegrityError(
            f"Invalid checksum when downloading file {name} : {expected} != {actual}"
        )
    return actual
