"""Helpers for parsing and ordering runtime release names."""

from __future__ import annotations

import re

from packaging.version import InvalidVersion, Version

from services.runtime.models import InvalidRequestError

__all__ = [
    "compare_release_names",
    "is_release_newer",
    "parse_major_version",
    "release_sort_key",
]

_MAJOR_VERSION_PATTERN = re.compile(r"^\D+(\d+)")
_PREFIX_PATTERN = re.compile(r"^\D+")


def parse_major_version(release_name: str) -> int:
    """Return the feature version encoded in ``release_name``.

    ``jdk-16.0.1+9`` yields ``16`` and ``jdk8u292-b10`` yields ``8``.
    """

    match = _MAJOR_VERSION_PATTERN.match(release_name)
    if match is None:
        raise InvalidRequestError(
            f"Invalid release name {release_name!r}, examples: jdk-16.0.1+9, jdk8u292-b10"
        )
    return int(match.group(1))


def compare_release_names(current: str, candidate: str) -> int:
    """Compare ``candidate`` against ``current``.

    Returns ``1`` when ``candidate`` is newer, ``-1`` when it is older and ``0``
    when both name the same version. Names ``packaging`` cannot parse, such as
    ``jdk8u292-b10``, are compared token by token.
    """

    if candidate == current:
        return 0
    try:
        candidate_version = Version(_strip_prefix(candidate))
        current_version = Version(_strip_prefix(current))
    except InvalidVersion:
        return _fallback_compare(current, candidate)

    if candidate_version == current_version:
        return 0
    if candidate_version > current_version:
        return 1
    return -1


def is_release_newer(current: str, candidate: str) -> bool:
    return compare_release_names(current, candidate) > 0


def release_sort_key(release_name: str) -> tuple[int, object]:
    try:
        return (1, Version(_strip_prefix(release_name)))
    except InvalidVersion:
        return (0, tuple(_tokenize(release_name)))


def _strip_prefix(release_name: str) -> str:
    return _PREFIX_PATTERN.sub("", release_name.strip(), count=1)


def _tokenize(release_name: str) -> list[tuple[int, object]]:
    tokens: list[tuple[int, object]] = []
    for raw in re.split(r"[.\-+_]|(?<=\d)(?=\D)|(?<=\D)(?=\d)", _strip_prefix(release_name)):
        if not raw:
            continue
        if raw.isdigit():
            tokens.append((0, int(raw)))
        else:
            tokens.append((1, raw.lower()))
    return tokens


def _fallback_compare(current: str, candidate: str) -> int:
    current_tokens = _tokenize(current)
    candidate_tokens = _tokenize(candidate)
    length = max(len(current_tokens), len(candidate_tokens))
    for index in range(length):
        current_token = current_tokens[index] if index < len(current_tokens) else (0, 0)
        candidate_token = candidate_tokens[index] if index < len(candidate_tokens) else (0, 0)
        if candidate_token != current_token:
            return 1 if candidate_token > current_token else -1
    return 0
