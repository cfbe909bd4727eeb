"""Progress sinks for archive downloads."""

from __future__ import annotations

import logging
import sys
from typing import Callable, TextIO

_LOGGER = logging.getLogger(__name__)

__all__ = ["LoggingProgressReporter", "ProgressBarPrinter", "ProgressCallback"]

ProgressCallback = Callable[[int], None]


class ProgressBarPrinter:
    """Render a single-line ``#`` progress bar for a download of known size."""

    def __init__(self, total_bytes: int, prefix: str, stream: TextIO | None = None) -> None:
        self._total = total_bytes
        self._prefix = prefix
        self._stream = stream if stream is not None else sys.stderr
        self._count = 0
        self._previous_percentage = -1

    def __call__(self, increment: int) -> None:
        self._count += increment
        if self._total <= 0:
            return
        percentage = min(100, (self._count * 100) // self._total)
        if percentage == self._previous_percentage:
            return
        self._previous_percentage = percentage
        bar = "#" * (percentage // 4)
        self._stream.write(f"{self._prefix} - {bar} [{percentage} %]\r")
        if percentage == 100:
            self._stream.write("\n")
        self._stream.flush()


class LoggingProgressReporter:
    """Log download progress every ``step`` percent."""

    def __init__(self, total_bytes: int, prefix: str, *, step: int = 10) -> None:
        self._total = total_bytes
        self._prefix = prefix
        self._step = max(1, step)
        self._count = 0
        self._next_threshold = self._step

    def __call__(self, increment: int) -> None:
        self._count += increment
        if self._total <= 0:
            return
        percentage = (self._count * 100) // self._total
        if percentage < self._next_threshold:
            return
        _LOGGER.info("%s: %s%% (%s/%s bytes)", self._prefix, min(percentage, 100), self._count, self._total)
        while self._next_threshold <= percentage:
            self._next_threshold += self._step
