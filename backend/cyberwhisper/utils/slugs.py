"""Helpers for URL-safe content identifiers."""

from __future__ import annotations

import re
import threading
import time
from typing import Callable, Optional

__all__ = [
    "slugify",
    "to_base36",
    "SlugSuffixer",
]

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def slugify(value: str) -> str:
    """Return a URL-safe slug for *value*.

    Lowercase, trim, drop characters other than ASCII word characters,
    whitespace and hyphens, turn whitespace runs into single hyphens,
    collapse repeated hyphens and strip them from both ends.
    """
    value = value.lower().strip()
    value = re.sub(r"[^\w\s-]", "", value, flags=re.ASCII)
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be >= 0")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


class SlugSuffixer:
    """Appends a base-36 time suffix to a base slug.

    Suffixes come from the clock in milliseconds and never repeat within
    one instance: a tick that is not past the last one issued is bumped
    forward by one.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._last = 0
        self._lock = threading.Lock()

    def _next_tick(self) -> int:
        tick = int(self._clock() * 1000)
        with self._lock:
            if tick <= self._last:
                tick = self._last + 1
            self._last = tick
        return tick

    def suffix(self) -> str:
        return to_base36(self._next_tick())

    def __call__(self, base_slug: str) -> str:
        return f"{base_slug}-{self.suffix()}"
