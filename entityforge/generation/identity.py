"""Deterministic, human-legible entity identifiers.

Ids have the form ``prefix_slug_count``: a three-letter category code, the
slugged entity name, and a per-(kind, category) counter zero-padded to three
digits. Counts past 999 simply grow wider.
"""

import logging
import re
import threading
from collections import defaultdict


logger = logging.getLogger(__name__)

_STRIP_PATTERN = re.compile(r"[^a-z0-9_\s]")
_WHITESPACE_PATTERN = re.compile(r"\s+")

FALLBACK_SLUG = "unnamed"


def slugify(name: str) -> str:
    """Lowercase, drop characters outside [a-z0-9_] and whitespace, join words with _.

    Idempotent: slugify(slugify(x)) == slugify(x).
    """
    lowered = name.lower()
    stripped = _STRIP_PATTERN.sub("", lowered).strip()
    return _WHITESPACE_PATTERN.sub("_", stripped)


def category_prefix(category: str) -> str:
    letters = re.sub(r"[^a-z]", "", category.lower())
    return letters[:3].ljust(3, "x")


class CounterStore:
    """In-memory per-(kind, category) counters with atomic increments.

    Safe to share between threads and asyncio tasks. State is lost when the
    store is discarded.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, dict[str, int]] = defaultdict(dict)

    def increment(self, kind: str, category: str) -> int:
        """Advance the counter for (kind, category) and return the new value."""
        with self._lock:
            bucket = self._counters[kind]
            bucket[category] = bucket.get(category, 0) + 1
            return bucket[category]

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
        logger.info("[Identity] entity counters reset")

    def snapshot(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {kind: dict(bucket) for kind, bucket in self._counters.items()}


class IdentityAllocator:
    """Formats ids from a CounterStore. Every call advances the counter."""

    def __init__(self, counters: CounterStore | None = None) -> None:
        self.counters = counters or CounterStore()

    def next_id(self, kind: str, category: str, name: str) -> str:
        count = self.counters.increment(kind, category)
        slug = slugify(name) or FALLBACK_SLUG
        return f"{category_prefix(category)}_{slug}_{count:03d}"

    def reset(self) -> None:
        self.counters.reset()
