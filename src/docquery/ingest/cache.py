"""Content-addressed fragment cache with lazy TTL expiry."""

from __future__ import annotations

import time
from collections.abc import Callable
from hashlib import blake2b

from docquery.config import CacheConfig
from docquery.obs.logging import get_logger
from docquery.types import CacheEntry, CacheStats, FragmentSet

logger = get_logger(__name__)


class FragmentCache:
    """Maps a document fingerprint to the fragment set computed for it.

    Entries are fresh while `now - created_at < ttl_seconds`. Stale entries are
    evicted lazily: on lookup of that entry, and by a full sweep on every `put`.
    Fingerprints are fast and non-cryptographic in intent; with `prefix_chars`
    set only the first characters of the content are hashed, so collisions
    between same-named, same-length documents are tolerated.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        label: str = "fragments",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or CacheConfig()
        self.label = label
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_seconds(self) -> float:
        return self.config.ttl_seconds

    def fingerprint(self, name: str, content: str) -> str:
        prefix = self.config.prefix_chars
        sample = content if prefix is None else content[:prefix]
        digest = blake2b(digest_size=8)
        digest.update(name.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(str(len(content)).encode("ascii"))
        digest.update(b"\x00")
        digest.update(sample.encode("utf-8"))
        kind = "full" if prefix is None else "fast"
        return f"{kind}_{digest.hexdigest()}_{len(content)}"

    def has(self, name: str, content: str) -> bool:
        return self._fresh_entry(name, content) is not None

    def get(self, name: str, content: str) -> FragmentSet | None:
        entry = self._fresh_entry(name, content)
        if entry is None:
            return None
        logger.debug(
            "fragment_cache_hit",
            cache=self.label,
            document=name,
            fragments=len(entry.fragment_set),
            age_seconds=round(self._clock() - entry.created_at, 3),
        )
        return entry.fragment_set

    def put(self, name: str, content: str, fragment_set: FragmentSet) -> None:
        key = self.fingerprint(name, content)
        self._entries[key] = CacheEntry(
            fingerprint=key,
            document_name=name,
            fragment_set=fragment_set,
            created_at=self._clock(),
        )
        logger.debug(
            "fragment_cache_store",
            cache=self.label,
            document=name,
            fragments=len(fragment_set),
            size=len(self._entries),
        )
        self._sweep()

    def clear(self) -> None:
        removed = len(self._entries)
        self._entries.clear()
        logger.info("fragment_cache_cleared", cache=self.label, removed=removed)

    def stats(self) -> CacheStats:
        return CacheStats(
            count=len(self._entries),
            document_names=[entry.document_name for entry in self._entries.values()],
        )

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at >= self.config.ttl_seconds

    def _fresh_entry(self, name: str, content: str) -> CacheEntry | None:
        key = self.fingerprint(name, content)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            logger.info("fragment_cache_expired", cache=self.label, document=name)
            return None
        return entry

    def _sweep(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("fragment_cache_swept", cache=self.label, removed=len(expired))
