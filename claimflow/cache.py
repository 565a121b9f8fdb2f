"""Query keys and stale-marking cache for claim views.

Cached claim views (detail, lists, file lists) belong to the data-fetching
layer. The lifecycle core never writes into them; after a successful
mutation it only marks affected keys stale so they are refetched before the
next read. Keys are tuples, and invalidating a key invalidates every key it
prefixes, so ``claim_keys.lists()`` covers every filtered list.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]


class _ClaimKeys:
    """Key factory for claim queries."""

    all: QueryKey = ("claims",)

    def lists(self) -> QueryKey:
        return self.all + ("list",)

    def list(self, query: Optional[Dict[str, Any]] = None) -> QueryKey:
        frozen = tuple(sorted((query or {}).items()))
        return self.lists() + (frozen,)

    def details(self) -> QueryKey:
        return self.all + ("detail",)

    def detail(self, claim_id: str) -> QueryKey:
        return self.details() + (claim_id,)

    def files(self, claim_id: str) -> QueryKey:
        return self.detail(claim_id) + ("files",)

    def pending_files(self) -> QueryKey:
        return self.all + ("files", "pending")


claim_keys = _ClaimKeys()


@dataclass
class CacheEntry:
    data: Any
    stale: bool = False


class QueryCache:
    """In-memory cache of query results keyed by tuple.

    The data-fetching layer calls ``set``/``get``; the lifecycle core only
    calls ``invalidate``. An optional ``on_invalidate`` hook lets a caller
    trigger refetches.

    Examples:
        >>> cache = QueryCache()
        >>> cache.set(claim_keys.detail("c1"), {"id": "c1"})
        >>> cache.invalidate(claim_keys.details())
        1
        >>> cache.is_stale(claim_keys.detail("c1"))
        True
    """

    def __init__(self, on_invalidate: Optional[Callable[[QueryKey], None]] = None):
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._on_invalidate = on_invalidate

    def set(self, key: QueryKey, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data)

    def get(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry else None

    def is_stale(self, key: QueryKey) -> bool:
        """A key is stale once invalidated, and also when it was never fetched."""
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def invalidate(self, prefix: QueryKey) -> int:
        """Mark every cached key starting with ``prefix`` stale.

        Returns:
            Number of entries marked stale
        """
        count = 0
        for key, entry in self._entries.items():
            if key[: len(prefix)] == prefix:
                entry.stale = True
                count += 1
        logger.debug("Invalidated %d cache entries under %s", count, prefix)
        if self._on_invalidate is not None:
            self._on_invalidate(prefix)
        return count


__all__ = [
    "QueryKey",
    "claim_keys",
    "CacheEntry",
    "QueryCache",
]
