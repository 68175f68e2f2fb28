"""In-memory TTL cache for fetched report collections."""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: Hashable
    value: Any
    stored_at: float


class ReportCache:
    """Dict-backed cache with one TTL for every entry.

    Stale entries are dropped lazily on lookup. ``invalidate`` is the only
    way to clear entries; it also bumps ``generation`` so a fetch that began
    before a write cannot store its (now stale) result afterwards.
    """

    def __init__(self, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = settings.REPORTS_CACHE_TTL_SECONDS if ttl is None else ttl
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self.generation = 0

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl:
            del self._entries[key]
            logger.debug("Cache entry %r expired", key)
            return None
        return entry.value

    def set(self, key: Hashable, value: Any, generation: Optional[int] = None) -> bool:
        """Store ``value``. Returns False (and stores nothing) when
        ``generation`` is given and an invalidation happened since."""
        if generation is not None and generation != self.generation:
            logger.debug("Dropping cache write for %r from generation %s", key, generation)
            return False
        self._entries[key] = CacheEntry(key, value, self._clock())
        return True

    def invalidate(self) -> None:
        self._entries.clear()
        self.generation += 1

    def __len__(self) -> int:
        return len(self._entries)
