"""Fingerprint cache for blueprint analyses.

Content-addressed, time-bounded memoization of analysis results. Keys are
cheap fingerprints (filename, byte length and a 100-byte sample per image),
not cryptographic hashes: a collision only returns an equivalent stale
result.
"""

import base64
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog

from config.settings import settings
from models.analysis import AnalysisRequest, AnalysisResult

logger = structlog.get_logger(__name__)

FINGERPRINT_SAMPLE_BYTES = 100


def make_cache_key(request: AnalysisRequest) -> str:
    """Derive the cache key for a request.

    Two requests with the same trade, analysis level, project type and image
    fingerprints produce the same key.
    """
    file_hash = "|".join(
        f"{image.filename}-"
        f"{base64.b64encode(image.data[:FINGERPRINT_SAMPLE_BYTES]).decode('ascii')}-"
        f"{image.byte_length}"
        for image in request.images
    )
    return (
        f"{request.trade.value}-{request.analysis_level.value}-"
        f"{request.project_type or ''}-{file_hash}"
    )


@dataclass
class CacheEntry:
    """A cached result and when it was stored."""
    result: AnalysisResult
    created_at: float


class AnalysisCache:
    """In-memory TTL cache of analysis results.

    Stale entries are swept on every ``put`` and treated as misses on
    ``get``. A lock guards the map so threaded callers cannot lose updates.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize AnalysisCache.

        Args:
            ttl_seconds: Entry lifetime (default from settings, 1 hour).
            clock: Monotonic time source, injectable for tests.
        """
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.analysis_cache_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_stale(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    def get(self, key: str) -> Optional[AnalysisResult]:
        """Get a cached result, or None on a miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_stale(entry, self._clock()):
                return None
            return entry.result

    def put(self, key: str, result: AnalysisResult) -> None:
        """Cache a result and sweep expired entries."""
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(result=result, created_at=now)
            expired = [k for k, entry in self._entries.items() if self._is_stale(entry, now)]
            for k in expired:
                del self._entries[k]

        if expired:
            logger.debug("analysis_cache_swept", expired=len(expired))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


_default_cache: Optional[AnalysisCache] = None
_default_cache_lock = threading.Lock()


def get_default_cache() -> AnalysisCache:
    """Get the process-wide cache, creating it on first use."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = AnalysisCache()
        return _default_cache
