"""In-process LRU cache for finished aggregation results.

Entries are stored as their JSON serialization, which is both the unit of
the byte budget and what keeps cached results isolated from callers that
mutate the rows they get back. There is no invalidation: the dataset is
reloaded in batches and a restart clears the cache.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from config import get_settings
from schemas import AggregatedLineItemsResult, AnalyticsFilter

logger = logging.getLogger(__name__)


def fingerprint(
    filter: AnalyticsFilter, limit: Optional[int], offset: Optional[int]
) -> str:
    payload = {
        "filter": filter.model_dump(mode="json", exclude_none=True),
        "limit": limit,
        "offset": offset,
    }
    s = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheStats:
    hits: int
    misses: int
    size: int
    bytes: int


class ResultCache:
    def __init__(self, max_items: int, max_bytes: int) -> None:
        self.max_items = max_items
        self.max_bytes = max_bytes
        self._entries: OrderedDict[str, str] = OrderedDict()
        self._bytes = 0
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[AggregatedLineItemsResult]:
        with self._lock:
            payload = self._entries.get(key)
            if payload is None:
                self._misses += 1
                logger.debug(f"result_cache_miss: key={key[:12]}")
                return None
            self._entries.move_to_end(key)
            self._hits += 1
        logger.debug(f"result_cache_hit: key={key[:12]}")
        return AggregatedLineItemsResult.model_validate_json(payload)

    def set(self, key: str, result: AggregatedLineItemsResult) -> None:
        payload = result.model_dump_json()
        size = len(payload.encode("utf-8"))
        if size > self.max_bytes or self.max_items <= 0:
            logger.debug(f"result_cache_skip: key={key[:12]} bytes={size}")
            return

        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._bytes -= len(previous.encode("utf-8"))
            self._entries[key] = payload
            self._bytes += size
            evicted = self._evict()

        if evicted:
            logger.debug(f"result_cache_evict: count={evicted} bytes={self._bytes}")

    def _evict(self) -> int:
        evicted = 0
        while self._entries and (
            len(self._entries) > self.max_items or self._bytes > self.max_bytes
        ):
            _, payload = self._entries.popitem(last=False)
            self._bytes -= len(payload.encode("utf-8"))
            evicted += 1
        return evicted

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._bytes = 0
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entries),
                bytes=self._bytes,
            )


@lru_cache(maxsize=1)
def get_result_cache() -> ResultCache:
    settings = get_settings()
    return ResultCache(
        max_items=settings.cache_max_items, max_bytes=settings.cache_max_bytes
    )
