from __future__ import annotations

import hashlib
import json
import threading
import time

from .config import DEFAULT_CACHE_CONFIG, IntentCacheConfig
from .models import FoodIntent

_cache: dict[str, dict] = {}
_lock = threading.Lock()
_hits: int = 0
_misses: int = 0


def make_fingerprint(text: str, language: str, include_nutrition: bool) -> str:
    normalized = json.dumps(
        {"text": text, "language": language, "include_nutrition": include_nutrition},
        sort_keys=True,
    )
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def cache_get(
    fingerprint: str,
    config: IntentCacheConfig = DEFAULT_CACHE_CONFIG,
) -> FoodIntent | None:
    global _hits, _misses
    with _lock:
        entry = _cache.get(fingerprint)
        if entry and time.time() - entry["created_at"] < config.ttl_seconds:
            _hits += 1
            return entry["value"]
        if entry:
            del _cache[fingerprint]
        _misses += 1
        return None


def cache_set(
    fingerprint: str,
    value: FoodIntent,
    config: IntentCacheConfig = DEFAULT_CACHE_CONFIG,
) -> None:
    now = time.time()
    with _lock:
        _cache[fingerprint] = {"value": value, "created_at": now}
        if len(_cache) > config.max_entries:
            _evict(now, config)


def _evict(now: float, config: IntentCacheConfig) -> None:
    expired = [k for k, e in _cache.items() if now - e["created_at"] >= config.ttl_seconds]
    for key in expired:
        del _cache[key]
    # Oldest first; dicts keep insertion order.
    while len(_cache) > config.max_entries:
        del _cache[next(iter(_cache))]


def get_cache_stats() -> dict:
    with _lock:
        total = _hits + _misses
        return {
            "keys": len(_cache),
            "hits": _hits,
            "misses": _misses,
            "hit_rate": round(_hits / total * 100, 1) if total > 0 else 0.0,
        }


def clear_cache() -> None:
    global _hits, _misses
    with _lock:
        _cache.clear()
        _hits = 0
        _misses = 0
