from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class IntentCacheConfig:
    ttl_seconds: float = float(os.getenv("INTENT_CACHE_TTL", "3600"))
    max_entries: int = 1024


DEFAULT_CACHE_CONFIG = IntentCacheConfig()
