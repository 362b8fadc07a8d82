# moviereco/domain/repositories/vector_cache_repo.py
from __future__ import annotations
from typing import Optional, Sequence
from redis.asyncio import Redis
import json, hashlib

"""
Note:
    - This repository is an adapter for caching QUERY embeddings in Redis.
    - No business logic here, just cache access (get/set).
    - Movie vectors live in the Mongo vector index, never in Redis.
"""

def _stable_hash(value: str, size: int = 8) -> str:
    """
    Generate a short, stable hash.
    Used for cache key versioning when the embedding model or the text changes.
    """
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:size]

class VectorCacheRepo:
    """
    Adapter for storing and retrieving query embeddings in Redis.
    """
    def __init__(self, redis: Redis, prefix: str = "qvec"):
        self.redis = redis
        self.prefix = prefix

    def key(self, text: str, model: str) -> str:
        """
        Build a unique cache key for a text's vector, based on the normalized text and model.
        """
        return f"{self.prefix}:{_stable_hash(model)}:{_stable_hash(text.strip().lower(), 20)}"

    async def get(self, key: str) -> Optional[list[float]]:
        if raw := await self.redis.get(key):
            return json.loads(raw)
        return None

    async def set(self, key: str, vector: Sequence[float], ttl: int) -> None:
        await self.redis.set(key, json.dumps(list(vector), separators=(",", ":")), ex=ttl)
