# moviereco/domain/repositories/enrichment_repo.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from moviereco.domain.models.movie import EnrichmentAttributes

_PROJECTION = {
    "_id": 0,
    "movie_id": 1,
    "sentiment": 1,
    "budget_tier": 1,
    "revenue_tier": 1,
    "effectiveness_score": 1,
    "target_audience": 1,
    "enriched_at": 1,
}


class EnrichmentCacheRepo:
    """
    LLM-derived attributes per movie in 'enriched_attributes' (one document per movie_id).
    Writes are full-replacement upserts stamped with a fresh enriched_at; nothing is versioned or deleted.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "enriched_attributes"):
        self.col = db[collection_name]

    async def ensure_indexes(self) -> None:
        await self.col.create_index("movie_id", unique=True)

    @staticmethod
    def _to_model(doc: dict) -> EnrichmentAttributes:
        doc = {k: v for k, v in doc.items() if k != "movie_id"}
        return EnrichmentAttributes.model_validate(doc)

    async def get(self, movie_id: int) -> Optional[EnrichmentAttributes]:
        doc = await self.col.find_one({"movie_id": movie_id}, _PROJECTION)
        return self._to_model(doc) if doc else None

    async def get_many(self, ids: Iterable[int]) -> Dict[int, EnrichmentAttributes]:
        ids = list(ids)
        if not ids:
            return {}
        cursor = self.col.find({"movie_id": {"$in": ids}}, _PROJECTION)
        return {doc["movie_id"]: self._to_model(doc) async for doc in cursor}

    async def upsert(self, movie_id: int, attributes: EnrichmentAttributes) -> EnrichmentAttributes:
        """Insert or fully replace the record for movie_id; returns what was stored."""
        stored = attributes.model_copy(update={"enriched_at": datetime.now(timezone.utc)})
        await self.col.update_one(
            {"movie_id": movie_id},
            {"$set": stored.model_dump()},
            upsert=True,
        )
        return stored
