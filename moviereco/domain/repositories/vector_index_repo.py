# moviereco/domain/repositories/vector_index_repo.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Sequence
import logging

import numpy as np
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection

from moviereco.domain.models.movie import VectorHit
from moviereco.domain.services.constants import EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)

IndexState = Literal["missing", "empty", "ready"]


class VectorIndexRepo:
    """
    Nearest-neighbour store of movie embeddings in the 'movie_vectors' collection:
      { movie_id, embedding: [1536 floats], model, updated_at }

    Search modes:
      - "atlas": MongoDB Atlas $vectorSearch on a cosine index. Atlas reports
        score = (1 + cos) / 2, which is exactly 1 - distance/2.
      - "exact": brute-force cosine scan with numpy, for local Mongo without Atlas Search.
    """

    VECTOR_INDEX = "movie_vector_index"
    PATH = "embedding"

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        collection_name: str = "movie_vectors",
        mode: Literal["atlas", "exact"] = "atlas",
        dimensions: int = EMBEDDING_DIMENSIONS,
    ):
        self.db = db
        self.collection_name = collection_name
        self.col: AsyncIOMotorCollection = db[collection_name]
        self.mode = mode
        self.dimensions = dimensions

    def _check_dims(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise ValueError(f"Expected a {self.dimensions}-dim vector, got {len(vector)}")

    # ---------- State ----------
    async def count(self) -> int:
        return await self.col.count_documents({})

    async def state(self) -> IndexState:
        """'missing' when the index was never built, 'empty' when built but holds no vectors."""
        names = await self.db.list_collection_names(filter={"name": self.collection_name})
        if self.collection_name not in names:
            return "missing"
        return "ready" if await self.count() > 0 else "empty"

    async def existing_ids(self) -> set[int]:
        return {doc["movie_id"] async for doc in self.col.find({}, {"_id": 0, "movie_id": 1})}

    # ---------- Writes ----------
    async def ensure_indexes(self) -> None:
        await self.col.create_index("movie_id", unique=True)

    async def upsert(self, movie_id: int, vector: Sequence[float], *, model: str) -> None:
        """Insert or replace the embedding of one movie."""
        self._check_dims(vector)
        await self.col.update_one(
            {"movie_id": movie_id},
            {
                "$set": {
                    "embedding": [float(x) for x in vector],
                    "model": model,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
            upsert=True,
        )

    # ---------- Search ----------
    async def search(self, vector: Sequence[float], k: int) -> List[VectorHit]:
        """Top-k nearest movies by cosine distance, nearest first. Empty index -> []."""
        self._check_dims(vector)
        if k <= 0:
            return []
        if self.mode == "exact":
            return await self._exact_search(vector, k)
        return await self._atlas_search(vector, k)

    async def _atlas_search(self, vector: Sequence[float], k: int) -> List[VectorHit]:
        pipeline: List[Dict[str, Any]] = [
            {
                "$vectorSearch": {
                    "index": self.VECTOR_INDEX,
                    "path": self.PATH,
                    "queryVector": list(vector),
                    "numCandidates": max(200, 10 * k),
                    "limit": k,
                }
            },
            {"$project": {"_id": 0, "movie_id": 1, "score": {"$meta": "vectorSearchScore"}}},
        ]
        raw = [doc async for doc in self.col.aggregate(pipeline)]
        logger.info(f"Atlas $vectorSearch returned {len(raw)} results (k={k})")
        hits = []
        for r in raw:
            score = min(1.0, max(0.0, float(r.get("score", 0.0))))
            hits.append(VectorHit(movie_id=r["movie_id"], distance=2.0 * (1.0 - score)))
        return hits

    async def _exact_search(self, vector: Sequence[float], k: int) -> List[VectorHit]:
        ids: List[int] = []
        rows: List[List[float]] = []
        async for doc in self.col.find({}, {"_id": 0, "movie_id": 1, self.PATH: 1}):
            emb = doc.get(self.PATH)
            if emb and len(emb) == self.dimensions:
                ids.append(doc["movie_id"])
                rows.append(emb)
        if not ids:
            return []

        matrix = np.asarray(rows, dtype=np.float32)
        query = np.asarray(vector, dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        norms[norms == 0] = 1.0
        cosine = np.clip((matrix @ query) / norms, -1.0, 1.0)
        distances = 1.0 - cosine

        order = np.argsort(distances, kind="stable")[:k]
        logger.debug(f"Exact cosine scan over {len(ids)} vectors (k={k})")
        return [VectorHit(movie_id=ids[i], distance=float(np.clip(distances[i], 0.0, 2.0))) for i in order]
