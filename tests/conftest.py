"""
Pytest configuration for moviereco tests.

Sets environment defaults (so Settings can be built without a .env file) and
provides in-memory fakes for the Mongo collections and the OpenAI client.
"""
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_DB", "moviereco_test")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")

from moviereco.domain.models.movie import EnrichmentAttributes, Movie, RecommendationCandidate  # noqa: E402


# ---------- Mongo fakes -------------------------------------------------------

class AsyncCursor:
    """Async-iterable stand-in for a Motor cursor."""

    def __init__(self, docs):
        self._docs = list(docs)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._docs:
            raise StopAsyncIteration
        return self._docs.pop(0)


def _matches(doc: dict, flt: dict) -> bool:
    for field, cond in flt.items():
        value = doc.get(field)
        if isinstance(cond, dict):
            if "$in" in cond and value not in cond["$in"]:
                return False
            if "$nin" in cond and value in cond["$nin"]:
                return False
        elif value != cond:
            return False
    return True


def _project(doc: dict, projection) -> dict:
    out = {k: v for k, v in doc.items() if k != "_id"}
    if projection:
        keep = [k for k, v in projection.items() if v and k != "_id"]
        if keep:
            out = {k: v for k, v in out.items() if k in keep}
    return out


class FakeCollection:
    def __init__(self, name: str, docs=None):
        self.name = name
        self.docs = [dict(d) for d in (docs or [])]
        self.exists = bool(docs)
        self.indexes = []

    def find(self, flt=None, projection=None):
        return AsyncCursor(_project(d, projection) for d in self.docs if _matches(d, flt or {}))

    async def find_one(self, flt=None, projection=None):
        for d in self.docs:
            if _matches(d, flt or {}):
                return _project(d, projection)
        return None

    async def count_documents(self, flt):
        return sum(1 for d in self.docs if _matches(d, flt))

    async def create_index(self, key, **kwargs):
        self.exists = True
        self.indexes.append(key)
        return key

    async def update_one(self, flt, update, upsert=False):
        for d in self.docs:
            if _matches(d, flt):
                d.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, upserted_id=None)
        if upsert:
            self.exists = True
            self.docs.append({**flt, **update.get("$set", {})})
        return SimpleNamespace(matched_count=0, upserted_id=flt)


class FakeDB:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def list_collection_names(self, filter=None):
        names = [n for n, c in self.collections.items() if c.exists]
        if filter and "name" in filter:
            names = [n for n in names if n == filter["name"]]
        return names


@pytest.fixture
def fake_db():
    return FakeDB()


# ---------- OpenAI fakes ------------------------------------------------------

def completion(content, model="gpt-4o"):
    """Shape of a chat.completions.create response."""
    return SimpleNamespace(
        model=model,
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


def embedding_response(vectors):
    return SimpleNamespace(data=[SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)])


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.embeddings.create = AsyncMock()
    return client


# ---------- Domain builders ---------------------------------------------------

def make_movie(movie_id: int, **kwargs) -> Movie:
    data = {
        "movie_id": movie_id,
        "title": f"Movie {movie_id}",
        "overview": f"Overview of movie {movie_id}",
        "genres": ["Drama"],
        "release_date": "1999-03-31",
    }
    data.update(kwargs)
    return Movie(**data)


def make_enrichment(**kwargs) -> EnrichmentAttributes:
    data = {
        "sentiment": "positive",
        "budget_tier": "high",
        "revenue_tier": "success",
        "effectiveness_score": 80,
        "target_audience": "Adults who enjoy thrillers",
    }
    data.update(kwargs)
    return EnrichmentAttributes(**data)


def make_candidate(movie_id: int, enriched: bool = False, score=None) -> RecommendationCandidate:
    return RecommendationCandidate(
        movie=make_movie(movie_id),
        enrichment=make_enrichment() if enriched else None,
        score=score,
    )
