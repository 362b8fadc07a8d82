# moviereco/domain/repositories/movie_repo.py

from __future__ import annotations
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
from moviereco.domain.models.movie import Movie, UserRating

_MOVIE_PROJECTION = {
    "_id": 0,
    "movie_id": 1,
    "imdb_id": 1,
    "title": 1,
    "overview": 1,
    "genres": 1,
    "production_companies": 1,
    "release_date": 1,
    "budget": 1,
    "revenue": 1,
    "runtime": 1,
    "language": 1,
    "status": 1,
}


class MovieRepo:
    """
    Read-only catalog backed by the 'movies' and 'ratings' collections:
      movies  = { movie_id, imdb_id, title, overview, genres, release_date, budget, revenue, ... }
      ratings = { rating_id, user_id, movie_id, rating (0-5), timestamp }
    Aggregate rating and rating count are computed from 'ratings' on read.
    """

    def __init__(self, db: AsyncIOMotorDatabase, movies: str = "movies", ratings: str = "ratings"):
        self.movies = db[movies]
        self.ratings = db[ratings]

    async def get_by_id(self, movie_id: int) -> Optional[Movie]:
        doc = await self.movies.find_one({"movie_id": movie_id}, _MOVIE_PROJECTION)
        return Movie.model_validate(doc) if doc else None

    async def get_by_ids(self, ids: Iterable[int]) -> List[Movie]:
        ids = list(ids)
        if not ids:
            return []
        cursor = self.movies.find({"movie_id": {"$in": ids}}, _MOVIE_PROJECTION)
        return [Movie.model_validate(doc) async for doc in cursor]

    # ----- Rating aggregates ------------------------------------------------

    async def _rating_stats(self, ids: List[int]) -> Dict[int, dict]:
        pipeline = [
            {"$match": {"movie_id": {"$in": ids}}},
            {"$group": {"_id": "$movie_id", "avg_rating": {"$avg": "$rating"}, "rating_count": {"$sum": 1}}},
        ]
        return {doc["_id"]: doc async for doc in self.ratings.aggregate(pipeline)}

    async def get_many_with_ratings(self, ids: Iterable[int]) -> Dict[int, Movie]:
        """Movies keyed by id, with avg_rating / rating_count filled. Unknown ids are absent."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            return {}
        stats = await self._rating_stats(ids)
        out: Dict[int, Movie] = {}
        async for doc in self.movies.find({"movie_id": {"$in": ids}}, _MOVIE_PROJECTION):
            st = stats.get(doc["movie_id"], {})
            out[doc["movie_id"]] = Movie.model_validate(
                {**doc, "avg_rating": st.get("avg_rating"), "rating_count": st.get("rating_count", 0)}
            )
        return out

    async def list_sample(self, limit: int = 100) -> List[Movie]:
        """Most-rated movies first (popularity = rating count)."""
        pipeline = [
            {"$group": {"_id": "$movie_id", "rating_count": {"$sum": 1}}},
            {"$sort": {"rating_count": -1, "_id": 1}},
            {"$limit": limit},
        ]
        ordered_ids = [doc["_id"] async for doc in self.ratings.aggregate(pipeline)]
        by_id = await self.get_many_with_ratings(ordered_ids)
        return [by_id[i] for i in ordered_ids if i in by_id]

    # ----- Users --------------------------------------------------------------

    async def list_user_history(self, user_id: int) -> List[UserRating]:
        """Every rating of a user joined with its movie; ratings of unknown movies are skipped."""
        pipeline = [
            {"$match": {"user_id": user_id}},
            {"$lookup": {
                "from": self.movies.name,
                "localField": "movie_id",
                "foreignField": "movie_id",
                "as": "movie",
            }},
            {"$unwind": {"path": "$movie", "preserveNullAndEmptyArrays": True}},
            {"$project": {"_id": 0, "rating": 1, "timestamp": 1, "movie": 1}},
        ]
        history: List[UserRating] = []
        async for doc in self.ratings.aggregate(pipeline):
            movie = doc.get("movie")
            if not movie:
                continue
            movie.pop("_id", None)
            history.append(UserRating(movie=Movie.model_validate(movie), rating=doc["rating"], timestamp=doc.get("timestamp")))
        return history

    async def user_rating_stats(self, user_id: int) -> Tuple[int, Optional[float]]:
        """(rating count, average rating) over every rating of the user, resolvable movie or not."""
        pipeline = [
            {"$match": {"user_id": user_id}},
            {"$group": {"_id": None, "avg_rating": {"$avg": "$rating"}, "rating_count": {"$sum": 1}}},
        ]
        async for doc in self.ratings.aggregate(pipeline):
            return doc["rating_count"], doc["avg_rating"]
        return 0, None

    async def list_user_ids(self, limit: int = 20) -> List[int]:
        pipeline = [
            {"$group": {"_id": "$user_id"}},
            {"$sort": {"_id": 1}},
            {"$limit": limit},
        ]
        return [doc["_id"] async for doc in self.ratings.aggregate(pipeline)]

    async def iter_for_embedding(self) -> AsyncIterator[Movie]:
        """Movies that have an overview (the embedding text needs one)."""
        cursor = self.movies.find({"overview": {"$nin": [None, ""]}}, _MOVIE_PROJECTION)
        async for doc in cursor:
            yield Movie.model_validate(doc)
