from pydantic import BaseModel, Field, field_validator
from typing import Any, Literal, Optional, List
from datetime import datetime
import json

Sentiment = Literal["positive", "neutral", "negative"]
BudgetTier = Literal["low", "medium", "high", "blockbuster"]
RevenueTier = Literal["flop", "moderate", "success", "blockbuster"]


def _names(value: Any) -> List[str]:
    """
    Normalize TMDB-style name lists. The catalog was imported from CSV, so a field
    can be a JSON string ('[{"id": 28, "name": "Action"}]'), a list of such dicts,
    a list of plain strings, or a comma separated string.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except ValueError:
            return [p.strip() for p in raw.split(",") if p.strip()]
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []
    out: List[str] = []
    for v in value:
        name = v.get("name") if isinstance(v, dict) else v
        if isinstance(name, str) and name.strip():
            out.append(name.strip())
    return out


class EnrichmentAttributes(BaseModel):
    sentiment: Sentiment
    budget_tier: BudgetTier
    revenue_tier: RevenueTier
    effectiveness_score: int = Field(ge=0, le=100)
    target_audience: str
    enriched_at: Optional[datetime] = None

    model_config = {"frozen": True}  # immuable = safe


class Movie(BaseModel):
    movie_id: int
    imdb_id: Optional[str] = None
    title: str = "Unknown"
    overview: Optional[str] = None
    genres: List[str] = []
    production_companies: List[str] = []
    release_date: Optional[str] = None
    budget: Optional[int] = None
    revenue: Optional[int] = None
    runtime: Optional[float] = None
    language: Optional[str] = None
    status: Optional[str] = None
    avg_rating: Optional[float] = None
    rating_count: int = 0
    enrichment: Optional[EnrichmentAttributes] = None

    model_config = {"frozen": True}  # immuable = safe

    @field_validator("genres", "production_companies", mode="before")
    @classmethod
    def _normalize_names(cls, v):
        return _names(v)

    @property
    def release_year(self) -> Optional[str]:
        return self.release_date[:4] if self.release_date else None


class VectorHit(BaseModel):
    movie_id: int
    distance: float = Field(ge=0.0, le=2.0)  # cosine distance

    model_config = {"frozen": True}

    @property
    def similarity(self) -> float:
        """Cosine distance [0, 2] mapped to a similarity in [0, 1]."""
        return 1.0 - self.distance / 2.0


class RecommendationCandidate(BaseModel):
    """Request-scoped join of a catalog movie, its cached enrichment (if any) and the retrieval score."""
    movie: Movie
    enrichment: Optional[EnrichmentAttributes] = None
    score: Optional[float] = None

    model_config = {"frozen": True}

    @property
    def movie_id(self) -> int:
        return self.movie.movie_id

    @property
    def is_enriched(self) -> bool:
        return self.enrichment is not None


class UserRating(BaseModel):
    movie: Movie
    rating: float
    timestamp: Optional[int] = None

    model_config = {"frozen": True}


# ---------- Validated LLM outputs --------------------------------------------

class RankedMovie(BaseModel):
    movie_id: int
    match_score: float = Field(ge=0, le=100)
    match_reason: str
    enrichment: Optional[EnrichmentAttributes] = None


class RankingOutput(BaseModel):
    recommendations: List[RankedMovie]
    reasoning: str


class PreferencesOutput(BaseModel):
    summary: str
    favorite_genres: List[str]
    likes_big_budget: bool
    prefers_classics: bool


# ---------- Caller-facing results --------------------------------------------

class Recommendation(BaseModel):
    movie: Movie
    match_score: float = Field(ge=0, le=100)
    match_reason: str


class RecommendationResult(BaseModel):
    recommendations: List[Recommendation] = []
    reasoning: str
    enhanced_query: Optional[str] = None


class TopRatedMovie(BaseModel):
    title: str
    rating: float


class PreferenceSummary(BaseModel):
    user_id: int
    summary: str
    favorite_genres: List[str]
    likes_big_budget: bool
    prefers_classics: bool
    average_rating: float
    rating_count: int
    top_rated: List[TopRatedMovie]


class ComparisonWinner(BaseModel):
    movie_id: Optional[int] = None
    title: Optional[str] = None
    reason: Optional[str] = None


class ComparisonResult(BaseModel):
    movies: List[Movie]
    comparison: str
    winner: Optional[ComparisonWinner] = None
