# moviereco/api/v1/schemas/reco.py
from pydantic import BaseModel, Field
from typing import List

from moviereco.domain.services.constants import DEFAULT_RECOMMENDATION_LIMIT


class RecommendRequest(BaseModel):
    query: str = ""
    limit: int = Field(DEFAULT_RECOMMENDATION_LIMIT, ge=1)


class CompareRequest(BaseModel):
    movie_ids: List[int]


class VectorizeResult(BaseModel):
    processed: int
    skipped: int
    failed: int
    errors: List[str] = Field(default_factory=list)
    processing_time_ms: float
