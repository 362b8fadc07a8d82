from functools import lru_cache
from typing import Literal
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]
VectorSearchMode = Literal["atlas", "exact"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "MovieReco"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo (catalog, vectors, enrichment cache)
    MONGO_URI: str
    MONGO_DB: str

    # Redis is optional: query-vector cache + enrichment locks
    REDIS_URL: str = ""

    # Vector index
    vector_search_mode: VectorSearchMode = "atlas"   # "exact" for local Mongo without Atlas Search
    query_vector_cache_ttl: int = 24 * 3600          # 24h
    query_vector_cache_prefix: str = "qvec"

    # Enrichment backfill
    enrichment_lock_ttl: int = 60                    # seconds; one LLM call per movie at a time

    # OpenAI
    OPENAI_API_KEY: str
    openai_timeout_s: int = 30
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    OPENAI_MODEL_FULL: str = "gpt-4o"
    OPENAI_MODEL_MINI: str = "gpt-4o-mini"
    llm_max_attempts: int = 3
    llm_retry_delay_s: float = 2.0

    # API
    api_prefix: str = "/api"
    ALLOWED_ORIGINS: str = ""

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
