from functools import lru_cache
from typing import List, Literal
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "RecommendationEngine"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "reco"

    # Redis (optional: empty disables caches and the event retry queue)
    REDIS_URL: str = ""

    # OpenAI (optional: empty disables the LLM re-ranker)
    OPENAI_API_KEY: str = ""
    OPENAI_RERANK_MODEL: str = "gpt-4o-mini"

    # Experiment
    experiment_name: str = "reco_strategy"
    experiment_cache_ttl: int = 60                 # seconds
    experiment_timeout_ms: int = 150               # slower lookups fall back to control

    # Request bounds
    default_limit: int = 10
    max_limit: int = 50
    candidate_multiplier: int = 3                  # candidates asked per generator = limit * multiplier

    # Candidate generation
    generator_timeout_ms: int = 800                # shared deadline for the fan-out
    similar_users_k: int = 20
    trending_cache_ttl: int = 5 * 60               # 5 minutes

    # Re-ranking
    rerank_enabled: bool = True
    rerank_timeout_ms: int = 1500
    rerank_variants: List[str] = ["personalized"]
    rerank_max_candidates: int = 40

    # Event log retry queue
    events_retry_key: str = "reco:events:pending"
    events_retry_interval_s: int = 30

    # API
    api_prefix: str = "/api/v1"

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
