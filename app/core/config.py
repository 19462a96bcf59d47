from functools import lru_cache
from typing import Literal, Optional
import os
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]
CacheBackend = Literal["memory", "redis"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "AIUpsell"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo (catalog + time tracking collections)
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "ai-upsell"

    # Redis (optional, only used when reco_cache_backend == "redis")
    REDIS_URL: Optional[str] = None

    # LLM (any OpenAI-compatible endpoint, Groq by default)
    LLM_API_KEY: Optional[str] = Field(default=None, validation_alias=AliasChoices("LLM_API_KEY", "GROQ_API_KEY"))
    LLM_BASE_URL: str = "https://api.groq.com/openai/v1"
    LLM_MODEL: str = "llama-3.3-70b-versatile"
    llm_timeout_s: float = 15.0
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1000

    # Recommendation cache
    reco_cache_enabled: bool = True
    reco_cache_backend: CacheBackend = "memory"
    reco_cache_ttl: int = 5 * 60               # 5 minutes
    reco_cache_max_entries: int = 500

    # Personalization
    history_window_days: int = 30
    browsing_top_n: int = 5
    cart_top_n: int = 8

    # Request limits
    default_limit: int = 4
    max_limit: int = 20

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True, populate_by_name=True)

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
