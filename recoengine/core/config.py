from functools import lru_cache
from typing import Literal
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "RecoEngine"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo (read-only catalog/order store)
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "shop"
    MONGO_TLS: bool = False
    mongo_timeout_ms: int = 6000               # connect + server selection
    query_max_time_ms: int = 3000              # maxTimeMS on every read

    # Engine
    generator_timeout_s: float = 5.0           # per candidate generator
    similarity_threshold: float = 0.3
    similarity_pool_limit: int = 5000          # max candidate users scanned
    co_purchase_pool_limit: int = 200          # max co-purchased ids mined

    # API
    api_prefix: str = "/api"
    ALLOWED_ORIGINS: str = ""                  # CSV

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
