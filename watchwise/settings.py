from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env eagerly so uvicorn/gunicorn picks up values.
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    database_url: str = Field(..., alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    session_ttl_days: int = Field(30, alias="SESSION_TTL_DAYS")
    port: int = Field(8080, alias="PORT")
    cors_allow_origins: str = Field("*", alias="CORS_ALLOW_ORIGINS")

    youtube_api_key: Optional[SecretStr] = Field(None, alias="YOUTUBE_API_KEY")
    youtube_api_base_url: AnyHttpUrl = Field("https://www.googleapis.com/youtube/v3", alias="YOUTUBE_API_BASE_URL")
    youtube_history_max_results: int = Field(50, alias="YOUTUBE_HISTORY_MAX_RESULTS")

    llm_api_key: Optional[SecretStr] = Field(None, alias="LLM_API_KEY")
    llm_base_url: AnyHttpUrl = Field("https://ai.gateway.lovable.dev/v1", alias="LLM_BASE_URL")
    llm_model: str = Field("google/gemini-2.5-flash", alias="LLM_MODEL")

    upstream_timeout_seconds: float = Field(20.0, alias="UPSTREAM_TIMEOUT_SECONDS")
    aggregate_window_days: int = Field(7, alias="AGGREGATE_WINDOW_DAYS")
    default_time_zone: str = Field("UTC", alias="DEFAULT_TIME_ZONE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


def cors_origins_list(settings: Settings) -> List[str]:
    raw = settings.cors_allow_origins
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]
